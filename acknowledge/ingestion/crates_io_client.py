"""
crates.io API Client — repository lookup for dependencies without a git source.

Most Cargo dependencies are plain registry entries (``serde = "1"``). Their
repository URL comes from the ``crate.repository`` field of
GET /api/v1/crates/{name}.

Rate limit: 1 request/second (crates.io data-access policy), measured from the
start of one live request to the start of the next. Cached lookups do not
count against it. User-Agent header is mandatory per crates.io policy.
Uses only Python stdlib (urllib.request).

Unlike the host fetchers, any error here aborts the remaining lookups: the
phase fails as a whole with a RegistryError.

Reference: https://crates.io/data-access
"""
import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Callable, Iterable, Optional

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.exceptions import RegistryError
from acknowledge.storage.cache import Cache

logger = logging.getLogger(__name__)


def registry_cache_key(crate_name: str) -> str:
    return f"registry,{crate_name}"


class CratesIoClient:
    """Rate-limited client for the crates.io REST API.

    Enforces ``config.crates_io_min_interval_s`` between the starts of
    consecutive requests. ``clock`` and ``sleep`` are injectable so the
    throttle can be tested without waiting.
    """

    def __init__(
        self,
        config: AcknowledgeConfig = DEFAULT_CONFIG,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._min_interval = config.crates_io_min_interval_s
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self.requests_made = 0

    def _throttle(self) -> None:
        if self._last_call is not None:
            elapsed = self._clock() - self._last_call
            if elapsed < self._min_interval:
                self._sleep(self._min_interval - elapsed)
        self._last_call = self._clock()

    def _get(self, url: str) -> dict:
        """Rate-limited GET request to crates.io.

        Raises:
            RegistryError: on any HTTP, network or decoding failure.
        """
        self._throttle()
        self.requests_made += 1
        logger.debug("crates.io GET %s", url)

        try:
            req = urllib.request.Request(
                url,
                headers={
                    "Accept": "application/json",
                    "User-Agent": self._config.user_agent,
                },
            )
            with urllib.request.urlopen(req, timeout=self._config.http_timeout_s) as resp:
                body = resp.read()
            return json.loads(body)
        except urllib.error.HTTPError as exc:
            raise RegistryError(
                f"crates.io HTTP {exc.code} for {url}", url=url, status=exc.code
            ) from exc
        except urllib.error.URLError as exc:
            raise RegistryError(f"crates.io network error: {exc.reason}", url=url) from exc
        except ValueError as exc:
            raise RegistryError(f"crates.io returned invalid JSON for {url}", url=url) from exc

    def get_repository(self, crate_name: str) -> Optional[str]:
        """Return the ``repository`` URL declared for *crate_name*, if any."""
        encoded_name = urllib.parse.quote(crate_name, safe="")
        data = self._get(f"{self._config.crates_io_base}/crates/{encoded_name}")
        crate_data = data.get("crate") or {}
        repository = crate_data.get("repository")
        return repository or None


def resolve_repositories(
    crate_names: Iterable[str],
    emit: Callable[[str], None],
    cache: Cache,
    client: Optional[CratesIoClient] = None,
) -> int:
    """
    Resolve crate names to repository URLs, one at a time.

    For each name the cache is consulted first (key ``registry,<name>``); a hit
    emits the cached URL immediately with no delay. A miss issues one
    rate-limited crates.io request; the result is cached (including "no
    repository") and the URL, if present, is emitted.

    Args:
        crate_names: Registry package names to resolve.
        emit:        Callback receiving each repository URL (e.g. queue.put).
        cache:       Response cache.
        client:      CratesIoClient; a default one is created if omitted.

    Returns:
        Number of repository URLs emitted.

    Raises:
        RegistryError: the first failed lookup; remaining names are not tried.
    """
    client = client or CratesIoClient()
    emitted = 0

    for crate_name in crate_names:
        key = registry_cache_key(crate_name)
        cached = cache.read(key)
        if isinstance(cached, dict) and "repository" in cached:
            logger.info("cached crates.io data for: %s", crate_name)
            repository = cached["repository"]
        else:
            logger.info("fetching crates.io data for: %s", crate_name)
            repository = client.get_repository(crate_name)
            cache.write(key, {"repository": repository})

        if repository:
            emit(repository)
            emitted += 1
        else:
            logger.warning("crates.io lists no repository for: %s", crate_name)

    return emitted
