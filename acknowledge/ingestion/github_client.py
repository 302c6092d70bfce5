"""
GitHub contributor fetcher.

For every GitHub source, fetches repository metadata and the paginated
contributor list from the GitHub REST API and streams one ContributorRecord
per contributor as soon as each page arrives.

Rate limiting:
    GitHub publishes a per-token quota at GET /rate_limit (5000 req/hr
    authenticated, 60 req/hr anonymous). GitHubQuota reads it once, lazily,
    then decrements a local counter per request actually issued. When the
    counter reaches zero the fetcher blocks until the published reset time,
    printing a live countdown, then re-reads the quota. The wait is rounded
    up to whole seconds; if GitHub still reports the old window, the fetcher
    sleeps at least one more second before asking again. The previous
    window's limit is added to the new one so the countdown can report the
    total number of requests made.

Failure policy:
    HTTP 404 on a repository → WARNING, source skipped.
    Anything else → GitHubAPIError, fatal for this fetcher unless
    ``config.keep_going`` is set.
"""
import json
import logging
import math
import re
import sys
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, TextIO

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.exceptions import GitHubAPIError
from acknowledge.ingestion.records import ContributorRecord
from acknowledge.ingestion.sources import GitHubSource
from acknowledge.storage.cache import Cache

logger = logging.getLogger(__name__)

_LINK_LAST = re.compile(r'<([^>]+)>;\s*rel="last"')


@dataclass(frozen=True)
class RateLimit:
    """The ``core`` resource of GET /rate_limit."""

    limit: int
    remaining: int
    reset: int  # epoch seconds


def _last_page(link_header: Optional[str]) -> Optional[int]:
    """Extract the page number of the ``rel="last"`` link, if present.

    Examples:
        >>> _last_page('<https://api.github.com/x?per_page=100&page=3>; rel="last"')
        3
        >>> _last_page(None) is None
        True
    """
    if not link_header:
        return None
    match = _LINK_LAST.search(link_header)
    if not match:
        return None
    query = urllib.parse.urlparse(match.group(1)).query
    pages = urllib.parse.parse_qs(query).get("page")
    if not pages:
        return None
    try:
        return int(pages[0])
    except ValueError:
        return None


class GitHubClient:
    """Thin GitHub REST client over urllib.

    Args:
        token:  Personal access token; anonymous requests if None.
        config: AcknowledgeConfig supplying base URL, page size and timeout.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        config: AcknowledgeConfig = DEFAULT_CONFIG,
    ) -> None:
        self._token = token
        self._config = config

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def _get(self, path: str) -> tuple[Any, dict[str, str]]:
        """GET ``{api_base}{path}`` and return (parsed JSON, response headers).

        Raises:
            GitHubAPIError: on any HTTP, network or decoding failure. The
                ``status`` attribute carries the HTTP code when there is one.
        """
        url = f"{self._config.github_api_base}{path}"
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": self._config.user_agent,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        logger.debug("GitHub GET %s", path)
        try:
            req = urllib.request.Request(url, headers=headers)
            with urllib.request.urlopen(req, timeout=self._config.http_timeout_s) as resp:
                body = resp.read()
                response_headers = dict(resp.headers.items())
        except urllib.error.HTTPError as exc:
            raise GitHubAPIError(
                f"GitHub HTTP {exc.code} on {path}: {exc.reason}", url=url, status=exc.code
            ) from exc
        except urllib.error.URLError as exc:
            raise GitHubAPIError(f"GitHub network error on {path}: {exc.reason}", url=url) from exc

        # 204 No Content (empty repository) has no body.
        if not body:
            return None, response_headers
        try:
            return json.loads(body), response_headers
        except ValueError as exc:
            raise GitHubAPIError(f"GitHub returned invalid JSON on {path}", url=url) from exc

    def get_rate_limit(self) -> RateLimit:
        data, _ = self._get("/rate_limit")
        core = ((data or {}).get("resources") or {}).get("core") or {}
        return RateLimit(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset=int(core.get("reset", 0)),
        )

    def get_repository(self, owner: str, repo: str) -> dict:
        data, _ = self._get(f"/repos/{owner}/{repo}")
        return data or {}

    def list_contributors(
        self, owner: str, repo: str, page: int = 1
    ) -> tuple[list[dict], Optional[int]]:
        """Fetch one page of contributors.

        Returns:
            (contributors, last_page) where last_page is None when the
            response carries no pagination links (single page).
        """
        data, headers = self._get(
            f"/repos/{owner}/{repo}/contributors"
            f"?per_page={self._config.github_per_page}&page={page}"
        )
        link = headers.get("Link") or headers.get("link")
        return (data if isinstance(data, list) else []), _last_page(link)


class GitHubQuota:
    """Locally tracked GitHub request quota.

    Owned by exactly one fetcher loop; not shared across threads.

    Args:
        client: GitHubClient used to (re)read GET /rate_limit.
        clock:  Returns the current epoch time in seconds.
        sleep:  Blocks for the given number of seconds.
        out:    Stream for the countdown display.
    """

    def __init__(
        self,
        client: GitHubClient,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        out: Optional[TextIO] = None,
    ) -> None:
        self._client = client
        self._clock = clock
        self._sleep = sleep
        self._out = out
        self.state: Optional[RateLimit] = None

    def consume(self) -> RateLimit:
        """Take one request unit, waiting for the reset window if exhausted."""
        if self.state is None:
            self.state = self._client.get_rate_limit()

        minimum = 0
        while self.state.remaining <= 0:
            self._wait_for_reset(self.state, minimum)
            fresh = self._client.get_rate_limit()
            if fresh.reset > self.state.reset:
                self.state = replace(fresh, limit=fresh.limit + self.state.limit)
            else:
                # Same window still reported (clock skew): back off before re-reading.
                self.state = replace(self.state, remaining=fresh.remaining)
                minimum = 1

        self.state = replace(self.state, remaining=self.state.remaining - 1)
        return self.state

    def _wait_for_reset(self, state: RateLimit, minimum: int = 0) -> None:
        out = self._out or sys.stdout
        seconds = max(math.ceil(state.reset - self._clock()), minimum)
        logger.info("GitHub quota exhausted, waiting %ds for reset", seconds)
        for _ in range(seconds):
            left = max(math.ceil(state.reset - self._clock()), 0)
            out.write(
                f"\rHonouring your contributors: {state.limit} requests were made, "
                f"now please honour GitHub's rate limit and wait kindly "
                f"{left // 60:02d}m {left % 60:02d}s..."
            )
            out.flush()
            self._sleep(1)
        if seconds > 0:
            out.write("\n")
            out.flush()


def _emit_page(
    project_name: str,
    contributors: Iterable[dict],
    emit: Callable[[ContributorRecord], None],
) -> list[dict]:
    kept: list[dict] = []
    for c in contributors:
        login = c.get("login")
        if not login:
            continue
        entry = {
            "login": login,
            "html_url": c.get("html_url") or "",
            "contributions": int(c.get("contributions") or 0),
        }
        emit(ContributorRecord(project_name, entry["login"], entry["html_url"], entry["contributions"]))
        kept.append(entry)
    return kept


def _replay_cached(cached: Any, emit: Callable[[ContributorRecord], None]) -> bool:
    if not (isinstance(cached, list) and len(cached) == 2):
        return False
    metadata, contributors = cached
    if not isinstance(metadata, dict) or not isinstance(contributors, list):
        return False
    _emit_page(metadata.get("name", ""), contributors, emit)
    return True


def fetch_repo_contributors(
    source: GitHubSource,
    client: GitHubClient,
    quota: GitHubQuota,
    emit: Callable[[ContributorRecord], None],
) -> tuple[dict, list[dict]]:
    """Fetch metadata and every contributor page for one repository.

    Each page's contributors are emitted before the next page is requested.
    One quota unit is consumed per request.

    Returns:
        (metadata, contributors) in the shape stored in the cache.
    """
    quota.consume()
    data = client.get_repository(source.owner, source.repo)
    project_name = data.get("name") or source.repo
    metadata = {
        "name": project_name,
        "full_name": data.get("full_name", f"{source.owner}/{source.repo}"),
        "html_url": data.get("html_url", source.url),
    }

    quota.consume()
    first, last_page = client.list_contributors(source.owner, source.repo, page=1)
    contributors = _emit_page(project_name, first, emit)

    for page in range(2, (last_page or 1) + 1):
        quota.consume()
        items, _ = client.list_contributors(source.owner, source.repo, page=page)
        contributors.extend(_emit_page(project_name, items, emit))

    return metadata, contributors


def fetch_github_contributors(
    sources: Iterable[GitHubSource],
    emit: Callable[[ContributorRecord], None],
    cache: Cache,
    client: Optional[GitHubClient] = None,
    quota: Optional[GitHubQuota] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> int:
    """
    Stream contributor records for every GitHub source.

    Cache-first per source (key = case-folded source URL); a hit replays the
    cached contributor list with no network calls. A miss fetches, emits
    page by page, then caches (metadata, contributors).

    Args:
        sources: GitHub sources to fetch.
        emit:    Callback receiving each ContributorRecord.
        cache:   Response cache.
        client:  GitHubClient (anonymous if omitted).
        quota:   GitHubQuota bound to ``client``; created if omitted.
        config:  Uses ``keep_going``.

    Returns:
        Number of sources that produced data (cached or fetched).

    Raises:
        GitHubAPIError: first non-404 failure when ``keep_going`` is False.
    """
    client = client or GitHubClient(config=config)
    quota = quota or GitHubQuota(client)
    done = 0

    for source in sources:
        key = source.cache_key
        if _replay_cached(cache.read(key), emit):
            logger.info("cached github.com data for: %s", key)
            done += 1
            continue

        logger.info("fetching github.com data for: %s %s", source.owner, source.repo)
        try:
            metadata, contributors = fetch_repo_contributors(source, client, quota, emit)
        except GitHubAPIError as exc:
            if exc.status == 404:
                logger.warning("GitHub repository not found, skipping: %s", key)
                continue
            if config.keep_going:
                logger.error("GitHub fetch failed for %s, skipping: %s", key, exc)
                continue
            raise

        cache.write(key, [metadata, contributors])
        done += 1

    return done
