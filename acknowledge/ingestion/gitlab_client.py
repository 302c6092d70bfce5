"""
GitLab-style host fetcher.

Any non-GitHub ``https://{host}/{owner}/{repo}`` source is assumed to speak
the GitLab REST API v4:

    GET https://{host}/api/v4/projects/{owner%2Frepo}
    GET https://{host}/api/v4/projects/{owner%2Frepo}/repository/contributors

Requests are unauthenticated and not rate limited. GitLab reports
contributors by commit author name and exposes no profile URL, so records
from this fetcher carry an empty profile_url.
Uses only Python stdlib (urllib.request).
"""
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Callable, Iterable, Optional

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.exceptions import GenericHostError
from acknowledge.ingestion.records import ContributorRecord
from acknowledge.ingestion.sources import GenericHostSource
from acknowledge.storage.cache import Cache

logger = logging.getLogger(__name__)


class GitLabClient:
    """Unauthenticated GitLab API v4 client."""

    def __init__(self, config: AcknowledgeConfig = DEFAULT_CONFIG) -> None:
        self._config = config

    @staticmethod
    def project_url(source: GenericHostSource) -> str:
        return f"https://{source.host}/api/v4/projects/{source.project_id}"

    def _get(self, url: str) -> Any:
        """GET *url* and return parsed JSON.

        Raises:
            GenericHostError: on any HTTP, network or decoding failure.
        """
        logger.debug("GitLab GET %s", url)
        try:
            req = urllib.request.Request(
                url,
                headers={"Accept": "application/json", "User-Agent": self._config.user_agent},
            )
            with urllib.request.urlopen(req, timeout=self._config.http_timeout_s) as resp:
                body = resp.read()
            return json.loads(body)
        except urllib.error.HTTPError as exc:
            raise GenericHostError(f"HTTP {exc.code} for {url}", url=url, status=exc.code) from exc
        except urllib.error.URLError as exc:
            raise GenericHostError(f"network error for {url}: {exc.reason}", url=url) from exc
        except ValueError as exc:
            raise GenericHostError(f"invalid JSON from {url}", url=url) from exc

    def get_project(self, source: GenericHostSource) -> dict:
        data = self._get(self.project_url(source))
        return data if isinstance(data, dict) else {}

    def list_contributors(self, source: GenericHostSource) -> list[dict]:
        data = self._get(f"{self.project_url(source)}/repository/contributors")
        return data if isinstance(data, list) else []


def _emit_all(
    project_name: str,
    contributors: Iterable[dict],
    emit: Callable[[ContributorRecord], None],
) -> list[dict]:
    kept: list[dict] = []
    for c in contributors:
        name = c.get("name")
        if not name:
            continue
        entry = {"name": name, "commits": int(c.get("commits") or 0)}
        emit(ContributorRecord(project_name, name, "", entry["commits"]))
        kept.append(entry)
    return kept


def fetch_generic_contributors(
    sources: Iterable[GenericHostSource],
    emit: Callable[[ContributorRecord], None],
    cache: Cache,
    client: Optional[GitLabClient] = None,
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> int:
    """
    Stream contributor records for every GitLab-style source.

    Cache-first per source (key = normalised source URL). On a miss, one call
    for project metadata and one for the contributor list; the pair is cached
    and the contributors emitted.

    Returns:
        Number of sources that produced data.

    Raises:
        GenericHostError: first non-404 failure when ``config.keep_going`` is False.
    """
    client = client or GitLabClient(config=config)
    done = 0

    for source in sources:
        key = source.url
        cached = cache.read(key)
        if isinstance(cached, list) and len(cached) == 2 and isinstance(cached[0], dict):
            logger.info("cached data for: %s", key)
            _emit_all(cached[0].get("name", source.repo), cached[1] or [], emit)
            done += 1
            continue

        logger.info("fetching %s data for: %s/%s", source.host, source.owner, source.repo)
        try:
            project = client.get_project(source)
            contributors = client.list_contributors(source)
        except GenericHostError as exc:
            if exc.status == 404:
                logger.warning("Project not found on %s, skipping: %s", source.host, key)
                continue
            if config.keep_going:
                logger.error("Fetch failed for %s, skipping: %s", key, exc)
                continue
            raise

        project_name = project.get("name") or source.repo
        kept = _emit_all(project_name, contributors, emit)
        cache.write(key, [{"name": project_name}, kept])
        done += 1

    return done
