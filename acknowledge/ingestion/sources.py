"""
acknowledge/ingestion/sources.py — Source classification.

Maps the repository strings found in Cargo manifests and crates.io metadata
onto one of three source kinds:

    GitHubSource       https://github.com/{owner}/{repo}
    GenericHostSource  https://{host}/{owner}/{repo}   (GitLab API v4 shape)
    UnsupportedSource  anything else — reported, never fetched

Normalisation applied before matching:
    - surrounding whitespace, ``git+`` prefixes, query strings and fragments
    - ``git@host:owner/repo`` SSH form → ``https://host/owner/repo``
    - ``http://`` → ``https://``
    - trailing slashes and a trailing ``.git`` on the repo segment
    - monorepo sub-paths (``/tree/main/crates/foo``) are dropped

classify_source() is total: it never raises, whatever it is given.
"""

import logging
import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Iterable, Union

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig

logger = logging.getLogger(__name__)

_SSH_PATTERN = re.compile(r"^(?:ssh://)?git@([^:/]+)[:/](.+)$")
_HTTPS_PATTERN = re.compile(r"^https://([^/@\s]+)/(.+)$")


@dataclass(frozen=True)
class GitHubSource:
    """A repository hosted on github.com (or the configured GitHub base).

    GitHub owner and repository names are case-insensitive: ``identity`` and
    ``cache_key`` are case-folded, while ``owner``/``repo`` keep the spelling
    first seen and are used for API calls.
    """

    owner: str
    repo: str
    web_base: str = field(default=DEFAULT_CONFIG.github_web_base, compare=False, repr=False)

    @property
    def url(self) -> str:
        return f"{self.web_base}/{self.owner}/{self.repo}"

    @property
    def identity(self) -> tuple[str, str]:
        return self.owner.lower(), self.repo.lower()

    @property
    def cache_key(self) -> str:
        return f"{self.web_base}/{self.owner.lower()}/{self.repo.lower()}"


@dataclass(frozen=True)
class GenericHostSource:
    """A repository on a GitLab-compatible host (gitlab.com, self-hosted)."""

    host: str
    owner: str
    repo: str

    @property
    def url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"

    @property
    def project_id(self) -> str:
        """Percent-encoded ``owner/repo`` as the GitLab projects API expects."""
        return urllib.parse.quote(f"{self.owner}/{self.repo}", safe="")


@dataclass(frozen=True)
class UnsupportedSource:
    """A string that could not be mapped to a fetchable repository."""

    raw: str

    @property
    def url(self) -> str:
        return self.raw


Source = Union[GitHubSource, GenericHostSource, UnsupportedSource]


def _owner_and_repo(path: str) -> tuple[str, str] | None:
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        return None
    owner, repo = segments[0], segments[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def _normalise(raw: str, config: AcknowledgeConfig) -> str:
    url = raw.strip()
    if url.startswith("git+"):
        url = url[len("git+"):]
    url = url.split("#", 1)[0].split("?", 1)[0]

    if url.startswith(config.github_ssh_prefix):
        url = f"{config.github_web_base}/{url[len(config.github_ssh_prefix):]}"
    else:
        ssh = _SSH_PATTERN.match(url)
        if ssh:
            url = f"https://{ssh.group(1)}/{ssh.group(2)}"

    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    return url.rstrip("/")


def classify_source(raw: object, config: AcknowledgeConfig = DEFAULT_CONFIG) -> Source:
    """
    Classify a repository string.

    Examples:
        >>> classify_source("git@github.com:serde-rs/serde.git")
        GitHubSource(owner='serde-rs', repo='serde')
        >>> classify_source("https://gitlab.com/tspiteri/rug")
        GenericHostSource(host='gitlab.com', owner='tspiteri', repo='rug')
        >>> classify_source("not a url")
        UnsupportedSource(raw='not a url')
    """
    if not isinstance(raw, str) or not raw.strip():
        return UnsupportedSource(raw="" if raw is None else str(raw))

    url = _normalise(raw, config)

    github_prefix = config.github_web_base.rstrip("/") + "/"
    if url.lower().startswith(github_prefix.lower()):
        parsed = _owner_and_repo(url[len(github_prefix):])
        if parsed is None:
            return UnsupportedSource(raw=raw)
        return GitHubSource(
            owner=parsed[0], repo=parsed[1], web_base=config.github_web_base.rstrip("/")
        )

    match = _HTTPS_PATTERN.match(url)
    if match:
        parsed = _owner_and_repo(match.group(2))
        if parsed is None:
            return UnsupportedSource(raw=raw)
        return GenericHostSource(host=match.group(1).lower(), owner=parsed[0], repo=parsed[1])

    return UnsupportedSource(raw=raw)


def partition_sources(
    urls: Iterable[str],
    config: AcknowledgeConfig = DEFAULT_CONFIG,
) -> tuple[list[GitHubSource], list[GenericHostSource], list[UnsupportedSource]]:
    """
    Split repository strings by source kind, de-duplicating after normalisation.

    Order of first appearance is preserved within each list. GitHub sources
    differing only in letter case are one repository; the first spelling is
    kept. Unsupported strings are logged at WARNING and returned so the
    caller can report them.
    """
    github: dict[tuple[str, str], GitHubSource] = {}
    generic: dict[GenericHostSource, None] = {}
    unsupported: dict[UnsupportedSource, None] = {}

    for url in urls:
        source = classify_source(url, config)
        if isinstance(source, GitHubSource):
            github.setdefault(source.identity, source)
        elif isinstance(source, GenericHostSource):
            generic[source] = None
        else:
            if source not in unsupported:
                logger.warning("Unsupported source, skipping: %r", source.raw)
            unsupported[source] = None

    return list(github.values()), list(generic), list(unsupported)
