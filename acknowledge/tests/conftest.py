"""
acknowledge/tests/conftest.py — Shared pytest fixtures.

Every fixture is offline: network clients are subclassed with an in-memory
``_get`` and the cache is a MemoryCache.

Fixtures:
    memory_cache    — empty MemoryCache.
    fake_clock      — FakeClock (monotonic / epoch time + sleep that advances it).
    crates_io       — FakeCratesIo with a small registry.
    github          — FakeGitHub with three repositories.
    gitlab          — FakeGitLab with one project.
"""

import urllib.parse

import pytest

from acknowledge.exceptions import GenericHostError, GitHubAPIError, RegistryError
from acknowledge.ingestion.crates_io_client import CratesIoClient
from acknowledge.ingestion.github_client import GitHubClient
from acknowledge.ingestion.gitlab_client import GitLabClient
from acknowledge.storage.cache import MemoryCache


# ── Pytest configuration hooks ────────────────────────────────────────────────

def pytest_configure(config):
    """Register the integration marker."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that call real external APIs (deselected by default, "
        "pass --run-integration or -m integration to enable)",
    )


def pytest_addoption(parser):
    """Add --run-integration CLI flag to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call real external APIs.",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed or -m integration is used."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="Integration test -- pass --run-integration or -m integration to run"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ── Fakes ─────────────────────────────────────────────────────────────────────

class FakeClock:
    """Deterministic clock; ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCratesIo(CratesIoClient):
    """crates.io client answering from a dict of crate → repository URL.

    ``latency`` seconds are added to the clock on every request so the
    throttle sees realistic request durations.
    """

    def __init__(self, registry, clock=None, latency=0.0, fail_on=()):
        clock = clock or FakeClock()
        super().__init__(clock=clock, sleep=clock.sleep)
        self.registry = dict(registry)
        self.latency = latency
        self.fail_on = set(fail_on)
        self.fake_clock = clock
        self.request_starts: list[float] = []
        self.requested: list[str] = []

    def _get(self, url):
        self._throttle()
        self.requests_made += 1
        self.request_starts.append(self.fake_clock.now)
        name = urllib.parse.unquote(url.rsplit("/", 1)[-1])
        self.requested.append(name)
        self.fake_clock.advance(self.latency)
        if name in self.fail_on or name not in self.registry:
            raise RegistryError(f"crates.io HTTP 404 for {url}", url=url, status=404)
        return {"crate": {"name": name, "repository": self.registry[name]}}


def contributor(login, contributions):
    return {
        "login": login,
        "html_url": f"https://github.com/{login}",
        "contributions": contributions,
    }


class FakeGitHub(GitHubClient):
    """GitHub client serving repositories from memory.

    Args:
        repos:      {"owner/repo": [page1_contributors, page2_contributors, ...]}
        rate_limits: successive values returned by /rate_limit (last one repeats).
        errors:     {"owner/repo": status} to raise GitHubAPIError on the repo call.
    """

    def __init__(self, repos, rate_limits=None, errors=None):
        super().__init__(token="test-token")
        self.repos = repos
        self.rate_limits = list(rate_limits or [{"limit": 5000, "remaining": 5000, "reset": 0}])
        self.errors = dict(errors or {})
        self.calls: list[str] = []

    def _get(self, path):
        self.calls.append(path)
        if path == "/rate_limit":
            core = self.rate_limits.pop(0) if len(self.rate_limits) > 1 else self.rate_limits[0]
            return {"resources": {"core": core}}, {}

        parsed = urllib.parse.urlparse(path)
        parts = parsed.path.strip("/").split("/")
        full_name = f"{parts[1]}/{parts[2]}"
        if full_name in self.errors:
            status = self.errors[full_name]
            raise GitHubAPIError(f"GitHub HTTP {status}", url=path, status=status)
        if full_name not in self.repos:
            raise GitHubAPIError("GitHub HTTP 404", url=path, status=404)

        pages = self.repos[full_name]
        if len(parts) == 3:
            return {"name": parts[2], "full_name": full_name}, {}

        page = int(urllib.parse.parse_qs(parsed.query)["page"][0])
        headers = {}
        if len(pages) > 1:
            headers["Link"] = (
                f'<https://api.github.com{parsed.path}?per_page=100&page={len(pages)}>; rel="last"'
            )
        return pages[page - 1], headers

    def contributor_pages_requested(self, full_name):
        return [c for c in self.calls if c.startswith(f"/repos/{full_name}/contributors")]


class FakeGitLab(GitLabClient):
    """GitLab client serving projects from memory keyed by API URL prefix."""

    def __init__(self, projects, errors=None):
        super().__init__()
        self.projects = projects
        self.errors = dict(errors or {})
        self.calls: list[str] = []

    def _get(self, url):
        self.calls.append(url)
        for project_url, (name, contributors) in self.projects.items():
            if url == project_url:
                return {"name": name}
            if url == f"{project_url}/repository/contributors":
                return contributors
        for project_url, status in self.errors.items():
            if url.startswith(project_url):
                raise GenericHostError(f"HTTP {status} for {url}", url=url, status=status)
        raise GenericHostError(f"HTTP 404 for {url}", url=url, status=404)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def crates_io(fake_clock):
    return FakeCratesIo(
        {
            "serde": "https://github.com/serde-rs/serde",
            "rug": "https://gitlab.com/tspiteri/rug.git",
            "tokio": "https://github.com/tokio-rs/tokio",
        },
        clock=fake_clock,
    )


@pytest.fixture
def github():
    return FakeGitHub(
        {
            "serde-rs/serde": [
                [contributor("dtolnay", 900), contributor("oli-obk", 40), contributor("dependabot[bot]", 70)],
                [contributor("erickt", 1)],
            ],
            "tokio-rs/tokio": [
                [contributor("carllerche", 800), contributor("Darksonn", 600), contributor("erickt", 3)],
            ],
            "alice/solo": [
                [contributor("alice", 1)],
            ],
        }
    )


@pytest.fixture
def gitlab():
    return FakeGitLab(
        {
            "https://gitlab.com/api/v4/projects/tspiteri%2Frug": (
                "rug",
                [{"name": "Trevor Spiteri", "commits": 1200}, {"name": "drive-by", "commits": 1}],
            ),
        }
    )
