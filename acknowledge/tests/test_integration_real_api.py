"""
Integration tests for acknowledge against the real crates.io, GitHub and
GitLab APIs.

These tests make actual HTTP requests:
    - crates.io (no auth required) — repository lookup
    - GitHub REST API (GITHUB_TOKEN optional) — rate limit, contributors
    - gitlab.com (no auth required) — project contributors

How to run:
    python -m pytest acknowledge/tests/test_integration_real_api.py -m integration --run-integration -v

Credentials needed:
    - GITHUB_TOKEN (optional): without it the GitHub tests run anonymously
      and may hit the 60 req/hr limit.
"""

import os

import pytest

from acknowledge.ingestion.crates_io_client import CratesIoClient, resolve_repositories
from acknowledge.ingestion.github_client import GitHubClient, GitHubQuota, fetch_repo_contributors
from acknowledge.ingestion.gitlab_client import GitLabClient, fetch_generic_contributors
from acknowledge.ingestion.sources import GenericHostSource, GitHubSource, classify_source
from acknowledge.storage.cache import MemoryCache

pytestmark = pytest.mark.integration


class TestCratesIo:
    def test_serde_repository(self):
        url = CratesIoClient().get_repository("serde")
        assert isinstance(classify_source(url), GitHubSource)

    def test_cache_second_lookup_is_free(self):
        client = CratesIoClient()
        cache = MemoryCache()
        resolve_repositories(["log"], lambda u: None, cache, client)
        resolve_repositories(["log"], lambda u: None, cache, client)
        assert client.requests_made == 1


class TestGitHub:
    @pytest.fixture
    def client(self):
        return GitHubClient(token=os.environ.get("GITHUB_TOKEN"))

    def test_rate_limit(self, client):
        state = client.get_rate_limit()
        assert state.limit > 0

    def test_contributors(self, client):
        records = []
        metadata, contributors = fetch_repo_contributors(
            GitHubSource("serde-rs", "serde"), client, GitHubQuota(client), records.append
        )
        assert metadata["full_name"].lower() == "serde-rs/serde"
        assert any(r.login == "dtolnay" for r in records)
        assert len(records) == len(contributors)


class TestGitLab:
    def test_rug_contributors(self):
        records = []
        done = fetch_generic_contributors(
            [GenericHostSource("gitlab.com", "tspiteri", "rug")],
            records.append,
            MemoryCache(),
            GitLabClient(),
        )
        assert done == 1
        assert records
        assert all(r.profile_url == "" for r in records)
