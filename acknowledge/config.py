"""
acknowledge/config.py — All tunable parameters for acknowledge.

Every rate limit, endpoint and report default lives here so that a change
of upstream policy is a single-file diff.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class AcknowledgeConfig:
    """
    Immutable configuration for the contributor-resolution pipeline.

    Override by constructing a new AcknowledgeConfig with the desired values,
    e.g. ``AcknowledgeConfig(contributions_threshold=5)``.
    """

    # ── crates.io (package registry) ─────────────────────────────────────────
    crates_io_base: str = "https://crates.io/api/v1"

    crates_io_min_interval_s: float = 1.0
    # crates.io data-access policy: at most 1 request per second.
    # Measured from the start of one live request to the start of the next.

    # ── GitHub ────────────────────────────────────────────────────────────────
    github_api_base: str = "https://api.github.com"
    github_web_base: str = "https://github.com"
    github_ssh_prefix: str = "git@github.com:"

    github_per_page: int = 100
    # Maximum page size of GET /repos/{owner}/{repo}/contributors.

    # ── HTTP ──────────────────────────────────────────────────────────────────
    user_agent: str = "acknowledge/1.0 (contact: acknowledgements_rs@proton.me)"
    # crates.io rejects requests without an identifying User-Agent.

    http_timeout_s: float = 30.0

    # ── Aggregation ───────────────────────────────────────────────────────────
    bot_suffix: str = "[bot]"
    # GitHub app accounts end in "[bot]" (dependabot[bot], renovate[bot]).

    contributions_threshold: int = 2
    # Minimum contributions for a non-sole contributor to be thanked.

    # ── Persistence ──────────────────────────────────────────────────────────
    cache_name: str = "acknowledgements_cache"
    # Directory name under the platform cache dir.

    token_cache_key: str = "github_access_token"

    output_file_name: str = "ACKNOWLEDGEMENTS.md"

    # ── Failure policy ────────────────────────────────────────────────────────
    keep_going: bool = False
    # False: a failed host call aborts its fetcher and the run.
    # True: the failing source is logged and skipped.


# Singleton default; import this instead of constructing anew.
DEFAULT_CONFIG = AcknowledgeConfig()
