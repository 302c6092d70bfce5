"""
acknowledge.ingestion — Network producers.

Modules:
    sources           — Repository string → GitHub / generic host / unsupported.
    crates_io_client  — crates.io repository lookup (1 req/s).
    github_client     — GitHub contributors with quota tracking.
    gitlab_client     — GitLab API v4 contributors.
    orchestrator      — Thread pool + queue fan-in of all producers.
"""
