"""
acknowledge/ingestion/records.py — Record type shared by the host fetchers.
"""

from typing import NamedTuple


class ContributorRecord(NamedTuple):
    """One contributor of one project, as reported by the hosting service.

    profile_url is empty for GitLab-style hosts, which expose no canonical
    per-user profile link in the contributors API.
    """

    project_name: str
    login: str
    profile_url: str
    contributions: int
