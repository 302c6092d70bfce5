"""
acknowledge/exceptions.py — Error taxonomy.

Transport/API errors are fatal to the fetcher that raised them. Parse errors
on sources and cache errors never surface as exceptions.
"""

from typing import Optional


class AcknowledgeError(Exception):
    """Base class for every error the CLI reports as a failed run."""


class ManifestError(AcknowledgeError):
    """The Cargo manifest could not be found or parsed."""


class UpstreamError(AcknowledgeError):
    """A remote API call failed."""

    def __init__(self, message: str, url: str = "", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class RegistryError(UpstreamError):
    """crates.io lookup failed."""


class GitHubAPIError(UpstreamError):
    """GitHub REST API call failed."""


class GenericHostError(UpstreamError):
    """GitLab-style host API call failed."""
