"""HTTP transports for the two stores."""

from .github import GitHubAPIError, GitHubClient
from .notion import NotionAPIError, NotionClient

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "NotionAPIError",
    "NotionClient",
]
