"""
Outbound clients for third-party providers.
"""

from .github import GitHubAPIError, GitHubClient, labels_to_priority
from .oauth import OAuthClient, OAuthExchangeError

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "OAuthClient",
    "OAuthExchangeError",
    "labels_to_priority",
]
