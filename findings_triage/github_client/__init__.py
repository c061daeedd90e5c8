"""GitHub client package for API interaction."""

from .client import GitHubClient
from .models import GitHubIssue, GitHubLabel, GitHubUser, IssueRef

__all__ = [
    "GitHubClient",
    "GitHubIssue",
    "GitHubLabel",
    "GitHubUser",
    "IssueRef",
]
