"""Pydantic models for GitHub data structures.

These models map directly to GitHub's REST API v3 response structures.
API Reference: https://docs.github.com/en/rest/issues
"""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_ISSUE_ID_RE = re.compile(r"^(?P<owner>[^/\s#]+)/(?P<repo>[^/\s#]+)#(?P<number>\d+)$")


class IssueRef(BaseModel):
    """Identifies one issue as (repository, number).

    The string form ``owner/repo#number`` is used as the metadata store key.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")
    number: int = Field(..., gt=0, description="Issue number within the repository")

    @property
    def repo_full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def issue_id(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @classmethod
    def parse(cls, issue_id: str) -> "IssueRef":
        """Parse an ``owner/repo#number`` identifier."""
        match = _ISSUE_ID_RE.match(issue_id.strip())
        if not match:
            raise ValueError(
                f"Invalid issue id '{issue_id}'. Expected format: owner/repo#number"
            )
        return cls(
            owner=match.group("owner"),
            repo=match.group("repo"),
            number=int(match.group("number")),
        )

    def __str__(self) -> str:
        return self.issue_id


class GitHubUser(BaseModel):
    """GitHub user model representing a user account.

    Maps to GitHub REST API User object.
    API Reference: https://docs.github.com/en/rest/users/users
    """

    login: str = Field(..., description="GitHub username/login (string)")
    id: int = Field(..., description="Unique user identifier (integer)")


class GitHubLabel(BaseModel):
    """GitHub label model representing repository labels.

    Maps to GitHub REST API Label object.
    API Reference: https://docs.github.com/en/rest/issues/labels
    """

    name: str = Field(..., description="Name of the label (string)")
    color: str = Field(
        "ededed", description="Hexadecimal color code without leading # (string)"
    )
    description: str | None = Field(
        None, description="Short description of the label (string, max 100 characters)"
    )


class GitHubIssue(BaseModel):
    """GitHub issue model representing repository issues.

    Maps to GitHub REST API Issue object, reduced to the fields triage reads.
    API Reference: https://docs.github.com/en/rest/issues/issues
    """

    owner: str = Field(..., description="Owner of the repository holding the issue")
    repository_name: str = Field(..., description="Repository holding the issue")
    number: int = Field(..., description="Issue number within the repository (integer)")
    title: str = Field(..., description="Short description/title of the issue (string)")
    body: str | None = Field(
        None, description="Detailed description of the issue in markdown (string)"
    )
    state: str = Field(..., description="Current state: 'open', 'closed' (string)")
    labels: list[GitHubLabel] = Field(
        default_factory=list, description="Array of labels attached to the issue"
    )
    assignees: list[GitHubUser] = Field(
        default_factory=list, description="Users currently assigned to the issue"
    )
    user: GitHubUser = Field(..., description="Creator/author of the issue")
    html_url: str = Field("", description="Browser URL of the issue")
    created_at: datetime = Field(
        ..., description="Timestamp of issue creation (ISO 8601)"
    )
    updated_at: datetime = Field(
        ..., description="Timestamp of last issue update (ISO 8601)"
    )

    @property
    def ref(self) -> IssueRef:
        return IssueRef(owner=self.owner, repo=self.repository_name, number=self.number)

    @property
    def label_names(self) -> frozenset[str]:
        return frozenset(label.name for label in self.labels)

    @property
    def assignee(self) -> str | None:
        """Login of the (single) assignee, if any."""
        return self.assignees[0].login if self.assignees else None

    @property
    def assignee_logins(self) -> list[str]:
        return [user.login for user in self.assignees]

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def has_label(self, name: str) -> bool:
        return name in self.label_names

    @classmethod
    def from_payload(cls, owner: str, repo: str, data: dict[str, Any]) -> "GitHubIssue":
        """Build an issue from a webhook payload's ``issue`` object."""
        return cls(
            owner=owner,
            repository_name=repo,
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body"),
            state=data.get("state", "open"),
            labels=[
                GitHubLabel(name=label["name"], color=label.get("color") or "ededed")
                for label in data.get("labels") or []
            ],
            assignees=[
                GitHubUser(login=user["login"], id=user["id"])
                for user in data.get("assignees") or []
            ],
            user=GitHubUser(login=data["user"]["login"], id=data["user"]["id"]),
            html_url=data.get("html_url") or "",
            created_at=data["created_at"],
            updated_at=data["updated_at"],
        )
