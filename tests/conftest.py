"""Test configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from findings_triage.config import TriageConfig
from findings_triage.errors import IssueNotFound
from findings_triage.github_client.models import (
    GitHubIssue,
    GitHubLabel,
    GitHubUser,
    IssueRef,
)
from findings_triage.storage.manager import StorageManager
from findings_triage.triage.locks import LockRegistry

VALIDATION = ("audit-org", "validation")
FINDINGS = ("audit-org", "findings")
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class FakeTracker:
    """In-memory stand-in for GitHubClient.

    Mirrors the client's idempotent semantics and records every mutation in
    ``calls`` so tests can assert on ordering.
    """

    def __init__(self) -> None:
        self.issues: dict[str, GitHubIssue] = {}
        self.comments: dict[str, list[str]] = {}
        self.topics: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, Exception] = {}
        self._users: dict[str, int] = {}

    def _user(self, login: str) -> GitHubUser:
        user_id = self._users.setdefault(login, 1000 + len(self._users))
        return GitHubUser(login=login, id=user_id)

    def add_issue(
        self,
        number: int,
        *,
        labels: list[str] | None = None,
        assignee: str | None = None,
        state: str = "open",
        owner: str = VALIDATION[0],
        repo: str = VALIDATION[1],
        body: str = "Finding details",
    ) -> GitHubIssue:
        issue = GitHubIssue(
            owner=owner,
            repository_name=repo,
            number=number,
            title=f"Finding {number}",
            body=body,
            state=state,
            labels=[GitHubLabel(name=name) for name in labels or []],
            assignees=[self._user(assignee)] if assignee else [],
            user=self._user("reporter"),
            html_url=f"https://github.com/{owner}/{repo}/issues/{number}",
            created_at=BASE_TIME + timedelta(minutes=number),
            updated_at=BASE_TIME + timedelta(minutes=number),
        )
        self.issues[issue.ref.issue_id] = issue
        return issue

    def _record(self, operation: str, ref: IssueRef) -> GitHubIssue:
        self.calls.append((operation, ref.issue_id))
        if operation in self.fail_on:
            raise self.fail_on[operation]
        return self._get(ref)

    def _get(self, ref: IssueRef) -> GitHubIssue:
        issue = self.issues.get(ref.issue_id)
        if issue is None:
            raise IssueNotFound(f"get issue {ref}", "not found")
        return issue

    def _update(self, ref: IssueRef, **changes: object) -> None:
        self.issues[ref.issue_id] = self._get(ref).model_copy(update=changes)

    def get_issue(self, ref: IssueRef) -> GitHubIssue:
        return self._get(ref)

    def list_open_issues(
        self,
        owner: str,
        repo: str,
        *,
        assignee: str | None = None,
        label: str | None = None,
    ) -> list[GitHubIssue]:
        result = []
        for issue in self.issues.values():
            if (issue.owner, issue.repository_name) != (owner, repo) or not issue.is_open:
                continue
            if assignee == "none" and issue.assignees:
                continue
            if assignee not in (None, "none") and assignee.lower() not in [
                login.lower() for login in issue.assignee_logins
            ]:
                continue
            if label is not None and not issue.has_label(label):
                continue
            result.append(issue)
        return sorted(result, key=lambda issue: (issue.created_at, issue.number))

    def add_labels(self, ref: IssueRef, *labels: str) -> None:
        issue = self._record("add_labels", ref)
        current = list(issue.labels)
        for name in labels:
            if not issue.has_label(name):
                current.append(GitHubLabel(name=name))
        self._update(ref, labels=current)

    def remove_label(self, ref: IssueRef, label: str) -> None:
        issue = self._record("remove_label", ref)
        self._update(ref, labels=[item for item in issue.labels if item.name != label])

    def assign(self, ref: IssueRef, login: str) -> None:
        issue = self._record("assign", ref)
        if login not in issue.assignee_logins:
            self._update(ref, assignees=[*issue.assignees, self._user(login)])

    def unassign(self, ref: IssueRef, login: str) -> None:
        issue = self._record("unassign", ref)
        self._update(
            ref, assignees=[user for user in issue.assignees if user.login != login]
        )

    def add_issue_comment(self, ref: IssueRef, comment: str) -> None:
        self._record("comment", ref)
        self.comments.setdefault(ref.issue_id, []).append(comment)

    def close_issue(self, ref: IssueRef) -> None:
        self._record("close", ref)
        self._update(ref, state="closed")

    def reopen_issue(self, ref: IssueRef) -> None:
        self._record("reopen", ref)
        self._update(ref, state="open")

    def update_issue_body(self, ref: IssueRef, body: str) -> None:
        self._record("edit_body", ref)
        self._update(ref, body=body)

    def create_issue(self, owner: str, repo: str, title: str, body: str) -> GitHubIssue:
        if "create_issue" in self.fail_on:
            raise self.fail_on["create_issue"]
        number = 1 + max(
            (
                issue.number
                for issue in self.issues.values()
                if (issue.owner, issue.repository_name) == (owner, repo)
            ),
            default=0,
        )
        created = self.add_issue(number, owner=owner, repo=repo, body=body)
        created = created.model_copy(update={"title": title})
        self.issues[created.ref.issue_id] = created
        self.calls.append(("create_issue", created.ref.issue_id))
        return created

    def get_repository_topics(self, owner: str, repo: str) -> list[str]:
        return self.topics.get(f"{owner}/{repo}", ["active"])

    def labels_of(self, number: int, repo: tuple[str, str] = VALIDATION) -> set[str]:
        return set(self.issues[f"{repo[0]}/{repo[1]}#{number}"].label_names)

    def issue(self, number: int, repo: tuple[str, str] = VALIDATION) -> GitHubIssue:
        return self.issues[f"{repo[0]}/{repo[1]}#{number}"]


@pytest.fixture
def tracker() -> FakeTracker:
    """In-memory tracker holding the validation and findings repositories."""
    return FakeTracker()


@pytest.fixture
def storage(tmp_path: Path) -> StorageManager:
    """Metadata storage in a temporary directory."""
    return StorageManager(base_path=tmp_path / "metadata")


@pytest.fixture
def locks(tmp_path: Path) -> LockRegistry:
    """Lock registry with its lock files in a temporary directory."""
    return LockRegistry(tmp_path / "locks", timeout=2.0)


@pytest.fixture
def ref() -> Callable[[int], IssueRef]:
    """Build a validation repository issue reference."""

    def _ref(number: int) -> IssueRef:
        return IssueRef(owner=VALIDATION[0], repo=VALIDATION[1], number=number)

    return _ref


@pytest.fixture
def config(tmp_path: Path) -> TriageConfig:
    """Configuration pointing at the fake repositories."""
    return TriageConfig(
        github_token="fake-token",
        validation_repo="/".join(VALIDATION),
        findings_repo="/".join(FINDINGS),
        data_dir=tmp_path / "data",
        lock_timeout=2.0,
    )
