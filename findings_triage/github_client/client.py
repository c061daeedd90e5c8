"""GitHub API client using PyGitHub."""

import logging
import os
import time
from collections.abc import Callable
from typing import TypeVar

from github import Auth, Github
from github.GithubException import (
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Issue import Issue
from github.Label import Label
from github.NamedUser import NamedUser
from github.Repository import Repository

from ..errors import IssueNotFound, RemoteEffectFailed
from .models import GitHubIssue, GitHubLabel, GitHubUser, IssueRef

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_SLEEP_SECONDS = 60


class GitHubClient:
    """GitHub API client with bounded retries and authentication.

    Every public method is idempotent on the remote side: adding a label that
    is present, removing one that is absent, or closing a closed issue are
    no-ops rather than errors.
    """

    def __init__(
        self,
        token: str | None = None,
        timeout: int = 15,
        max_retries: int = 3,
        retry_backoff: float = 2.0,
    ):
        """Initialize GitHub client with authentication.

        Args:
            token: GitHub personal access token. If None, reads from
                GITHUB_TOKEN env var.
            timeout: Per-request timeout in seconds
            max_retries: Retries for rate limits, timeouts and 5xx responses
            retry_backoff: Base delay in seconds, doubled on every retry
        """
        self.token = token or os.getenv("GITHUB_TOKEN")
        if not self.token:
            raise ValueError(
                "GitHub token is required. Set GITHUB_TOKEN environment variable."
            )

        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.github = Github(auth=Auth.Token(self.token), timeout=timeout)
        self._repositories: dict[str, Repository] = {}

    def _call(self, operation: str, func: Callable[[], T]) -> T:
        """Run one API call, retrying transient failures with backoff."""
        attempt = 0
        while True:
            try:
                return func()
            except UnknownObjectException as e:
                raise IssueNotFound(operation, "not found") from e
            except RateLimitExceededException as e:
                delay: float = RATE_LIMIT_SLEEP_SECONDS
                error: Exception = e
            except GithubException as e:
                if e.status == 410:
                    raise IssueNotFound(operation, "gone") from e
                if e.status < 500:
                    raise RemoteEffectFailed(
                        operation, f"HTTP {e.status}: {e.data}"
                    ) from e
                delay = self.retry_backoff * 2**attempt
                error = e
            except OSError as e:
                # requests' timeout and connection errors derive from OSError
                delay = self.retry_backoff * 2**attempt
                error = e

            attempt += 1
            if attempt > self.max_retries:
                raise RemoteEffectFailed(
                    operation, f"gave up after {attempt} attempts: {error}"
                ) from error
            logger.warning(
                "%s failed (%s), retry %d/%d in %.1fs",
                operation,
                type(error).__name__,
                attempt,
                self.max_retries,
                delay,
            )
            time.sleep(delay)

    def _convert_user(self, github_user: NamedUser) -> GitHubUser:
        """Convert PyGitHub user to our model."""
        return GitHubUser(login=github_user.login, id=github_user.id)

    def _convert_label(self, github_label: Label) -> GitHubLabel:
        """Convert PyGitHub label to our model."""
        return GitHubLabel(
            name=github_label.name,
            color=github_label.color,
            description=github_label.description,
        )

    def _convert_issue(self, owner: str, repo: str, github_issue: Issue) -> GitHubIssue:
        """Convert PyGitHub issue to our model."""
        return GitHubIssue(
            owner=owner,
            repository_name=repo,
            number=github_issue.number,
            title=github_issue.title,
            body=github_issue.body,
            state=github_issue.state,
            labels=[self._convert_label(label) for label in github_issue.labels],
            assignees=[self._convert_user(user) for user in github_issue.assignees],
            user=self._convert_user(github_issue.user),
            html_url=github_issue.html_url,
            created_at=github_issue.created_at,
            updated_at=github_issue.updated_at,
        )

    def get_repository(self, owner: str, repo: str) -> Repository:
        """Get repository object.

        Raises:
            IssueNotFound: If the repository is missing or not visible to the token
        """
        full_name = f"{owner}/{repo}"
        if full_name not in self._repositories:
            self._repositories[full_name] = self._call(
                f"get repository {full_name}",
                lambda: self.github.get_repo(full_name),
            )
        return self._repositories[full_name]

    def _raw_issue(self, ref: IssueRef) -> Issue:
        repository = self.get_repository(ref.owner, ref.repo)
        return self._call(f"get issue {ref}", lambda: repository.get_issue(ref.number))

    def get_issue(self, ref: IssueRef) -> GitHubIssue:
        """Get a specific issue with its labels and assignees."""
        return self._convert_issue(ref.owner, ref.repo, self._raw_issue(ref))

    def list_open_issues(
        self,
        owner: str,
        repo: str,
        *,
        assignee: str | None = None,
        label: str | None = None,
    ) -> list[GitHubIssue]:
        """List open issues oldest-created first.

        Args:
            owner: Repository owner
            repo: Repository name
            assignee: Login to filter by, "none" for unassigned issues
            label: Only issues carrying this label

        Returns:
            List of GitHubIssue objects, pull requests excluded
        """
        repository = self.get_repository(owner, repo)
        kwargs: dict[str, object] = {
            "state": "open",
            "sort": "created",
            "direction": "asc",
        }
        if assignee is not None:
            kwargs["assignee"] = assignee
        if label is not None:
            kwargs["labels"] = [label]

        def fetch() -> list[GitHubIssue]:
            return [
                self._convert_issue(owner, repo, issue)
                for issue in repository.get_issues(**kwargs)
                if issue.pull_request is None
            ]

        issues = self._call(f"list issues in {owner}/{repo}", fetch)
        issues.sort(key=lambda issue: (issue.created_at, issue.number))
        return issues

    def add_labels(self, ref: IssueRef, *labels: str) -> None:
        """Add labels to an issue, keeping the ones already present."""
        if not labels:
            return
        issue = self._raw_issue(ref)
        self._call(f"label {ref}", lambda: issue.add_to_labels(*labels))
        logger.info("Labeled %s with %s", ref, list(labels))

    def remove_label(self, ref: IssueRef, label: str) -> None:
        """Remove a label from an issue; absent labels are ignored."""
        issue = self._raw_issue(ref)

        def remove() -> None:
            try:
                issue.remove_from_labels(label)
            except UnknownObjectException:
                logger.debug("Label %r already absent on %s", label, ref)

        self._call(f"unlabel {ref}", remove)

    def assign(self, ref: IssueRef, login: str) -> None:
        issue = self._raw_issue(ref)
        self._call(f"assign {ref}", lambda: issue.add_to_assignees(login))
        logger.info("Assigned %s to %s", ref, login)

    def unassign(self, ref: IssueRef, login: str) -> None:
        issue = self._raw_issue(ref)
        self._call(f"unassign {ref}", lambda: issue.remove_from_assignees(login))
        logger.info("Unassigned %s from %s", login, ref)

    def add_issue_comment(self, ref: IssueRef, comment: str) -> None:
        """Add a comment to an issue."""
        issue = self._raw_issue(ref)
        self._call(f"comment on {ref}", lambda: issue.create_comment(comment))
        logger.info("Added comment to %s", ref)

    def close_issue(self, ref: IssueRef) -> None:
        issue = self._raw_issue(ref)
        self._call(f"close {ref}", lambda: issue.edit(state="closed"))
        logger.info("Closed %s", ref)

    def reopen_issue(self, ref: IssueRef) -> None:
        issue = self._raw_issue(ref)
        self._call(f"reopen {ref}", lambda: issue.edit(state="open"))
        logger.info("Reopened %s", ref)

    def update_issue_body(self, ref: IssueRef, body: str) -> None:
        issue = self._raw_issue(ref)
        self._call(f"edit body of {ref}", lambda: issue.edit(body=body))
        logger.info("Replaced body of %s", ref)

    def create_issue(self, owner: str, repo: str, title: str, body: str) -> GitHubIssue:
        """Create an issue and return it."""
        repository = self.get_repository(owner, repo)
        created = self._call(
            f"create issue in {owner}/{repo}",
            lambda: repository.create_issue(title=title, body=body),
        )
        logger.info("Created %s/%s#%d", owner, repo, created.number)
        return self._convert_issue(owner, repo, created)

    def get_repository_topics(self, owner: str, repo: str) -> list[str]:
        repository = self.get_repository(owner, repo)
        return self._call(f"get topics of {owner}/{repo}", repository.get_topics)
