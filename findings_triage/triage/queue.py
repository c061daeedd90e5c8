"""Assignment queue: hand reviewers their next issue after a completion.

The queue is not stored anywhere. It is a query over the tracker's current
open, unassigned issues, so it cannot drift from the real assignment state.
"""

import logging

from ..github_client.client import GitHubClient
from ..github_client.models import GitHubIssue
from .locks import LockRegistry, actor_key, pool_key
from .models import QUALITY_LABELS, Label, RefillResult

logger = logging.getLogger(__name__)

BONUS_ASSIGNMENTS = 3


def in_standard_pool(issue: GitHubIssue) -> bool:
    return issue.is_open and not issue.label_names & (QUALITY_LABELS | {Label.UNKNOWN.value})


def in_unknown_pool(issue: GitHubIssue) -> bool:
    return issue.is_open and issue.has_label(Label.UNKNOWN.value)


class AssignmentQueueManager:
    """Selects and assigns the next eligible issues to a reviewer."""

    def __init__(self, tracker: GitHubClient, locks: LockRegistry):
        self.tracker = tracker
        self.locks = locks

    def held_assignments(
        self, actor: str, owner: str, repo: str
    ) -> tuple[list[GitHubIssue], list[GitHubIssue]]:
        """The actor's open assignments as (standard pool, unknown pool)."""
        held = self.tracker.list_open_issues(owner, repo, assignee=actor)
        standard = [issue for issue in held if in_standard_pool(issue)]
        unknown = [issue for issue in held if in_unknown_pool(issue)]
        return standard, unknown

    def refill(
        self,
        actor: str,
        owner: str,
        repo: str,
        *,
        completed_pool_was_unknown: bool,
        terminal: bool,
    ) -> RefillResult:
        """Assign the actor's next issue(s).

        One standard-pool issue is assigned when the actor holds none. When
        an unknown-pool issue was accepted or rejected, three more follow:
        standard pool first, then at most one unknown-pool issue if the actor
        holds no unknown assignment. Oldest issues go first; an empty pool is
        not an error.

        Args:
            actor: Reviewer whose queue to refill
            owner: Validation repository owner
            repo: Validation repository name
            completed_pool_was_unknown: The completed issue was labeled 'unknown'
            terminal: The completion was an accept or reject

        Returns:
            The issues newly assigned
        """
        bonus = completed_pool_was_unknown and terminal
        with self.locks.hold(actor_key(actor), pool_key(owner, repo)):
            standard_held, unknown_held = self.held_assignments(actor, owner, repo)
            unassigned = self.tracker.list_open_issues(owner, repo, assignee="none")
            standard_pool = [issue for issue in unassigned if in_standard_pool(issue)]
            unknown_pool = [issue for issue in unassigned if in_unknown_pool(issue)]

            selected: list[GitHubIssue] = []
            if not standard_held and standard_pool:
                selected.append(standard_pool.pop(0))

            if bonus:
                extra = standard_pool[:BONUS_ASSIGNMENTS]
                if len(extra) < BONUS_ASSIGNMENTS and not unknown_held and unknown_pool:
                    extra.append(unknown_pool[0])
                selected.extend(extra)

            for issue in selected:
                self.tracker.assign(issue.ref, actor)

        result = RefillResult(
            actor=actor, assigned=[issue.ref for issue in selected], bonus=bonus
        )
        logger.info(
            "Refilled queue of %s in %s/%s with %s%s",
            actor,
            owner,
            repo,
            [str(ref) for ref in result.assigned] or "nothing",
            " (bonus)" if bonus else "",
        )
        return result
