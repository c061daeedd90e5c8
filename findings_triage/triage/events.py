"""Normalize platform events into the transition vocabulary.

Closing, assigning and unassigning an issue through the tracker's own UI
must land on the same transitions as the equivalent commands. Platform
actions that no transition allows are reversed with a compensating effect.
"""

import logging
from enum import Enum

from pydantic import BaseModel

from ..errors import AmbiguousEvent
from ..github_client.models import GitHubIssue, GitHubUser
from .models import (
    QUALITY_LABELS,
    Effect,
    EffectKind,
    Label,
    TransitionKind,
    TransitionRequest,
)

logger = logging.getLogger(__name__)


class PlatformAction(str, Enum):
    """Platform issue actions the normalizer understands."""

    CLOSED = "closed"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"


class PlatformEvent(BaseModel):
    """An issue action performed outside of a command."""

    action: PlatformAction
    issue: GitHubIssue
    actor: str
    assignee: GitHubUser | None = None
    repository_active: bool = False


class NormalizedEvent(BaseModel):
    """Either a transition to run against ``issue_view`` or a compensation."""

    request: TransitionRequest | None = None
    issue_view: GitHubIssue | None = None
    compensation: Effect | None = None


class PassiveEventNormalizer:
    """Maps platform events onto transitions or compensating effects."""

    def __init__(self, bot_login: str):
        self.bot_login = bot_login

    def normalize(
        self,
        event: PlatformEvent,
        actor_unknown_assignments: list[int] | None = None,
    ) -> NormalizedEvent:
        """Normalize one platform event.

        Args:
            event: The event, carrying the post-event issue view
            actor_unknown_assignments: Open 'unknown' issues assigned to the
                event's actor

        Raises:
            AmbiguousEvent: If no rule applies; the event is to be ignored
        """
        if _same_login(event.actor, self.bot_login):
            raise AmbiguousEvent(f"{event.action.value} by the bot itself")
        if not event.repository_active:
            raise AmbiguousEvent(
                f"{event.issue.ref.repo_full_name} is not designated active"
            )

        if event.action is PlatformAction.CLOSED:
            return self._closed(event)
        if event.action is PlatformAction.UNASSIGNED:
            return self._unassigned(event)
        return self._assigned(event, actor_unknown_assignments or [])

    def _closed(self, event: PlatformEvent) -> NormalizedEvent:
        issue = event.issue
        if issue.label_names & QUALITY_LABELS:
            raise AmbiguousEvent(f"{issue.ref} was closed with a quality label already")
        if not _same_login(event.actor, issue.assignee):
            raise AmbiguousEvent(f"{issue.ref} closed by non-assignee @{event.actor}")

        return NormalizedEvent(
            request=_request(TransitionKind.REJECT, event),
            issue_view=issue.model_copy(update={"state": "open"}),
        )

    def _unassigned(self, event: PlatformEvent) -> NormalizedEvent:
        issue = event.issue
        previous = event.assignee
        if previous is None or not issue.is_open:
            raise AmbiguousEvent(f"unassignment on {issue.ref} without an open issue")

        if _same_login(event.actor, previous.login):
            return NormalizedEvent(
                request=_request(TransitionKind.SKIP, event),
                issue_view=issue.model_copy(
                    update={"assignees": [previous, *issue.assignees]}
                ),
            )

        logger.info(
            "Reversing unassignment of @%s from %s by @%s",
            previous.login,
            issue.ref,
            event.actor,
        )
        return NormalizedEvent(
            compensation=Effect(kind=EffectKind.ASSIGN, login=previous.login)
        )

    def _assigned(
        self, event: PlatformEvent, actor_unknown_assignments: list[int]
    ) -> NormalizedEvent:
        issue = event.issue
        assignee = event.assignee
        if assignee is None or not _same_login(event.actor, assignee.login):
            raise AmbiguousEvent(f"{issue.ref} assigned by someone other than the assignee")

        others = [user for user in issue.assignees if not _same_login(user.login, event.actor)]
        held = [number for number in actor_unknown_assignments if number != issue.number]
        if (
            issue.is_open
            and not others
            and issue.has_label(Label.UNKNOWN.value)
            and not issue.label_names & QUALITY_LABELS
            and not held
        ):
            return NormalizedEvent(
                request=_request(TransitionKind.CLAIM, event),
                issue_view=issue.model_copy(update={"assignees": []}),
            )

        logger.info("Reversing self-assignment of @%s to %s", event.actor, issue.ref)
        return NormalizedEvent(
            compensation=Effect(kind=EffectKind.UNASSIGN, login=assignee.login)
        )


def _same_login(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return False
    return left.lower() == right.lower()


def _request(kind: TransitionKind, event: PlatformEvent) -> TransitionRequest:
    return TransitionRequest(
        kind=kind, issue=event.issue.ref, actor=event.actor, origin="event"
    )
