"""Pydantic models for issue lifecycle state, transitions and their effects."""

import json
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ..errors import PreconditionFailed
from ..github_client.models import GitHubIssue, IssueRef


class Label(str, Enum):
    """Labels that project an issue's lifecycle state."""

    UNKNOWN = "unknown"
    SUFFICIENT = "sufficient quality report"
    INSUFFICIENT = "insufficient quality report"
    IMPROVED = "improved"


QUALITY_LABELS = frozenset({Label.SUFFICIENT.value, Label.INSUFFICIENT.value})


class IssueState(str, Enum):
    """Explicit lifecycle state of a validation issue."""

    OPEN_UNASSIGNED = "open/unassigned"
    OPEN_ASSIGNED = "open/assigned"
    UNKNOWN_UNASSIGNED = "unknown/unassigned"
    UNKNOWN_ASSIGNED = "unknown/assigned"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_assigned(self) -> bool:
        return self in (IssueState.OPEN_ASSIGNED, IssueState.UNKNOWN_ASSIGNED)

    @property
    def is_unassigned(self) -> bool:
        return self in (IssueState.OPEN_UNASSIGNED, IssueState.UNKNOWN_UNASSIGNED)

    @property
    def is_terminal(self) -> bool:
        return self in (IssueState.ACCEPTED, IssueState.REJECTED)

    @property
    def in_unknown_pool(self) -> bool:
        return self in (IssueState.UNKNOWN_UNASSIGNED, IssueState.UNKNOWN_ASSIGNED)


def _open_state(unknown: bool, assigned: bool) -> IssueState:
    if unknown:
        return IssueState.UNKNOWN_ASSIGNED if assigned else IssueState.UNKNOWN_UNASSIGNED
    return IssueState.OPEN_ASSIGNED if assigned else IssueState.OPEN_UNASSIGNED


def is_interrupted(issue: GitHubIssue, undo: "UndoRecord | None") -> bool:
    """Whether an accept, reject or undo stopped between labeling and closing.

    The undo record is written before the first label change of an accept or
    reject and deleted after the last step of an undo, so an open issue that
    carries a quality label while the record exists is mid-transition.
    """
    return (
        undo is not None
        and issue.is_open
        and bool(issue.label_names & QUALITY_LABELS)
    )


def derive_state(issue: GitHubIssue, undo: "UndoRecord | None" = None) -> IssueState:
    """Derive the lifecycle state from an issue's labels, status and assignee.

    An interrupted transition resolves to the open state captured in its undo
    record, so the same command can be retried. Other label combinations
    that no valid state projects to are reported rather than guessed at.

    Raises:
        PreconditionFailed: If the labels are inconsistent with any state
    """
    labels = issue.label_names
    if undo is not None and is_interrupted(issue, undo):
        return _open_state(
            Label.UNKNOWN.value in undo.prior_labels, issue.assignee is not None
        )

    quality = sorted(labels & QUALITY_LABELS)
    unknown = Label.UNKNOWN.value in labels

    if len(quality) > 1:
        raise PreconditionFailed(
            f"{issue.ref} has inconsistent labels: both {quality[0]!r} and "
            f"{quality[1]!r}"
        )
    if unknown and quality:
        raise PreconditionFailed(
            f"{issue.ref} has inconsistent labels: 'unknown' with {quality[0]!r}"
        )

    if issue.is_open:
        if quality:
            raise PreconditionFailed(
                f"{issue.ref} is open but labeled {quality[0]!r}"
            )
        return _open_state(unknown, issue.assignee is not None)

    if Label.SUFFICIENT.value in labels:
        return IssueState.ACCEPTED
    if Label.INSUFFICIENT.value in labels:
        return IssueState.REJECTED
    raise PreconditionFailed(f"{issue.ref} is closed without a quality label")


class TransitionKind(str, Enum):
    """Transition vocabulary shared by commands and platform events."""

    CLAIM = "claim"
    ACCEPT = "accept"
    REJECT = "reject"
    SKIP = "skip"
    UNDO_ACCEPT = "undo_accept"
    UNDO_REJECT = "undo_reject"
    EDIT = "edit"

    @property
    def completes(self) -> bool:
        """Whether the transition finishes the actor's work on the issue."""
        return self in (TransitionKind.ACCEPT, TransitionKind.REJECT, TransitionKind.SKIP)


class TransitionRequest(BaseModel):
    """A normalized request to move one issue through its lifecycle."""

    kind: TransitionKind
    issue: IssueRef
    actor: str = Field(description="Comment author or platform actor")
    comment: str | None = Field(None, description="Optional accept/reject comment")
    body: str | None = Field(None, description="Replacement body for edit")
    origin: Literal["command", "event"] = "command"


class EffectKind(str, Enum):
    """Side effects a transition dispatches, in plan order."""

    ADD_LABELS = "add_labels"
    REMOVE_LABEL = "remove_label"
    ASSIGN = "assign"
    UNASSIGN = "unassign"
    COMMENT = "comment"
    CLOSE = "close"
    REOPEN = "reopen"
    EDIT_BODY = "edit_body"
    MIRROR_ACCEPT = "mirror_accept"
    MIRROR_REVERT = "mirror_revert"
    SAVE_UNDO = "save_undo"
    CLEAR_UNDO = "clear_undo"
    REFILL_QUEUE = "refill_queue"


class Effect(BaseModel):
    """One side effect on the transitioning issue or its paired records."""

    kind: EffectKind
    labels: list[str] = Field(default_factory=list)
    login: str | None = None
    text: str | None = None
    record: dict[str, str] = Field(default_factory=dict)
    completed_pool_was_unknown: bool = False
    terminal: bool = False


class UndoRecord(BaseModel):
    """Issue view captured before a terminal transition so undo can restore it."""

    prior_labels: list[str] = Field(default_factory=list)
    prior_assignee: str | None = None
    transition: TransitionKind

    def to_record(self) -> dict[str, str]:
        return {
            "priorLabels": json.dumps(sorted(self.prior_labels)),
            "priorAssignee": self.prior_assignee or "",
            "transition": self.transition.value,
        }

    @classmethod
    def from_record(cls, record: dict[str, str]) -> "UndoRecord":
        return cls(
            prior_labels=json.loads(record.get("priorLabels", "[]")),
            prior_assignee=record.get("priorAssignee") or None,
            transition=TransitionKind(record["transition"]),
        )


class ValidatedLink(BaseModel):
    """Record keyed by a validation issue id, pointing at its mirror."""

    model_config = ConfigDict(populate_by_name=True)

    validated_issue_id: str = Field(..., alias="validatedIssueId")
    validated_issue_url: str = Field(..., alias="validatedIssueUrl")

    def to_record(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class OriginalLink(BaseModel):
    """Record keyed by a findings issue id, pointing back at its source."""

    model_config = ConfigDict(populate_by_name=True)

    original_issue_id: str = Field(..., alias="originalIssueId")
    original_issue_url: str = Field(..., alias="originalIssueUrl")

    def to_record(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)


class TransitionContext(BaseModel):
    """Fresh tracker and store reads a transition's preconditions depend on."""

    other_unknown_assignments: list[int] = Field(
        default_factory=list,
        description="Open unknown-labeled issues assigned to the actor, excluding this one",
    )
    undo: UndoRecord | None = None


class TransitionPlan(BaseModel):
    """Validated transition: target state and the ordered effects to run."""

    request: TransitionRequest
    from_state: IssueState
    to_state: IssueState
    effects: list[Effect]


class RefillResult(BaseModel):
    """Issues newly assigned to an actor by a queue refill."""

    actor: str
    assigned: list[IssueRef] = Field(default_factory=list)
    bonus: bool = False


class TransitionOutcome(BaseModel):
    """What an executed transition did."""

    plan: TransitionPlan
    executed: list[EffectKind] = Field(default_factory=list)
    mirror: IssueRef | None = None
    refill: RefillResult | None = None
