"""Closed set of reviewer commands, one pydantic model per variant."""

from abc import ABC, abstractmethod
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from ..github_client.models import IssueRef
from ..triage.models import TransitionKind, TransitionRequest


class _CommandBase(BaseModel, ABC):
    @abstractmethod
    def transition_kind(self) -> TransitionKind:
        """The lifecycle transition this command requests."""

    def to_request(self, issue: IssueRef, actor: str) -> TransitionRequest:
        return TransitionRequest(
            kind=self.transition_kind(),
            issue=issue,
            actor=actor,
            comment=getattr(self, "comment", None),
            body=getattr(self, "body", None),
        )


class AcceptCommand(_CommandBase):
    kind: Literal["accept"] = "accept"
    comment: str | None = Field(None, description="Posted on the mirrored issue")

    def transition_kind(self) -> TransitionKind:
        return TransitionKind.ACCEPT


class RejectCommand(_CommandBase):
    kind: Literal["reject"] = "reject"
    comment: str | None = Field(None, description="Posted on the rejected issue")

    def transition_kind(self) -> TransitionKind:
        return TransitionKind.REJECT


class ClaimCommand(_CommandBase):
    kind: Literal["claim"] = "claim"

    def transition_kind(self) -> TransitionKind:
        return TransitionKind.CLAIM


class SkipCommand(_CommandBase):
    kind: Literal["skip"] = "skip"

    def transition_kind(self) -> TransitionKind:
        return TransitionKind.SKIP


class UndoCommand(_CommandBase):
    kind: Literal["undo"] = "undo"
    target: Literal["accept", "reject"]

    def transition_kind(self) -> TransitionKind:
        if self.target == "accept":
            return TransitionKind.UNDO_ACCEPT
        return TransitionKind.UNDO_REJECT


class EditCommand(_CommandBase):
    kind: Literal["edit"] = "edit"
    body: str = Field(..., min_length=1, description="Replacement issue body")

    def transition_kind(self) -> TransitionKind:
        return TransitionKind.EDIT


Command = Annotated[
    AcceptCommand | RejectCommand | ClaimCommand | SkipCommand | UndoCommand | EditCommand,
    Field(discriminator="kind"),
]
