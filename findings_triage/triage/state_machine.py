"""Issue lifecycle state machine.

Maps (current issue state, transition request) to a target state and the
ordered side effects that realize it. Planning is pure: it reads only the
issue view and context handed in and never calls the tracker.
"""

from ..errors import PreconditionFailed
from ..github_client.models import GitHubIssue
from .models import (
    QUALITY_LABELS,
    Effect,
    EffectKind,
    IssueState,
    Label,
    TransitionContext,
    TransitionKind,
    TransitionPlan,
    TransitionRequest,
    UndoRecord,
    derive_state,
    is_interrupted,
)

_TERMINAL_LABELS: dict[TransitionKind, Label] = {
    TransitionKind.UNDO_ACCEPT: Label.SUFFICIENT,
    TransitionKind.UNDO_REJECT: Label.INSUFFICIENT,
}

_ALLOWED_FROM: dict[TransitionKind, frozenset[IssueState]] = {
    TransitionKind.CLAIM: frozenset(
        {IssueState.OPEN_UNASSIGNED, IssueState.UNKNOWN_UNASSIGNED}
    ),
    TransitionKind.ACCEPT: frozenset(
        {IssueState.OPEN_ASSIGNED, IssueState.UNKNOWN_ASSIGNED}
    ),
    TransitionKind.REJECT: frozenset(
        {IssueState.OPEN_ASSIGNED, IssueState.UNKNOWN_ASSIGNED}
    ),
    TransitionKind.SKIP: frozenset(
        {IssueState.OPEN_ASSIGNED, IssueState.UNKNOWN_ASSIGNED}
    ),
    TransitionKind.EDIT: frozenset(
        {IssueState.OPEN_ASSIGNED, IssueState.UNKNOWN_ASSIGNED}
    ),
    TransitionKind.UNDO_ACCEPT: frozenset({IssueState.ACCEPTED}),
    TransitionKind.UNDO_REJECT: frozenset({IssueState.REJECTED}),
}

_NOT_ALLOWED_MESSAGES: dict[TransitionKind, str] = {
    TransitionKind.CLAIM: "only open, unassigned issues labeled 'unknown' can be claimed",
    TransitionKind.ACCEPT: "only an assigned, open issue can be accepted",
    TransitionKind.REJECT: "only an assigned, open issue can be rejected",
    TransitionKind.SKIP: "only an assigned, open issue can be skipped",
    TransitionKind.EDIT: "only an assigned, open issue can be edited",
    TransitionKind.UNDO_ACCEPT: "`undo accept` needs a closed issue labeled "
    f"{Label.SUFFICIENT.value!r}",
    TransitionKind.UNDO_REJECT: "`undo reject` needs a closed issue labeled "
    f"{Label.INSUFFICIENT.value!r}",
}


class IssueStateMachine:
    """Validates transition preconditions and computes their effects."""

    def plan(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext | None = None,
    ) -> TransitionPlan:
        """Plan one transition.

        Args:
            issue: Current view of the issue (pre-event view for passive events)
            request: The normalized transition request
            context: Fresh reads the preconditions depend on

        Returns:
            The validated plan

        Raises:
            PreconditionFailed: If the transition is not allowed
        """
        context = context or TransitionContext()
        from_state = derive_state(issue, context.undo)
        if from_state not in _ALLOWED_FROM[request.kind] and not _finishes_undo(
            issue, request.kind, context
        ):
            raise PreconditionFailed(
                f"Cannot {_verb(request.kind)} {issue.ref}: "
                f"{_NOT_ALLOWED_MESSAGES[request.kind]} (state is {from_state.value})."
            )

        builder = getattr(self, f"_plan_{request.kind.value}")
        to_state, effects = builder(issue, request, context, from_state)
        return TransitionPlan(
            request=request,
            from_state=from_state,
            to_state=to_state,
            effects=effects,
        )

    def _require_assignee(self, issue: GitHubIssue, request: TransitionRequest) -> None:
        if issue.assignee is None or issue.assignee.lower() != request.actor.lower():
            raise PreconditionFailed(
                f"Only the current assignee (@{issue.assignee}) can "
                f"{_verb(request.kind)} {issue.ref}."
            )

    def _plan_claim(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        if from_state is not IssueState.UNKNOWN_UNASSIGNED:
            raise PreconditionFailed(
                f"Cannot claim {issue.ref}: only issues labeled "
                f"{Label.UNKNOWN.value!r} can be claimed."
            )
        others = [n for n in context.other_unknown_assignments if n != issue.number]
        if others:
            held = ", ".join(f"#{n}" for n in others)
            raise PreconditionFailed(
                f"@{request.actor} already holds an {Label.UNKNOWN.value!r} "
                f"assignment ({held}); finish it before claiming another."
            )
        return IssueState.UNKNOWN_ASSIGNED, [
            Effect(kind=EffectKind.ASSIGN, login=request.actor)
        ]

    def _plan_accept(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        self._require_assignee(issue, request)
        effects = [
            _save_undo(issue, request.kind, context),
            Effect(kind=EffectKind.MIRROR_ACCEPT, text=request.comment),
            *_replace_quality_label(issue, Label.SUFFICIENT),
            Effect(kind=EffectKind.CLOSE),
            _refill(request.actor, from_state, terminal=True),
        ]
        return IssueState.ACCEPTED, effects

    def _plan_reject(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        self._require_assignee(issue, request)
        effects = [_save_undo(issue, request.kind, context)]
        if context.undo is not None:
            # an interrupted accept may have left a mirror behind
            effects.append(Effect(kind=EffectKind.MIRROR_REVERT))
        effects.extend(_replace_quality_label(issue, Label.INSUFFICIENT))
        if request.comment:
            effects.append(Effect(kind=EffectKind.COMMENT, text=request.comment))
        effects.append(Effect(kind=EffectKind.CLOSE))
        effects.append(_refill(request.actor, from_state, terminal=True))
        return IssueState.REJECTED, effects

    def _plan_skip(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        self._require_assignee(issue, request)
        effects: list[Effect] = []
        if context.undo is not None:
            effects.append(Effect(kind=EffectKind.MIRROR_REVERT))
        effects.append(Effect(kind=EffectKind.ADD_LABELS, labels=[Label.UNKNOWN.value]))
        stale = sorted(issue.label_names & QUALITY_LABELS)
        if stale:
            effects.append(Effect(kind=EffectKind.REMOVE_LABEL, labels=stale))
        effects.append(Effect(kind=EffectKind.UNASSIGN, login=request.actor))
        if context.undo is not None:
            effects.append(Effect(kind=EffectKind.CLEAR_UNDO))
        effects.append(_refill(request.actor, from_state, terminal=False))
        return IssueState.UNKNOWN_UNASSIGNED, effects

    def _plan_edit(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        self._require_assignee(issue, request)
        if not request.body:
            raise PreconditionFailed("`edit` needs a non-empty body.")
        effects = [Effect(kind=EffectKind.EDIT_BODY, text=request.body)]
        if not issue.has_label(Label.IMPROVED.value):
            effects.append(
                Effect(kind=EffectKind.ADD_LABELS, labels=[Label.IMPROVED.value])
            )
        return from_state, effects

    def _plan_undo_accept(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        effects = [Effect(kind=EffectKind.MIRROR_REVERT)]
        return self._plan_undo(issue, context, Label.SUFFICIENT, effects)

    def _plan_undo_reject(
        self,
        issue: GitHubIssue,
        request: TransitionRequest,
        context: TransitionContext,
        from_state: IssueState,
    ) -> tuple[IssueState, list[Effect]]:
        return self._plan_undo(issue, context, Label.INSUFFICIENT, [])

    def _plan_undo(
        self,
        issue: GitHubIssue,
        context: TransitionContext,
        terminal_label: Label,
        effects: list[Effect],
    ) -> tuple[IssueState, list[Effect]]:
        # Every prefix of these effects leaves an issue this undo can be retried on.
        undo = context.undo
        effects.append(Effect(kind=EffectKind.REOPEN))

        if undo is None:
            restored_labels = issue.label_names - {terminal_label.value}
            assignee = issue.assignee
        else:
            restored_labels = frozenset(undo.prior_labels)
            assignee = undo.prior_assignee
            missing = sorted(restored_labels - issue.label_names)
            if missing:
                effects.append(Effect(kind=EffectKind.ADD_LABELS, labels=missing))
            for label in sorted(issue.label_names - restored_labels - {terminal_label.value}):
                effects.append(Effect(kind=EffectKind.REMOVE_LABEL, labels=[label]))

        effects.append(Effect(kind=EffectKind.REMOVE_LABEL, labels=[terminal_label.value]))
        if assignee is not None:
            for login in issue.assignee_logins:
                if login != assignee:
                    effects.append(Effect(kind=EffectKind.UNASSIGN, login=login))
            if assignee not in issue.assignee_logins:
                effects.append(Effect(kind=EffectKind.ASSIGN, login=assignee))
        effects.append(Effect(kind=EffectKind.CLEAR_UNDO))

        unknown = Label.UNKNOWN.value in restored_labels
        if assignee is None:
            to_state = IssueState.UNKNOWN_UNASSIGNED if unknown else IssueState.OPEN_UNASSIGNED
        else:
            to_state = IssueState.UNKNOWN_ASSIGNED if unknown else IssueState.OPEN_ASSIGNED
        return to_state, effects


def _verb(kind: TransitionKind) -> str:
    return kind.value.replace("_", " ")


def _finishes_undo(
    issue: GitHubIssue, kind: TransitionKind, context: TransitionContext
) -> bool:
    """An undo retried on an issue whose earlier transition was interrupted."""
    label = _TERMINAL_LABELS.get(kind)
    return (
        label is not None
        and is_interrupted(issue, context.undo)
        and issue.has_label(label.value)
    )


def _save_undo(
    issue: GitHubIssue, kind: TransitionKind, context: TransitionContext
) -> Effect:
    """Record the pre-transition view; a resumed transition keeps the first one."""
    if context.undo is not None and is_interrupted(issue, context.undo):
        prior_labels = context.undo.prior_labels
        prior_assignee = context.undo.prior_assignee
    else:
        prior_labels = sorted(issue.label_names)
        prior_assignee = issue.assignee
    record = UndoRecord(
        prior_labels=prior_labels,
        prior_assignee=prior_assignee,
        transition=kind,
    )
    return Effect(kind=EffectKind.SAVE_UNDO, record=record.to_record())


def _replace_quality_label(issue: GitHubIssue, label: Label) -> list[Effect]:
    """Effects that leave ``label`` as the issue's only pool/quality label.

    The new label goes on before the old ones come off, so an interrupted
    run always leaves a quality label for state derivation to resume from.
    """
    effects = [Effect(kind=EffectKind.ADD_LABELS, labels=[label.value])]
    effects.extend(
        Effect(kind=EffectKind.REMOVE_LABEL, labels=[existing])
        for existing in sorted(issue.label_names & (QUALITY_LABELS | {Label.UNKNOWN.value}))
        if existing != label.value
    )
    return effects


def _refill(actor: str, from_state: IssueState, *, terminal: bool) -> Effect:
    return Effect(
        kind=EffectKind.REFILL_QUEUE,
        login=actor,
        completed_pool_was_unknown=from_state.in_unknown_pool,
        terminal=terminal,
    )
