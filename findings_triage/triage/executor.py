"""Dispatch a transition plan's effects to the tracker, stores and mirror."""

import logging
from collections.abc import Callable

from ..errors import TriageError
from ..github_client.client import GitHubClient
from ..github_client.models import GitHubIssue
from ..storage.manager import StorageManager
from .mirror import CrossRepositoryMirror
from .models import Effect, EffectKind, TransitionOutcome, TransitionPlan
from .queue import AssignmentQueueManager

logger = logging.getLogger(__name__)


class EffectExecutor:
    """Runs effects in plan order, stopping at the first failure."""

    def __init__(
        self,
        tracker: GitHubClient,
        storage: StorageManager,
        mirror: CrossRepositoryMirror,
        queue: AssignmentQueueManager,
        refill_enabled: Callable[[str, str], bool] | None = None,
    ):
        self.tracker = tracker
        self.storage = storage
        self.mirror = mirror
        self.queue = queue
        self.refill_enabled = refill_enabled or (lambda owner, repo: True)

    def execute(self, issue: GitHubIssue, plan: TransitionPlan) -> TransitionOutcome:
        """Execute every effect of ``plan`` against ``issue``.

        Raises:
            TriageError: The first failing effect's error, after logging
                which effects had already been applied
        """
        outcome = TransitionOutcome(plan=plan)
        for effect in plan.effects:
            try:
                self._apply(issue, effect, outcome)
            except TriageError:
                logger.warning(
                    "%s on %s aborted at %s; applied so far: %s",
                    plan.request.kind.value,
                    issue.ref,
                    effect.kind.value,
                    [kind.value for kind in outcome.executed] or "nothing",
                )
                raise
            outcome.executed.append(effect.kind)
        logger.info(
            "Transition %s on %s by %s: %s -> %s",
            plan.request.kind.value,
            issue.ref,
            plan.request.actor,
            plan.from_state.value,
            plan.to_state.value,
        )
        return outcome

    def _apply(self, issue: GitHubIssue, effect: Effect, outcome: TransitionOutcome) -> None:
        ref = issue.ref
        if effect.kind is EffectKind.ADD_LABELS:
            self.tracker.add_labels(ref, *effect.labels)
        elif effect.kind is EffectKind.REMOVE_LABEL:
            for label in effect.labels:
                self.tracker.remove_label(ref, label)
        elif effect.kind is EffectKind.ASSIGN:
            self.tracker.assign(ref, _login(effect))
        elif effect.kind is EffectKind.UNASSIGN:
            self.tracker.unassign(ref, _login(effect))
        elif effect.kind is EffectKind.COMMENT:
            self.tracker.add_issue_comment(ref, effect.text or "")
        elif effect.kind is EffectKind.CLOSE:
            self.tracker.close_issue(ref)
        elif effect.kind is EffectKind.REOPEN:
            self.tracker.reopen_issue(ref)
        elif effect.kind is EffectKind.EDIT_BODY:
            self.tracker.update_issue_body(ref, effect.text or "")
        elif effect.kind is EffectKind.MIRROR_ACCEPT:
            outcome.mirror = self.mirror.accept(issue, effect.text)
        elif effect.kind is EffectKind.MIRROR_REVERT:
            outcome.mirror = self.mirror.revert_accept(ref)
        elif effect.kind is EffectKind.SAVE_UNDO:
            self.storage.undo.put(ref.issue_id, effect.record)
        elif effect.kind is EffectKind.CLEAR_UNDO:
            self.storage.undo.delete(ref.issue_id)
        elif effect.kind is EffectKind.REFILL_QUEUE:
            if not self.refill_enabled(ref.owner, ref.repo):
                logger.info("Queue refill skipped, %s is not active", ref.repo_full_name)
                return
            outcome.refill = self.queue.refill(
                _login(effect),
                ref.owner,
                ref.repo,
                completed_pool_was_unknown=effect.completed_pool_was_unknown,
                terminal=effect.terminal,
            )
        else:
            raise ValueError(f"Unsupported effect: {effect.kind}")


def _login(effect: Effect) -> str:
    if not effect.login:
        raise ValueError(f"{effect.kind.value} effect needs a login")
    return effect.login
