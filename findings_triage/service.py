"""Triage service: route commands and platform events through the core.

This is the only layer that catches triage errors. Precondition and remote
failures of user-initiated actions are reported back as issue comments.
"""

import logging
from typing import Any

from .commands.parser import parse_command
from .config import TriageConfig
from .errors import (
    AmbiguousEvent,
    InconsistentMirror,
    InvalidCommand,
    PreconditionFailed,
    RemoteEffectFailed,
    TriageError,
)
from .github_client.client import GitHubClient
from .github_client.models import GitHubIssue, GitHubUser, IssueRef
from .storage.manager import StorageManager
from .triage.events import PassiveEventNormalizer, PlatformAction, PlatformEvent
from .triage.executor import EffectExecutor
from .triage.locks import LockRegistry, actor_key, issue_key, pool_key
from .triage.mirror import CrossRepositoryMirror
from .triage.models import (
    EffectKind,
    Label,
    TransitionContext,
    TransitionKind,
    TransitionOutcome,
    TransitionRequest,
    UndoRecord,
)
from .triage.queue import AssignmentQueueManager
from .triage.state_machine import IssueStateMachine

logger = logging.getLogger(__name__)

ISSUE_ACTIONS = {action.value for action in PlatformAction}


class TriageService:
    """Wires the state machine, mirror, queue and normalizer together."""

    def __init__(
        self,
        config: TriageConfig,
        tracker: GitHubClient,
        storage: StorageManager | None = None,
        locks: LockRegistry | None = None,
    ):
        self.config = config
        self.tracker = tracker
        self.storage = storage or StorageManager(config.metadata_dir)
        self.locks = locks or LockRegistry(
            config.locks_dir, timeout=config.lock_timeout
        )
        self.state_machine = IssueStateMachine()
        self.mirror = CrossRepositoryMirror(
            tracker, self.storage.links, config.findings_repo
        )
        self.queue = AssignmentQueueManager(tracker, self.locks)
        self.normalizer = PassiveEventNormalizer(config.bot_login)
        self.executor = EffectExecutor(
            tracker,
            self.storage,
            self.mirror,
            self.queue,
            refill_enabled=self.is_repository_active,
        )
        self.validation_owner, self.validation_repo = config.validation_repo.split("/", 1)

    @classmethod
    def from_config(cls, config: TriageConfig) -> "TriageService":
        tracker = GitHubClient(
            token=config.github_token,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            retry_backoff=config.retry_backoff,
        )
        return cls(config, tracker)

    def validation_ref(self, number: int) -> IssueRef:
        return IssueRef(owner=self.validation_owner, repo=self.validation_repo, number=number)

    def is_repository_active(self, owner: str, repo: str) -> bool:
        """Whether the repository carries the configured ``active`` topic."""
        return self.config.active_topic in self.tracker.get_repository_topics(owner, repo)

    def _is_bot(self, login: str) -> bool:
        return login.lower() == self.config.bot_login.lower()

    def handle_comment(
        self, ref: IssueRef, actor: str, body: str
    ) -> TransitionOutcome | None:
        """Run the command in a comment, if it holds one.

        Returns:
            The executed transition, or None when nothing ran
        """
        if self._is_bot(actor):
            return None
        try:
            command = parse_command(body, self.config.trigger)
        except InvalidCommand as e:
            logger.info("Invalid command from %s on %s: %s", actor, ref, e.message)
            self._reply(ref, actor, f"❌ {e.message}")
            return None
        if command is None:
            return None

        logger.info("Command %s on %s by %s", command.kind, ref, actor)
        return self._run_reported(command.to_request(ref, actor))

    def handle_platform_event(self, event: PlatformEvent) -> TransitionOutcome | None:
        """Normalize a platform event and run or reverse it.

        Returns:
            The executed transition, or None for ignored and reversed events
        """
        ref = event.issue.ref
        keys = self._lock_keys(
            event.actor, ref, assigning=event.action is PlatformAction.ASSIGNED
        )
        try:
            with self.locks.hold(*keys):
                held: list[int] = []
                if event.action is PlatformAction.ASSIGNED:
                    held = self._unknown_assignments(event.actor, ref)
                normalized = self.normalizer.normalize(event, held)

                if normalized.compensation is not None:
                    effect = normalized.compensation
                    login = effect.login or ""
                    if effect.kind is EffectKind.ASSIGN:
                        self.tracker.assign(ref, login)
                    else:
                        self.tracker.unassign(ref, login)
                    logger.info(
                        "Reversed %s on %s by @%s", event.action.value, ref, event.actor
                    )
                    return None

                if normalized.request is None:
                    return None
                logger.info(
                    "Event %s on %s by %s normalized to %s",
                    event.action.value,
                    ref,
                    event.actor,
                    normalized.request.kind.value,
                )
                return self._run_reported(normalized.request, normalized.issue_view)
        except AmbiguousEvent as e:
            logger.debug("Ignoring %s on %s: %s", event.action.value, ref, e)
            return None
        except RemoteEffectFailed as e:
            logger.warning("Could not handle %s on %s: %s", event.action.value, ref, e)
            return None

    def handle_webhook(
        self, event_name: str, payload: dict[str, Any]
    ) -> TransitionOutcome | None:
        """Dispatch a GitHub webhook delivery (issue_comment or issues)."""
        repository = payload.get("repository") or {}
        full_name = str(repository.get("full_name", ""))
        if full_name.lower() != self.config.validation_repo.lower():
            logger.debug("Ignoring %s event from %s", event_name, full_name or "?")
            return None

        issue_data = payload.get("issue")
        if not issue_data or "pull_request" in issue_data:
            return None
        owner, repo = full_name.split("/", 1)
        action = payload.get("action")
        sender = (payload.get("sender") or {}).get("login", "")

        if event_name == "issue_comment":
            if action != "created":
                return None
            comment = payload["comment"]
            ref = IssueRef(owner=owner, repo=repo, number=issue_data["number"])
            return self.handle_comment(ref, comment["user"]["login"], comment["body"] or "")

        if event_name == "issues" and action in ISSUE_ACTIONS:
            assignee_data = payload.get("assignee")
            assignee = (
                GitHubUser(login=assignee_data["login"], id=assignee_data["id"])
                if assignee_data
                else None
            )
            try:
                active = self.is_repository_active(owner, repo)
            except RemoteEffectFailed as e:
                logger.warning("Could not read topics of %s: %s", full_name, e)
                return None
            event = PlatformEvent(
                action=PlatformAction(action),
                issue=GitHubIssue.from_payload(owner, repo, issue_data),
                actor=sender,
                assignee=assignee,
                repository_active=active,
            )
            return self.handle_platform_event(event)

        logger.debug("Ignoring %s/%s event", event_name, action)
        return None

    def run(
        self, request: TransitionRequest, issue_view: GitHubIssue | None = None
    ) -> TransitionOutcome:
        """Plan and execute one transition under the actor and issue locks.

        Claims also hold the pool lock, and the issue is read only once every
        lock is held.

        Args:
            request: The transition to run
            issue_view: Pre-event issue view for passive events; fetched
                fresh from the tracker when omitted

        Raises:
            TriageError: On precondition or remote failures
        """
        keys = self._lock_keys(
            request.actor, request.issue, assigning=request.kind is TransitionKind.CLAIM
        )
        with self.locks.hold(*keys):
            issue = issue_view or self.tracker.get_issue(request.issue)
            context = self._context(issue, request)
            plan = self.state_machine.plan(issue, request, context)
            return self.executor.execute(issue, plan)

    def _lock_keys(self, actor: str, ref: IssueRef, *, assigning: bool) -> list[str]:
        """Actor and issue keys, plus the pool key when the actor takes an issue.

        Claims and self-assignments draw from the same unassigned pool as
        queue refills, so they serialize on the pool lock too.
        """
        keys = [actor_key(actor), issue_key(ref)]
        if assigning:
            keys.append(pool_key(ref.owner, ref.repo))
        return keys

    def _context(self, issue: GitHubIssue, request: TransitionRequest) -> TransitionContext:
        context = TransitionContext()
        record = self.storage.undo.get(issue.ref.issue_id)
        if record is not None:
            context.undo = UndoRecord.from_record(record)
        if request.kind is TransitionKind.CLAIM:
            context.other_unknown_assignments = self._unknown_assignments(
                request.actor, issue.ref
            )
        return context

    def _unknown_assignments(self, actor: str, ref: IssueRef) -> list[int]:
        held = self.tracker.list_open_issues(
            ref.owner, ref.repo, assignee=actor, label=Label.UNKNOWN.value
        )
        return [issue.number for issue in held if issue.number != ref.number]

    def _run_reported(
        self, request: TransitionRequest, issue_view: GitHubIssue | None = None
    ) -> TransitionOutcome | None:
        try:
            return self.run(request, issue_view)
        except PreconditionFailed as e:
            logger.info("Rejected %s on %s: %s", request.kind.value, request.issue, e)
            self._reply(request.issue, request.actor, f"❌ {e.message}")
        except InconsistentMirror as e:
            logger.error("Inconsistent mirror for %s: %s", request.issue, e)
            self._reply(
                request.issue,
                request.actor,
                f"⚠️ {e} A maintainer needs to reconcile the links manually.",
            )
        except RemoteEffectFailed as e:
            logger.warning("%s on %s failed: %s", request.kind.value, request.issue, e)
            self._reply(
                request.issue,
                request.actor,
                f"⚠️ Could not complete `{request.kind.value}`: {e}. Please retry.",
            )
        return None

    def _reply(self, ref: IssueRef, actor: str, message: str) -> None:
        try:
            self.tracker.add_issue_comment(ref, f"@{actor} {message}")
        except TriageError as e:
            logger.error("Could not report to @%s on %s: %s", actor, ref, e)
