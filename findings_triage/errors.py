"""Error taxonomy for triage transitions.

The state machine, mirror and queue manager raise these; only the service
layer catches them and turns them into reply comments or log records.
"""


class TriageError(Exception):
    """Base class for all triage errors."""


class PreconditionFailed(TriageError):
    """A command or event is not eligible in the issue's current state."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidCommand(PreconditionFailed):
    """A comment carried the trigger token but no valid command."""


class RemoteEffectFailed(TriageError):
    """A tracker or metadata-store call failed after bounded retries."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class IssueNotFound(RemoteEffectFailed):
    """The tracker reports the issue as missing or deleted."""


class LockTimeout(RemoteEffectFailed):
    """A per-issue, per-actor or per-pool lock was not acquired in time."""


class InconsistentMirror(TriageError):
    """Mirror issue exists but its metadata links could not be written.

    Requires manual reconciliation; never retried automatically.
    """

    def __init__(self, source_id: str, mirror_id: str, detail: str):
        super().__init__(
            f"Mirror of {source_id} created as {mirror_id} but links were not "
            f"written: {detail}"
        )
        self.source_id = source_id
        self.mirror_id = mirror_id
        self.detail = detail


class AmbiguousEvent(TriageError):
    """A platform event that maps to no normalization rule."""
