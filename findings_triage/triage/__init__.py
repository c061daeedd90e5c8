"""Issue lifecycle core: state machine, mirror, assignment queue, event normalizer."""

from .events import NormalizedEvent, PassiveEventNormalizer, PlatformAction, PlatformEvent
from .executor import EffectExecutor
from .locks import LockRegistry
from .mirror import CrossRepositoryMirror
from .models import (
    Effect,
    EffectKind,
    IssueState,
    Label,
    RefillResult,
    TransitionContext,
    TransitionKind,
    TransitionOutcome,
    TransitionPlan,
    TransitionRequest,
    derive_state,
)
from .queue import AssignmentQueueManager
from .state_machine import IssueStateMachine

__all__ = [
    "AssignmentQueueManager",
    "CrossRepositoryMirror",
    "Effect",
    "EffectExecutor",
    "EffectKind",
    "IssueState",
    "IssueStateMachine",
    "Label",
    "LockRegistry",
    "NormalizedEvent",
    "PassiveEventNormalizer",
    "PlatformAction",
    "PlatformEvent",
    "RefillResult",
    "TransitionContext",
    "TransitionKind",
    "TransitionOutcome",
    "TransitionPlan",
    "TransitionRequest",
    "derive_state",
]
