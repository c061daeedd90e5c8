"""Reviewer command interpreter."""

from .models import (
    AcceptCommand,
    ClaimCommand,
    Command,
    EditCommand,
    RejectCommand,
    SkipCommand,
    UndoCommand,
)
from .parser import get_commands_help, parse_command

__all__ = [
    "AcceptCommand",
    "ClaimCommand",
    "Command",
    "EditCommand",
    "RejectCommand",
    "SkipCommand",
    "UndoCommand",
    "get_commands_help",
    "parse_command",
]
