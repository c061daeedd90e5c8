"""Parse reviewer commands out of issue comments.

Commands are prefixed by a configurable trigger token:

    @audit-triage accept great finding
    @audit-triage reject [comment]
    @audit-triage claim
    @audit-triage skip
    @audit-triage undo accept|reject
    @audit-triage edit

    <new body>
"""

import re

from ..errors import InvalidCommand
from .models import (
    AcceptCommand,
    ClaimCommand,
    Command,
    EditCommand,
    RejectCommand,
    SkipCommand,
    UndoCommand,
)

COMMANDS = {
    "accept": "Accept the finding and mirror it to the findings repository",
    "reject": "Reject the finding as an insufficient quality report",
    "claim": "Claim an unassigned issue labeled 'unknown'",
    "skip": "Hand the issue back, labeled 'unknown'",
    "undo": "Reverse an accept or reject: `undo accept` / `undo reject`",
    "edit": "Replace the issue body with the text after a blank line",
}

_VERB_RE = re.compile(r"(?P<verb>\S+)(?P<args>.*)", re.DOTALL)
_LEADING_BLANK_LINES_RE = re.compile(r"^[ \t]*\r?\n(?:[ \t]*\r?\n)+")


def get_commands_help(trigger: str) -> str:
    """Markdown list of the available commands."""
    lines = ["Available commands:", ""]
    for name, description in COMMANDS.items():
        lines.append(f"- `{trigger} {name}`: {description}")
    return "\n".join(lines)


def parse_command(body: str, trigger: str) -> Command | None:
    """Parse a command from a comment body.

    Returns:
        The command, or None when the comment is not addressed to the bot

    Raises:
        InvalidCommand: If the comment starts with the trigger but holds no
            valid command
    """
    text = body.lstrip()
    if not text.lower().startswith(trigger.lower()):
        return None
    rest = text[len(trigger) :]
    if rest and not rest[0].isspace():
        # e.g. "@audit-triagers" is a different mention
        return None

    match = _VERB_RE.match(rest.lstrip(" \t\r\n"))
    if not match:
        raise InvalidCommand(f"No command given.\n\n{get_commands_help(trigger)}")

    verb = match.group("verb").lower()
    args = match.group("args")

    if verb in ("accept", "reject"):
        comment = args.strip() or None
        if verb == "accept":
            return AcceptCommand(comment=comment)
        return RejectCommand(comment=comment)

    if verb in ("claim", "skip"):
        if args.strip():
            raise InvalidCommand(f"`{verb}` takes no arguments.")
        return ClaimCommand() if verb == "claim" else SkipCommand()

    if verb == "undo":
        target = args.strip().lower()
        if target not in ("accept", "reject"):
            raise InvalidCommand("`undo` needs a target: `undo accept` or `undo reject`.")
        return UndoCommand(target=target)

    if verb == "edit":
        if not _LEADING_BLANK_LINES_RE.match(args):
            raise InvalidCommand("`edit` expects the new body after a blank line.")
        new_body = _LEADING_BLANK_LINES_RE.sub("", args, count=1).rstrip()
        if not new_body:
            raise InvalidCommand("`edit` needs a non-empty body.")
        return EditCommand(body=new_body)

    raise InvalidCommand(
        f"Unknown command `{verb}`.\n\n{get_commands_help(trigger)}"
    )
