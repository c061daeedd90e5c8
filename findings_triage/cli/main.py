"""Main CLI entry point."""

import json
import os
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..config import TriageConfig
from ..github_client.models import IssueRef
from ..service import TriageService
from ..storage.manager import StorageManager
from ..triage.models import OriginalLink, TransitionOutcome, ValidatedLink
from ..utils.logging_setup import setup_logging
from .options import (
    ACTOR_OPTION,
    DATA_DIR_OPTION,
    EVENT_NAME_OPTION,
    FINDINGS_REPO_OPTION,
    ISSUE_NUMBER_OPTION,
    PAYLOAD_OPTION,
    TOKEN_OPTION,
    VALIDATION_REPO_OPTION,
    VERBOSE_OPTION,
)

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="findings-triage",
    help="Triage bot for audit findings: commands, mirroring and assignment queue",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


def _load_config(
    token: str | None,
    validation_repo: str | None,
    findings_repo: str | None,
    data_dir: str | None,
) -> TriageConfig:
    try:
        return TriageConfig.from_env(
            github_token=token,
            validation_repo=validation_repo,
            findings_repo=findings_repo,
            data_dir=data_dir,
        )
    except ValueError as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


def _print_outcome(outcome: TransitionOutcome | None) -> None:
    if outcome is None:
        console.print("ℹ️  No transition executed")
        return

    plan = outcome.plan
    console.print(
        f"✅ {plan.request.kind.value} on {plan.request.issue}: "
        f"{plan.from_state.value} → {plan.to_state.value}"
    )
    if outcome.mirror is not None:
        console.print(f"🔗 Mirror: {outcome.mirror}")
    if outcome.refill is not None and outcome.refill.assigned:
        assigned = ", ".join(str(ref) for ref in outcome.refill.assigned)
        bonus = " (bonus)" if outcome.refill.bonus else ""
        console.print(f"📥 Assigned to @{outcome.refill.actor}{bonus}: {assigned}")


@app.command(name="handle-event")
def handle_event(
    event_name: str | None = EVENT_NAME_OPTION,
    payload: Path | None = PAYLOAD_OPTION,
    token: str | None = TOKEN_OPTION,
    validation_repo: str | None = VALIDATION_REPO_OPTION,
    findings_repo: str | None = FINDINGS_REPO_OPTION,
    data_dir: str | None = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Handle one webhook delivery (issue_comment or issues).

    Inside a GitHub Actions job the event name and payload path are read
    from GITHUB_EVENT_NAME and GITHUB_EVENT_PATH.

    Examples:
        findings-triage handle-event -e issue_comment -p event.json
    """
    if not event_name or payload is None:
        console.print(
            "❌ [red]Error: --event-name and --payload are required "
            "(or GITHUB_EVENT_NAME and GITHUB_EVENT_PATH)[/red]"
        )
        raise typer.Exit(1)

    try:
        with open(payload, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        console.print(f"❌ [red]Cannot read payload {payload}: {e}[/red]")
        raise typer.Exit(1)

    config = _load_config(token, validation_repo, findings_repo, data_dir)
    setup_logging(config.data_dir, verbose=verbose)
    service = TriageService.from_config(config)
    _print_outcome(service.handle_webhook(event_name, data))


@app.command(name="run-command")
def run_command(
    text: str = typer.Argument(..., help="Comment text, including the trigger"),
    issue_number: int = ISSUE_NUMBER_OPTION,
    actor: str = ACTOR_OPTION,
    token: str | None = TOKEN_OPTION,
    validation_repo: str | None = VALIDATION_REPO_OPTION,
    findings_repo: str | None = FINDINGS_REPO_OPTION,
    data_dir: str | None = DATA_DIR_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Run a command on a validation issue as if ACTOR had commented it.

    Examples:
        findings-triage run-command -i 42 -a alice "@audit-triage claim"
    """
    config = _load_config(token, validation_repo, findings_repo, data_dir)
    setup_logging(config.data_dir, verbose=verbose)
    service = TriageService.from_config(config)
    _print_outcome(
        service.handle_comment(service.validation_ref(issue_number), actor, text)
    )


@app.command()
def links(
    issue_number: int = ISSUE_NUMBER_OPTION,
    validation_repo: str | None = VALIDATION_REPO_OPTION,
    data_dir: str | None = DATA_DIR_OPTION,
) -> None:
    """Show the mirror link recorded for a validation issue."""
    repo = validation_repo or os.getenv("TRIAGE_VALIDATION_REPO")
    if not repo or "/" not in repo:
        console.print(
            "❌ [red]Error: --validation-repo or TRIAGE_VALIDATION_REPO "
            "(owner/name) is required[/red]"
        )
        raise typer.Exit(1)

    owner, name = repo.split("/", 1)
    ref = IssueRef(owner=owner, repo=name, number=issue_number)
    storage = StorageManager(_metadata_dir(data_dir))

    record = storage.links.get(ref.issue_id)
    if record is None:
        console.print(f"No mirror linked to {ref}")
        return
    link = ValidatedLink.model_validate(record)

    table = Table(title=f"Mirror of {ref}")
    table.add_column("Side", style="cyan")
    table.add_column("Issue", style="green")
    table.add_column("URL")
    table.add_row("Findings", link.validated_issue_id, link.validated_issue_url)

    back = storage.links.get(link.validated_issue_id)
    if back is None:
        console.print(
            f"⚠️  [yellow]{link.validated_issue_id} has no record pointing back "
            f"at {ref}[/yellow]"
        )
    else:
        original = OriginalLink.model_validate(back)
        table.add_row("Validation", original.original_issue_id, original.original_issue_url)
    console.print(table)


def _metadata_dir(data_dir: str | None) -> Path:
    return Path(data_dir or os.getenv("TRIAGE_DATA_DIR") or "data") / "metadata"


@app.command()
def status(data_dir: str | None = DATA_DIR_OPTION) -> None:
    """Show metadata storage status and statistics."""
    console.print("📊 Storage Status")

    storage = StorageManager(_metadata_dir(data_dir))
    stats = storage.get_storage_stats()

    stats_table = Table(title="Storage Statistics")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Value", style="green")

    stats_table.add_row("Link Records", str(stats["links_records"]))
    stats_table.add_row("Undo Records", str(stats["undo_records"]))
    stats_table.add_row("Storage Size", f"{stats['total_size_bytes']} bytes")
    stats_table.add_row("Storage Path", stats["storage_path"])

    console.print(stats_table)


@app.command()
def version() -> None:
    """Show version information."""
    from findings_triage import __version__

    console.print(f"Findings Triage v{__version__}")


if __name__ == "__main__":
    app()
