"""Shared CLI option definitions so shorthands stay consistent across commands."""

import typer

# Repository options - override TRIAGE_* environment variables
VALIDATION_REPO_OPTION = typer.Option(
    None,
    "--validation-repo",
    "-r",
    help="Validation repository as owner/name (defaults to TRIAGE_VALIDATION_REPO)",
)

FINDINGS_REPO_OPTION = typer.Option(
    None,
    "--findings-repo",
    "-f",
    help="Findings repository as owner/name (defaults to TRIAGE_FINDINGS_REPO)",
)

ISSUE_NUMBER_OPTION = typer.Option(
    ..., "--issue-number", "-i", help="Issue number in the validation repository"
)

# Event options - GitHub Actions provides both variables to the job
EVENT_NAME_OPTION = typer.Option(
    None,
    "--event-name",
    "-e",
    envvar="GITHUB_EVENT_NAME",
    help="Webhook event name (issues, issue_comment)",
)

PAYLOAD_OPTION = typer.Option(
    None,
    "--payload",
    "-p",
    envvar="GITHUB_EVENT_PATH",
    help="Path to the webhook payload JSON file",
)

ACTOR_OPTION = typer.Option(..., "--actor", "-a", help="Login the command runs as")

# Storage and output options
DATA_DIR_OPTION = typer.Option(
    None, "--data-dir", help="Metadata and log directory (defaults to TRIAGE_DATA_DIR)"
)

TOKEN_OPTION = typer.Option(
    None, "--token", "-t", help="GitHub API token (defaults to GITHUB_TOKEN env var)"
)

VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
