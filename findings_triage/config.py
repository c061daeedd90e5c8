"""Configuration for the triage bot, read from environment variables."""

import os
import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

DEFAULT_TRIGGER = "@audit-triage"
DEFAULT_BOT_LOGIN = "audit-triage[bot]"


class TriageConfig(BaseModel):
    """Settings shared by the CLI and the triage service."""

    github_token: str = Field(..., min_length=1, description="GitHub API token")
    validation_repo: str = Field(..., description="owner/name of the validation repo")
    findings_repo: str = Field(..., description="owner/name of the findings repo")
    trigger: str = Field(DEFAULT_TRIGGER, min_length=1, description="Command prefix")
    bot_login: str = Field(DEFAULT_BOT_LOGIN, description="Login the bot acts as")
    data_dir: Path = Field(Path("data"), description="Metadata and log directory")
    active_topic: str = Field("active", description="Repository topic enabling automation")
    request_timeout: int = Field(15, gt=0, description="Per-request timeout (seconds)")
    max_retries: int = Field(3, ge=0, description="Retries for transient API failures")
    retry_backoff: float = Field(2.0, gt=0, description="Base retry delay (seconds)")
    lock_timeout: float = Field(30.0, gt=0, description="Lock acquisition timeout")

    @field_validator("validation_repo", "findings_repo")
    @classmethod
    def _check_repo(cls, value: str) -> str:
        value = value.strip()
        if not _REPO_RE.match(value):
            raise ValueError(
                f"Invalid repository '{value}'. Expected format: owner/name"
            )
        return value

    @model_validator(mode="after")
    def _check_distinct_repos(self) -> "TriageConfig":
        if self.validation_repo.lower() == self.findings_repo.lower():
            raise ValueError(
                "TRIAGE_VALIDATION_REPO and TRIAGE_FINDINGS_REPO must differ"
            )
        return self

    @property
    def metadata_dir(self) -> Path:
        return self.data_dir / "metadata"

    @property
    def locks_dir(self) -> Path:
        return self.data_dir / "locks"

    @classmethod
    def from_env(cls, **overrides: object) -> "TriageConfig":
        """Build the configuration from environment variables.

        Args:
            **overrides: Values taking precedence over the environment
                (CLI options); None values are ignored

        Raises:
            ValueError: If a required variable is missing or a value is invalid
        """
        env: dict[str, object] = {
            "github_token": os.getenv("GITHUB_TOKEN"),
            "validation_repo": os.getenv("TRIAGE_VALIDATION_REPO"),
            "findings_repo": os.getenv("TRIAGE_FINDINGS_REPO"),
            "trigger": os.getenv("TRIAGE_TRIGGER"),
            "bot_login": os.getenv("TRIAGE_BOT_LOGIN"),
            "data_dir": os.getenv("TRIAGE_DATA_DIR"),
            "active_topic": os.getenv("TRIAGE_ACTIVE_TOPIC"),
            "request_timeout": os.getenv("TRIAGE_REQUEST_TIMEOUT"),
            "max_retries": os.getenv("TRIAGE_MAX_RETRIES"),
            "retry_backoff": os.getenv("TRIAGE_RETRY_BACKOFF"),
            "lock_timeout": os.getenv("TRIAGE_LOCK_TIMEOUT"),
        }
        env.update({key: value for key, value in overrides.items() if value is not None})
        values = {key: value for key, value in env.items() if value is not None}

        missing = [
            name
            for name, key in (
                ("GITHUB_TOKEN", "github_token"),
                ("TRIAGE_VALIDATION_REPO", "validation_repo"),
                ("TRIAGE_FINDINGS_REPO", "findings_repo"),
            )
            if not values.get(key)
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        return cls.model_validate(values)
