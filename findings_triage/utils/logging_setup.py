"""Logging configuration for the CLI and the bot."""

import logging
from pathlib import Path

from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(data_dir: Path | None = None, verbose: bool = False) -> None:
    """
    Send triage logs to stderr through rich and, when ``data_dir`` is given,
    to 'data_dir/logs/triage.log'. Safe to call more than once.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not any(isinstance(h, RichHandler) for h in root.handlers):
        console_handler = RichHandler(show_path=False, rich_tracebacks=True)
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        root.addHandler(console_handler)

    # PyGithub logs every request at DEBUG
    logging.getLogger("github").setLevel(logging.WARNING)

    if data_dir is None:
        return

    log_dir = Path(data_dir) / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "triage.log"
    if not any(
        isinstance(h, logging.FileHandler)
        and getattr(h, "baseFilename", "") == str(log_file.absolute())
        for h in root.handlers
    ):
        fh = logging.FileHandler(log_file)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(fh)
