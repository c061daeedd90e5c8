"""Per-issue, per-actor and per-pool mutual exclusion.

Each delivery usually runs in its own short-lived process, so locks are
``flock``-ed files in a directory every process shares rather than
in-memory objects.
"""

import fcntl
import logging
import re
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from ..errors import LockTimeout
from ..github_client.models import IssueRef

logger = logging.getLogger(__name__)

# Acquisition order across key kinds; within a kind keys are taken lexically.
_KIND_RANK = {"actor": 0, "issue": 1, "pool": 2}

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def actor_key(login: str) -> str:
    return f"actor:{login.lower()}"


def issue_key(ref: IssueRef) -> str:
    return f"issue:{ref.issue_id}"


def pool_key(owner: str, repo: str) -> str:
    return f"pool:{owner}/{repo}"


def _order(key: str) -> tuple[int, str]:
    kind, _, name = key.partition(":")
    return _KIND_RANK.get(kind, len(_KIND_RANK)), name


def lock_file_name(key: str) -> str:
    """File name for a lock key, e.g. 'issue_audit-org_validation_42.lock'."""
    return f"{_UNSAFE_CHARS_RE.sub('_', key)}.lock"


class LockRegistry:
    """Named locks shared by every process using the same lock directory.

    Locks are always acquired in one canonical order, so two transitions
    that need overlapping keys cannot deadlock. A thread may retake a key it
    already holds, which lets a queue refill reuse the actor lock of its
    enclosing transition.
    """

    def __init__(self, lock_dir: Path, timeout: float = 30.0, poll_interval: float = 0.05):
        """Initialize the registry.

        Args:
            lock_dir: Directory holding one lock file per key
            timeout: Seconds to wait for each lock before giving up
            poll_interval: Seconds between acquisition attempts
        """
        self.lock_dir = Path(lock_dir)
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._local = threading.local()

    def _held(self) -> dict[str, tuple[IO[str], int]]:
        """Keys held by the current thread with their handle and depth."""
        held = getattr(self._local, "held", None)
        if held is None:
            held = {}
            self._local.held = held
        return held

    def _acquire(self, key: str) -> IO[str]:
        handle = open(self.lock_dir / lock_file_name(key), "a")
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return handle
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    handle.close()
                    raise LockTimeout(
                        f"acquire {key}", f"not acquired within {self.timeout}s"
                    ) from None
                time.sleep(self.poll_interval)

    def _release(self, key: str) -> None:
        held = self._held()
        handle, depth = held[key]
        if depth > 1:
            held[key] = (handle, depth - 1)
            return
        del held[key]
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block.

        Raises:
            LockTimeout: If a lock is not acquired within the timeout
        """
        held = self._held()
        taken: list[str] = []
        try:
            for key in sorted(set(keys), key=_order):
                if key in held:
                    handle, depth = held[key]
                    held[key] = (handle, depth + 1)
                else:
                    held[key] = (self._acquire(key), 1)
                    logger.debug("Acquired lock %s", key)
                taken.append(key)
            yield
        finally:
            for key in reversed(taken):
                self._release(key)
