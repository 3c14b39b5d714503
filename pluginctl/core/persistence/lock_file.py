"""
Lock files — keep two deploys of the same (module, target) apart.

Non-blocking exclusive lock on a sidecar file:

- Unix/Linux/macOS: ``fcntl.flock``
- Windows: ``msvcrt.locking``

A held lock is a precondition failure, never a wait.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from pluginctl.core.errors import PreconditionError

logger = logging.getLogger(__name__)


class LockBusyError(PreconditionError):
    """Another process holds the lock."""


def lock_name(*parts: str) -> str:
    """Filesystem-safe lock file name from its parts."""
    return "__".join(re.sub(r"[^A-Za-z0-9._-]", "_", p) for p in parts) + ".lock"


def _acquire(handle: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)


def _release(handle: IO[str]) -> None:
    if os.name == "nt":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


@contextmanager
def hold_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive lock on ``path`` for the duration of the block.

    Raises:
        LockBusyError: The lock is held by another process.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a+", encoding="utf-8") as handle:
        try:
            _acquire(handle)
        except OSError as e:
            raise LockBusyError(
                f"Another pluginctl process holds {path.name}",
                remediation="Wait for the other deploy to finish.",
            ) from e
        logger.debug("Acquired lock %s", path)
        try:
            handle.seek(0)
            handle.truncate()
            handle.write(f"{os.getpid()}\n")
            handle.flush()
            yield
        finally:
            _release(handle)
            logger.debug("Released lock %s", path)
