"""
Setup marker persistence — the host runtime's completion marker.

The marker is a small JSON file inside the host-runtime checkout,
written once the checkout's one-time setup has finished.  Linking and
integration tests refuse to run without it.  Writes are atomic
(temp file in the same directory, then rename).
"""

from __future__ import annotations

import json
import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pluginctl.core.errors import PreconditionError
from pluginctl.core.models.workspace import SetupMarker

logger = logging.getLogger(__name__)

SETUP_REMEDIATION = "Run 'pluginctl runtime setup' to prepare the host runtime first."


def marker_path(host_runtime: Path, marker_file: str) -> Path:
    return host_runtime / marker_file


def read_marker(path: Path) -> SetupMarker:
    """Load the completion marker.

    Raises:
        PreconditionError: Missing, unreadable or malformed marker.
    """
    if not path.is_file():
        raise PreconditionError(
            f"Host runtime is not set up: no completion marker at {path}",
            remediation=SETUP_REMEDIATION,
        )

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        marker = SetupMarker.model_validate(data)
    except (OSError, ValueError) as e:
        raise PreconditionError(
            f"Host runtime completion marker is unreadable: {path} ({e})",
            remediation=SETUP_REMEDIATION,
        ) from e

    logger.debug("Host runtime set up at %s (%s)", marker.host_runtime_path, marker.completed_at)
    return marker


def write_marker(path: Path, host_runtime: Path, *, python: str | None = None, notes: str = "") -> SetupMarker:
    """Write the completion marker atomically and return it."""
    marker = SetupMarker(
        completed_at=datetime.now(UTC).isoformat(),
        host_runtime_path=str(host_runtime.resolve()),
        python=python,
        notes=notes,
    )
    content = json.dumps(marker.model_dump(mode="json"), indent=2) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".marker_", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with open(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to write setup marker to %s", path)
        raise

    logger.info("Setup marker written to %s", path)
    return marker
