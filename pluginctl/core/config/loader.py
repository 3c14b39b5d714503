"""
Configuration loader — reads workspace.yml into domain models.

This is the primary entry point for loading workspace configuration.
It reads YAML, validates against Pydantic schemas, and returns
typed domain objects.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from pluginctl.core.errors import PreconditionError
from pluginctl.core.models.workspace import Workspace

logger = logging.getLogger(__name__)

# Default config filename
WORKSPACE_CONFIG_FILE = "workspace.yml"


class ConfigError(PreconditionError):
    """Raised when workspace configuration is invalid or missing."""


def find_workspace_file(start_dir: Path | None = None) -> Path | None:
    """Search for workspace.yml starting from the given directory, walking up.

    This allows running commands from inside a module directory and
    still finding the workspace root.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to workspace.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / WORKSPACE_CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_workspace(path: Path | None = None) -> Workspace:
    """Load and validate workspace configuration.

    Args:
        path: Explicit path to workspace.yml. If None, searches upward.

    Returns:
        Validated Workspace model with ``root`` set to the file's directory.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_workspace_file()

    if path is None:
        raise ConfigError(
            f"No {WORKSPACE_CONFIG_FILE} found.",
            remediation=f"Create {WORKSPACE_CONFIG_FILE} at the workspace root, or pass --config.",
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading workspace config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "workspace" key or be flat
    workspace_data = dict(data["workspace"]) if isinstance(data.get("workspace"), dict) else data

    # Merge top-level keys that sit alongside "workspace"
    for key in ("version", "build", "host_runtime", "targets", "scaffold"):
        if key in data and key not in workspace_data:
            workspace_data[key] = data[key]

    workspace_data["root"] = str(path.parent.resolve())

    try:
        workspace = Workspace.model_validate(workspace_data)
    except Exception as e:
        raise ConfigError(f"Invalid workspace configuration: {e}") from e

    logger.info(
        "Loaded workspace '%s' (%d deployment targets)",
        workspace.name,
        len(workspace.targets),
    )
    return workspace
