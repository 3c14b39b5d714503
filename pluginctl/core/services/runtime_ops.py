"""
Host runtime — the second checkout integration tests run inside.

Provides:
- the checkout's own interpreter and environment (never the caller's)
- the one-time setup: virtualenv, host requirements, completion marker
- marker lookup used as a precondition by linking and testing
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.errors import ExternalToolError, PreconditionError
from pluginctl.core.models.step import EnvConfig, StepResult
from pluginctl.core.models.workspace import SetupMarker, Workspace
from pluginctl.core.persistence.marker_file import marker_path, read_marker, write_marker

logger = logging.getLogger(__name__)

# Variables that would leak the caller's interpreter into the host venv
_INTERPRETER_VARS = ["PYTHONHOME", "PYTHONPATH", "VIRTUAL_ENV", "CONDA_PREFIX"]


def venv_python(workspace: Workspace) -> Path:
    """The host runtime venv's interpreter."""
    venv = workspace.host_runtime_path / workspace.host_runtime.venv
    if os.name == "nt":
        return venv / "Scripts" / "python.exe"
    return venv / "bin" / "python"


def host_env(workspace: Workspace, extra: dict[str, str] | None = None) -> EnvConfig:
    """Environment that activates the host runtime's venv for one child process."""
    venv = workspace.host_runtime_path / workspace.host_runtime.venv
    bin_dir = venv_python(workspace).parent
    env = EnvConfig().without(_INTERPRETER_VARS)
    return env.with_values({
        "VIRTUAL_ENV": str(venv),
        "PATH": os.pathsep.join([str(bin_dir), os.environ.get("PATH", "")]),
        **(extra or {}),
    })


def require_setup(workspace: Workspace) -> SetupMarker:
    """The completion marker, or PreconditionError if setup never finished."""
    host = workspace.host_runtime_path
    return read_marker(marker_path(host, workspace.host_runtime.marker_file))


def runtime_status(workspace: Workspace) -> SetupMarker | None:
    try:
        return require_setup(workspace)
    except PreconditionError:
        return None


def setup_runtime(
    workspace: Workspace,
    runner: CommandRunner,
    *,
    python: str | None = None,
) -> list[StepResult]:
    """Prepare the host-runtime checkout and write its completion marker.

    Steps: create the venv (if missing), install each existing
    requirements file into it, create the plugin discovery directory,
    write the marker.  The marker is only written when every step
    succeeded.

    Raises:
        PreconditionError: The checkout does not exist.
        ExternalToolError: venv creation or a requirements install failed.
    """
    host = workspace.host_runtime_path
    cfg = workspace.host_runtime
    if not host.is_dir():
        raise PreconditionError(
            f"Host runtime checkout not found: {host}",
            remediation="Clone the host application there, or set host_runtime.path in workspace.yml.",
        )

    steps: list[StepResult] = []
    interpreter = venv_python(workspace)

    if interpreter.is_file():
        steps.append(StepResult.skip("venv", f"{interpreter} already exists"))
    else:
        r = runner.run([python or sys.executable, "-m", "venv", str(host / cfg.venv)], cwd=host)
        if not r.ok:
            raise ExternalToolError("venv", r)
        steps.append(StepResult.from_command("venv", r))

    for req in cfg.requirements:
        req_path = host / req
        if not req_path.is_file():
            steps.append(StepResult.skip(f"requirements:{req}", "file not found"))
            continue
        r = runner.run(
            [str(interpreter), "-m", "pip", "install", "-r", str(req_path)],
            cwd=host,
            env=host_env(workspace),
        )
        if not r.ok:
            raise ExternalToolError(f"requirements:{req}", r)
        steps.append(StepResult.from_command(f"requirements:{req}", r))

    (host / cfg.plugins_dir).mkdir(parents=True, exist_ok=True)

    marker = write_marker(
        marker_path(host, cfg.marker_file),
        host,
        python=str(interpreter),
    )
    steps.append(StepResult.success("marker", f"completed at {marker.completed_at}"))
    return steps
