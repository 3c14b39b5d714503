"""
SSH client — remote commands and file copies over OpenSSH.

Wraps the system ``ssh`` and ``scp`` binaries rather than a Python SSH
library, so the user's agent, ``~/.ssh/config`` and known_hosts all
apply exactly as they do in a terminal.  Like every adapter, it returns
CommandResults and never raises for a remote failure.
"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.models.step import CommandResult
from pluginctl.core.models.workspace import DeploymentTarget

logger = logging.getLogger(__name__)


def classify_ssh_error(result: CommandResult) -> str | None:
    """Map an ssh/scp failure to a short hint for the user."""
    if result.ok:
        return None
    s = result.stderr.lower()
    if "permission denied" in s:
        return "authentication failed (check identity_file / ssh-agent)"
    if "could not resolve hostname" in s:
        return "host name does not resolve"
    if "connection timed out" in s or "operation timed out" in s:
        return "connection timed out"
    if "no route to host" in s or "connection refused" in s:
        return "host unreachable"
    if result.return_code == 255:
        return "ssh connection failed"
    return None


def quote_remote(path: str) -> str:
    """Shell-quote a remote path, keeping a leading ``~`` expandable."""
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return '"$HOME"/' + shlex.quote(path[2:])
    return shlex.quote(path)


def scp_destination(path: str) -> str:
    """scp resolves relative remote paths against the login home."""
    if path == "~":
        return "."
    if path.startswith("~/"):
        return path[2:]
    return path


class SshClient:
    """Run commands on, and copy files to, one deployment target."""

    def __init__(self, target: DeploymentTarget, runner: CommandRunner):
        self.target = target
        self.runner = runner

    def _common_options(self) -> list[str]:
        opts = [
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={max(1, int(self.target.connect_timeout))}",
        ]
        if self.target.identity_file:
            key = str(Path(self.target.identity_file).expanduser())
            opts += ["-i", key, "-o", "IdentitiesOnly=yes"]
        return opts

    def ssh_args(self, command: str) -> list[str]:
        return [
            "ssh",
            "-p", str(self.target.port),
            *self._common_options(),
            self.target.address,
            command,
        ]

    def scp_args(self, local: Path, remote: str) -> list[str]:
        return [
            "scp",
            "-P", str(self.target.port),
            *self._common_options(),
            str(local),
            f"{self.target.address}:{scp_destination(remote)}",
        ]

    def exec(self, command: str) -> CommandResult:
        """Run a shell command on the target."""
        logger.info("ssh %s: %s", self.target.address, command)
        return self.runner.run(self.ssh_args(command))

    def copy_to(self, local: Path, remote: str) -> CommandResult:
        """Copy a local file to ``remote`` on the target."""
        logger.info("scp %s -> %s:%s", local, self.target.address, remote)
        return self.runner.run(self.scp_args(local, remote))

    def probe_dir(self, path: str) -> CommandResult:
        """``test -d`` on the target: exit 0 = exists, 1 = absent, 255 = ssh failed."""
        return self.exec(f"test -d {quote_remote(path)}")
