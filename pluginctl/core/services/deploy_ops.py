"""
Remote deployer — push a module's artifact to a host and restart it.

Strictly sequential; each step gates the next and nothing is retried:

    build      build-if-stale (local)
    confirm    production targets only: explicit confirmation token
    locate     first existing deployment root among the candidates
    upload     scp the artifact into <root>/<data_dir>/
    install    pip force-reinstall inside the running service container
    static     refresh served static assets            (warning on failure)
    cleanup    delete the uploaded file                (warning on failure)
    restart    restart the service                     (RestartError)

Steps locate..restart run under a per-(module, target) lock file.
Every step's raw remote output is kept on its StepResult.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal

from pluginctl.adapters.base import CommandRunner
from pluginctl.adapters.remote.ssh import SshClient, classify_ssh_error, quote_remote
from pluginctl.core.config.loader import ConfigError
from pluginctl.core.errors import (
    DeployCancelled,
    ExternalToolError,
    PluginctlError,
    PreconditionError,
    RestartError,
)
from pluginctl.core.models.module import BuildArtifact, Module
from pluginctl.core.models.step import CommandResult, StepResult
from pluginctl.core.models.workspace import DeploymentTarget, Workspace
from pluginctl.core.persistence.lock_file import hold_lock, lock_name
from pluginctl.core.services.build_ops import ensure_artifact

logger = logging.getLogger(__name__)

# ssh exits 255 when the connection itself failed
SSH_CONNECTION_FAILED = 255

ConfirmPrompt = Callable[[str], str | None]


@dataclass
class DeploymentRecord:
    """Side effects of one deploy, in order. Never persisted."""

    module: str
    target: str
    status: Literal["pending", "deployed", "failed", "cancelled"] = "pending"
    artifact: BuildArtifact | None = None
    built: bool = False
    deploy_root: str | None = None
    remote_path: str | None = None
    steps: list[StepResult] = field(default_factory=list)
    error: str | None = None

    def add(self, step: StepResult) -> StepResult:
        self.steps.append(step)
        return step

    def step(self, name: str) -> StepResult | None:
        for s in self.steps:
            if s.step == name:
                return s
        return None

    @property
    def warnings(self) -> list[StepResult]:
        return [s for s in self.steps if s.status == "warning"]

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "target": self.target,
            "status": self.status,
            "artifact": self.artifact.to_dict() if self.artifact else None,
            "built": self.built,
            "deploy_root": self.deploy_root,
            "remote_path": self.remote_path,
            "error": self.error,
            "steps": [s.model_dump(mode="json") for s in self.steps],
        }


def get_target(workspace: Workspace, name: str) -> DeploymentTarget:
    target = workspace.get_target(name)
    if target is None:
        known = ", ".join(workspace.target_names()) or "none configured"
        raise ConfigError(f"Unknown deployment target '{name}' (known: {known})")
    return target


class RemoteDeployer:
    """Deploy one module to one target.

    ``record`` is available after ``deploy()`` returns or raises, so
    callers can show how far the pipeline got.
    """

    def __init__(
        self,
        module: Module,
        workspace: Workspace,
        target: DeploymentTarget,
        runner: CommandRunner,
    ):
        self.module = module
        self.workspace = workspace
        self.target = target
        self.runner = runner
        self.ssh = SshClient(target, runner)
        self.record = DeploymentRecord(module=module.name, target=target.name)

    # ── Pipeline ────────────────────────────────────────────────

    def deploy(
        self,
        *,
        skip_build: bool = False,
        confirmation: str | None = None,
        confirm: ConfirmPrompt | None = None,
    ) -> DeploymentRecord:
        """Run every step in order.

        Args:
            skip_build: Use the newest existing artifact as-is.
            confirmation: Confirmation token for production targets.
            confirm: Prompt callback used when no token was given.

        Raises:
            DeployCancelled: Production target not confirmed.
            PreconditionError: No artifact / no deployment root / lock busy.
            ExternalToolError: A local or remote tool failed.
            RestartError: Installed, but the restart failed.
        """
        try:
            artifact = self._build(skip_build)
            self._confirm(confirmation, confirm)

            lock = self.workspace.state_path / "locks" / lock_name(self.module.name, self.target.name)
            with hold_lock(lock):
                root = self._locate()
                remote_path = self._upload(artifact, root)
                self._install(artifact, root, remote_path)
                self._refresh_static(root)
                self._cleanup(remote_path)
                self._restart(root)
        except DeployCancelled as e:
            self.record.status = "cancelled"
            self.record.error = e.message
            raise
        except PluginctlError as e:
            self.record.status = "failed"
            self.record.error = e.message
            raise

        self.record.status = "deployed"
        logger.info("Deployed %s to %s", self.module.name, self.target.name)
        return self.record

    # ── Steps ───────────────────────────────────────────────────

    def _build(self, skip_build: bool) -> BuildArtifact:
        try:
            artifact, built = ensure_artifact(
                self.module, self.workspace.build, self.runner, skip_build=skip_build
            )
        except ExternalToolError as e:
            self.record.add(StepResult.failure("build", e.message, output=e.output, return_code=e.exit_code))
            raise
        except PreconditionError as e:
            self.record.add(StepResult.failure("build", e.message))
            raise

        self.record.artifact = artifact
        self.record.built = built
        self.record.add(
            StepResult.success(
                "build",
                message=f"built {artifact.name}" if built else f"{artifact.name} is current",
            )
        )
        return artifact

    def _confirm(self, confirmation: str | None, confirm: ConfirmPrompt | None) -> None:
        if not self.target.production:
            self.record.add(StepResult.skip("confirm", "not a production target"))
            return

        expected = self.target.expected_confirmation
        token = confirmation
        if token is None and confirm is not None:
            token = confirm(expected)

        if token != expected:
            self.record.add(StepResult.failure("confirm", "production deploy not confirmed"))
            raise DeployCancelled(
                f"Deploy to production target '{self.target.name}' cancelled",
                remediation=f"Pass --confirm {expected} to deploy.",
            )
        self.record.add(StepResult.success("confirm", message="confirmed"))

    def _locate(self) -> str:
        probed: list[str] = []
        for candidate in self.target.root_candidates:
            r = self.ssh.probe_dir(candidate)
            if r.return_code == SSH_CONNECTION_FAILED:
                self._fail("locate", r)
            if r.ok:
                self.record.deploy_root = candidate
                self.record.add(StepResult.success("locate", output=r.output, message=candidate))
                return candidate
            probed.append(candidate)

        self.record.add(StepResult.failure("locate", "no deployment root found"))
        raise PreconditionError(
            f"No deployment root on {self.target.address}; tried: {', '.join(probed)}",
            remediation="Add the service's deployment root to root_candidates in workspace.yml.",
        )

    def _upload(self, artifact: BuildArtifact, root: str) -> str:
        remote_path = f"{root.rstrip('/')}/{self.target.data_dir}/{artifact.name}"
        r = self.ssh.copy_to(artifact.path, remote_path)
        if not r.ok:
            self._fail("upload", r)
        self.record.remote_path = remote_path
        self.record.add(StepResult.from_command("upload", r, message=remote_path))
        return remote_path

    def _in_service(self, root: str, command: str) -> str:
        t = self.target
        return f"cd {quote_remote(root)} && {t.compose_command} exec -T {t.service} {command}"

    def _install(self, artifact: BuildArtifact, root: str, remote_path: str) -> None:
        container_path = f"{self.target.container_data_dir.rstrip('/')}/{artifact.name}"
        command = self._in_service(root, f"{self.target.install_command} {shlex.quote(container_path)}")
        r = self.ssh.exec(command)
        if not r.ok:
            # The uploaded file stays on the host for inspection.
            self._fail("install", r, remediation=f"Uploaded artifact left at {remote_path}.")
        self.record.add(StepResult.from_command("install", r))

    def _refresh_static(self, root: str) -> None:
        if not self.target.static_command:
            self.record.add(StepResult.skip("static", "no static_command configured"))
            return
        r = self.ssh.exec(self._in_service(root, self.target.static_command))
        if r.ok:
            self.record.add(StepResult.from_command("static", r))
            return
        message = f"static asset refresh failed (exit code {r.return_code}); assets may be stale"
        logger.warning(message)
        self.record.add(StepResult.warning("static", message, output=r.output, return_code=r.return_code))

    def _cleanup(self, remote_path: str) -> None:
        r = self.ssh.exec(f"rm -f {quote_remote(remote_path)}")
        if not r.ok:
            self._fail(
                "cleanup",
                r,
                remediation=(
                    f"The package is installed but the service was not restarted; "
                    f"remove {remote_path} and restart it manually."
                ),
            )
        self.record.add(StepResult.from_command("cleanup", r))

    def _restart(self, root: str) -> None:
        t = self.target
        command = t.restart_command or f"{t.compose_command} restart {t.service}"
        r = self.ssh.exec(f"cd {quote_remote(root)} && {command}")
        if not r.ok:
            self.record.add(StepResult.from_command("restart", r))
            raise RestartError(
                "restart",
                r,
                f"Package installed but service restart failed (exit code {r.return_code})",
                remediation="The new version is installed but not active; restart the service manually.",
            )
        self.record.add(StepResult.from_command("restart", r))

    def _fail(self, step: str, result: CommandResult, *, remediation: str = "") -> None:
        self.record.add(StepResult.from_command(step, result))
        hint = classify_ssh_error(result)
        raise ExternalToolError(
            step,
            result,
            f"{step} failed (exit code {result.return_code})" + (f": {hint}" if hint else ""),
            remediation=remediation,
        )


def deploy_module(
    module: Module,
    workspace: Workspace,
    target_name: str,
    runner: CommandRunner,
    *,
    skip_build: bool = False,
    confirmation: str | None = None,
    confirm: ConfirmPrompt | None = None,
) -> DeploymentRecord:
    """Convenience wrapper: resolve the target and run a RemoteDeployer."""
    target = get_target(workspace, target_name)
    deployer = RemoteDeployer(module, workspace, target, runner)
    return deployer.deploy(skip_build=skip_build, confirmation=confirmation, confirm=confirm)
