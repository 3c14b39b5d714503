"""
Error taxonomy — what can stop a pipeline and how it exits.

    PreconditionError   setup missing, module missing, link mismatch
    ExternalToolError   a build/package/test/remote tool exited non-zero
    RestartError        package installed remotely but the restart failed
    DeployCancelled     production deploy not confirmed (clean abort)

Soft warnings are not exceptions: they are recorded on the step
result and logged at WARNING.
"""

from __future__ import annotations

from pluginctl.core.models.step import CommandResult

EXIT_FAILURE = 1
EXIT_PRECONDITION = 3
EXIT_CANCELLED = 4


class PluginctlError(Exception):
    """Base class for every error the CLI turns into an exit code."""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, *, remediation: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.remediation = remediation


class PreconditionError(PluginctlError):
    """Something must be set up before this command can run."""

    exit_code = EXIT_PRECONDITION


class LinkMismatchError(PreconditionError):
    """An existing link points somewhere other than the requested module."""


class ExternalToolError(PluginctlError):
    """An external tool exited non-zero. Its output is carried as-is."""

    def __init__(
        self,
        step: str,
        result: CommandResult | None = None,
        message: str = "",
        *,
        remediation: str = "",
    ) -> None:
        code = result.return_code if result is not None else EXIT_FAILURE
        super().__init__(
            message or f"{step} failed (exit code {code})",
            remediation=remediation,
        )
        self.step = step
        self.result = result
        # A tool can report success yet leave nothing behind; never exit 0 then.
        self.exit_code = code if code != 0 else EXIT_FAILURE

    @property
    def output(self) -> str:
        return self.result.output if self.result is not None else ""


class RestartError(ExternalToolError):
    """The service restart failed after a successful install."""


class DeployCancelled(PluginctlError):
    """The user declined (or did not confirm) a production deploy."""

    exit_code = EXIT_CANCELLED
