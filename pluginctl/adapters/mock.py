"""
Mock runner — test double for every external tool.

Responses are scripted per command fragment; every call is logged so
tests can assert on ordering ("scp ran, pip never did").  An optional
``effect`` callback lets a scripted command touch the filesystem the
way the real tool would (e.g. drop a wheel into ``dist/``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.models.step import CommandResult, EnvConfig

Effect = Callable[[list[str], Path | None], None]


@dataclass
class MockCall:
    """One recorded invocation."""

    args: list[str]
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    interactive: bool = False

    @property
    def command_line(self) -> str:
        return " ".join(self.args)


@dataclass
class _Response:
    match: str
    return_code: int = 0
    stdout: str = ""
    stderr: str = ""
    effect: Effect | None = None


class MockRunner(CommandRunner):
    """Scriptable runner. Unscripted commands succeed with ``default_output``."""

    def __init__(
        self,
        available: bool = True,
        default_output: str = "[mock] executed",
    ):
        self._available = available
        self._default_output = default_output
        self._responses: list[_Response] = []
        self._calls: list[MockCall] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def calls(self) -> list[MockCall]:
        """All invocations, in order."""
        return self._calls

    @property
    def call_count(self) -> int:
        return len(self._calls)

    def commands(self) -> list[str]:
        return [c.command_line for c in self._calls]

    def ran(self, fragment: str) -> bool:
        """Whether any call's command line contains ``fragment``."""
        return any(fragment in c.command_line for c in self._calls)

    def is_available(self, executable: str) -> bool:
        return self._available

    def on(
        self,
        match: str,
        *,
        return_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
    ) -> None:
        """Script the result for commands containing ``match``.

        Later registrations take precedence over earlier ones.
        """
        self._responses.append(
            _Response(match=match, return_code=return_code, stdout=stdout, stderr=stderr, effect=effect)
        )

    def set_failure(self, match: str, return_code: int = 1, stderr: str = "Mock failure") -> None:
        self.on(match, return_code=return_code, stderr=stderr)

    def run(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        env: EnvConfig | None = None,
        timeout: float | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        argv = [str(a) for a in args]
        self._calls.append(
            MockCall(
                args=argv,
                cwd=cwd,
                env=env.build() if env is not None else {},
                interactive=interactive,
            )
        )

        line = " ".join(argv)
        for response in reversed(self._responses):
            if response.match in line:
                if response.effect is not None:
                    response.effect(argv, cwd)
                return CommandResult(
                    args=argv,
                    return_code=response.return_code,
                    stdout=response.stdout,
                    stderr=response.stderr,
                    cwd=str(cwd) if cwd else None,
                )

        return CommandResult(
            args=argv,
            return_code=0,
            stdout=self._default_output,
            cwd=str(cwd) if cwd else None,
        )

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._calls.clear()
        self._responses.clear()
