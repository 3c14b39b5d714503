"""
Runner base — the contract between services and external tools.

Services never call ``subprocess`` directly; they hand an argv, a
working directory and an explicit ``EnvConfig`` to a runner and get a
``CommandResult`` back.  Swapping the runner (see ``MockRunner``) is
how every pipeline stage is tested without real tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pluginctl.core.models.step import CommandResult, EnvConfig


class CommandRunner(ABC):
    """Abstract base class for command runners.

    Runners execute one external process and return its result.
    They NEVER raise for a non-zero exit, a missing or unexecutable
    program, a missing working directory or a timeout; those are
    captured in the CommandResult.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'subprocess', 'mock')."""

    @abstractmethod
    def is_available(self, executable: str) -> bool:
        """Whether ``executable`` can be launched. Should be fast and never raise."""

    @abstractmethod
    def run(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        env: EnvConfig | None = None,
        timeout: float | None = None,
        interactive: bool = False,
    ) -> CommandResult:
        """Run ``args`` to completion.

        ``interactive`` attaches the child to the caller's terminal
        instead of capturing its output (used for generators that
        prompt the user).
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
