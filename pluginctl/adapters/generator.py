"""
Module generators — the external interactive scaffolding tool.

The generator's exit code is not reliable (it exits non-zero even on
a normal run), so the capability reports two things: the raw exit
code and the directory that actually appeared.  Callers trust the
directory, not the code.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from pluginctl.adapters.base import CommandRunner

logger = logging.getLogger(__name__)


@dataclass
class GeneratorOutcome:
    """What happened when the generator ran."""

    exit_code: int
    created_dir: Path | None = None


class ModuleGenerator(ABC):
    """Capability: produce one new module skeleton inside ``output_dir``."""

    @abstractmethod
    def invoke(self, args: list[str], output_dir: Path) -> GeneratorOutcome:
        """Run the generator and report its exit code and new directory."""


def snapshot_dirs(directory: Path) -> dict[str, float]:
    """Map of immediate subdirectory name -> mtime (hidden dirs ignored)."""
    if not directory.is_dir():
        return {}
    return {
        p.name: p.stat().st_mtime
        for p in directory.iterdir()
        if p.is_dir() and not p.name.startswith(".")
    }


def newest_created_dir(directory: Path, before: dict[str, float]) -> Path | None:
    """The newest subdirectory that was not in ``before``."""
    after = snapshot_dirs(directory)
    created = [name for name in after if name not in before]
    if not created:
        return None
    newest = max(created, key=lambda name: after[name])
    return directory / newest


class CommandGenerator(ModuleGenerator):
    """Runs a generator command (e.g. ``cookiecutter <template>``) interactively.

    The command receives ``--output-dir <dir>`` unless ``output_flag``
    is None, in which case it runs with ``cwd=output_dir``.
    """

    def __init__(
        self,
        command: list[str],
        runner: CommandRunner,
        output_flag: str | None = "--output-dir",
    ):
        if not command:
            raise ValueError("generator command must not be empty")
        self.command = command
        self.runner = runner
        self.output_flag = output_flag

    def invoke(self, args: list[str], output_dir: Path) -> GeneratorOutcome:
        output_dir.mkdir(parents=True, exist_ok=True)
        before = snapshot_dirs(output_dir)

        argv = [*self.command, *args]
        if self.output_flag:
            argv += [self.output_flag, str(output_dir)]

        result = self.runner.run(argv, cwd=output_dir, interactive=True)
        created = newest_created_dir(output_dir, before)
        logger.info(
            "Generator exited with %d; new directory: %s",
            result.return_code,
            created or "none",
        )
        return GeneratorOutcome(exit_code=result.return_code, created_dir=created)
