"""
Git client — the few version-control operations pluginctl needs.

Used by the scaffolder to repair a freshly generated module that the
generator failed to put under version control.  Uses the git CLI via
a CommandRunner — never a library binding.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.models.step import CommandResult

logger = logging.getLogger(__name__)


class GitClient:
    """Thin wrapper over ``git`` for one working directory at a time."""

    def __init__(self, runner: CommandRunner, timeout: float = 60):
        self.runner = runner
        self.timeout = timeout

    @staticmethod
    def is_repository(path: Path) -> bool:
        """A directory counts as versioned when it has its own ``.git``."""
        return (path / ".git").exists()

    def git(self, *args: str, cwd: Path) -> CommandResult:
        return self.runner.run(["git", *args], cwd=cwd, timeout=self.timeout)

    def init(self, cwd: Path) -> CommandResult:
        return self.git("init", cwd=cwd)

    def add_all(self, cwd: Path) -> CommandResult:
        return self.git("add", "-A", cwd=cwd)

    def commit(
        self,
        cwd: Path,
        message: str,
        *,
        author_name: str | None = None,
        author_email: str | None = None,
    ) -> CommandResult:
        """Commit staged changes.

        The author identity is passed with ``-c`` only as a fallback for
        machines without a configured ``user.name``/``user.email``.
        """
        identity: list[str] = []
        if author_name and not self._configured("user.name", cwd):
            identity += ["-c", f"user.name={author_name}"]
        if author_email and not self._configured("user.email", cwd):
            identity += ["-c", f"user.email={author_email}"]
        return self.git(*identity, "commit", "-m", message, cwd=cwd)

    def _configured(self, key: str, cwd: Path) -> bool:
        r = self.git("config", "--get", key, cwd=cwd)
        return r.ok and bool(r.stdout.strip())
