"""
Subprocess runner — execute external tools and capture their output.

This is the one place pluginctl starts child processes.  Every call
blocks until the child exits; there is no streaming or cancellation.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.models.step import CommandResult, EnvConfig

logger = logging.getLogger(__name__)

# Conventional shell exit codes for "could not run"
EXIT_CANNOT_EXECUTE = 126
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124


class SubprocessRunner(CommandRunner):
    """Run commands with ``subprocess.run`` (no shell)."""

    @property
    def name(self) -> str:
        return "subprocess"

    def is_available(self, executable: str) -> bool:
        return shutil.which(executable) is not None or Path(executable).is_file()

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
        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
        if cwd is not None and not Path(cwd).is_dir():
            message = f"Working directory does not exist: {cwd}"
            return self._not_run(argv, cwd, EXIT_CANNOT_EXECUTE, message)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=str(cwd) if cwd else None,
                env=env.build() if env is not None else None,
                capture_output=not interactive,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as e:
            return self._not_run(argv, cwd, EXIT_NOT_FOUND, f"Command not found: {argv[0]} ({e})")
        except PermissionError as e:
            return self._not_run(argv, cwd, EXIT_CANNOT_EXECUTE, f"Permission denied: {argv[0]} ({e})")
        except subprocess.TimeoutExpired as e:
            stdout = e.stdout if isinstance(e.stdout, str) else ""
            return CommandResult(
                args=argv,
                return_code=EXIT_TIMEOUT,
                stdout=stdout,
                stderr=f"Command timed out after {timeout}s",
                duration_ms=int((time.monotonic() - start) * 1000),
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            return self._not_run(argv, cwd, EXIT_CANNOT_EXECUTE, f"Cannot execute {argv[0]}: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Exit %d after %dms: %s", result.returncode, elapsed_ms, argv[0])
        return CommandResult(
            args=argv,
            return_code=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            duration_ms=elapsed_ms,
            cwd=str(cwd) if cwd else None,
        )

    @staticmethod
    def _not_run(argv: list[str], cwd: Path | None, code: int, message: str) -> CommandResult:
        logger.debug("Could not run %s: %s", argv[0], message)
        return CommandResult(
            args=argv,
            return_code=code,
            stderr=message,
            cwd=str(cwd) if cwd else None,
        )
