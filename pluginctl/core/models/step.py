"""
Command and step results — the execution contract.

CommandResult is what an adapter returns for one external process.
StepResult is what a pipeline stage records for one named step.
Adapters return results; they never raise for a non-zero exit.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class EnvConfig(BaseModel):
    """Environment handed to one child process.

    Assembled per invocation and passed explicitly to the runner.
    Building it never touches ``os.environ``.
    """

    base: dict[str, str] | None = None     # None = inherit the caller's environment
    overrides: dict[str, str] = Field(default_factory=dict)
    drop: list[str] = Field(default_factory=list)

    @classmethod
    def inherit(cls, **overrides: str) -> EnvConfig:
        """Caller's environment plus ``overrides``."""
        return cls(overrides=dict(overrides))

    def with_values(self, values: dict[str, str]) -> EnvConfig:
        merged = {**self.overrides, **values}
        return self.model_copy(update={"overrides": merged})

    def without(self, keys: list[str]) -> EnvConfig:
        return self.model_copy(update={"drop": [*self.drop, *keys]})

    def build(self) -> dict[str, str]:
        """Return a fresh mapping for ``subprocess.run(env=...)``."""
        env = dict(os.environ if self.base is None else self.base)
        for key in self.drop:
            env.pop(key, None)
        env.update(self.overrides)
        return env


class CommandResult(BaseModel):
    """Outcome of one external process."""

    args: list[str]
    return_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    cwd: str | None = None

    @property
    def ok(self) -> bool:
        return self.return_code == 0

    @property
    def output(self) -> str:
        """Combined stdout + stderr, verbatim."""
        parts = [p for p in (self.stdout, self.stderr) if p]
        return "\n".join(p.rstrip("\n") for p in parts)

    @property
    def command_line(self) -> str:
        return " ".join(self.args)


class StepResult(BaseModel):
    """Result of one named pipeline step.

    ``warning`` means the step failed but the pipeline's primary
    contract still holds (e.g. static asset refresh after a good install).
    """

    step: str
    status: Literal["ok", "warning", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    message: str = ""
    return_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("ok", "warning", "skipped")

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def from_command(cls, step: str, result: CommandResult, **kwargs: Any) -> StepResult:
        """Success or failure receipt for a single command."""
        return cls(
            step=step,
            status="ok" if result.ok else "failed",
            output=result.output,
            return_code=result.return_code,
            duration_ms=result.duration_ms,
            **kwargs,
        )

    @classmethod
    def success(cls, step: str, output: str = "", **kwargs: Any) -> StepResult:
        return cls(step=step, status="ok", output=output, **kwargs)

    @classmethod
    def warning(cls, step: str, message: str, **kwargs: Any) -> StepResult:
        return cls(step=step, status="warning", message=message, **kwargs)

    @classmethod
    def skip(cls, step: str, reason: str = "", **kwargs: Any) -> StepResult:
        return cls(step=step, status="skipped", message=reason, **kwargs)

    @classmethod
    def failure(cls, step: str, message: str, **kwargs: Any) -> StepResult:
        return cls(step=step, status="failed", message=message, **kwargs)
