"""
Shared CLI plumbing — workspace lookup, runner injection, error output.

Every command module imports from here so failures look the same
everywhere: the failing step, the tool's raw output, the fix.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import NoReturn

import click

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.errors import ExternalToolError, PluginctlError
from pluginctl.core.models.module import Module
from pluginctl.core.models.step import StepResult
from pluginctl.core.models.workspace import Workspace

_STATUS_STYLE = {
    "ok": ("✓", "green"),
    "warning": ("⚠", "yellow"),
    "skipped": ("⊘", "yellow"),
    "failed": ("✗", "red"),
}


def load_workspace(ctx: click.Context) -> Workspace:
    """Load workspace.yml from --config or by searching upward (cached on ctx)."""
    cached = ctx.obj.get("workspace")
    if cached is not None:
        return cached

    from pluginctl.core.config.loader import load_workspace as _load

    config_path: Path | None = ctx.obj.get("config_path")
    workspace = _load(config_path)
    ctx.obj["workspace"] = workspace
    return workspace


def get_runner(ctx: click.Context) -> CommandRunner:
    """The command runner for this invocation (tests inject a MockRunner via obj)."""
    runner = ctx.obj.get("runner")
    if runner is None:
        from pluginctl.adapters.shell.command import SubprocessRunner

        runner = SubprocessRunner()
        ctx.obj["runner"] = runner
    return runner


def resolve(ctx: click.Context, module_name: str) -> tuple[Workspace, Module]:
    from pluginctl.core.services.build_ops import resolve_module

    workspace = load_workspace(ctx)
    return workspace, resolve_module(workspace, module_name)


def echo_block(text: str, *, err: bool = False) -> None:
    """Print tool output verbatim, indented under a gutter."""
    for line in text.rstrip("\n").splitlines():
        click.echo(f"     │ {line}", err=err)


def echo_step(step: StepResult, *, show_output: bool = True) -> None:
    icon, color = _STATUS_STYLE.get(step.status, ("•", "white"))
    click.secho(f"   {icon} {step.step}", fg=color, nl=False)
    detail = step.message
    if step.duration_ms:
        detail = f"{detail} ({step.duration_ms}ms)" if detail else f"({step.duration_ms}ms)"
    click.echo(f"  {detail}" if detail else "")
    if show_output and step.output:
        echo_block(step.output)


def echo_json(data: dict) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def fail(exc: PluginctlError, *, as_json: bool = False) -> NoReturn:
    """Print a PluginctlError and exit with its code."""
    if as_json:
        payload: dict = {"error": exc.message, "exit_code": exc.exit_code}
        if isinstance(exc, ExternalToolError):
            payload["step"] = exc.step
            payload["output"] = exc.output
        if exc.remediation:
            payload["remediation"] = exc.remediation
        echo_json(payload)
        sys.exit(exc.exit_code)

    if isinstance(exc, ExternalToolError):
        click.secho(f"❌ [{exc.step}] {exc.message}", fg="red", bold=True, err=True)
        if exc.result is not None:
            click.echo(f"     $ {exc.result.command_line}", err=True)
        if exc.output:
            echo_block(exc.output, err=True)
    else:
        click.secho(f"❌ {exc.message}", fg="red", bold=True, err=True)

    if exc.remediation:
        click.secho(f"   → {exc.remediation}", fg="yellow", err=True)
    sys.exit(exc.exit_code)
