"""
CLI commands for the host runtime checkout.

Thin wrappers over ``pluginctl.core.services.runtime_ops``.
"""

from __future__ import annotations

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.ui.cli.helpers import echo_json, echo_step, fail, get_runner, load_workspace


@click.group("runtime")
def runtime() -> None:
    """Host runtime — one-time setup and status."""


@runtime.command("setup")
@click.option("--python", "python", default=None, help="Interpreter used to create the venv.")
@click.pass_context
def setup(ctx: click.Context, python: str | None) -> None:
    """Create the host venv, install its requirements, write the marker."""
    from pluginctl.core.services.runtime_ops import setup_runtime

    try:
        workspace = load_workspace(ctx)
        click.secho(f"🔧 Setting up {workspace.host_runtime_path}", fg="cyan")
        steps = setup_runtime(workspace, get_runner(ctx), python=python)
    except PluginctlError as e:
        fail(e)

    for step in steps:
        echo_step(step, show_output=bool(ctx.obj.get("verbose")))
    click.secho("✅ Host runtime ready", fg="green", bold=True)


@runtime.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show whether the host runtime setup has completed."""
    from pluginctl.core.services.runtime_ops import runtime_status

    try:
        workspace = load_workspace(ctx)
    except PluginctlError as e:
        fail(e, as_json=as_json)

    marker = runtime_status(workspace)
    if as_json:
        echo_json({
            "path": str(workspace.host_runtime_path),
            "ready": marker is not None,
            "marker": marker.model_dump(mode="json") if marker else None,
        })
        return

    click.echo(f"   Host runtime: {workspace.host_runtime_path}")
    if marker is None:
        click.secho("   ✗ not set up", fg="red")
        click.echo("   → pluginctl runtime setup")
        return
    click.secho(f"   ✓ set up at {marker.completed_at}", fg="green")
