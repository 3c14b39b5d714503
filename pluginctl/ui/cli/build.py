"""
CLI command for the artifact builder.

Thin wrapper over ``pluginctl.core.services.build_ops``.
"""

from __future__ import annotations

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.ui.cli.helpers import echo_json, fail, get_runner, resolve


@click.command("build")
@click.argument("module_name")
@click.option("--skip-ui", is_flag=True, help="Do not build the UI bundle.")
@click.option("--clean", is_flag=True, help="Empty the output directory first.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def build(ctx: click.Context, module_name: str, skip_ui: bool, clean: bool, as_json: bool) -> None:
    """Build MODULE_NAME into a distributable archive."""
    from pluginctl.core.services.build_ops import build_module

    try:
        workspace, module = resolve(ctx, module_name)
        if not as_json:
            click.secho(f"📦 Building {module.name}...", fg="cyan")
            if module.has_ui and skip_ui:
                click.secho("   UI bundle skipped (--skip-ui)", fg="yellow")
        artifact = build_module(
            module,
            workspace.build,
            get_runner(ctx),
            skip_ui=skip_ui,
            clean=clean,
        )
    except PluginctlError as e:
        fail(e, as_json=as_json)

    if as_json:
        echo_json({"module": module.name, "artifact": artifact.to_dict()})
        return

    click.secho(f"✅ {artifact.name}", fg="green", bold=True)
    click.echo(f"   {artifact.path}")
