"""
CLI commands for the test environment linker.

Thin wrappers over ``pluginctl.core.services.link_ops``.
"""

from __future__ import annotations

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.core.models.link import EnvironmentLink
from pluginctl.ui.cli.helpers import echo_json, fail, get_runner, resolve


def _echo_warnings(link: EnvironmentLink) -> None:
    for warning in link.warnings:
        head, _, rest = warning.partition("\n")
        click.secho(f"   ⚠️  {head}", fg="yellow", bold=True)
        for line in rest.splitlines():
            click.echo(f"     │ {line}")


@click.command("link")
@click.argument("module_name")
@click.option("--force", is_flag=True, help="Replace a link that points at something else.")
@click.option("--reinstall", is_flag=True, help="Repeat the editable install even if already linked.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def link(ctx: click.Context, module_name: str, force: bool, reinstall: bool, as_json: bool) -> None:
    """Link MODULE_NAME into the host runtime for integration tests."""
    from pluginctl.core.services.link_ops import link_module

    try:
        workspace, module = resolve(ctx, module_name)
        result = link_module(module, workspace, get_runner(ctx), force=force, reinstall=reinstall)
    except PluginctlError as e:
        fail(e, as_json=as_json)

    if as_json:
        echo_json(result.to_dict())
        return

    if result.status == "already-linked":
        click.secho(f"✅ {module.name} already linked", fg="green", bold=True)
    else:
        kind = result.link.kind if result.link else "?"
        click.secho(f"✅ {module.name} {result.status} ({kind})", fg="green", bold=True)
    click.echo(f"   {result.link_path} → {module.package_dir}")
    _echo_warnings(result)


@click.command("unlink")
@click.argument("module_name")
@click.pass_context
def unlink(ctx: click.Context, module_name: str) -> None:
    """Remove MODULE_NAME's link and uninstall it from the host runtime."""
    from pluginctl.core.services.link_ops import unlink_module

    try:
        workspace, module = resolve(ctx, module_name)
        result = unlink_module(module, workspace, get_runner(ctx))
    except PluginctlError as e:
        fail(e)

    if result.link is None:
        click.echo(f"   {module.name} was not linked")
        return
    click.secho(f"✅ Unlinked {module.name}", fg="green", bold=True)
    _echo_warnings(result)
