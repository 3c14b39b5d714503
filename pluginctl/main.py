"""
pluginctl — CLI entrypoint.

Usage:
    pluginctl --help
    pluginctl build my-plugin
    pluginctl test my-plugin --scope fast
    pluginctl deploy my-plugin staging
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from pluginctl import __version__
from pluginctl.core.errors import PluginctlError
from pluginctl.core.observability.logging_config import resolve_level, setup_logging
from pluginctl.ui.cli.helpers import echo_json, fail, resolve


@click.group()
@click.version_option(version=__version__, prog_name="pluginctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to workspace.yml (default: search upward from the current directory).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """pluginctl — build, test and deploy host-application plugin modules."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(
            debug=debug,
            verbose=verbose,
            quiet=quiet,
            env_level=os.environ.get("PLUGINCTL_LOG_LEVEL"),
        ),
        log_file=os.environ.get("PLUGINCTL_LOG_FILE"),
        log_file_level=os.environ.get("PLUGINCTL_LOG_FILE_LEVEL"),
    )


@cli.command()
@click.argument("module_name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, module_name: str, as_json: bool) -> None:
    """Show artifact freshness and link state for MODULE_NAME."""
    from pluginctl.core.services.link_ops import link_status
    from pluginctl.core.services.runtime_ops import runtime_status
    from pluginctl.core.services.staleness import check_staleness

    try:
        workspace, module = resolve(ctx, module_name)
    except PluginctlError as e:
        fail(e, as_json=as_json)

    staleness = check_staleness(module, workspace.build)
    link = link_status(module, workspace)
    marker = runtime_status(workspace)

    if as_json:
        echo_json({
            "module": module.name,
            "path": str(module.path),
            "package": module.package_name,
            "build": staleness.to_dict(),
            "link": link.to_dict(),
            "host_runtime_ready": marker is not None,
        })
        return

    quiet = ctx.obj.get("quiet", False)
    if not quiet:
        click.secho(f"\n📦 {module.name}", fg="cyan", bold=True)
        click.echo(f"   {module.path}")
        click.echo()

    # Artifact
    if staleness.artifact is None:
        click.secho("   Artifact: none", fg="yellow")
    else:
        color = "yellow" if staleness.stale else "green"
        label = "stale" if staleness.stale else "up to date"
        click.echo(f"   Artifact: {staleness.artifact.name} — ", nl=False)
        click.secho(label, fg=color)
    if staleness.stale and staleness.reason:
        click.echo(f"     {staleness.reason}")

    # Link
    link_color = {"already-linked": "green", "mismatch": "red"}.get(link.status, "yellow")
    link_label = "linked" if link.status == "already-linked" else link.status
    click.echo("   Link:     ", nl=False)
    click.secho(link_label, fg=link_color)
    if link.link is not None and link.status == "mismatch":
        click.echo(f"     {link.link_path} → {link.link.target}")

    # Host runtime
    click.echo("   Runtime:  ", nl=False)
    if marker is None:
        click.secho("not set up", fg="yellow")
    else:
        click.secho("ready", fg="green")


# ── Register sub-groups ─────────────────────────────────────────

from pluginctl.ui.cli.build import build  # noqa: E402
from pluginctl.ui.cli.deploy import deploy, targets  # noqa: E402
from pluginctl.ui.cli.link import link, unlink  # noqa: E402
from pluginctl.ui.cli.runtime import runtime  # noqa: E402
from pluginctl.ui.cli.scaffold import scaffold  # noqa: E402
from pluginctl.ui.cli.testing import test_cmd  # noqa: E402

cli.add_command(build)
cli.add_command(test_cmd)
cli.add_command(link)
cli.add_command(unlink)
cli.add_command(deploy)
cli.add_command(targets)
cli.add_command(scaffold)
cli.add_command(runtime)


if __name__ == "__main__":
    cli()
