"""
CLI command for the scaffolder.

Thin wrapper over ``pluginctl.core.services.scaffold_ops``.
"""

from __future__ import annotations

from pathlib import Path

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.ui.cli.helpers import echo_step, fail, get_runner, load_workspace


@click.command(
    "scaffold",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.option(
    "--output-dir",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Where to generate (default: the workspace's module collection directory).",
)
@click.argument("generator_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def scaffold(ctx: click.Context, output_dir: Path | None, generator_args: tuple[str, ...]) -> None:
    """Create a new module with the interactive generator.

    Extra arguments are passed to the generator unchanged.
    """
    from pluginctl.adapters.generator import CommandGenerator
    from pluginctl.adapters.vcs.git import GitClient
    from pluginctl.core.config.loader import find_workspace_file
    from pluginctl.core.models.workspace import ScaffoldConfig
    from pluginctl.core.services.scaffold_ops import scaffold_module

    # Scaffolding also works outside a workspace: defaults, current directory
    config = ScaffoldConfig()
    default_dir = Path.cwd()
    if ctx.obj.get("config_path") or ctx.obj.get("workspace") or find_workspace_file():
        try:
            workspace = load_workspace(ctx)
        except PluginctlError as e:
            fail(e)
        config = workspace.scaffold
        default_dir = workspace.modules_path

    runner = get_runner(ctx)
    generator = ctx.obj.get("generator") or CommandGenerator(config.generator_command, runner)
    target_dir = (output_dir or default_dir).resolve()

    click.secho(f"🧱 Generating a module in {target_dir}", fg="cyan")
    try:
        result = scaffold_module(
            target_dir,
            config,
            generator,
            GitClient(runner),
            extra_args=list(generator_args),
        )
    except PluginctlError as e:
        fail(e)

    click.echo()
    for step in result.steps:
        echo_step(step, show_output=step.failed)
    if result.generator_exit_code != 0:
        click.secho(
            f"   (generator exited with {result.generator_exit_code}; module was created anyway)",
            fg="yellow",
        )
    click.secho(f"✅ {result.module_dir.name}", fg="green", bold=True)
