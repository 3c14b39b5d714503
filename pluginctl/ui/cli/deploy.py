"""
CLI commands for remote deployment.

Thin wrappers over ``pluginctl.core.services.deploy_ops``.
"""

from __future__ import annotations

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.ui.cli.helpers import echo_json, echo_step, fail, get_runner, load_workspace, resolve


def _prompt_confirmation(expected: str) -> str | None:
    """Ask for the production confirmation token; EOF / Ctrl-C counts as no."""
    try:
        return click.prompt(
            f"⚠️  Production deploy. Type '{expected}' to continue",
            default="",
            show_default=False,
        )
    except click.Abort:
        return None


@click.command("deploy")
@click.argument("module_name")
@click.argument("target_name")
@click.option("--skip-build", is_flag=True, help="Deploy the newest existing artifact without a staleness check.")
@click.option("--confirm", "confirmation", default=None, help="Confirmation token for production targets.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deploy(
    ctx: click.Context,
    module_name: str,
    target_name: str,
    skip_build: bool,
    confirmation: str | None,
    as_json: bool,
) -> None:
    """Build if needed, then install MODULE_NAME on TARGET_NAME and restart it."""
    from pluginctl.core.services.deploy_ops import RemoteDeployer, get_target

    try:
        workspace, module = resolve(ctx, module_name)
    except PluginctlError as e:
        fail(e, as_json=as_json)

    if workspace.get_target(target_name) is None:
        raise click.BadParameter(
            f"'{target_name}' is not one of {', '.join(workspace.target_names()) or '(none configured)'}",
            param_hint="TARGET_NAME",
        )

    target = get_target(workspace, target_name)
    deployer = RemoteDeployer(module, workspace, target, get_runner(ctx))

    if not as_json:
        label = " (production)" if target.production else ""
        click.secho(f"🚀 Deploying {module.name} → {target.name}{label}", fg="cyan", bold=True)

    try:
        record = deployer.deploy(
            skip_build=skip_build,
            confirmation=confirmation,
            confirm=None if as_json else _prompt_confirmation,
        )
    except PluginctlError as e:
        if not as_json:
            for step in deployer.record.steps:
                echo_step(step, show_output=not step.failed)
        if deployer.record.status == "cancelled" and not as_json:
            click.secho("⊘ Deploy cancelled; nothing was uploaded.", fg="yellow")
        fail(e, as_json=as_json)

    if as_json:
        echo_json(record.to_dict())
        return

    for step in record.steps:
        echo_step(step)

    click.echo()
    if record.warnings:
        click.secho(f"✅ Deployed with {len(record.warnings)} warning(s)", fg="yellow", bold=True)
    else:
        click.secho("✅ Deployed", fg="green", bold=True)


@click.command("targets")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def targets(ctx: click.Context, as_json: bool) -> None:
    """List configured deployment targets."""
    try:
        workspace = load_workspace(ctx)
    except PluginctlError as e:
        fail(e, as_json=as_json)

    if as_json:
        echo_json({
            name: t.model_dump(mode="json", include={"host", "user", "port", "production", "root_candidates"})
            for name, t in workspace.targets.items()
        })
        return

    if not workspace.targets:
        click.secho("No deployment targets configured in workspace.yml", fg="yellow")
        return

    for name in workspace.target_names():
        t = workspace.targets[name]
        marker = click.style(" [production]", fg="red") if t.production else ""
        click.echo(f"   • {name}{marker}  {t.address}:{t.port}")
        for candidate in t.root_candidates:
            click.echo(f"       {candidate}")
