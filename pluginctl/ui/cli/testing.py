"""
CLI command for the test runner.

Thin wrapper over ``pluginctl.core.services.testing_ops``.
"""

from __future__ import annotations

import sys

import click

from pluginctl.core.errors import PluginctlError
from pluginctl.ui.cli.helpers import echo_block, echo_json, fail, get_runner, resolve

_SCOPE_STYLE = {
    "passed": ("✅", "green"),
    "failed": ("❌", "red"),
    "skipped": ("⊘", "yellow"),
}


@click.command("test")
@click.argument("module_name")
@click.option(
    "--scope",
    type=click.Choice(["fast", "integration", "all"]),
    default="all",
    show_default=True,
    help="Which test suite(s) to run.",
)
@click.option("--path", "test_path", default=None, help="Run this test path / label instead of discovery.")
@click.option("-v", "--verbose", "verbose", is_flag=True, help="Verbose test output.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def test_cmd(
    ctx: click.Context,
    module_name: str,
    scope: str,
    test_path: str | None,
    verbose: bool,
    as_json: bool,
) -> None:
    """Run fast and/or integration tests for MODULE_NAME."""
    from pluginctl.core.services.testing_ops import run_tests

    try:
        workspace, module = resolve(ctx, module_name)
        if not as_json:
            click.secho(f"🧪 Testing {module.name} ({scope})...", fg="cyan")
        report = run_tests(
            module,
            workspace,
            get_runner(ctx),
            scope=scope,  # type: ignore[arg-type]
            path=test_path,
            verbose=verbose,
        )
    except PluginctlError as e:
        fail(e, as_json=as_json)

    if as_json:
        echo_json(report.to_dict())
        sys.exit(report.exit_code)

    if report.effective != report.requested:
        click.echo(f"   No integration tests; running {report.effective} tests only")

    for result in report.scopes:
        icon, color = _SCOPE_STYLE[result.status]
        click.echo()
        click.secho(f"{icon} {result.scope}: {result.status}", fg=color, bold=True)
        if result.reason:
            click.echo(f"   {result.reason}")
        if result.remediation and result.status != "passed":
            click.secho(f"   → {result.remediation}", fg="yellow")
        if result.output and (result.failed or verbose or ctx.obj.get("verbose")):
            echo_block(result.output)
        for note in result.notes:
            if ctx.obj.get("verbose") or result.failed:
                click.secho(f"   ℹ {note}", fg="cyan")

    click.echo()
    if report.ok:
        click.secho("Result: all requested scopes passed", fg="green", bold=True)
    else:
        click.secho("Result: failed", fg="red", bold=True)
        sys.exit(report.exit_code)
