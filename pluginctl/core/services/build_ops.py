"""
Artifact builder — UI bundle + backend package → distributable archive.

Handles:
- Module resolution (module dir, backend package, optional UI dir)
- UI bundle build through the configured UI tool (``npm run build``)
- Backend packaging through the configured packaging tool
- "Build if needed" for callers that only want a current artifact

Any non-zero exit from an external tool is fatal for the invocation;
nothing here retries.
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.errors import ExternalToolError, PreconditionError
from pluginctl.core.models.module import BuildArtifact, Module
from pluginctl.core.models.workspace import BuildConfig, Workspace
from pluginctl.core.services.staleness import check_staleness, newest_artifact

logger = logging.getLogger(__name__)

PACKAGE_MARKER = "__init__.py"

# Never a module's backend package, even if it has an __init__.py
_NOT_PACKAGES = {"tests", "test", "docs", "scripts", "examples"}


# ═══════════════════════════════════════════════════════════════════
#  Resolve
# ═══════════════════════════════════════════════════════════════════


def find_package_dir(module_dir: Path, config: BuildConfig) -> Path | None:
    """First subdirectory (alphabetical) holding a package marker."""
    skip = set(config.exclude_dirs) | _NOT_PACKAGES | {config.output_dir, config.ui_dir}
    for child in sorted(module_dir.iterdir(), key=lambda p: p.name):
        if not child.is_dir() or child.name.startswith((".", "_")):
            continue
        if child.name in skip or child.name.endswith(".egg-info"):
            continue
        if (child / PACKAGE_MARKER).is_file():
            return child
    return None


def resolve_module(workspace: Workspace, name: str) -> Module:
    """Resolve a module by directory name inside the module collection.

    Raises:
        PreconditionError: Module directory or backend package missing.
    """
    module_dir = workspace.modules_path / name
    if not module_dir.is_dir():
        raise PreconditionError(
            f"Module '{name}' not found at {module_dir}",
            remediation="Check the module name, or create it with 'pluginctl scaffold'.",
        )

    config = workspace.build
    package_dir = find_package_dir(module_dir, config)
    if package_dir is None:
        raise PreconditionError(
            f"Module '{name}' has no backend package "
            f"(no subdirectory with {PACKAGE_MARKER})",
            remediation=f"Add the plugin package under {module_dir}/<package>/{PACKAGE_MARKER}.",
        )

    ui_dir = module_dir / config.ui_dir
    return Module(
        name=name,
        path=module_dir,
        package_dir=package_dir,
        output_dir=module_dir / config.output_dir,
        ui_dir=ui_dir if ui_dir.is_dir() else None,
    )


# ═══════════════════════════════════════════════════════════════════
#  Build
# ═══════════════════════════════════════════════════════════════════


def _expand(command: list[str], module: Module) -> list[str]:
    """Substitute ``{python}``, ``{output_dir}``, ``{module}``, ``{package}``."""
    values = {
        "python": sys.executable,
        "output_dir": str(module.output_dir),
        "module": module.name,
        "package": module.package_name,
    }
    return [part.format(**values) for part in command]


def clean_output(output_dir: Path) -> int:
    """Empty ``output_dir`` (the directory itself is kept). Returns entries removed."""
    if not output_dir.is_dir():
        return 0
    removed = 0
    for entry in output_dir.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    logger.info("Cleaned %d entries from %s", removed, output_dir)
    return removed


def build_ui(module: Module, config: BuildConfig, runner: CommandRunner) -> None:
    """Run the UI build tool in the module's UI directory."""
    assert module.ui_dir is not None
    logger.info("Building UI bundle for %s", module.name)
    result = runner.run(_expand(config.ui_command, module), cwd=module.ui_dir)
    if not result.ok:
        raise ExternalToolError("ui-build", result)


def package_backend(module: Module, config: BuildConfig, runner: CommandRunner) -> BuildArtifact:
    """Run the packaging tool and return the newest artifact it left behind."""
    module.output_dir.mkdir(parents=True, exist_ok=True)
    previous = newest_artifact(module.output_dir, config.artifact_patterns)
    logger.info("Packaging %s into %s", module.name, module.output_dir)

    result = runner.run(_expand(config.package_command, module), cwd=module.path)
    if not result.ok:
        raise ExternalToolError("package", result)

    artifact = newest_artifact(module.output_dir, config.artifact_patterns)
    if artifact is None or (previous is not None and artifact.mtime <= previous.mtime):
        raise ExternalToolError(
            "package",
            result,
            f"Packaging reported success but no new artifact matching "
            f"{', '.join(config.artifact_patterns)} appeared in {module.output_dir}",
        )
    return artifact


def build_module(
    module: Module,
    config: BuildConfig,
    runner: CommandRunner,
    *,
    skip_ui: bool = False,
    clean: bool = False,
) -> BuildArtifact:
    """Produce a current artifact for ``module``.

    Args:
        module: Resolved module.
        config: Build configuration.
        runner: Command runner for the UI and packaging tools.
        skip_ui: Do not build the UI bundle even if a UI directory exists.
        clean: Empty the output directory first.

    Returns:
        The newest artifact by mtime after packaging.

    Raises:
        ExternalToolError: The UI build or packaging tool failed.
    """
    if clean:
        clean_output(module.output_dir)

    if module.has_ui and not skip_ui:
        build_ui(module, config, runner)
    elif module.has_ui:
        logger.info("Skipping UI bundle for %s", module.name)

    artifact = package_backend(module, config, runner)
    logger.info("Built %s", artifact.name)
    return artifact


def ensure_artifact(
    module: Module,
    config: BuildConfig,
    runner: CommandRunner,
    *,
    skip_build: bool = False,
) -> tuple[BuildArtifact, bool]:
    """Return a current artifact, building only if the newest one is stale.

    Returns:
        (artifact, built) — ``built`` is True when the packaging tool ran.

    Raises:
        PreconditionError: ``skip_build`` with no artifact at all.
        ExternalToolError: The build was needed and failed.
    """
    if skip_build:
        artifact = newest_artifact(module.output_dir, config.artifact_patterns)
        if artifact is None:
            raise PreconditionError(
                f"No artifact for '{module.name}' in {module.output_dir}",
                remediation=f"Run 'pluginctl build {module.name}' or drop --skip-build.",
            )
        return artifact, False

    report = check_staleness(module, config)
    if not report.stale and report.artifact is not None:
        logger.info("Artifact is current: %s", report.reason)
        return report.artifact, False

    logger.info("Rebuilding %s: %s", module.name, report.reason)
    return build_module(module, config, runner), True
