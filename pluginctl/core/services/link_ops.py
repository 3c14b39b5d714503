"""
Test environment linker — make a module discoverable by the host runtime.

Two halves, both required:
1. a directory link inside the host runtime's plugin discovery
   directory pointing at the module's backend package, and
2. an editable install of the module into the host runtime's venv,
   so its entry points are registered.

Linking is idempotent.  A correct link is left alone; a link that
points elsewhere is only replaced under ``force``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.errors import ExternalToolError, LinkMismatchError, PreconditionError
from pluginctl.core.models.link import DirectoryLink, EnvironmentLink
from pluginctl.core.models.module import Module
from pluginctl.core.models.workspace import Workspace
from pluginctl.core.services.runtime_ops import host_env, require_setup, venv_python

logger = logging.getLogger(__name__)

_WINDOWS = os.name == "nt"


# ═══════════════════════════════════════════════════════════════════
#  Directory links
# ═══════════════════════════════════════════════════════════════════


def _is_junction(path: Path) -> bool:
    check = getattr(os.path, "isjunction", None)
    if check is not None:
        return check(path)
    # No isjunction before 3.12: a readable directory that is not a symlink
    if not _WINDOWS or path.is_symlink() or not path.is_dir():
        return False
    try:
        os.readlink(path)
    except (OSError, ValueError):
        return False
    return True


def _read_target(path: Path) -> Path:
    raw = os.readlink(path)
    if raw.startswith("\\\\?\\"):
        raw = raw[4:]
    target = Path(raw)
    if not target.is_absolute():
        target = path.parent / target
    return target


def inspect_link(path: Path) -> DirectoryLink | None:
    """Describe the link at ``path``, or None if there is no link there.

    A broken symlink is still a link (to a missing target).
    """
    if path.is_symlink():
        return DirectoryLink(kind="symbolic", target=_read_target(path))
    if _is_junction(path):
        return DirectoryLink(kind="junction", target=_read_target(path))
    return None


def remove_link(path: Path) -> None:
    """Remove a symlink or junction without touching its target."""
    if path.is_symlink():
        path.unlink()
    elif _is_junction(path):
        os.rmdir(path)
    else:
        raise PreconditionError(
            f"{path} is a real directory or file, not a link",
            remediation="Move it out of the way manually; pluginctl never deletes real files.",
        )


def create_link(path: Path, target: Path, runner: CommandRunner) -> DirectoryLink:
    """Create a directory symlink, falling back to a junction on Windows."""
    try:
        os.symlink(target, path, target_is_directory=True)
        return DirectoryLink(kind="symbolic", target=target)
    except OSError as e:
        if not _WINDOWS:
            raise PreconditionError(f"Cannot create symlink {path} -> {target}: {e}") from e
        logger.info("Symlink not permitted (%s); creating a junction instead", e)

    result = runner.run(["cmd", "/c", "mklink", "/J", str(path), str(target)])
    if not result.ok:
        raise ExternalToolError("junction", result)
    return DirectoryLink(kind="junction", target=target)


def link_path_for(module: Module, workspace: Workspace) -> Path:
    return workspace.host_runtime_path / workspace.host_runtime.plugins_dir / module.package_name


# ═══════════════════════════════════════════════════════════════════
#  Editable install
# ═══════════════════════════════════════════════════════════════════


def distribution_name(module: Module) -> str:
    """Name the editable install registers: ``[project].name``, else the directory name."""
    pyproject = module.path / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug("Cannot read project name from %s: %s", pyproject, e)
        else:
            name = data.get("project", {}).get("name")
            if isinstance(name, str) and name:
                return name
    return module.name


def editable_install(module: Module, workspace: Workspace, runner: CommandRunner) -> str | None:
    """pip install -e the module into the host venv. Returns a warning or None."""
    python = venv_python(workspace)
    result = runner.run(
        [str(python), "-m", "pip", "install", "-e", str(module.path)],
        cwd=workspace.host_runtime_path,
        env=host_env(workspace),
    )
    if result.ok:
        return None

    warning = (
        f"Editable install of {module.name} into {python} failed "
        f"(exit code {result.return_code}); the host runtime may not discover "
        f"the plugin's entry points.\n{result.output}"
    )
    logger.warning(warning)
    return warning


# ═══════════════════════════════════════════════════════════════════
#  Link / unlink / status
# ═══════════════════════════════════════════════════════════════════


def link_status(module: Module, workspace: Workspace) -> EnvironmentLink:
    """Current state of the module's link (no setup check, no mutation)."""
    path = link_path_for(module, workspace)
    existing = inspect_link(path)
    if existing is None:
        status = "mismatch" if path.exists() else "missing"
    elif existing.points_at(module.package_dir):
        status = "already-linked"
    else:
        status = "mismatch"
    return EnvironmentLink(module=module.name, link_path=path, link=existing, status=status)


def link_module(
    module: Module,
    workspace: Workspace,
    runner: CommandRunner,
    *,
    force: bool = False,
    reinstall: bool = False,
) -> EnvironmentLink:
    """Ensure the module is linked into the host runtime.

    Raises:
        PreconditionError: Host runtime setup never completed.
        LinkMismatchError: A different link exists and ``force`` is off.
    """
    require_setup(workspace)

    current = link_status(module, workspace)
    path = current.link_path

    if current.status == "already-linked":
        logger.info("%s already linked at %s", module.name, path)
        if reinstall:
            warning = editable_install(module, workspace, runner)
            current.editable_installed = warning is None
            if warning:
                current.warnings.append(warning)
        return current

    if current.status == "mismatch":
        where = current.link.target if current.link else "a real directory"
        if not force:
            raise LinkMismatchError(
                f"{path} already points at {where}, not {module.package_dir}",
                remediation=f"Re-run with --force to replace it: pluginctl link {module.name} --force",
            )
        logger.info("Replacing %s (was -> %s)", path, where)
        remove_link(path)
        status = "relinked"
    else:
        status = "linked"

    path.parent.mkdir(parents=True, exist_ok=True)
    link = create_link(path, module.package_dir, runner)
    logger.info("Linked %s -> %s (%s)", path, link.target, link.kind)

    result = EnvironmentLink(module=module.name, link_path=path, link=link, status=status)
    warning = editable_install(module, workspace, runner)
    result.editable_installed = warning is None
    if warning:
        result.warnings.append(warning)
    return result


def unlink_module(module: Module, workspace: Workspace, runner: CommandRunner) -> EnvironmentLink:
    """Remove the module's directory link and uninstall it from the host venv."""
    current = link_status(module, workspace)
    if current.link is None:
        return current

    remove_link(current.link_path)
    current.status = "missing"

    dist = distribution_name(module)
    result = runner.run(
        [str(venv_python(workspace)), "-m", "pip", "uninstall", "-y", dist],
        cwd=workspace.host_runtime_path,
        env=host_env(workspace),
    )
    if not result.ok:
        warning = f"pip uninstall {dist} failed (exit code {result.return_code})\n{result.output}"
        logger.warning(warning)
        current.warnings.append(warning)
    return current
