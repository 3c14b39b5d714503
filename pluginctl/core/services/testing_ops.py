"""
Test runner — fast tests and integration tests for one module.

Two independent scopes:

``fast``
    Plain pytest with the caller's interpreter.  Discovers
    ``test_*.py`` under a ``tests/unit`` directory (or a legacy flat
    ``tests/`` layout) and runs with every host-runtime and proxy
    variable removed from the child's environment.

``integration``
    Runs the host runtime's own test entry point with its venv
    interpreter, scoped to ``<package>.tests.integration``.  Needs the
    completion marker and a correct directory link.  A fixed set of
    flags makes the host treat every plugin as enabled and register
    plugin URLs during tests.

Known limitation of the integration scope: requests to a plugin's
custom URLs cannot be resolved through the host's test client.  Tests
call the handler directly instead (see ``pluginctl.testkit``).
"""

from __future__ import annotations

import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pluginctl.adapters.base import CommandRunner
from pluginctl.core.errors import EXIT_PRECONDITION, PreconditionError
from pluginctl.core.models.module import Module
from pluginctl.core.models.step import EnvConfig
from pluginctl.core.models.workspace import Workspace
from pluginctl.core.services.link_ops import link_status
from pluginctl.core.services.runtime_ops import host_env, require_setup, venv_python

logger = logging.getLogger(__name__)

Scope = Literal["fast", "integration", "all"]

_TEST_FILE = re.compile(r"^(test_.*|.*_test)\.py$")

# Never visible to fast tests
_PROXY_VARS = [
    "HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "NO_PROXY",
    "http_proxy", "https_proxy", "all_proxy", "no_proxy",
]

URL_ROUTING_NOTE = (
    "Plugin URLs are not resolvable through the host test client in this scope; "
    "call handlers directly (pluginctl.testkit.call_handler)."
)


@dataclass
class ScopeResult:
    """Outcome of one test scope."""

    scope: str
    status: Literal["passed", "failed", "skipped"] = "skipped"
    return_code: int | None = None
    output: str = ""
    reason: str = ""
    remediation: str = ""
    command: list[str] = field(default_factory=list)
    duration_ms: int = 0
    notes: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "status": self.status,
            "return_code": self.return_code,
            "reason": self.reason,
            "remediation": self.remediation,
            "command": self.command,
            "duration_ms": self.duration_ms,
            "notes": self.notes,
            "output": self.output,
        }


@dataclass
class TestRunReport:
    """Aggregate over the requested scopes."""

    __test__ = False  # not a pytest class

    module: str
    requested: str
    effective: str = ""
    scopes: list[ScopeResult] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.effective:
            self.effective = self.requested

    @property
    def ok(self) -> bool:
        return not any(s.failed for s in self.scopes)

    @property
    def exit_code(self) -> int:
        for s in self.scopes:
            if s.failed:
                return s.return_code or 1
        return 0

    def get(self, scope: str) -> ScopeResult | None:
        for s in self.scopes:
            if s.scope == scope:
                return s
        return None

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "requested": self.requested,
            "effective": self.effective,
            "ok": self.ok,
            "exit_code": self.exit_code,
            "scopes": [s.to_dict() for s in self.scopes],
        }


# ═══════════════════════════════════════════════════════════════════
#  Discovery
# ═══════════════════════════════════════════════════════════════════


def _test_roots(module: Module) -> list[Path]:
    return [module.package_dir / "tests", module.path / "tests"]


def _test_files(directory: Path, recursive: bool) -> list[Path]:
    if not directory.is_dir():
        return []
    found = directory.rglob("*.py") if recursive else directory.glob("*.py")
    return sorted(p for p in found if _TEST_FILE.match(p.name))


def discover_fast_tests(module: Module) -> list[Path]:
    """Fast test files: ``tests/unit`` if present, else the legacy flat layout."""
    for root in _test_roots(module):
        unit = root / "unit"
        if unit.is_dir():
            return _test_files(unit, recursive=True)

    for root in _test_roots(module):
        files = _test_files(root, recursive=False)
        if files:
            return files
    return []


def integration_tests_dir(module: Module) -> Path | None:
    """``<package>/tests/integration`` if it holds at least one test file."""
    directory = module.package_dir / "tests" / "integration"
    if _test_files(directory, recursive=True):
        return directory
    return None


# ═══════════════════════════════════════════════════════════════════
#  Environments
# ═══════════════════════════════════════════════════════════════════


def fast_env(workspace: Workspace) -> EnvConfig:
    """Caller's environment without host-runtime or network settings."""
    cfg = workspace.host_runtime
    return EnvConfig().without([*cfg.test_env, *cfg.settings_env, *_PROXY_VARS])


def integration_env(workspace: Workspace) -> EnvConfig:
    """Host venv activated, plus the plugin test flags."""
    return host_env(workspace, dict(workspace.host_runtime.test_env))


# ═══════════════════════════════════════════════════════════════════
#  Scopes
# ═══════════════════════════════════════════════════════════════════


def run_fast(
    module: Module,
    workspace: Workspace,
    runner: CommandRunner,
    *,
    path: str | None = None,
    verbose: bool = False,
) -> ScopeResult:
    result = ScopeResult(scope="fast")
    targets = [path] if path else [str(p) for p in discover_fast_tests(module)]
    if not targets:
        result.status = "skipped"
        result.reason = "no fast tests found"
        result.remediation = f"Add test_*.py files under {module.package_dir / 'tests' / 'unit'}."
        return result

    args = [sys.executable, "-m", "pytest", "-v" if verbose else "-q", *targets]
    result.command = args
    logger.info("Running %d fast test target(s) for %s", len(targets), module.name)

    r = runner.run(args, cwd=module.path, env=fast_env(workspace))
    result.return_code = r.return_code
    result.output = r.output
    result.duration_ms = r.duration_ms
    result.status = "passed" if r.ok else "failed"
    return result


def _integration_precondition(module: Module, workspace: Workspace) -> tuple[str, str] | None:
    """(reason, remediation) when integration tests cannot run, else None."""
    try:
        require_setup(workspace)
    except PreconditionError as e:
        return e.message, e.remediation

    status = link_status(module, workspace)
    if not status.established:
        return (
            f"{module.name} is not linked into {workspace.host_runtime_path} ({status.status})",
            f"Run 'pluginctl link {module.name}' first.",
        )
    return None


def run_integration(
    module: Module,
    workspace: Workspace,
    runner: CommandRunner,
    *,
    path: str | None = None,
    verbose: bool = False,
    explicit: bool = False,
) -> ScopeResult:
    """Run the module's integration tests inside the host runtime.

    Missing tests or a missing link are a skip, unless ``explicit``
    (integration was the only scope requested), then a failure with
    the precondition exit code.
    """
    result = ScopeResult(scope="integration", notes=[URL_ROUTING_NOTE])

    problem: tuple[str, str] | None = None
    if path is None and integration_tests_dir(module) is None:
        problem = (
            "no integration tests found",
            f"Add tests under {module.package_dir / 'tests' / 'integration'}.",
        )
    else:
        problem = _integration_precondition(module, workspace)

    if problem is not None:
        result.reason, result.remediation = problem
        if explicit:
            result.status = "failed"
            result.return_code = EXIT_PRECONDITION
        else:
            result.status = "skipped"
        logger.info("Integration scope %s: %s", result.status, result.reason)
        return result

    cfg = workspace.host_runtime
    label = path or f"{module.package_name}.tests.integration"
    args = [str(venv_python(workspace)), *cfg.test_command, label]
    if verbose:
        args += ["-v", "2"]
    result.command = args

    r = runner.run(
        args,
        cwd=workspace.host_runtime_path / cfg.app_dir,
        env=integration_env(workspace),
    )
    result.return_code = r.return_code
    result.output = r.output
    result.duration_ms = r.duration_ms
    result.status = "passed" if r.ok else "failed"
    return result


def run_tests(
    module: Module,
    workspace: Workspace,
    runner: CommandRunner,
    *,
    scope: Scope = "all",
    path: str | None = None,
    verbose: bool = False,
) -> TestRunReport:
    """Run the requested scope(s) and aggregate.

    ``all`` runs fast then integration; it narrows to fast alone when
    the module has no integration tests.  An integration skip under
    ``all`` does not fail the run.
    """
    report = TestRunReport(module=module.name, requested=scope)

    if scope == "all" and integration_tests_dir(module) is None:
        logger.info("%s has no integration tests; running fast tests only", module.name)
        scope = "fast"
        report.effective = "fast"

    if scope in ("fast", "all"):
        fast = run_fast(module, workspace, runner, path=path, verbose=verbose)
        if report.requested == "fast" and fast.status == "skipped":
            fast.status = "failed"
            fast.return_code = EXIT_PRECONDITION
        report.scopes.append(fast)

    if scope in ("integration", "all"):
        report.scopes.append(
            run_integration(
                module,
                workspace,
                runner,
                path=path if scope == "integration" else None,
                verbose=verbose,
                explicit=scope == "integration",
            )
        )

    return report
