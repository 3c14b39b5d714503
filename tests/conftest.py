"""
Shared test fixtures and configuration.

Builds a throwaway workspace on disk:

    tmp_path/
      workspace.yml
      plugins/widget-a/             module with a backend package + tests
      host-runtime/                 host checkout (marker written on demand)
"""

import json
import logging
import textwrap
from pathlib import Path

import pytest

from pluginctl.adapters.mock import MockRunner
from pluginctl.core.config.loader import load_workspace
from pluginctl.core.models.workspace import Workspace
from pluginctl.core.services.build_ops import resolve_module

WORKSPACE_YML = textwrap.dedent("""\
    workspace:
      name: test-plugins
      modules_dir: plugins
    host_runtime:
      path: host-runtime
    targets:
      staging:
        host: staging.example.com
        user: deploy
        root_candidates:
          - /srv/app
          - /opt/app
      production:
        host: prod.example.com
        user: deploy
        production: true
        root_candidates:
          - /srv/app
""")


def make_module(
    root: Path,
    name: str = "widget-a",
    package: str = "widget_a",
    *,
    ui: bool = False,
    unit_tests: bool = True,
    integration_tests: bool = False,
) -> Path:
    """Create a module directory under ``root/plugins``."""
    module_dir = root / "plugins" / name
    pkg = module_dir / package
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text('"""Widget plugin."""\n')
    (pkg / "views.py").write_text("def index(request):\n    return None\n")
    (module_dir / "pyproject.toml").write_text(f'[project]\nname = "{name}"\n')
    if unit_tests:
        unit = pkg / "tests" / "unit"
        unit.mkdir(parents=True)
        (unit / "test_views.py").write_text("def test_ok():\n    assert True\n")
    if integration_tests:
        integration = pkg / "tests" / "integration"
        integration.mkdir(parents=True)
        (integration / "__init__.py").write_text("")
        (integration / "test_api.py").write_text("def test_api():\n    assert True\n")
    if ui:
        (module_dir / "ui").mkdir()
        (module_dir / "ui" / "package.json").write_text("{}\n")
    return module_dir


def write_marker(host: Path) -> Path:
    path = host / ".pluginctl-setup.json"
    path.write_text(json.dumps({
        "completed_at": "2026-01-01T00:00:00+00:00",
        "host_runtime_path": str(host),
    }))
    return path


def drop_wheel(name: str = "widget_a-0.1.0-py3-none-any.whl"):
    """MockRunner effect: the packaging tool writes a wheel into ``<cwd>/dist``."""

    def effect(args: list[str], cwd: Path | None) -> None:
        assert cwd is not None
        dist = cwd / "dist"
        dist.mkdir(exist_ok=True)
        (dist / name).write_bytes(b"PK")

    return effect


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """A workspace with one module and an (unprepared) host runtime."""
    (tmp_path / "workspace.yml").write_text(WORKSPACE_YML)
    make_module(tmp_path)
    (tmp_path / "host-runtime" / "plugins").mkdir(parents=True)
    return tmp_path


@pytest.fixture
def workspace(workspace_root: Path) -> Workspace:
    return load_workspace(workspace_root / "workspace.yml")


@pytest.fixture
def module(workspace: Workspace):
    return resolve_module(workspace, "widget-a")


@pytest.fixture
def host(workspace: Workspace) -> Path:
    return workspace.host_runtime_path


@pytest.fixture
def ready_host(host: Path) -> Path:
    """Host runtime with its completion marker written."""
    write_marker(host)
    return host


@pytest.fixture
def runner() -> MockRunner:
    return MockRunner()


@pytest.fixture(autouse=True)
def _reset_root_logger():
    """Drop handlers installed by setup_logging() so they do not outlive a test."""
    root = logging.getLogger()
    level = root.level
    yield
    for h in list(root.handlers):
        if not type(h).__module__.startswith("_pytest"):
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
