"""
Tests for the artifact builder — module resolution, staleness, build.
"""

import os
import time
from datetime import UTC, datetime
from pathlib import Path

import pytest

from conftest import drop_wheel, make_module
from pluginctl.core.errors import ExternalToolError, PreconditionError
from pluginctl.core.models.workspace import BuildConfig
from pluginctl.core.services.build_ops import (
    build_module,
    clean_output,
    ensure_artifact,
    find_package_dir,
    resolve_module,
)
from pluginctl.core.services.staleness import check_staleness, newest_artifact, newest_source


def _age(path: Path, seconds_ago: float) -> None:
    t = time.time() - seconds_ago
    os.utime(path, (t, t))


def _artifact(module, name: str = "widget_a-0.1.0-py3-none-any.whl", seconds_ago: float = 0) -> Path:
    module.output_dir.mkdir(exist_ok=True)
    path = module.output_dir / name
    path.write_bytes(b"PK")
    _age(path, seconds_ago)
    return path


def _age_sources(module, seconds_ago: float) -> None:
    for dirpath, _, filenames in os.walk(module.path):
        for f in filenames:
            _age(Path(dirpath) / f, seconds_ago)


# ── Resolution ───────────────────────────────────────────────────────


class TestResolveModule:
    def test_resolves_package(self, workspace, module):
        assert module.name == "widget-a"
        assert module.package_name == "widget_a"
        assert module.output_dir == module.path / "dist"
        assert not module.has_ui

    def test_ui_dir(self, workspace_root, workspace):
        make_module(workspace_root, "widget-ui", "widget_ui", ui=True)
        m = resolve_module(workspace, "widget-ui")
        assert m.has_ui
        assert m.ui_dir == m.path / "ui"

    def test_missing_module(self, workspace):
        with pytest.raises(PreconditionError, match="not found") as exc:
            resolve_module(workspace, "nope")
        assert exc.value.exit_code == 3

    def test_module_without_package(self, workspace_root, workspace):
        (workspace_root / "plugins" / "empty").mkdir()
        with pytest.raises(PreconditionError, match="no backend package"):
            resolve_module(workspace, "empty")

    def test_package_dir_skips_tests_and_hidden(self, tmp_path: Path):
        for name in ("tests", ".hidden", "_private", "zeta", "alpha"):
            (tmp_path / name).mkdir()
            (tmp_path / name / "__init__.py").write_text("")
        assert find_package_dir(tmp_path, BuildConfig()) == tmp_path / "alpha"


# ── Staleness ────────────────────────────────────────────────────────


class TestStaleness:
    def test_no_artifact_is_stale(self, module, workspace):
        report = check_staleness(module, workspace.build)
        assert report.stale
        assert report.artifact is None

    def test_newer_source_is_stale(self, module, workspace):
        _age_sources(module, 600)
        _artifact(module, seconds_ago=300)
        _age(module.package_dir / "views.py", 10)

        report = check_staleness(module, workspace.build)
        assert report.stale
        assert report.newest_source == module.package_dir / "views.py"
        assert "views.py" in report.reason

    def test_older_sources_are_current(self, module, workspace):
        _age_sources(module, 600)
        _artifact(module, seconds_ago=10)
        report = check_staleness(module, workspace.build)
        assert not report.stale

    def test_excluded_dirs_ignored(self, module, workspace):
        _age_sources(module, 600)
        _artifact(module, seconds_ago=300)
        cache = module.path / "node_modules" / "lib"
        cache.mkdir(parents=True)
        (cache / "index.js").write_text("x")
        egg = module.path / "widget_a.egg-info"
        egg.mkdir()
        (egg / "PKG-INFO.txt").write_text("x")

        assert not check_staleness(module, workspace.build).stale

    def test_untracked_extension_ignored(self, module, workspace):
        _age_sources(module, 600)
        _artifact(module, seconds_ago=300)
        (module.path / "notes.bin").write_bytes(b"x")
        assert not check_staleness(module, workspace.build).stale

    def test_newest_artifact_by_mtime(self, module, workspace):
        _artifact(module, "widget_a-0.1.0-py3-none-any.whl", seconds_ago=100)
        _artifact(module, "widget_a-0.2.0-py3-none-any.whl", seconds_ago=5)
        (module.output_dir / "README.txt").write_text("not an artifact")
        newest = newest_artifact(module.output_dir, workspace.build.artifact_patterns)
        assert newest.name == "widget_a-0.2.0-py3-none-any.whl"

    def test_newest_source_walks_tree(self, module, workspace):
        _age_sources(module, 600)
        deep = module.package_dir / "templates" / "widget"
        deep.mkdir(parents=True)
        (deep / "index.html").write_text("<p/>")
        path, _ = newest_source(module, workspace.build)
        assert path == deep / "index.html"


# ── Build ────────────────────────────────────────────────────────────


class TestBuildModule:
    def test_packages_backend(self, module, workspace, runner):
        runner.on("-m build", effect=drop_wheel())
        artifact = build_module(module, workspace.build, runner)
        assert artifact.name == "widget_a-0.1.0-py3-none-any.whl"
        assert runner.calls[0].cwd == module.path
        assert "--outdir" in runner.calls[0].args
        assert str(module.output_dir) in runner.calls[0].args

    def test_ui_built_first(self, workspace_root, workspace, runner):
        make_module(workspace_root, "widget-ui", "widget_ui", ui=True)
        m = resolve_module(workspace, "widget-ui")
        runner.on("-m build", effect=drop_wheel("widget_ui-0.1.0-py3-none-any.whl"))

        build_module(m, workspace.build, runner)
        assert runner.commands()[0] == "npm run build"
        assert runner.calls[0].cwd == m.ui_dir
        assert "-m build" in runner.commands()[1]

    def test_skip_ui(self, workspace_root, workspace, runner):
        make_module(workspace_root, "widget-ui", "widget_ui", ui=True)
        m = resolve_module(workspace, "widget-ui")
        runner.on("-m build", effect=drop_wheel("widget_ui-0.1.0-py3-none-any.whl"))

        build_module(m, workspace.build, runner, skip_ui=True)
        assert not runner.ran("npm")

    def test_ui_failure_stops_build(self, workspace_root, workspace, runner):
        make_module(workspace_root, "widget-ui", "widget_ui", ui=True)
        m = resolve_module(workspace, "widget-ui")
        runner.on("npm", return_code=2, stderr="ERR! missing script: build")

        with pytest.raises(ExternalToolError) as exc:
            build_module(m, workspace.build, runner)
        assert exc.value.step == "ui-build"
        assert exc.value.exit_code == 2
        assert "missing script" in exc.value.output
        assert not runner.ran("-m build")

    def test_package_failure_propagates_code(self, module, workspace, runner):
        runner.on("-m build", return_code=1, stderr="error: invalid pyproject.toml")
        with pytest.raises(ExternalToolError) as exc:
            build_module(module, workspace.build, runner)
        assert exc.value.step == "package"
        assert "invalid pyproject.toml" in exc.value.output

    def test_success_without_artifact_fails(self, module, workspace, runner):
        with pytest.raises(ExternalToolError, match="no new artifact") as exc:
            build_module(module, workspace.build, runner)
        assert exc.value.exit_code == 1

    def test_success_leaving_only_old_artifact_fails(self, module, workspace, runner):
        _age_sources(module, 600)
        old = _artifact(module, "widget_a-0.0.9-py3-none-any.whl", seconds_ago=300)
        (module.package_dir / "views.py").write_text("# changed\n")

        with pytest.raises(ExternalToolError, match="no new artifact") as exc:
            ensure_artifact(module, workspace.build, runner)
        assert exc.value.step == "package"
        assert runner.ran("-m build")
        assert old.exists()

    def test_clean(self, module, workspace, runner):
        old = _artifact(module, "widget_a-0.0.1-py3-none-any.whl")
        runner.on("-m build", effect=drop_wheel())
        build_module(module, workspace.build, runner, clean=True)
        assert not old.exists()

    def test_clean_output_counts(self, tmp_path: Path):
        (tmp_path / "a.whl").write_bytes(b"")
        (tmp_path / "sub").mkdir()
        assert clean_output(tmp_path) == 2
        assert list(tmp_path.iterdir()) == []
        assert clean_output(tmp_path / "missing") == 0


class TestEnsureArtifact:
    def test_current_artifact_not_rebuilt(self, module, workspace, runner):
        _age_sources(module, 600)
        _artifact(module, seconds_ago=10)
        artifact, built = ensure_artifact(module, workspace.build, runner)
        assert not built
        assert runner.call_count == 0
        assert artifact.name == "widget_a-0.1.0-py3-none-any.whl"

    def test_stale_artifact_rebuilt(self, module, workspace, runner):
        _age_sources(module, 600)
        _artifact(module, "widget_a-0.0.9-py3-none-any.whl", seconds_ago=300)
        (module.package_dir / "views.py").write_text("# changed\n")
        runner.on("-m build", effect=drop_wheel())

        artifact, built = ensure_artifact(module, workspace.build, runner)
        assert built
        assert artifact.name == "widget_a-0.1.0-py3-none-any.whl"

    def test_skip_build_uses_existing(self, module, workspace, runner):
        _artifact(module, seconds_ago=300)
        (module.package_dir / "views.py").write_text("# changed\n")
        artifact, built = ensure_artifact(module, workspace.build, runner, skip_build=True)
        assert not built
        assert runner.call_count == 0

    def test_skip_build_without_artifact(self, module, workspace, runner):
        with pytest.raises(PreconditionError, match="No artifact"):
            ensure_artifact(module, workspace.build, runner, skip_build=True)

    def test_widget_a_dated_scenario(self, module, workspace, runner):
        """Artifact from 2025-01-01, a source edited 2025-01-02: rebuild, newer artifact."""
        jan1 = datetime(2025, 1, 1, tzinfo=UTC).timestamp()
        jan2 = datetime(2025, 1, 2, tzinfo=UTC).timestamp()
        for dirpath, _, filenames in os.walk(module.path):
            for f in filenames:
                os.utime(Path(dirpath) / f, (jan1 - 3600, jan1 - 3600))
        old = _artifact(module, "widget_a-0.0.9-py3-none-any.whl")
        os.utime(old, (jan1, jan1))
        os.utime(module.package_dir / "views.py", (jan2, jan2))
        runner.on("-m build", effect=drop_wheel())

        artifact, built = ensure_artifact(module, workspace.build, runner)
        assert built
        assert artifact.mtime > jan2
        assert runner.ran("-m build")
