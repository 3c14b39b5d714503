"""
Tests for the remote deployer — step order, gating, warnings, confirmation.

Command fragments used with the mock runner always include a space or
flag so they never match the pytest tmp_path embedded in local paths.
"""

import os
import time
from pathlib import Path

import pytest

from conftest import drop_wheel
from pluginctl.core.config.loader import ConfigError
from pluginctl.core.errors import (
    DeployCancelled,
    ExternalToolError,
    PreconditionError,
    RestartError,
)
from pluginctl.core.persistence.lock_file import LockBusyError, hold_lock, lock_name
from pluginctl.core.services.deploy_ops import RemoteDeployer, deploy_module, get_target

WHEEL = "widget_a-0.1.0-py3-none-any.whl"
REMOTE_PATH = f"/srv/app/data/{WHEEL}"

SSH = "ssh -p"
SCP = "scp -P"
PROBE = "test -d"
INSTALL = "pip install --force-reinstall"
STATIC = "manage.py collectstatic"
CLEANUP = "rm -f"
RESTART = "compose restart"


def _age(path: Path, seconds_ago: float) -> None:
    t = time.time() - seconds_ago
    os.utime(path, (t, t))


@pytest.fixture
def built(module) -> Path:
    """A current artifact: every source older than the wheel."""
    for dirpath, _, filenames in os.walk(module.path):
        for f in filenames:
            _age(Path(dirpath) / f, 600)
    module.output_dir.mkdir()
    wheel = module.output_dir / WHEEL
    wheel.write_bytes(b"PK")
    _age(wheel, 10)
    return wheel


def _deployer(module, workspace, runner, target: str = "staging") -> RemoteDeployer:
    return RemoteDeployer(module, workspace, get_target(workspace, target), runner)


def _remote_calls(runner) -> list[str]:
    return [c for c in runner.commands() if c.startswith(("ssh ", "scp "))]


class TestHappyPath:
    def test_steps_in_order(self, module, workspace, runner, built):
        record = _deployer(module, workspace, runner).deploy()

        assert record.status == "deployed"
        assert [s.step for s in record.steps] == [
            "build", "confirm", "locate", "upload", "install", "static", "cleanup", "restart",
        ]
        assert record.step("confirm").status == "skipped"
        assert not record.built
        assert record.deploy_root == "/srv/app"
        assert record.remote_path == REMOTE_PATH

    def test_remote_commands(self, module, workspace, runner, built):
        _deployer(module, workspace, runner).deploy()
        calls = _remote_calls(runner)

        assert calls[0].endswith("deploy@staging.example.com test -d /srv/app")
        assert calls[1].startswith(SCP)
        assert calls[1].endswith(f"deploy@staging.example.com:{REMOTE_PATH}")
        assert calls[2].endswith(
            "cd /srv/app && docker compose exec -T app "
            f"pip install --force-reinstall --no-deps /opt/host/data/{WHEEL}"
        )
        assert STATIC in calls[3]
        assert calls[4].endswith(f"rm -f {REMOTE_PATH}")
        assert calls[5].endswith("cd /srv/app && docker compose restart app")

    def test_stale_module_is_rebuilt(self, module, workspace, runner):
        runner.on("-m build", effect=drop_wheel())
        record = _deployer(module, workspace, runner).deploy()
        assert record.built
        assert "-m build" in runner.commands()[0]

    def test_skip_build(self, module, workspace, runner, built):
        (module.package_dir / "views.py").write_text("# newer than the wheel\n")
        record = _deployer(module, workspace, runner).deploy(skip_build=True)
        assert not record.built
        assert not runner.ran("-m build")

    def test_second_root_candidate(self, module, workspace, runner, built):
        runner.on("test -d /srv/app", return_code=1)
        record = _deployer(module, workspace, runner).deploy()
        assert record.deploy_root == "/opt/app"
        assert record.remote_path == f"/opt/app/data/{WHEEL}"

    def test_custom_restart_command(self, module, workspace, runner, built):
        workspace.targets["staging"].restart_command = "systemctl --user restart host"
        _deployer(module, workspace, runner).deploy()
        assert _remote_calls(runner)[-1].endswith("cd /srv/app && systemctl --user restart host")

    def test_deploy_module_wrapper(self, module, workspace, runner, built):
        record = deploy_module(module, workspace, "staging", runner)
        assert record.to_dict()["status"] == "deployed"
        assert record.to_dict()["artifact"]["name"] == WHEEL


class TestGating:
    def test_build_failure_stops_before_remote(self, module, workspace, runner):
        runner.on("-m build", return_code=1, stderr="build backend error")
        deployer = _deployer(module, workspace, runner)
        with pytest.raises(ExternalToolError):
            deployer.deploy()
        assert _remote_calls(runner) == []
        assert deployer.record.status == "failed"
        assert deployer.record.step("build").failed

    def test_no_deployment_root(self, module, workspace, runner, built):
        runner.on(PROBE, return_code=1)
        with pytest.raises(PreconditionError, match="/srv/app, /opt/app") as exc:
            _deployer(module, workspace, runner).deploy()
        assert exc.value.exit_code == 3
        assert not runner.ran(SCP)

    def test_connection_failure_on_probe(self, module, workspace, runner, built):
        runner.on(PROBE, return_code=255, stderr="ssh: connect to host: Connection refused")
        deployer = _deployer(module, workspace, runner)
        with pytest.raises(ExternalToolError) as exc:
            deployer.deploy()
        assert exc.value.exit_code == 255
        assert "unreachable" in exc.value.message
        # the second candidate was never probed
        assert len(_remote_calls(runner)) == 1

    def test_upload_failure_skips_everything_after(self, module, workspace, runner, built):
        runner.on(SCP, return_code=1, stderr="scp: /srv/app/data: Permission denied")
        deployer = _deployer(module, workspace, runner)
        with pytest.raises(ExternalToolError) as exc:
            deployer.deploy()

        assert exc.value.step == "upload"
        assert "Permission denied" in exc.value.output
        assert not runner.ran(INSTALL)
        assert not runner.ran(CLEANUP)
        assert not runner.ran(RESTART)
        assert [s.step for s in deployer.record.steps][-1] == "upload"

    def test_install_failure_leaves_file(self, module, workspace, runner, built):
        runner.on(INSTALL, return_code=1, stderr="ERROR: not a valid wheel")
        with pytest.raises(ExternalToolError) as exc:
            _deployer(module, workspace, runner).deploy()

        assert exc.value.step == "install"
        assert REMOTE_PATH in exc.value.remediation
        assert not runner.ran(CLEANUP)
        assert not runner.ran(RESTART)

    def test_cleanup_failure_stops_before_restart(self, module, workspace, runner, built):
        runner.on(CLEANUP, return_code=1, stderr="rm: cannot remove: Read-only file system")
        deployer = _deployer(module, workspace, runner)
        with pytest.raises(ExternalToolError) as exc:
            deployer.deploy()

        assert exc.value.step == "cleanup"
        assert "Read-only file system" in exc.value.output
        assert not runner.ran(RESTART)
        assert deployer.record.step("install").status == "ok"
        assert deployer.record.step("cleanup").failed
        assert deployer.record.status == "failed"

    def test_restart_failure(self, module, workspace, runner, built):
        runner.on(RESTART, return_code=1, stderr="no such service: app")
        deployer = _deployer(module, workspace, runner)
        with pytest.raises(RestartError) as exc:
            deployer.deploy()

        assert "installed" in exc.value.message
        assert deployer.record.step("install").status == "ok"
        assert deployer.record.step("restart").failed
        assert deployer.record.status == "failed"


class TestWarnings:
    def test_static_failure_is_warning(self, module, workspace, runner, built):
        runner.on(STATIC, return_code=1, stderr="collectstatic exploded")
        record = _deployer(module, workspace, runner).deploy()

        assert record.status == "deployed"
        static = record.step("static")
        assert static.status == "warning"
        assert "collectstatic exploded" in static.output
        assert runner.ran(CLEANUP)
        assert runner.ran(RESTART)
        assert record.warnings == [static]

    def test_no_static_command(self, module, workspace, runner, built):
        workspace.targets["staging"].static_command = None
        record = _deployer(module, workspace, runner).deploy()
        assert record.step("static").status == "skipped"
        assert not runner.ran(STATIC)


class TestProductionConfirmation:
    def test_no_token_cancels_before_remote(self, module, workspace, runner, built):
        deployer = _deployer(module, workspace, runner, "production")
        with pytest.raises(DeployCancelled) as exc:
            deployer.deploy()

        assert exc.value.exit_code == 4
        assert deployer.record.status == "cancelled"
        assert _remote_calls(runner) == []

    def test_wrong_token(self, module, workspace, runner, built):
        with pytest.raises(DeployCancelled):
            _deployer(module, workspace, runner, "production").deploy(confirmation="yes")
        assert not runner.ran(SSH)

    def test_correct_token(self, module, workspace, runner, built):
        record = _deployer(module, workspace, runner, "production").deploy(confirmation="production")
        assert record.status == "deployed"
        assert record.step("confirm").status == "ok"

    def test_prompt_callback(self, module, workspace, runner, built):
        asked = []

        def confirm(expected):
            asked.append(expected)
            return expected

        record = _deployer(module, workspace, runner, "production").deploy(confirm=confirm)
        assert asked == ["production"]
        assert record.status == "deployed"

    def test_prompt_declined(self, module, workspace, runner, built):
        with pytest.raises(DeployCancelled):
            _deployer(module, workspace, runner, "production").deploy(confirm=lambda expected: None)
        assert _remote_calls(runner) == []

    def test_custom_token(self, module, workspace, runner, built):
        workspace.targets["production"].confirm_token = "ship-it"
        with pytest.raises(DeployCancelled):
            _deployer(module, workspace, runner, "production").deploy(confirmation="production")
        record = _deployer(module, workspace, runner, "production").deploy(confirmation="ship-it")
        assert record.status == "deployed"

    def test_staging_never_prompts(self, module, workspace, runner, built):
        def confirm(expected):
            raise AssertionError("should not prompt")

        record = _deployer(module, workspace, runner).deploy(confirm=confirm)
        assert record.status == "deployed"


class TestLockingAndTargets:
    def test_concurrent_deploy_refused(self, module, workspace, runner, built):
        lock = workspace.state_path / "locks" / lock_name("widget-a", "staging")
        with hold_lock(lock):
            with pytest.raises(LockBusyError) as exc:
                _deployer(module, workspace, runner).deploy()
        assert exc.value.exit_code == 3
        assert _remote_calls(runner) == []

    def test_lock_released_after_deploy(self, module, workspace, runner, built):
        _deployer(module, workspace, runner).deploy()
        _deployer(module, workspace, runner).deploy()

    def test_other_target_not_blocked(self, module, workspace, runner, built):
        lock = workspace.state_path / "locks" / lock_name("widget-a", "production")
        with hold_lock(lock):
            record = _deployer(module, workspace, runner).deploy()
        assert record.status == "deployed"

    def test_unknown_target(self, workspace):
        with pytest.raises(ConfigError, match="production, staging"):
            get_target(workspace, "qa")
