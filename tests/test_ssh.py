"""
Tests for the SSH client — argv construction and error hints.
"""

from pathlib import Path

import pytest

from pluginctl.adapters.mock import MockRunner
from pluginctl.adapters.remote.ssh import SshClient, classify_ssh_error, quote_remote, scp_destination
from pluginctl.core.models.step import CommandResult
from pluginctl.core.models.workspace import DeploymentTarget


@pytest.fixture
def target() -> DeploymentTarget:
    return DeploymentTarget(
        name="staging",
        host="staging.example.com",
        user="deploy",
        port=2222,
        root_candidates=["/srv/app"],
    )


class TestQuoting:
    def test_plain_path(self):
        assert quote_remote("/srv/app") == "/srv/app"

    def test_path_with_spaces(self):
        assert quote_remote("/srv/my app") == "'/srv/my app'"

    def test_home_stays_expandable(self):
        assert quote_remote("~/app") == '"$HOME"/app'
        assert quote_remote("~") == '"$HOME"'

    def test_scp_destination(self):
        assert scp_destination("~/app/data/w.whl") == "app/data/w.whl"
        assert scp_destination("/srv/app/data/w.whl") == "/srv/app/data/w.whl"


class TestSshClient:
    def test_ssh_args(self, target):
        args = SshClient(target, MockRunner()).ssh_args("uptime")
        assert args[:3] == ["ssh", "-p", "2222"]
        assert "BatchMode=yes" in args
        assert "ConnectTimeout=10" in args
        assert args[-2:] == ["deploy@staging.example.com", "uptime"]

    def test_identity_file(self, target):
        target.identity_file = "/keys/deploy"
        args = SshClient(target, MockRunner()).ssh_args("uptime")
        i = args.index("-i")
        assert args[i + 1] == "/keys/deploy"
        assert "IdentitiesOnly=yes" in args

    def test_scp_args(self, target, tmp_path: Path):
        wheel = tmp_path / "w.whl"
        args = SshClient(target, MockRunner()).scp_args(wheel, "/srv/app/data/w.whl")
        assert args[:3] == ["scp", "-P", "2222"]
        assert args[-2:] == [str(wheel), "deploy@staging.example.com:/srv/app/data/w.whl"]

    def test_probe_dir(self, target):
        mock = MockRunner()
        mock.on("test -d", return_code=1)
        result = SshClient(target, mock).probe_dir("/opt/app")
        assert result.return_code == 1
        assert mock.calls[0].args[-1] == "test -d /opt/app"


class TestClassifySshError:
    def _result(self, code: int, stderr: str) -> CommandResult:
        return CommandResult(args=["ssh"], return_code=code, stderr=stderr)

    def test_ok_has_no_hint(self):
        assert classify_ssh_error(self._result(0, "")) is None

    def test_permission_denied(self):
        hint = classify_ssh_error(self._result(255, "deploy@h: Permission denied (publickey)."))
        assert "authentication" in hint

    def test_unresolvable_host(self):
        hint = classify_ssh_error(self._result(255, "ssh: Could not resolve hostname nope"))
        assert "resolve" in hint

    def test_generic_connection_failure(self):
        assert classify_ssh_error(self._result(255, "weird")) == "ssh connection failed"

    def test_remote_command_failure(self):
        assert classify_ssh_error(self._result(1, "No such file")) is None
