"""Tests for the command-line entry point."""

import logging
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from textual.logging import TextualHandler

from sshfan import runner
from sshfan.models import JobResult


@pytest.fixture
def hosts_file(tmp_path: Path) -> Path:
    config_file = tmp_path / "hosts.yaml"
    config_file.write_text("hosts:\n  - web1\n  - web2\n  - db1\n")
    return config_file


@pytest.fixture
def ssh_key(tmp_path: Path) -> Path:
    key = tmp_path / "id_rsa"
    key.write_text("not really a key\n")
    return key


def fake_execute(failing=()):
    async def execute(self, host: str) -> JobResult:
        if host in failing:
            return JobResult.failed(host, "Connection error: refused")
        return JobResult(target=host, output=f"up on {host}\n")

    return execute


class TestMain:
    """Tests for runner.main."""

    def test_missing_command_is_fatal(self, hosts_file: Path) -> None:
        """An empty command exits before reading config or connecting."""
        with patch("sshfan.runner.load_hosts") as load, \
             patch("sshfan.runner.RemoteExecutor") as executor:
            code = runner.main(["--server-addresses", str(hosts_file)])

        assert code == 1
        load.assert_not_called()
        executor.assert_not_called()

    def test_empty_command_is_fatal(self, caplog: pytest.LogCaptureFixture) -> None:
        with patch("sshfan.runner.asyncio.run") as run:
            code = runner.main(["--command", ""])

        assert code == 1
        run.assert_not_called()
        assert "Missing command flag" in caplog.text

    def test_unreadable_config_is_fatal(
        self, tmp_path: Path, ssh_key: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        code = runner.main([
            "--command", "uptime",
            "--server-addresses", str(tmp_path / "missing.yaml"),
            "--ssh-key", str(ssh_key),
        ])

        assert code == 1
        assert "Failed to read server addresses" in caplog.text

    def test_invalid_config_is_fatal(self, tmp_path: Path, ssh_key: Path) -> None:
        config_file = tmp_path / "hosts.yaml"
        config_file.write_text("hosts: {a: 1}\n")

        code = runner.main([
            "--command", "uptime",
            "--server-addresses", str(config_file),
            "--ssh-key", str(ssh_key),
        ])

        assert code == 1

    def test_missing_key_is_fatal(
        self, hosts_file: Path, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        code = runner.main([
            "--command", "uptime",
            "--server-addresses", str(hosts_file),
            "--ssh-key", str(tmp_path / "no_key"),
        ])

        assert code == 1
        assert "SSH key not found" in caplog.text

    def test_unexpandable_key_is_fatal(self, hosts_file: Path) -> None:
        with patch("sshfan.runner.expand_path", side_effect=RuntimeError("no home")):
            code = runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
            ])

        assert code == 1

    def test_invalid_parallel_requests_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc:
            runner.main(["--command", "uptime", "--parallel-requests", "0"])

        assert exc.value.code == 2

    def test_invalid_timeout_rejected(self) -> None:
        with pytest.raises(SystemExit):
            runner.main(["--command", "uptime", "--ssh-timeout", "soon"])

    def test_prints_output_and_logs_failures(
        self,
        hosts_file: Path,
        ssh_key: Path,
        capsys: pytest.CaptureFixture[str],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Host failures are logged and do not change the exit code."""
        with patch.object(runner.RemoteExecutor, "execute", fake_execute(failing={"web2"})):
            code = runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--parallel-requests", "2",
            ])

        out = capsys.readouterr().out
        assert code == 0
        assert "Output from web1:\nup on web1\n\n" in out
        assert "Output from db1:\nup on db1\n\n" in out
        assert "web2" not in out
        assert "Failed to execute command on web2: Connection error: refused" in caplog.text

    def test_empty_host_list_exits_cleanly(
        self, tmp_path: Path, ssh_key: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_file = tmp_path / "hosts.yaml"
        config_file.write_text("hosts: []\n")

        code = runner.main([
            "--command", "uptime",
            "--server-addresses", str(config_file),
            "--ssh-key", str(ssh_key),
        ])

        assert code == 0
        assert capsys.readouterr().out == ""

    def test_settings_passed_to_executor(self, hosts_file: Path, ssh_key: Path) -> None:
        """Flags are resolved into the executor's connection settings."""
        executor = MagicMock()
        executor.execute = AsyncMock(side_effect=lambda host: JobResult(target=host))

        with patch("sshfan.runner.RemoteExecutor", return_value=executor) as cls:
            code = runner.main([
                "--command", "df -h",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--ssh-timeout", "1m30s",
                "--user", "deploy",
            ])

        assert code == 0
        args, kwargs = cls.call_args
        assert args == ("df -h", ssh_key, 90.0)
        assert kwargs["user"] == "deploy"
        assert kwargs["known_hosts"] is None
        assert executor.execute.await_count == 3

    def test_dashboard_flag_runs_app(self, hosts_file: Path, ssh_key: Path) -> None:
        with patch("sshfan.runner.Dashboard") as dashboard:
            code = runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--dashboard",
            ])

        assert code == 0
        settings, hosts = dashboard.call_args.args
        assert settings.command == "uptime"
        assert hosts == ["web1", "web2", "db1"]
        dashboard.return_value.run.assert_called_once()

    def test_missing_known_hosts_is_fatal(
        self,
        hosts_file: Path,
        ssh_key: Path,
        tmp_path: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with patch("sshfan.runner.RemoteExecutor") as executor:
            code = runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--known-hosts", str(tmp_path / "known_hosts"),
            ])

        assert code == 1
        executor.assert_not_called()
        assert "known_hosts file not found" in caplog.text

    def test_known_hosts_passed_to_executor(
        self, hosts_file: Path, ssh_key: Path, tmp_path: Path
    ) -> None:
        known_hosts = tmp_path / "known_hosts"
        known_hosts.write_text("")
        executor = MagicMock()
        executor.execute = AsyncMock(side_effect=lambda host: JobResult(target=host))

        with patch("sshfan.runner.RemoteExecutor", return_value=executor) as cls:
            code = runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--known-hosts", str(known_hosts),
            ])

        assert code == 0
        assert cls.call_args.kwargs["known_hosts"] == known_hosts


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_headless_logs_to_stderr(self) -> None:
        with patch("sshfan.runner.logging.basicConfig") as basic_config:
            runner.configure_logging()

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert type(handler) is logging.StreamHandler
        assert handler.stream is sys.stderr

    def test_dashboard_logs_through_textual(self) -> None:
        with patch("sshfan.runner.logging.basicConfig") as basic_config:
            runner.configure_logging(dashboard=True)

        (handler,) = basic_config.call_args.kwargs["handlers"]
        assert isinstance(handler, TextualHandler)

    def test_dashboard_flag_selects_textual_logging(
        self, hosts_file: Path, ssh_key: Path
    ) -> None:
        with patch("sshfan.runner.Dashboard"), \
             patch("sshfan.runner.configure_logging") as configure:
            runner.main([
                "--command", "uptime",
                "--server-addresses", str(hosts_file),
                "--ssh-key", str(ssh_key),
                "--dashboard",
            ])

        configure.assert_called_once_with(False, dashboard=True)
