"""Tests for the command line entry point."""

import signal
from unittest.mock import MagicMock, patch

import pytest

from move_instance import cli
from move_instance.core.config_loader import MoverConfig
from move_instance.core.exceptions import (
    ConfigurationError,
    DescriptorUnavailable,
    PreflightError,
    RemoteExecutionError,
    SafetyError,
    UserDeclined,
)
from move_instance.models.enums import PreflightFailure


class TestArguments:
    def test_parses_short_options(self):
        args = cli.parse_args(["-i", "dns01.lan", "-d", "kvm02.lan"])

        assert args.instance == "dns01.lan"
        assert args.destination_node == "kvm02.lan"

    def test_parses_long_options(self):
        args = cli.parse_args(["--instance", "dns01.lan", "--destination-node", "kvm02.lan"])

        assert args.destination_node == "kvm02.lan"

    @pytest.mark.parametrize(
        "argv",
        [
            [],
            ["-i", "dns01.lan"],
            ["-d", "kvm02.lan"],
            ["-i", "dns01.lan", "-d", "kvm02.lan", "--force"],
        ],
    )
    def test_usage_errors_exit_1(self, argv, capsys):
        with patch("move_instance.cli.MigrationWorkflow") as workflow_class:
            with pytest.raises(SystemExit) as exc_info:
                cli.main(argv)

        assert exc_info.value.code == 1
        assert "usage: move-instance" in capsys.readouterr().err
        workflow_class.assert_not_called()

    def test_help_exits_0(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-h"])

        assert exc_info.value.code == 0
        assert "--destination-node" in capsys.readouterr().out


@pytest.fixture
def workflow():
    """Patch everything main() sets up around the workflow."""
    instance = MagicMock()
    with (
        patch("move_instance.cli.load_config", return_value=MoverConfig()),
        patch("move_instance.cli._setup_log_directory", return_value=None),
        patch("move_instance.cli.setup_logging"),
        patch("move_instance.cli.install_signal_handlers"),
        patch("move_instance.cli.MigrationWorkflow", return_value=instance),
    ):
        yield instance


ARGV = ["-i", "dns01.lan", "-d", "kvm02.lan"]


class TestExitStatus:
    def test_success(self, workflow):
        workflow.run.return_value = {"success": True}

        assert cli.main(ARGV) == 0
        workflow.run.assert_called_once_with("dns01.lan", "kvm02.lan")

    def test_declined(self, workflow, capsys):
        workflow.run.side_effect = UserDeclined("No changes made")

        assert cli.main(ARGV) == 0
        assert "No changes made, exiting." in capsys.readouterr().out

    @pytest.mark.parametrize(
        "error",
        [
            PreflightError(PreflightFailure.DESTINATION_UNREACHABLE, "unable to ssh kvm02.lan"),
            DescriptorUnavailable("no such instance"),
            RemoteExecutionError("lvcreate failed", host="kvm02.lan", returncode=5),
            SafetyError("SAFETY BLOCK: bad path"),
        ],
    )
    def test_errors_exit_1(self, workflow, error, capsys):
        workflow.run.side_effect = error

        assert cli.main(ARGV) == 1
        assert f"ERROR: {error}" in capsys.readouterr().out

    def test_interrupt_exits_130(self, workflow):
        workflow.run.side_effect = KeyboardInterrupt

        assert cli.main(ARGV) == 130

    def test_configuration_error(self, capsys):
        with patch(
            "move_instance.cli.load_config", side_effect=ConfigurationError("bad yaml")
        ):
            assert cli.main(ARGV) == 1

        assert "ERROR: bad yaml" in capsys.readouterr().out


class TestSignals:
    def test_handler_raises_keyboard_interrupt(self):
        with pytest.raises(KeyboardInterrupt):
            cli._raise_keyboard_interrupt(signal.SIGTERM, None)

    def test_installs_term_and_hup(self):
        with patch("move_instance.cli.signal.signal") as mock_signal:
            cli.install_signal_handlers()

        installed = {call.args[0] for call in mock_signal.call_args_list}
        assert signal.SIGTERM in installed
        assert signal.SIGHUP in installed


class TestLogDirectory:
    def test_environment_override(self, tmp_path, monkeypatch):
        log_dir = tmp_path / "logs"
        monkeypatch.setenv("MOVE_INSTANCE_LOG_DIR", str(log_dir))

        assert cli._setup_log_directory(MoverConfig()) == str(log_dir)
        assert log_dir.is_dir()

    def test_configured_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MOVE_INSTANCE_LOG_DIR", raising=False)
        log_dir = tmp_path / "configured"

        assert cli._setup_log_directory(MoverConfig(log_dir=str(log_dir))) == str(log_dir)
