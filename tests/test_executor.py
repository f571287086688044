"""Tests for local and remote command execution."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from move_instance.core.config_loader import SSHOptions
from move_instance.core.exceptions import RemoteExecutionError
from move_instance.core.executor import CommandResult, RemoteExecutor


def _completed(returncode=0, stdout="", stderr=""):
    completed = MagicMock()
    completed.returncode = returncode
    completed.stdout = stdout
    completed.stderr = stderr
    return completed


def _process(returncode=0):
    process = MagicMock()
    process.returncode = returncode
    process.poll.return_value = returncode
    process.stdout = MagicMock()
    return process


@pytest.fixture
def executor():
    return RemoteExecutor(SSHOptions(user="root"))


class TestCommandResult:
    def test_success(self):
        assert CommandResult(0, "", "", ["true"]).success
        assert not CommandResult(1, "", "", ["false"]).success

    def test_transport_failure_only_for_remote_hosts(self):
        assert CommandResult(255, "", "", ["ssh"], host="node").transport_failed
        assert not CommandResult(255, "", "", ["bash"], host="local").transport_failed
        assert not CommandResult(1, "", "", ["ssh"], host="node").transport_failed

    def test_check_returncode_raises_with_details(self):
        result = CommandResult(3, "", "no such volume\n", ["ssh"], host="node")

        with pytest.raises(RemoteExecutionError) as exc_info:
            result.check_returncode("lvcreate vg")

        error = exc_info.value
        assert error.host == "node"
        assert error.command == "lvcreate vg"
        assert error.returncode == 3
        assert "no such volume" in str(error)


class TestBuildCommand:
    def test_local_runs_through_bash(self, executor):
        assert executor.build_command("local", "echo hi") == ["bash", "-c", "echo hi"]

    def test_remote_runs_over_ssh(self, executor):
        cmd = executor.build_command("kvm02.lan", "gnt-cluster getmaster")

        assert cmd[0] == "ssh"
        assert cmd[-2:] == ["root@kvm02.lan", "gnt-cluster getmaster"]
        assert "BatchMode=yes" in cmd


class TestExecute:
    @patch("move_instance.core.executor.subprocess.run")
    def test_captures_output(self, mock_run, executor):
        mock_run.return_value = _completed(stdout="kvmmaster.lan\n")

        result = executor.execute("kvm02.lan", "gnt-cluster getmaster", timeout=30)

        assert result.stdout == "kvmmaster.lan\n"
        assert result.host == "kvm02.lan"
        args, kwargs = mock_run.call_args
        assert args[0][-1] == "gnt-cluster getmaster"
        assert kwargs["capture_output"] is True
        assert kwargs["timeout"] == 30
        assert kwargs["check"] is False

    @patch("move_instance.core.executor.subprocess.run")
    def test_terminal_output_is_not_captured(self, mock_run, executor):
        mock_run.return_value = _completed()

        executor.execute("local", "gnt-instance shutdown x", capture_output=False)

        assert "capture_output" not in mock_run.call_args.kwargs

    @patch("move_instance.core.executor.subprocess.run")
    def test_input_is_passed(self, mock_run, executor):
        mock_run.return_value = _completed()

        executor.execute("node", "cat > /mnt/x/etc/fstab", input="data\n")

        assert mock_run.call_args.kwargs["input"] == "data\n"

    @patch("move_instance.core.executor.subprocess.run")
    def test_non_zero_exit_raises(self, mock_run, executor):
        mock_run.return_value = _completed(returncode=5, stderr="boom")

        with pytest.raises(RemoteExecutionError) as exc_info:
            executor.execute("node", "mkfs.xfs -f /dev/vg/lv")

        assert exc_info.value.returncode == 5
        assert exc_info.value.stderr == "boom"

    @patch("move_instance.core.executor.subprocess.run")
    def test_non_zero_exit_without_check(self, mock_run, executor):
        mock_run.return_value = _completed(returncode=1)

        result = executor.execute("node", "false", check=False)

        assert not result.success

    @patch("move_instance.core.executor.subprocess.run")
    def test_timeout_raises(self, mock_run, executor):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ssh", timeout=30)

        with pytest.raises(RemoteExecutionError, match="timed out"):
            executor.execute("node", "exit 0", timeout=30)

    @patch("move_instance.core.executor.subprocess.run")
    def test_spawn_failure_raises(self, mock_run, executor):
        mock_run.side_effect = FileNotFoundError("ssh")

        with pytest.raises(RemoteExecutionError, match="Unable to run"):
            executor.execute("node", "exit 0")

    @patch("move_instance.core.executor.subprocess.run")
    def test_default_timeout(self, mock_run):
        mock_run.return_value = _completed()

        RemoteExecutor(default_timeout=12).execute("local", "true")

        assert mock_run.call_args.kwargs["timeout"] == 12


class TestPipe:
    @patch("move_instance.core.executor.subprocess.Popen")
    def test_chains_stages(self, mock_popen, executor):
        first, second = _process(), _process()
        mock_popen.side_effect = [first, second]

        executor.pipe([("src", "tar -cf - ."), ("dst", "tar -xpf -")])

        first_call, second_call = mock_popen.call_args_list
        assert first_call.args[0][-2:] == ["root@src", "tar -cf - ."]
        assert first_call.kwargs["stdout"] == subprocess.PIPE
        assert second_call.kwargs["stdin"] is first.stdout
        assert second_call.kwargs["stdout"] is None
        first.stdout.close.assert_called_once()

    @patch("move_instance.core.executor.subprocess.Popen")
    def test_failed_stage_raises(self, mock_popen, executor):
        mock_popen.side_effect = [_process(0), _process(2)]

        with pytest.raises(RemoteExecutionError) as exc_info:
            executor.pipe([("src", "tar -cf - ."), ("dst", "tar -xpf -")])

        assert exc_info.value.host == "dst"
        assert exc_info.value.returncode == 2

    @patch("move_instance.core.executor.subprocess.Popen")
    def test_interrupt_terminates_running_stages(self, mock_popen, executor):
        first, second = _process(), _process()
        first.poll.return_value = None
        second.wait.side_effect = [KeyboardInterrupt, 0]
        second.poll.return_value = 0
        mock_popen.side_effect = [first, second]

        with pytest.raises(KeyboardInterrupt):
            executor.pipe([("src", "tar -cf - ."), ("dst", "tar -xpf -")])

        first.terminate.assert_called_once()
        second.terminate.assert_not_called()

    @patch("move_instance.core.executor.subprocess.Popen")
    def test_start_failure_raises(self, mock_popen, executor):
        mock_popen.side_effect = OSError("no ssh")

        with pytest.raises(RemoteExecutionError, match="Unable to start pipeline"):
            executor.pipe([("src", "tar -cf - .")])

    def test_empty_pipeline(self, executor):
        with pytest.raises(ValueError):
            executor.pipe([])
