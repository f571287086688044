"""Local and remote command execution."""

import shlex
import subprocess
from typing import Any

import structlog

from ..constants import LOCAL_HOST
from ..utils import build_ssh_command
from .config_loader import SSHOptions
from .exceptions import RemoteExecutionError

logger = structlog.get_logger()

KILL_TIMEOUT = 5  # Time to wait after SIGTERM before SIGKILL
SSH_TRANSPORT_FAILURE = 255


class CommandResult:
    """Result of a command execution."""

    def __init__(
        self,
        returncode: int,
        stdout: str,
        stderr: str,
        cmd: list[str],
        host: str = LOCAL_HOST,
    ):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.cmd = cmd
        self.host = host

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.returncode == 0

    @property
    def transport_failed(self) -> bool:
        """ssh exits 255 when it cannot reach the host at all."""
        return self.host != LOCAL_HOST and self.returncode == SSH_TRANSPORT_FAILURE

    def check_returncode(self, command: str = "") -> None:
        """Raise an exception if the command failed."""
        if self.returncode != 0:
            error_msg = self.stderr.strip() or self.stdout.strip() or "Command failed"
            raise RemoteExecutionError(
                f"Command on {self.host} failed with exit code {self.returncode}: {error_msg}",
                host=self.host,
                command=command or shlex.join(self.cmd),
                returncode=self.returncode,
                stderr=self.stderr,
            )


class RemoteExecutor:
    """Runs shell commands on the control node or on other hosts over SSH."""

    def __init__(self, ssh_options: SSHOptions | None = None, default_timeout: float | None = None):
        self.ssh_options = ssh_options or SSHOptions()
        self.default_timeout = default_timeout
        self.logger = logger.bind(component="remote_executor")

    def build_command(self, host: str, command: str) -> list[str]:
        """Argument vector that runs ``command`` on ``host``."""
        if host == LOCAL_HOST:
            return ["bash", "-c", command]
        return build_ssh_command(host, self.ssh_options) + [command]

    def execute(
        self,
        host: str,
        command: str,
        *,
        check: bool = True,
        timeout: float | None = None,
        capture_output: bool = True,
        input: str | None = None,
    ) -> CommandResult:
        """Run a command and return its result.

        Args:
            host: Hostname, or ``local`` for the control node
            command: Shell command line to run on the host
            check: Raise if the command exits non-zero
            timeout: Seconds before the command is killed (None = default)
            capture_output: Capture stdout/stderr instead of using the terminal
            input: Text written to the command's stdin

        Returns:
            CommandResult with returncode, stdout and stderr

        Raises:
            RemoteExecutionError: If the command cannot be spawned, times out,
                or fails while ``check`` is set
        """
        if timeout is None:
            timeout = self.default_timeout

        cmd = self.build_command(host, command)
        self.logger.debug("Executing command", host=host, command=command, timeout=timeout)

        kwargs: dict[str, Any] = {"check": False, "text": True, "timeout": timeout}
        if capture_output:
            kwargs["capture_output"] = True
        if input is not None:
            kwargs["input"] = input

        try:
            completed = subprocess.run(cmd, **kwargs)  # nosec B603
        except subprocess.TimeoutExpired as e:
            self.logger.warning("Command timed out", host=host, command=command, timeout=timeout)
            raise RemoteExecutionError(
                f"Command on {host} timed out after {timeout} seconds: {command}",
                host=host,
                command=command,
            ) from e
        except OSError as e:
            raise RemoteExecutionError(
                f"Unable to run command on {host}: {e}", host=host, command=command
            ) from e

        result = CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            cmd=cmd,
            host=host,
        )

        if not result.success:
            self.logger.debug(
                "Command exited non-zero",
                host=host,
                command=command,
                returncode=result.returncode,
                stderr=result.stderr.strip()[:500],
            )
        if check:
            result.check_returncode(command)
        return result

    def pipe(self, stages: list[tuple[str, str]], *, timeout: float | None = None) -> None:
        """Run a pipeline of commands, chaining each stdout into the next stdin.

        Args:
            stages: ``(host, command)`` pairs in pipeline order
            timeout: Seconds to wait for each stage (None = default)

        Raises:
            RemoteExecutionError: If any stage cannot start or exits non-zero
        """
        if not stages:
            raise ValueError("pipeline needs at least one stage")
        if timeout is None:
            timeout = self.default_timeout

        self.logger.debug(
            "Executing pipeline",
            stages=[f"{host}: {command}" for host, command in stages],
            timeout=timeout,
        )

        processes: list[subprocess.Popen] = []
        try:
            previous_stdout = None
            for position, (host, command) in enumerate(stages):
                last = position == len(stages) - 1
                process = subprocess.Popen(  # nosec B603
                    self.build_command(host, command),
                    stdin=previous_stdout,
                    stdout=None if last else subprocess.PIPE,
                )
                # Only the next stage may hold the read end
                if previous_stdout is not None:
                    previous_stdout.close()
                previous_stdout = process.stdout
                processes.append(process)

            for process in reversed(processes):
                process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise RemoteExecutionError(
                f"Pipeline timed out after {timeout} seconds",
                command=" | ".join(command for _, command in stages),
            ) from e
        except OSError as e:
            raise RemoteExecutionError(
                f"Unable to start pipeline: {e}",
                command=" | ".join(command for _, command in stages),
            ) from e
        finally:
            _terminate(processes)

        for (host, command), process in zip(stages, processes):
            if process.returncode != 0:
                raise RemoteExecutionError(
                    f"Pipeline stage on {host} failed with exit code {process.returncode}: "
                    f"{command}",
                    host=host,
                    command=command,
                    returncode=process.returncode,
                )


def _terminate(processes: list[subprocess.Popen]) -> None:
    """Stop any pipeline stage that is still running."""
    for process in processes:
        if process.poll() is not None:
            continue
        process.terminate()
        try:
            process.wait(timeout=KILL_TIMEOUT)
        except subprocess.TimeoutExpired:
            # Force kill if graceful termination fails
            logger.warning("Process did not terminate gracefully, sending SIGKILL", pid=process.pid)
            process.kill()
            process.wait()
