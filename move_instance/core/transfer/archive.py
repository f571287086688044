"""Streamed tar copy of a mounted filesystem from one node to another.

The archive never touches disk: the source node writes it to stdout, the
control node relays it (through ``pv`` when progress is wanted) and the
destination node unpacks it straight into the target mount.
"""

import shlex
import shutil
from typing import Any

import structlog

from ...constants import LOCAL_HOST
from ..exceptions import RemoteExecutionError
from ..executor import RemoteExecutor
from ..settings import PROBE_TIMEOUT, QUERY_TIMEOUT, TRANSFER_TIMEOUT
from .base import BaseTransfer

logger = structlog.get_logger()


class TransferError(RemoteExecutionError):
    """Filesystem transfer failed."""


class TarStreamTransfer(BaseTransfer):
    """Copy a directory tree with ``tar`` over the SSH channel."""

    # One filesystem only; numeric ids because passwd differs between hosts
    CREATE_OPTIONS = ["-cf", "-", "--one-file-system", "--numeric-owner", "--sparse"]
    EXTRACT_OPTIONS = ["-xpf", "-", "--numeric-owner"]

    def __init__(
        self,
        executor: RemoteExecutor,
        show_progress: bool = True,
        progress_command: str = "pv",
    ):
        super().__init__(executor)
        self.show_progress = show_progress
        self.progress_command = progress_command

    def get_transfer_type(self) -> str:
        return "tar_stream"

    def validate_requirements(self, host: str) -> tuple[bool, str]:
        """Validate that tar is available on the host."""
        try:
            result = self.executor.execute(
                host, "command -v tar > /dev/null", check=False, timeout=PROBE_TIMEOUT
            )
        except RemoteExecutionError as e:
            return False, f"Failed to check tar availability on {host}: {e}"

        if result.success:
            return True, ""
        return False, f"tar not available on host {host}"

    def progress_available(self) -> bool:
        """Progress needs the relay command installed on the control node."""
        if not self.show_progress:
            return False
        if shutil.which(self.progress_command) is None:
            self.logger.warning(
                "Progress command not found, copying without progress display",
                command=self.progress_command,
            )
            return False
        return True

    def used_bytes(self, host: str, path: str) -> int | None:
        """Bytes used on the filesystem mounted at ``path``."""
        result = self.executor.execute(
            host, f"df -B1 {shlex.quote(path)}", check=False, timeout=QUERY_TIMEOUT
        )
        if not result.success:
            return None
        lines = result.stdout.strip().splitlines()
        if len(lines) < 2:
            return None
        fields = lines[-1].split()
        try:
            return int(fields[2])
        except (IndexError, ValueError):
            self.logger.warning("Unexpected df output", host=host, output=result.stdout)
            return None

    def build_stages(
        self,
        source_host: str,
        target_host: str,
        source_path: str,
        target_path: str,
        size: int | None = None,
        progress: bool = False,
    ) -> list[tuple[str, str]]:
        """Pipeline stages for the copy, as ``(host, command)`` pairs."""
        create = shlex.join(["tar", *self.CREATE_OPTIONS, "-C", source_path, "."])
        extract = shlex.join(["tar", *self.EXTRACT_OPTIONS, "-C", target_path])

        stages = [(source_host, create)]
        if progress:
            relay = [self.progress_command, "-pers" if size else "-per"]
            if size:
                relay.append(str(size))
            stages.append((LOCAL_HOST, shlex.join(relay)))
        stages.append((target_host, extract))
        return stages

    def transfer(
        self,
        source_host: str,
        target_host: str,
        source_path: str,
        target_path: str,
        **kwargs,
    ) -> dict[str, Any]:
        """Stream ``source_path`` on ``source_host`` into ``target_path`` on ``target_host``.

        Raises:
            TransferError: If any side of the pipeline fails
        """
        size = self.used_bytes(source_host, source_path)
        progress = self.progress_available()
        stages = self.build_stages(
            source_host, target_host, source_path, target_path, size=size, progress=progress
        )

        self.logger.info(
            "Starting tar stream transfer",
            source=f"{source_host}:{source_path}",
            target=f"{target_host}:{target_path}",
            size=size,
            progress=progress,
        )
        try:
            self.executor.pipe(stages, timeout=kwargs.get("timeout", TRANSFER_TIMEOUT))
        except RemoteExecutionError as e:
            raise TransferError(
                f"Copy to {target_host}:{target_path} failed: {e}",
                host=e.host,
                command=e.command,
                returncode=e.returncode,
            ) from e

        return {
            "success": True,
            "transfer_type": self.get_transfer_type(),
            "source": f"{source_host}:{source_path}",
            "target": f"{target_host}:{target_path}",
            "size": size,
        }
