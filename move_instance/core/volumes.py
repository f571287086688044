"""Logical volume, filesystem and mount handling on cluster nodes."""

import shlex

import structlog

from ..constants import MKFS_FORCE_FLAGS, PROC_MOUNTS
from .exceptions import RemoteExecutionError
from .executor import RemoteExecutor
from .safety import MountSafety
from .settings import COMMAND_TIMEOUT, QUERY_TIMEOUT

logger = structlog.get_logger()


def remove_mount_point_command(path: str) -> str:
    """Undo for a temporary directory; a no-op once it is gone."""
    quoted = shlex.quote(path)
    return f"if [ -d {quoted} ]; then rmdir {quoted}; fi"


def unmount_if_mounted_command(path: str) -> str:
    """Undo for a mount; a no-op when nothing is mounted there."""
    quoted = shlex.quote(path)
    # Mount points are the second field of /proc/mounts
    return (
        f"if awk -v target={quoted} '$2 == target {{ found = 1 }} END {{ exit !found }}' "
        f"{PROC_MOUNTS}; then umount {quoted}; fi"
    )


class VolumeManager:
    """Creates, formats and mounts the block devices involved in a move."""

    def __init__(self, executor: RemoteExecutor, safety: MountSafety):
        self.executor = executor
        self.safety = safety
        self.logger = logger.bind(component="volume_manager")

    def create_logical_volume(
        self, node: str, volume_group: str, name: str, size_bytes: int
    ) -> None:
        """Create a zeroed logical volume of exactly ``size_bytes``."""
        command = shlex.join(
            [
                "lvcreate",
                volume_group,
                "--size",
                f"{size_bytes}b",
                "--name",
                name,
                "--wipesignatures",
                "y",
                "--yes",
                "--zero",
                "y",
            ]
        )
        self.logger.info(
            "Creating logical volume", node=node, volume_group=volume_group, name=name,
            size=size_bytes,
        )
        self.executor.execute(node, command, timeout=COMMAND_TIMEOUT)

    def make_filesystem(self, node: str, device: str, filesystem_type: str) -> None:
        """Force-format ``device`` with ``filesystem_type``."""
        force = MKFS_FORCE_FLAGS.get(filesystem_type)
        args = [f"mkfs.{filesystem_type}"]
        if force:
            args.append(force)
        args.append(device)
        self.logger.info("Creating filesystem", node=node, device=device, type=filesystem_type)
        self.executor.execute(node, shlex.join(args), timeout=COMMAND_TIMEOUT)

    def make_mount_point(self, node: str, export_dir: str) -> str:
        """Create a fresh temporary directory below ``export_dir`` and return it.

        Raises:
            SafetyError: If the node reports an unexpected path
        """
        result = self.executor.execute(
            node, f"mktemp -d --tmpdir={shlex.quote(export_dir)}", timeout=QUERY_TIMEOUT
        )
        lines = result.stdout.strip().splitlines()
        path = lines[-1] if lines else ""
        return self.safety.require_mount_point(path, node)

    def mount(
        self,
        node: str,
        device: str,
        target: str,
        filesystem_type: str | None,
        read_only: bool = False,
    ) -> None:
        """Mount ``device`` on ``target``; without a type, mount probes for one."""
        args = ["mount"]
        if read_only:
            args.extend(["-o", "ro"])
        if filesystem_type:
            args.extend(["-t", filesystem_type])
        args.extend([device, target])
        self.logger.info(
            "Mounting volume", node=node, device=device, target=target, read_only=read_only
        )
        self.executor.execute(node, shlex.join(args), timeout=COMMAND_TIMEOUT)

    def unmount(self, node: str, target: str) -> None:
        self.logger.info("Unmounting volume", node=node, target=target)
        self.executor.execute(node, shlex.join(["umount", target]), timeout=COMMAND_TIMEOUT)

    def filesystem_uuid(self, node: str, device: str) -> str | None:
        """UUID of the filesystem on ``device``, or None if blkid cannot tell."""
        try:
            result = self.executor.execute(
                node,
                shlex.join(["blkid", "-s", "UUID", "-o", "value", device]),
                check=False,
                timeout=QUERY_TIMEOUT,
            )
        except RemoteExecutionError as e:
            self.logger.warning("blkid failed", node=node, device=device, error=str(e))
            return None
        uuid = result.stdout.strip()
        if not result.success or not uuid:
            return None
        return uuid.splitlines()[0].strip()
