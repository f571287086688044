"""Rewrites the root entry of a copied filesystem's fstab."""

import posixpath
import shlex

import structlog

from ..constants import FSTAB_PATH
from .executor import RemoteExecutor
from .settings import COMMAND_TIMEOUT, QUERY_TIMEOUT
from .volumes import VolumeManager

logger = structlog.get_logger()


def find_root_source(fstab_text: str) -> str | None:
    """Return the device field of the first active entry mounted on ``/``."""
    for line in fstab_text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        fields = stripped.split()
        if len(fields) >= 2 and fields[1] == "/":
            return fields[0]
    return None


def replace_root_source(fstab_text: str, new_source: str) -> str:
    """Swap the device field of the root entry, leaving every other line alone."""
    lines = fstab_text.splitlines(keepends=True)
    for position, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        fields = stripped.split()
        if len(fields) >= 2 and fields[1] == "/":
            leading = line[: len(line) - len(line.lstrip())]
            rest = line.lstrip()[len(fields[0]):]
            lines[position] = f"{leading}{new_source}{rest}"
            break
    return "".join(lines)


def replace_file_command(path: str) -> str:
    """Write stdin to a sibling temp file, then move it over ``path``."""
    staging = shlex.quote(f"{path}.tmp")
    return f"cat > {staging} && mv -f {staging} {shlex.quote(path)}"


class BootConfigPatcher:
    """Points the copied fstab at the freshly created root filesystem.

    A new filesystem gets a new UUID, so the root entry copied from the old
    disk would no longer match after the move.
    """

    def __init__(self, executor: RemoteExecutor, volumes: VolumeManager):
        self.executor = executor
        self.volumes = volumes
        self.logger = logger.bind(component="boot_config_patcher")

    def patch(self, node: str, mount_point: str, device: str) -> bool:
        """Rewrite ``<mount_point>/etc/fstab`` on ``node``.

        Returns:
            True when the root entry was rewritten, False when it was left alone
        """
        fstab = posixpath.join(mount_point, FSTAB_PATH)
        result = self.executor.execute(
            node, f"cat {shlex.quote(fstab)}", check=False, timeout=QUERY_TIMEOUT
        )
        if not result.success:
            self._diagnose(node, fstab, "fstab could not be read")
            return False

        original = find_root_source(result.stdout)
        if original is None:
            self._diagnose(node, fstab, "no active entry for / was found")
            return False

        new_uuid = self.volumes.filesystem_uuid(node, device)
        if new_uuid is None:
            self._diagnose(node, fstab, f"blkid reported no UUID for {device}")
            return False

        new_source = f"UUID={new_uuid}"
        if original == new_source:
            self.logger.info("Root entry already current", node=node, fstab=fstab)
            return True

        patched = replace_root_source(result.stdout, new_source)
        self.executor.execute(
            node, replace_file_command(fstab), input=patched, timeout=COMMAND_TIMEOUT
        )
        self.logger.info(
            "Updated root entry in fstab", node=node, fstab=fstab, old=original, new=new_source
        )
        return True

    def _diagnose(self, node: str, fstab: str, reason: str) -> None:
        self.logger.warning(
            "Root entry in fstab was not updated, fix it before booting the new instance",
            node=node,
            fstab=fstab,
            reason=reason,
        )
        print(
            f"WARNING: {node}:{fstab} was not updated ({reason}). "
            "Fix the root entry by hand before relying on the new instance."
        )
