"""Safety guards for paths reported back by remote commands."""

import posixpath

import structlog

from .exceptions import SafetyError

logger = structlog.get_logger()


class MountSafety:
    """Validates mount points before they are mounted over or removed."""

    # Paths that must never be used as a temporary mount point
    FORBIDDEN_PATHS = [
        "/",
        "/bin",
        "/boot",
        "/dev",
        "/etc",
        "/lib",
        "/proc",
        "/root",
        "/sbin",
        "/sys",
        "/usr",
        "/var",
        "/home",
    ]

    def __init__(self, export_dir: str):
        self.export_dir = posixpath.normpath(export_dir)
        self.logger = logger.bind(component="mount_safety")

    def validate_mount_point(self, path: str) -> tuple[bool, str]:
        """Validate that a path is a fresh directory directly below the export dir.

        Args:
            path: Path reported by ``mktemp -d`` on a node

        Returns:
            Tuple of (is_safe: bool, reason: str)
        """
        path = path.strip()
        if not path:
            return False, "Empty mount point"

        if not path.startswith("/"):
            return False, f"Mount point '{path}' is not absolute"

        # Check for parent directory traversal attempts
        if ".." in path.split("/"):
            return False, f"Mount point '{path}' contains parent directory traversal"

        normalized = posixpath.normpath(path)
        if normalized != (path.rstrip("/") or "/"):
            return False, f"Mount point '{path}' is not normalized"

        if normalized in self.FORBIDDEN_PATHS or normalized == self.export_dir:
            return False, f"Mount point '{normalized}' is a protected directory"

        if posixpath.dirname(normalized) != self.export_dir:
            return False, f"Mount point '{normalized}' is not directly below '{self.export_dir}'"

        if any(char.isspace() for char in normalized):
            return False, f"Mount point '{normalized}' contains whitespace"

        return True, f"Mount point validated: {normalized}"

    def require_mount_point(self, path: str, host: str) -> str:
        """Return the normalized mount point or raise SafetyError."""
        is_safe, reason = self.validate_mount_point(path)
        if not is_safe:
            self.logger.error("Mount point rejected by safety check", host=host, reason=reason)
            raise SafetyError(f"SAFETY BLOCK: {reason}")
        return posixpath.normpath(path.strip())
