"""Utility functions for move-instance.

Common helpers shared by the executor, the descriptor parser and the
operator-facing summary.
"""

import math
import re

from .constants import (
    SSH_BATCH_MODE,
    SSH_CONNECT_TIMEOUT,
    SSH_ERROR_LOG_LEVEL,
    SSH_SERVER_ALIVE,
    SSH_STRICT_HOST_KEY_CHECKING,
)
from .core.config_loader import SSHOptions

MIB = 1024 * 1024

_UNIT_REGEX = re.compile(r"^([.\d]+)\s*([a-zA-Z]+)?\s*$")


def build_ssh_command(hostname: str, options: SSHOptions) -> list[str]:
    """Build SSH command for a host.

    Args:
        hostname: Node or master to connect to
        options: SSH connection options

    Returns:
        List of SSH command components ready for subprocess execution

    Example:
        >>> build_ssh_command("kvm02.lan", SSHOptions(user="root"))[-1]
        'root@kvm02.lan'
    """
    ssh_cmd = [
        "ssh",
        "-o", SSH_STRICT_HOST_KEY_CHECKING.format(options.strict_host_key_checking),
        "-o", SSH_CONNECT_TIMEOUT.format(options.connect_timeout),
        "-o", SSH_ERROR_LOG_LEVEL,  # Reduce noise
        "-o", SSH_SERVER_ALIVE,  # Keep long copies alive
    ]
    if options.batch_mode:
        ssh_cmd.extend(["-o", SSH_BATCH_MODE])

    for extra in options.extra_options:
        ssh_cmd.extend(["-o", extra])

    if options.identity_file:
        ssh_cmd.extend(["-i", options.identity_file])

    if options.port != 22:
        ssh_cmd.extend(["-p", str(options.port)])

    # argv element, not shell text
    ssh_cmd.append(f"{options.user}@{hostname}" if options.user else hostname)

    return ssh_cmd


def parse_unit_mib(value: str) -> int:
    """Parse a Ganeti size string into MiB.

    Unitless values are MiB. Fractional values are rounded up to a whole MiB.

    Examples:
        >>> parse_unit_mib("2048")
        2048
        >>> parse_unit_mib("10.0G")
        10240
        >>> parse_unit_mib("1.5T")
        1572864

    Raises:
        ValueError: If the value is not a size
    """
    match = _UNIT_REGEX.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid size: {value!r}")

    try:
        amount = float(match.group(1))
    except ValueError as e:
        raise ValueError(f"Invalid size: {value!r}") from e

    unit = (match.group(2) or "m").lower()
    if unit in ("m", "mb", "mib"):
        pass
    elif unit in ("g", "gb", "gib"):
        amount *= 1024
    elif unit in ("t", "tb", "tib"):
        amount *= 1024 * 1024
    else:
        raise ValueError(f"Unknown unit: {match.group(2)}")

    return int(math.ceil(amount))


def parse_size_bytes(value: str) -> int:
    """Parse a Ganeti size string into bytes."""
    return parse_unit_mib(value) * MIB


def format_size(size_bytes: int) -> str:
    """Format bytes into human-readable string.

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(1024)
        '1.0 KB'
        >>> format_size(10737418240)
        '10.0 GB'
    """
    if size_bytes == 0:
        return "0 B"

    size = float(size_bytes)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            if unit == "B":
                return f"{int(size)} {unit}"
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"
