"""Instance move workflow."""

from .manager import (  # noqa: F401
    MigrationWorkflow,
    append_hosts_line_command,
    remove_hosts_line_command,
)

__all__ = ["MigrationWorkflow", "append_hosts_line_command", "remove_hosts_line_command"]
