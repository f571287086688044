"""Enum definitions for instance moves."""

from enum import Enum


class MigrationState(Enum):
    """Linear states of a move, in the order they are reached."""

    VALIDATED = "validated"
    DISK_PROVISIONED = "disk_provisioned"
    SOURCE_PREPARED = "source_prepared"
    INSTANCE_SHUTDOWN = "instance_shutdown"
    INSTANCE_RENAMED = "instance_renamed"
    SOURCE_MOUNTED = "source_mounted"
    DATA_COPIED = "data_copied"
    CONFIG_PATCHED = "config_patched"
    UNMOUNTED = "unmounted"
    INSTANCE_REGISTERED = "instance_registered"
    AWAITING_REMOVAL_DECISION = "awaiting_removal_decision"
    DONE = "done"

    @property
    def order(self) -> int:
        return list(MigrationState).index(self)

    def reached(self, other: "MigrationState") -> bool:
        """True when this state is ``other`` or later."""
        return self.order >= other.order


class PreflightFailure(Enum):
    """Reasons a preflight check can fail."""

    NOT_ON_SOURCE_MASTER = "not on source control node"
    DESTINATION_UNREACHABLE = "cannot reach destination node"
    DESTINATION_MASTER_UNREACHABLE = "cannot reach destination control node"
    TOOL_MISSING = "required tool missing"
