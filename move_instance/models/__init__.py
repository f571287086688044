"""Data models for instance moves."""

from .enums import MigrationState, PreflightFailure  # noqa: F401
from .instance import InstanceDescriptor, MigrationPlan, NetworkLink  # noqa: F401

__all__ = [
    "InstanceDescriptor",
    "MigrationPlan",
    "MigrationState",
    "NetworkLink",
    "PreflightFailure",
]
