"""Transfer modules for copying an instance filesystem between nodes."""

from .archive import TarStreamTransfer  # noqa: F401
from .base import BaseTransfer  # noqa: F401

__all__ = [
    "BaseTransfer",
    "TarStreamTransfer",
]
