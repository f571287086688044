"""Abstract base class for transfer methods."""

from abc import ABC, abstractmethod
from typing import Any

import structlog

from ..executor import RemoteExecutor

logger = structlog.get_logger()


class BaseTransfer(ABC):
    """Abstract base class for all transfer methods."""

    def __init__(self, executor: RemoteExecutor):
        self.executor = executor
        self.logger = logger.bind(component=self.__class__.__name__.lower())

    @abstractmethod
    def transfer(
        self,
        source_host: str,
        target_host: str,
        source_path: str,
        target_path: str,
        **kwargs,
    ) -> dict[str, Any]:
        """Transfer data between hosts.

        Args:
            source_host: Node holding the data
            target_host: Node receiving the data
            source_path: Path on source host
            target_path: Path on target host
            **kwargs: Additional transfer-specific options

        Returns:
            Dictionary with transfer results and statistics
        """

    @abstractmethod
    def validate_requirements(self, host: str) -> tuple[bool, str]:
        """Validate that this transfer method can be used on the host.

        Returns:
            Tuple of (is_valid: bool, error_message: str)
        """

    @abstractmethod
    def get_transfer_type(self) -> str:
        """Get the name/type of this transfer method."""
