"""Reverse-order cleanup of resources acquired during a move."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from .executor import RemoteExecutor
from .settings import CLEANUP_TIMEOUT

logger = structlog.get_logger()


@dataclass(frozen=True)
class LedgerEntry:
    """A compensating command and the host it must run on."""

    host: str
    command: str
    description: str = ""
    registered_at: datetime = field(default_factory=datetime.now)


class ResourceLedger:
    """Records undo actions and runs them in reverse order exactly once.

    Every entry must be safe to run even when its forward action only
    partially happened. Use as a context manager so the unwind happens on
    normal exit, on error and on interrupt alike.
    """

    def __init__(self, executor: RemoteExecutor, cleanup_timeout: float | None = CLEANUP_TIMEOUT):
        self.executor = executor
        self.cleanup_timeout = cleanup_timeout
        self.logger = logger.bind(component="resource_ledger")
        self._entries: list[LedgerEntry] = []
        self._unwinding = False
        self.failed_cleanups: list[dict[str, Any]] = []

    def __enter__(self) -> "ResourceLedger":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.unwind_all()
        return False

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        """Entries still waiting to be unwound, in registration order."""
        return tuple(self._entries)

    @property
    def unwinding(self) -> bool:
        return self._unwinding

    def register(self, host: str, command: str, description: str = "") -> LedgerEntry | None:
        """Record the undo action for a resource that was just acquired.

        Returns:
            The new entry, or None once unwinding has started
        """
        if self._unwinding:
            self.logger.warning(
                "Ignoring cleanup registered during unwind", host=host, command=command
            )
            return None

        entry = LedgerEntry(host=host, command=command, description=description)
        self._entries.append(entry)
        self.logger.debug(
            "Registered cleanup", host=host, command=command, description=description
        )
        return entry

    def unwind_all(self) -> list[LedgerEntry]:
        """Run every registered undo action, newest first.

        Failures are logged and do not stop the remaining actions. Calling
        this again after the ledger is drained does nothing.

        Returns:
            Entries whose undo action failed
        """
        self._unwinding = True
        if not self._entries:
            return []

        self.logger.info("Cleaning up", actions=len(self._entries))
        failed: list[LedgerEntry] = []
        while self._entries:
            entry = self._entries.pop()
            self.logger.info("Running cleanup", host=entry.host, command=entry.command)
            try:
                self.executor.execute(entry.host, entry.command, timeout=self.cleanup_timeout)
            except KeyboardInterrupt:
                self.logger.warning(
                    "Interrupted during cleanup, continuing with remaining actions",
                    host=entry.host,
                    command=entry.command,
                )
                self._record_failure(entry, "interrupted")
                failed.append(entry)
            except Exception as e:
                self.logger.error(
                    "Cleanup action failed", host=entry.host, command=entry.command, error=str(e)
                )
                self._record_failure(entry, str(e))
                failed.append(entry)

        if failed:
            self.logger.error(
                "Some cleanup actions failed, finish them by hand",
                commands=[f"{entry.host}: {entry.command}" for entry in failed],
            )
        return failed

    def _record_failure(self, entry: LedgerEntry, error: str) -> None:
        self.failed_cleanups.append(
            {
                "host": entry.host,
                "command": entry.command,
                "description": entry.description,
                "error": error,
                "timestamp": datetime.now().isoformat(),
            }
        )
