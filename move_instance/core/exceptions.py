"""Core exceptions for instance move operations."""


class MoveInstanceError(Exception):
    """Base exception for instance move operations."""


class ConfigurationError(MoveInstanceError):
    """Configuration validation or loading failed."""


class RemoteExecutionError(MoveInstanceError):
    """A local or remote command could not be run or exited non-zero."""

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message)
        self.host = host
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class PreflightError(MoveInstanceError):
    """A pre-mutation check failed."""

    def __init__(self, cause, detail: str = ""):
        message = str(cause.value) if hasattr(cause, "value") else str(cause)
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.cause = cause
        self.detail = detail


class DescriptorUnavailable(MoveInstanceError):
    """The instance configuration could not be read or parsed."""


class UserDeclined(MoveInstanceError):
    """The operator did not approve the move."""


class SafetyError(MoveInstanceError):
    """Safety validation failed."""
