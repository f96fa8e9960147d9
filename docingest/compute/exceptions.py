class ComputeError(Exception):
    """Base exception for compute session errors."""


class ComputeUnavailableError(ComputeError):
    """Raised when the workspace has no usable compute capability."""


class SessionFailedError(ComputeError):
    """Raised when a session reaches a terminal failure state."""


class SessionTimeoutError(ComputeError):
    """Raised when a session does not become idle in time."""


class StatementFailedError(ComputeError):
    """Raised when a statement ends in error or is cancelled."""


class StatementTimeoutError(ComputeError):
    """Raised when a statement does not complete in time."""
