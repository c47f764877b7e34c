"""Error types for the notebook panel.

Session-level errors (SpawnError, SessionClosed) propagate to the panel,
which turns them into a visible status message. StreamReadError stays
local to the reader task that hit it.
"""

from typing import Optional, Sequence


class NotebookError(Exception):
    """Base class for notebook panel errors."""
    pass


class SpawnError(NotebookError):
    """The child process could not be launched.

    Raised when the executable is missing, not executable, or the
    working directory is invalid. The original OSError is chained as
    ``__cause__``.
    """

    def __init__(self, command: Sequence[str], reason: Optional[str] = None):
        self.command = list(command)
        self.reason = reason

        message = f"Failed to start {' '.join(self.command) or '<empty command>'}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SessionClosed(NotebookError):
    """An operation was attempted after the child process exited."""

    def __init__(self, message: str = "Session is closed", returncode: Optional[int] = None):
        self.returncode = returncode
        if returncode is not None:
            message = f"{message} (exit code {returncode})"
        super().__init__(message)


class StreamReadError(NotebookError):
    """Unexpected I/O failure while reading one of the process streams."""

    def __init__(self, stream_name: str, reason: str = ""):
        self.stream_name = stream_name
        self.reason = reason
        super().__init__(f"Error reading {stream_name}: {reason}" if reason else f"Error reading {stream_name}")
