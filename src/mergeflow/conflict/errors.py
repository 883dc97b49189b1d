"""Exception types raised by the conflict resolution engine.

Every error derives from ConflictError so a host can catch the whole
family at its boundary. Errors that concern a single file carry its
path so multi-file operations can report precisely.
"""

from __future__ import annotations


class ConflictError(Exception):
    """Base class for all conflict engine errors."""


class MalformedConflictError(ConflictError):
    """Conflict markers in a file could not be paired up."""

    def __init__(self, message: str, path: str = "", line: int = 0):
        self.path = path
        self.line = line
        location = f"{path}:{line}" if path else f"line {line}"
        super().__init__(f"{location}: {message}")


class FileReadError(ConflictError):
    """Backend could not read a conflicted file."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not read '{path}': {reason}")


class WriteError(ConflictError):
    """Backend could not persist a resolution."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write '{path}': {reason}")


class HunkNotFoundError(ConflictError):
    """A (path, ordinal) reference no longer matches the index.

    Raised for references that went stale: the hunk was already
    resolved, or the file changed underneath the index. Callers
    re-derive the ordinal from a fresh index and retry.
    """

    def __init__(self, path: str, index_in_file: int | None, reason: str):
        self.path = path
        self.index_in_file = index_in_file
        self.reason = reason
        if index_in_file is None:
            super().__init__(f"{path}: {reason}")
        else:
            super().__init__(f"{path} hunk {index_in_file}: {reason}")


class PathNotTrackedError(HunkNotFoundError):
    """Path is not part of the current conflict session."""

    def __init__(self, path: str):
        super().__init__(path, None, "not tracked as conflicted")


class StrategyError(ConflictError):
    """Resolution strategy is invalid for the request."""


class NotFullyResolvedError(ConflictError):
    """Staging was requested for a file that still has conflicts."""

    def __init__(self, path: str, remaining: int, reason: str | None = None):
        self.path = path
        self.remaining = remaining
        super().__init__(
            reason
            or f"'{path}' still has {remaining} unresolved hunk(s)"
        )


class VersionControlError(ConflictError):
    """A git command exited with a failure status."""

    def __init__(
        self,
        action: str,
        returncode: int | None = None,
        output: str = "",
    ):
        self.action = action
        self.returncode = returncode
        self.output = output.strip()
        message = f"git {action} failed"
        if self.output:
            message = f"{message}: {self.output}"
        super().__init__(message)


class NoConflictsError(ConflictError):
    """Navigation was requested on an index with no hunks."""

    def __init__(self):
        super().__init__("No unresolved conflict hunks")


class OperationError(ConflictError):
    """Continue/abort requested with no merge-like operation active."""


__all__ = [
    "ConflictError",
    "FileReadError",
    "HunkNotFoundError",
    "MalformedConflictError",
    "NoConflictsError",
    "NotFullyResolvedError",
    "OperationError",
    "PathNotTrackedError",
    "StrategyError",
    "VersionControlError",
    "WriteError",
]
