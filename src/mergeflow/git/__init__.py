"""Version-control backends."""

from mergeflow.git.backend import (
    DEFAULT_COMMANDS,
    GitBackend,
    Operation,
    VersionControlBackend,
)

__all__ = ["DEFAULT_COMMANDS", "GitBackend", "Operation", "VersionControlBackend"]
