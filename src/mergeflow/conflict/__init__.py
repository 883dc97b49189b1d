"""Conflict marker parsing, indexing, resolution and staging."""

from mergeflow.conflict.errors import (
    ConflictError,
    FileReadError,
    HunkNotFoundError,
    MalformedConflictError,
    NoConflictsError,
    NotFullyResolvedError,
    OperationError,
    PathNotTrackedError,
    StrategyError,
    VersionControlError,
    WriteError,
)
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.model import (
    ConflictFile,
    ConflictMarkerHunk,
    Cursor,
    FileSummary,
    HunkRef,
    HunkState,
    Side,
    Strategy,
)
from mergeflow.conflict.parser import parse
from mergeflow.conflict.resolver import ResolutionEngine
from mergeflow.conflict.session import ConflictSession
from mergeflow.conflict.staging import (
    StageOutcome,
    StageResult,
    StagingCoordinator,
)

__all__ = [
    "ConflictError",
    "ConflictFile",
    "ConflictIndex",
    "ConflictMarkerHunk",
    "ConflictSession",
    "Cursor",
    "FileReadError",
    "FileSummary",
    "HunkNotFoundError",
    "HunkRef",
    "HunkState",
    "MalformedConflictError",
    "NoConflictsError",
    "NotFullyResolvedError",
    "OperationError",
    "PathNotTrackedError",
    "ResolutionEngine",
    "Side",
    "StageOutcome",
    "StageResult",
    "StagingCoordinator",
    "Strategy",
    "StrategyError",
    "VersionControlError",
    "WriteError",
    "parse",
]
