"""Caller-owned conflict resolution session."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from mergeflow.conflict.errors import NotFullyResolvedError
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.locks import PathLocks
from mergeflow.conflict.model import (
    ConflictFile,
    ConflictMarkerHunk,
    Cursor,
    FileSummary,
    Side,
    Strategy,
)
from mergeflow.conflict.parser import DEFAULT_MARKER_SIZE
from mergeflow.conflict.resolver import ResolutionEngine
from mergeflow.conflict.staging import StageResult, StagingCoordinator
from mergeflow.core.log import logger

if TYPE_CHECKING:
    from mergeflow.git.backend import Operation, VersionControlBackend


class ConflictSession:
    """Index, resolver and stager wired to one backend.

    The session holds no module-level state; a host creates one with
    open() and threads it through every call. Hunks should be
    addressed by (path, ordinal) or by cursor, re-derived after each
    mutation.
    """

    def __init__(
        self,
        index: ConflictIndex,
        backend: VersionControlBackend,
        verify_before_write: bool = True,
    ):
        self.index = index
        self.backend = backend
        self.locks = PathLocks()
        self.resolver = ResolutionEngine(
            index, backend, self.locks, verify_before_write
        )
        self.stager = StagingCoordinator(index, backend, self.locks)

    @classmethod
    async def open(
        cls,
        backend: VersionControlBackend,
        marker_size: int = DEFAULT_MARKER_SIZE,
        verify_before_write: bool = True,
    ) -> ConflictSession:
        """Index every path the backend reports as unmerged.

        Raises:
            VersionControlError: If the unmerged paths cannot be listed
            FileReadError: If a conflicted file cannot be read
        """
        paths = await backend.list_unmerged_paths()
        index = await ConflictIndex.build(
            paths, backend.read_file, marker_size=marker_size
        )
        return cls(index, backend, verify_before_write=verify_before_write)

    async def refresh(self) -> ConflictSession:
        """Re-list unmerged paths and re-read every file."""
        paths = await self.backend.list_unmerged_paths()
        await self.index.sync(paths, self.backend.read_file)
        return self

    # Navigation

    def next(self, cursor: Cursor | None = None) -> ConflictMarkerHunk:
        return self.index.next(cursor)

    def previous(self, cursor: Cursor | None = None) -> ConflictMarkerHunk:
        return self.index.previous(cursor)

    def hunk_at(self, cursor: Cursor) -> ConflictMarkerHunk | None:
        return self.index.hunk_at(cursor)

    # Resolution

    async def resolve(
        self, path: str, hunk_index: int, strategy: Strategy | str
    ) -> ConflictFile:
        return await self.resolver.resolve(path, hunk_index, strategy)

    async def resolve_manual(
        self, path: str, hunk_index: int, lines: Sequence[str]
    ) -> ConflictFile:
        return await self.resolver.resolve_manual(path, hunk_index, lines)

    async def resolve_all(
        self, path: str, strategy: Strategy | str
    ) -> ConflictFile:
        return await self.resolver.resolve_all(path, strategy)

    async def take_side(self, path: str, side: Side | str) -> ConflictFile:
        return await self.resolver.take_side(path, side)

    # Staging

    async def stage(self, path: str) -> None:
        await self.stager.stage(path)

    async def stage_all(self) -> dict[str, StageResult]:
        return await self.stager.stage_all()

    # Presentation

    def summary(self) -> list[FileSummary]:
        return self.index.summary()

    def hunk_ranges(self, path: str) -> list[tuple[int, int]]:
        return self.index.hunk_ranges(path)

    async def show_version(self, path: str, side: Side | str) -> list[str]:
        """One side of an unmerged path as stored by git."""
        self.index.get(path)
        return await self.backend.show_version(path, Side(side))

    # Operation control

    async def active_operation(self) -> Operation | None:
        return await self.backend.active_operation()

    async def continue_operation(self) -> Operation:
        """Continue the paused merge-like operation.

        Refuses while any tracked file still needs resolving or
        staging.

        Raises:
            NotFullyResolvedError: If files remain in the session
            OperationError: If no operation is in progress
            VersionControlError: If git refuses to continue
        """
        if self.index.files:
            first = self.index.files[0]
            raise NotFullyResolvedError(
                first.path,
                first.remaining,
                f"{len(self.index.files)} conflicted file(s) not yet "
                f"staged, starting with '{first.path}'",
            )
        operation = await self.backend.continue_operation()
        logger.info(f"Continued {operation.value}")
        return operation

    async def abort_operation(self) -> Operation:
        """Abort the paused operation and close out the session."""
        operation = await self.backend.abort_operation()
        for path in self.index.paths:
            self.index.drop(path)
        logger.info(f"Aborted {operation.value}")
        return operation
