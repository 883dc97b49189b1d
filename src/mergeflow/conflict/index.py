"""Session-wide index of conflicted files and their hunks."""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Iterable

from mergeflow.conflict.errors import (
    FileReadError,
    HunkNotFoundError,
    NoConflictsError,
    PathNotTrackedError,
)
from mergeflow.conflict.model import (
    ConflictFile,
    ConflictMarkerHunk,
    Cursor,
    FileSummary,
)
from mergeflow.conflict.parser import DEFAULT_MARKER_SIZE
from mergeflow.core.log import logger

FileReader = Callable[[str], Awaitable[list[str]]]


async def _read(path: str, file_reader: FileReader) -> list[str]:
    """Read through file_reader, normalizing failures to
    FileReadError."""
    try:
        return list(await file_reader(path))
    except FileReadError:
        raise
    except (OSError, UnicodeDecodeError) as e:
        raise FileReadError(path, str(e)) from e


class ConflictIndex:
    """All conflicted files of a session, in backend order.

    ``flat_hunks`` concatenates every file's hunks (file order, then
    hunk order) and is what navigation walks. It is rebuilt whenever
    any file's hunks change. Callers should hold HunkRefs or cursors
    rather than hunk objects, since re-parsing replaces them.
    """

    def __init__(
        self,
        files: Iterable[ConflictFile] = (),
        marker_size: int = DEFAULT_MARKER_SIZE,
    ):
        self.marker_size = marker_size
        self.files: list[ConflictFile] = list(files)
        self.flat_hunks: tuple[ConflictMarkerHunk, ...] = ()
        self._by_path: dict[str, ConflictFile] = {}
        self._order: dict[str, int] = {}
        # Paths that left the session, mapped to the file that preceded
        # them at the time (None if they were first)
        self._departed: dict[str, str | None] = {}
        self._rebuild()

    @classmethod
    async def build(
        cls,
        unmerged_paths: Iterable[str],
        file_reader: FileReader,
        marker_size: int = DEFAULT_MARKER_SIZE,
    ) -> ConflictIndex:
        """Read and parse every unmerged path.

        Malformed markers are recorded on the file and do not stop
        the build; any read failure does.

        Raises:
            FileReadError: If any path cannot be read
        """
        paths = list(dict.fromkeys(unmerged_paths))
        with logger.span("Building conflict index", file_count=len(paths)):
            files = []
            for path in paths:
                conflict_file = ConflictFile(path=path)
                conflict_file.reparse(
                    await _read(path, file_reader), marker_size
                )
                if conflict_file.error:
                    logger.warn(
                        "Unparseable conflict markers",
                        path=path,
                        error=str(conflict_file.error),
                    )
                files.append(conflict_file)

            index = cls(files, marker_size=marker_size)
            logger.info(
                f"Indexed {len(index)} hunk(s) in {len(files)} file(s)"
            )
            return index

    def _rebuild(self) -> None:
        self._by_path = {f.path: f for f in self.files}
        self._order = {f.path: i for i, f in enumerate(self.files)}
        self.flat_hunks = tuple(
            hunk for f in self.files for hunk in f.hunks
        )

    def __len__(self) -> int:
        return len(self.flat_hunks)

    def __contains__(self, path: object) -> bool:
        return path in self._by_path

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def get(self, path: str) -> ConflictFile:
        """Return the tracked file for path.

        Raises:
            PathNotTrackedError: If path is not in the session
        """
        try:
            return self._by_path[path]
        except KeyError:
            raise PathNotTrackedError(path) from None

    def find_hunk(self, path: str, index_in_file: int) -> ConflictMarkerHunk:
        """Resolve a (path, ordinal) reference against current state.

        Raises:
            HunkNotFoundError: If the file is untracked or has no
                hunk with that ordinal
        """
        conflict_file = self.get(path)
        hunk = conflict_file.hunk(index_in_file)
        if hunk is None:
            raise HunkNotFoundError(
                path,
                index_in_file,
                f"file has {conflict_file.remaining} unresolved hunk(s)",
            )
        return hunk

    def remaining_count(self, path: str) -> int:
        """Number of unresolved hunks indexed for path."""
        return self.get(path).remaining

    # Navigation

    def _position(self, cursor: Cursor) -> tuple[int, float]:
        if cursor.path is None:
            return (-1, cursor.line)
        if cursor.path in self._order:
            return (self._order[cursor.path], cursor.line)
        if cursor.path not in self._departed:
            raise PathNotTrackedError(cursor.path)

        # A departed file sits right after its predecessor, following
        # the chain when the predecessor departed too
        predecessor = self._departed[cursor.path]
        while predecessor is not None and predecessor not in self._order:
            predecessor = self._departed.get(predecessor)
        if predecessor is None:
            return (-1, math.inf)
        return (self._order[predecessor], math.inf)

    def _hunk_position(self, hunk: ConflictMarkerHunk) -> tuple[int, int]:
        return (self._order[hunk.file_path], hunk.start_line)

    def next(self, cursor: Cursor | None = None) -> ConflictMarkerHunk:
        """First hunk strictly after cursor, wrapping to the first.

        Raises:
            NoConflictsError: If no hunks are indexed
        """
        if not self.flat_hunks:
            raise NoConflictsError()
        position = self._position(cursor or Cursor())
        for hunk in self.flat_hunks:
            if self._hunk_position(hunk) > position:
                return hunk
        return self.flat_hunks[0]

    def previous(self, cursor: Cursor | None = None) -> ConflictMarkerHunk:
        """Last hunk strictly before cursor, wrapping to the last.

        Raises:
            NoConflictsError: If no hunks are indexed
        """
        if not self.flat_hunks:
            raise NoConflictsError()
        position = self._position(cursor or Cursor())
        for hunk in reversed(self.flat_hunks):
            if self._hunk_position(hunk) < position:
                return hunk
        return self.flat_hunks[-1]

    def hunk_at(self, cursor: Cursor) -> ConflictMarkerHunk | None:
        """Hunk a cursor line refers to within its file.

        The hunk containing the line, else the next hunk below it,
        else the file's last hunk. None if the file has no hunks.
        """
        if cursor.path is None:
            return None
        hunks = self.get(cursor.path).hunks
        for hunk in hunks:
            if hunk.contains_line(cursor.line):
                return hunk
        for hunk in hunks:
            if cursor.line < hunk.start_line:
                return hunk
        return hunks[-1] if hunks else None

    # Mutation

    async def refresh_file(
        self, path: str, file_reader: FileReader
    ) -> ConflictFile:
        """Re-read and re-parse one file, then rebuild flat_hunks.

        A file that parses to zero hunks stays tracked so it can be
        staged. On read failure the index is left untouched.
        """
        conflict_file = self.get(path)
        lines = await _read(path, file_reader)
        conflict_file.reparse(lines, self.marker_size)
        self._rebuild()
        logger.debug(
            "Refreshed conflicted file",
            path=path,
            remaining=conflict_file.remaining,
            malformed=conflict_file.error is not None,
        )
        return conflict_file

    async def sync(
        self, unmerged_paths: Iterable[str], file_reader: FileReader
    ) -> ConflictIndex:
        """Bring the index in line with a fresh unmerged-path list.

        Paths no longer reported are dropped, new paths are added,
        and every remaining file is re-read. All reads happen before
        anything changes, so a read failure leaves the index as it
        was.
        """
        paths = list(dict.fromkeys(unmerged_paths))
        with logger.span("Refreshing conflict index", file_count=len(paths)):
            loaded = {path: await _read(path, file_reader) for path in paths}

            files = []
            for path in paths:
                conflict_file = self._by_path.get(path) or ConflictFile(path)
                conflict_file.reparse(loaded[path], self.marker_size)
                files.append(conflict_file)

            predecessor = None
            for conflict_file in self.files:
                if conflict_file.path in loaded:
                    predecessor = conflict_file.path
                else:
                    self._departed[conflict_file.path] = predecessor
                    logger.info(
                        "No longer unmerged, dropping", path=conflict_file.path
                    )
            for path in paths:
                self._departed.pop(path, None)

            self.files = files
            self._rebuild()
        return self

    def drop(self, path: str) -> ConflictFile:
        """Remove a file from the session (after staging)."""
        conflict_file = self.get(path)
        position = self._order[path]
        self._departed[path] = (
            self.files[position - 1].path if position else None
        )
        self.files.remove(conflict_file)
        self._rebuild()
        return conflict_file

    # Read-only projection for hosts

    def summary(self) -> list[FileSummary]:
        return [
            FileSummary(
                path=f.path,
                hunk_count=f.remaining,
                resolved_count=len(f.resolved),
                error=str(f.error) if f.error else None,
            )
            for f in self.files
        ]

    def hunk_ranges(self, path: str) -> list[tuple[int, int]]:
        """(start_line, end_line) of each unresolved hunk in path."""
        return [(h.start_line, h.end_line) for h in self.get(path).hunks]
