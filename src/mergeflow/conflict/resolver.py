"""Apply resolutions to conflict hunks and write them through."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from mergeflow.conflict.errors import (
    HunkNotFoundError,
    MalformedConflictError,
    StrategyError,
)
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.locks import PathLocks
from mergeflow.conflict.model import (
    ConflictFile,
    ConflictMarkerHunk,
    HunkState,
    Side,
    Strategy,
)
from mergeflow.conflict.parser import parse
from mergeflow.core.log import logger

if TYPE_CHECKING:
    from mergeflow.git.backend import VersionControlBackend


def splice(
    lines: Sequence[str],
    hunk: ConflictMarkerHunk,
    replacement: Sequence[str],
) -> list[str]:
    """Replace the inclusive range [start_line, end_line] of a hunk."""
    return (
        list(lines[:hunk.start_line - 1])
        + list(replacement)
        + list(lines[hunk.end_line:])
    )


class ResolutionEngine:
    """Rewrites conflicted files one resolution at a time.

    Every call locates its hunk against the current index, writes the
    whole file through the backend, then re-parses the file so the
    remaining hunks get fresh line numbers and ordinals.
    """

    def __init__(
        self,
        index: ConflictIndex,
        backend: VersionControlBackend,
        locks: PathLocks | None = None,
        verify_before_write: bool = True,
    ):
        self.index = index
        self.backend = backend
        self.locks = locks or PathLocks()
        self.verify_before_write = verify_before_write

    async def resolve(
        self, path: str, hunk_index: int, strategy: Strategy | str
    ) -> ConflictFile:
        """Resolve one hunk by keeping the side strategy selects.

        Args:
            path: Conflicted file
            hunk_index: 1-based ordinal of the hunk in its file, as
                currently indexed
            strategy: Strategy or token ('ours', 'theirs', 'base',
                'both', 'local', 'remote')

        Returns:
            The refreshed ConflictFile

        Raises:
            StrategyError: Unknown strategy, or 'base' on a hunk
                without a diff3 section
            HunkNotFoundError: Stale reference
            WriteError: The file could not be written; the index is
                unchanged
        """
        strategy = Strategy.parse(strategy)
        async with self.locks(path):
            with logger.span(
                "Resolving hunk",
                path=path,
                hunk=hunk_index,
                strategy=strategy.value,
            ):
                hunk = self.index.find_hunk(path, hunk_index)
                replacement = hunk.lines_for(strategy)
                conflict_file = await self._current(path, hunk_index)
                lines = splice(conflict_file.lines, hunk, replacement)
                return await self._commit(
                    conflict_file,
                    lines,
                    [(hunk, HunkState.for_strategy(strategy))],
                )

    async def resolve_manual(
        self, path: str, hunk_index: int, lines: Sequence[str]
    ) -> ConflictFile:
        """Replace a hunk with hand-edited content.

        Raises:
            StrategyError: If the replacement opens or closes a
                conflict. A bare divider or base marker line is content.
            HunkNotFoundError: Stale reference
        """
        replacement = list(lines)
        try:
            leftover = parse(replacement, path, self.index.marker_size)
        except MalformedConflictError as e:
            raise StrategyError(
                f"Manual resolution contains conflict markers: {e}"
            ) from e
        if leftover:
            raise StrategyError(
                "Manual resolution still contains conflict markers"
            )

        async with self.locks(path):
            with logger.span(
                "Resolving hunk manually",
                path=path,
                hunk=hunk_index,
                line_count=len(replacement),
            ):
                hunk = self.index.find_hunk(path, hunk_index)
                conflict_file = await self._current(path, hunk_index)
                new_lines = splice(conflict_file.lines, hunk, replacement)
                return await self._commit(
                    conflict_file,
                    new_lines,
                    [(hunk, HunkState.RESOLVED_MANUAL)],
                )

    async def resolve_all(
        self, path: str, strategy: Strategy | str
    ) -> ConflictFile:
        """Resolve every hunk of a file with one strategy.

        Hunks are spliced bottom-up so earlier line numbers stay
        valid, and the file is written once.

        Raises:
            StrategyError: As for resolve(); nothing is written if any
                hunk rejects the strategy
            HunkNotFoundError: If the file has no unresolved hunks
        """
        strategy = Strategy.parse(strategy)
        async with self.locks(path):
            with logger.span(
                "Resolving all hunks",
                path=path,
                strategy=strategy.value,
            ):
                conflict_file = await self._current(path, None)
                hunks = list(conflict_file.hunks)
                if not hunks:
                    raise HunkNotFoundError(
                        path, None, "no unresolved hunks"
                    )

                lines = list(conflict_file.lines)
                for hunk in reversed(hunks):
                    lines = splice(lines, hunk, hunk.lines_for(strategy))

                state = HunkState.for_strategy(strategy)
                return await self._commit(
                    conflict_file, lines, [(h, state) for h in hunks]
                )

    async def take_side(self, path: str, side: Side | str) -> ConflictFile:
        """Replace the whole file with the ours or theirs version.

        Raises:
            StrategyError: If side is base
            VersionControlError: If git cannot check the side out
        """
        try:
            side = Side(side)
        except ValueError:
            raise StrategyError(f"Unknown side '{side}'") from None
        if side is Side.BASE:
            raise StrategyError("Only ours or theirs can replace a whole file")

        async with self.locks(path):
            with logger.span("Taking side", path=path, side=side.value):
                conflict_file = self.index.get(path)
                hunks = list(conflict_file.hunks)
                await self.backend.checkout(path, side)
                state = HunkState.for_strategy(Strategy(side.value))
                for hunk in hunks:
                    hunk.state = state
                conflict_file.resolved.extend(hunks)
                refreshed = await self.index.refresh_file(
                    path, self.backend.read_file
                )
                logger.info(
                    f"Took {side.value} for whole file",
                    path=path,
                    hunk_count=len(hunks),
                )
                return refreshed

    async def _current(
        self, path: str, hunk_index: int | None
    ) -> ConflictFile:
        """The indexed file, checked against disk when verifying.

        Raises:
            HunkNotFoundError: If the file changed on disk since it
                was indexed; the index is refreshed first so the
                caller can re-derive its reference
        """
        conflict_file = self.index.get(path)
        if not self.verify_before_write:
            return conflict_file

        on_disk = await self.backend.read_file(path)
        if on_disk != conflict_file.lines:
            await self.index.refresh_file(path, self.backend.read_file)
            logger.warn("File changed since it was indexed", path=path)
            raise HunkNotFoundError(
                path, hunk_index, "file was modified outside the session"
            )
        return conflict_file

    async def _commit(
        self,
        conflict_file: ConflictFile,
        lines: list[str],
        resolved: list[tuple[ConflictMarkerHunk, HunkState]],
    ) -> ConflictFile:
        path = conflict_file.path
        await self.backend.write_file(path, lines)

        for hunk, state in resolved:
            hunk.state = state
            conflict_file.resolved.append(hunk)
            logger.debug(
                "Hunk resolved",
                path=path,
                hunk=hunk.index_in_file,
                state=state.value,
            )

        refreshed = await self.index.refresh_file(path, self.backend.read_file)
        logger.info(
            f"Resolved {len(resolved)} hunk(s), "
            f"{refreshed.remaining} remaining",
            path=path,
        )
        return refreshed
