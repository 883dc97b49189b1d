"""Stage fully resolved files through the version-control backend."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from mergeflow.conflict.errors import ConflictError, NotFullyResolvedError
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.locks import PathLocks
from mergeflow.core.log import logger

if TYPE_CHECKING:
    from mergeflow.git.backend import VersionControlBackend


class StageOutcome(str, Enum):
    STAGED = "staged"
    SKIPPED_UNRESOLVED = "skipped_unresolved"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class StageResult:
    """What happened to one path during stage_all()."""

    path: str
    outcome: StageOutcome
    detail: str = ""

    @property
    def staged(self) -> bool:
        return self.outcome is StageOutcome.STAGED


class StagingCoordinator:
    """Marks resolved files as ready to commit.

    Shares its PathLocks with the ResolutionEngine so a file is never
    staged while a resolution on it is still being written.
    """

    def __init__(
        self,
        index: ConflictIndex,
        backend: VersionControlBackend,
        locks: PathLocks | None = None,
    ):
        self.index = index
        self.backend = backend
        self.locks = locks or PathLocks()

    async def stage(self, path: str) -> None:
        """Stage path and remove it from the session.

        Raises:
            PathNotTrackedError: If path is not part of the session
            NotFullyResolvedError: If hunks remain or the file's
                markers could not be parsed
            VersionControlError: If the backend refuses; the file
                stays tracked
        """
        async with self.locks(path):
            conflict_file = self.index.get(path)
            if conflict_file.error is not None:
                raise NotFullyResolvedError(
                    path,
                    conflict_file.remaining,
                    f"'{path}' has malformed conflict markers: "
                    f"{conflict_file.error}",
                )
            if conflict_file.remaining:
                raise NotFullyResolvedError(path, conflict_file.remaining)

            await self.backend.stage_path(path)
            self.index.drop(path)
        self.locks.discard(path)
        logger.info("Staged resolved file", path=path)

    async def stage_all(self) -> dict[str, StageResult]:
        """Stage every tracked file that is fully resolved.

        Files are handled independently and concurrently; unresolved
        or malformed files are skipped, and any other failure on one
        path is reported as backend_error without affecting the rest.

        Returns:
            One StageResult per path, in index order
        """
        paths = self.index.paths
        with logger.span("Staging all files", file_count=len(paths)):
            results = await asyncio.gather(
                *(self._stage_one(path) for path in paths)
            )
            staged = sum(1 for r in results if r.staged)
            logger.info(f"Staged {staged} of {len(paths)} file(s)")
            return {result.path: result for result in results}

    async def _stage_one(self, path: str) -> StageResult:
        try:
            await self.stage(path)
        except NotFullyResolvedError as e:
            logger.debug("Skipping unresolved file", path=path)
            return StageResult(path, StageOutcome.SKIPPED_UNRESOLVED, str(e))
        except ConflictError as e:
            logger.error("Staging failed", path=path, error=str(e))
            return StageResult(path, StageOutcome.BACKEND_ERROR, str(e))
        return StageResult(path, StageOutcome.STAGED)
