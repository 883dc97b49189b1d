"""Stage command - git add files whose conflicts are resolved."""

from pydantic import BaseModel, Field
from pydantic_settings import CliPositionalArg

from mergeflow.command.common import open_session, reports_errors
from mergeflow.conflict.staging import StageOutcome
from mergeflow.core.log import logger


class StageCommand(BaseModel):
    """Stage one resolved file, or every resolved file with --all.

    Files that still contain conflicts are skipped and reported.
    """

    path: CliPositionalArg[str | None] = Field(
        default=None,
        description="File to stage (default: all resolved files)",
    )
    all: bool = Field(
        default=False,
        description="Stage every fully resolved file",
    )

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)

        if self.path and not self.all:
            await session.stage(self.path)
            return 0

        results = await session.stage_all()
        exit_code = 0
        for path, result in results.items():
            if result.outcome is StageOutcome.STAGED:
                logger.info(f"staged {path}")
            elif result.outcome is StageOutcome.SKIPPED_UNRESOLVED:
                logger.warn(f"skipped {path}: {result.detail}")
            else:
                logger.error(f"failed {path}: {result.detail}")
                exit_code = 1
        return exit_code
