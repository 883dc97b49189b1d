"""Show command - line ranges of a file's conflict hunks."""

from pydantic import BaseModel, Field
from pydantic_settings import CliPositionalArg

from mergeflow.command.common import open_session, reports_errors
from mergeflow.conflict.model import Side
from mergeflow.core.log import logger


class ShowCommand(BaseModel):
    """Show where each unresolved hunk of a file sits, or print one
    side of the file as git stored it."""

    path: CliPositionalArg[str] = Field(
        description="Conflicted file, relative to the working tree"
    )
    side: Side | None = Field(
        default=None,
        description="Print the base, ours or theirs version instead",
    )

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)

        if self.side is not None:
            for line in await session.show_version(self.path, self.side):
                print(line)
            return 0

        conflict_file = session.index.get(self.path)
        if conflict_file.error:
            logger.warn(f"{self.path}: {conflict_file.error}")
            return 1

        for hunk in conflict_file.hunks:
            base = (
                f", base at {hunk.base_divider_line}" if hunk.has_base else ""
            )
            logger.info(
                f"hunk {hunk.index_in_file}: lines "
                f"{hunk.start_line}-{hunk.end_line} "
                f"(divider at {hunk.divider_line}{base}) "
                f"{hunk.ours_label or 'ours'} vs "
                f"{hunk.theirs_label or 'theirs'}"
            )
        return 0
