"""Status command - list conflicted files and their hunks."""

from pydantic import BaseModel

from mergeflow.command.common import open_session, reports_errors
from mergeflow.core.log import logger


class StatusCommand(BaseModel):
    """Show conflicted files, unresolved hunk counts and the merge-like
    operation in progress."""

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)
        operation = await session.active_operation()
        logger.info(
            f"Operation in progress: "
            f"{operation.value if operation else 'none'}"
        )

        summary = session.summary()
        if not summary:
            logger.info("No conflicted files")
            return 0

        for item in summary:
            if item.error:
                logger.warn(f"{item.path}: malformed markers ({item.error})")
            else:
                logger.info(f"{item.path}: {item.hunk_count} hunk(s)")
        logger.info(
            f"{len(summary)} file(s), {len(session.index)} hunk(s) unresolved"
        )
        return 0
