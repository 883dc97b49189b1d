"""Continue and abort commands for the paused git operation."""

from pydantic import BaseModel

from mergeflow.command.common import open_session, reports_errors
from mergeflow.core.log import logger


class ContinueCommand(BaseModel):
    """Continue the merge, rebase, cherry-pick or revert once every
    conflicted file is staged."""

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)
        operation = await session.continue_operation()
        logger.info(f"{operation.value} continued")
        return 0


class AbortCommand(BaseModel):
    """Abort the merge, rebase, cherry-pick or revert in progress."""

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)
        operation = await session.abort_operation()
        logger.info(f"{operation.value} aborted")
        return 0
