"""Resolve command - pick a side for one hunk or a whole file."""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import CliPositionalArg

from mergeflow.command.common import open_session, reports_errors
from mergeflow.conflict.errors import StrategyError
from mergeflow.conflict.model import Strategy
from mergeflow.core.log import logger


class ResolveCommand(BaseModel):
    """Resolve conflict hunks in a file with ours, theirs, base or both.

    Without --hunk and --all the first unresolved hunk is resolved.
    """

    path: CliPositionalArg[str] = Field(
        description="Conflicted file, relative to the working tree"
    )
    strategy: Strategy = Field(
        description=(
            "Side to keep: ours, theirs, base (diff3) or both; "
            "local and remote name ours and theirs"
        )
    )
    hunk: int = Field(
        default=1,
        ge=1,
        description="1-based hunk number within the file",
    )
    all: bool = Field(
        default=False,
        description="Resolve every hunk in the file with the strategy",
    )
    stage: bool = Field(
        default=False,
        description="Stage the file once no hunks remain",
    )

    @field_validator("strategy", mode="before")
    @classmethod
    def parse_strategy(cls, value):
        try:
            return Strategy.parse(value)
        except StrategyError as e:
            raise ValueError(str(e)) from e

    @reports_errors
    async def run_workflow(self, state: "State") -> int:
        session = await open_session(state)

        if self.all:
            conflict_file = await session.resolve_all(self.path, self.strategy)
        else:
            conflict_file = await session.resolve(
                self.path, self.hunk, self.strategy
            )

        logger.info(
            f"{self.path}: {conflict_file.remaining} hunk(s) remaining"
        )
        if self.stage and conflict_file.ready_to_stage:
            await session.stage(self.path)
        return 0
