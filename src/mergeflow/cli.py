#!/usr/bin/env python3
"""mergeflow CLI - resolve git merge conflicts hunk by hunk."""

import asyncio
import sys

from pydantic import Field
from pydantic_settings import CliApp, CliSubCommand, get_subcommand

from mergeflow.command import (
    AbortCommand,
    ContinueCommand,
    ResolveCommand,
    ShowCommand,
    StageCommand,
    StatusCommand,
)
from mergeflow.core.config import State
from mergeflow.core.log import logger


class CliState(State):
    """Resolve the conflicts of a paused git merge, rebase, cherry-pick
    or revert, one hunk at a time.

    Configuration sources (in priority order):
    1. Command-line arguments (--config.git.workdir PATH)
    2. mergeflow.yaml in the current directory, then the user
       config directory, then package defaults
    3. .env file
    4. Environment variables
       (MERGEFLOW_CONFIG__CONFLICT__MARKER_SIZE=7)
    """

    status: CliSubCommand[StatusCommand]
    show: CliSubCommand[ShowCommand]
    resolve: CliSubCommand[ResolveCommand]
    stage: CliSubCommand[StageCommand]
    continue_: CliSubCommand[ContinueCommand] = Field(alias="continue")
    abort: CliSubCommand[AbortCommand]

    def cli_cmd(self):
        """Dispatch to the chosen subcommand, or show help."""
        subcommand = get_subcommand(self, is_required=False)

        if subcommand is None:
            CliApp.run(CliState, cli_args=['--help'])
            sys.exit(1)

        # Closing the logger on exit flushes file and OTLP sinks
        with logger:
            exit_code = asyncio.run(subcommand.run_workflow(self))
            raise SystemExit(exit_code)


def main():
    """Main entry point for CLI."""
    CliApp.run(CliState)


if __name__ == "__main__":
    main()
