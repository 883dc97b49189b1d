"""CLI command modules for mergeflow."""

from mergeflow.command.operation import AbortCommand, ContinueCommand
from mergeflow.command.resolve import ResolveCommand
from mergeflow.command.show import ShowCommand
from mergeflow.command.stage import StageCommand
from mergeflow.command.status import StatusCommand

__all__ = [
    "AbortCommand",
    "ContinueCommand",
    "ResolveCommand",
    "ShowCommand",
    "StageCommand",
    "StatusCommand",
]
