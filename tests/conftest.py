"""Pytest configuration and fixtures for mergeflow tests."""

import sys
import tempfile
from pathlib import Path

import pytest

from mergeflow.conflict.errors import (
    FileReadError,
    OperationError,
    StrategyError,
    VersionControlError,
    WriteError,
)
from mergeflow.conflict.model import Side
from mergeflow.conflict.parser import split_lines
from mergeflow.conflict.session import ConflictSession
from mergeflow.core.log import ConsoleSink, setup_logger
from mergeflow.git.backend import Operation


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Console-only debug logging, nothing sent to logfire.dev."""
    test_log_root = Path(tempfile.gettempdir()) / "mergeflow-tests"
    setup_logger(
        log_root=test_log_root,
        session_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(scope="session")
def test_config():
    """Config loaded from package defaults, with pytest's own
    arguments hidden from the CLI parser."""
    from mergeflow.core.config import State

    old_argv = sys.argv
    sys.argv = ['mergeflow']
    try:
        state = State()
        return state.config
    finally:
        sys.argv = old_argv


class MemoryBackend:
    """VersionControlBackend over a dict of file texts.

    Records every call in ``calls`` and can be told to fail writes or
    staging for chosen paths.
    """

    def __init__(self, files=None, versions=None, operation=None):
        self.files = {path: split_lines(text) for path, text in (files or {}).items()}
        self.unmerged = list(self.files)
        self.versions = versions or {}
        self.operation = operation
        self.staged = []
        self.calls = []
        self.fail_write = set()
        self.fail_stage = set()

    async def list_unmerged_paths(self):
        self.calls.append(("list",))
        return list(self.unmerged)

    async def read_file(self, path):
        self.calls.append(("read", path))
        if path not in self.files:
            raise FileReadError(path, "No such file or directory")
        return list(self.files[path])

    async def write_file(self, path, lines):
        self.calls.append(("write", path))
        if path in self.fail_write:
            raise WriteError(path, "Permission denied")
        self.files[path] = list(lines)

    async def stage_path(self, path):
        self.calls.append(("stage", path))
        if path in self.fail_stage:
            raise VersionControlError(
                f"add -- {path}", returncode=128, output="index.lock exists"
            )
        self.staged.append(path)
        if path in self.unmerged:
            self.unmerged.remove(path)

    async def show_version(self, path, side):
        return split_lines(self.versions[(path, Side(side))])

    async def checkout(self, path, side):
        side = Side(side)
        if side is Side.BASE:
            raise StrategyError("git can only check out ours or theirs")
        self.files[path] = split_lines(self.versions[(path, side)])

    async def active_operation(self):
        return self.operation

    async def continue_operation(self):
        if self.operation is None:
            raise OperationError("Nothing to continue")
        operation, self.operation = self.operation, None
        return operation

    async def abort_operation(self):
        if self.operation is None:
            raise OperationError("Nothing to abort")
        operation, self.operation = self.operation, None
        self.unmerged.clear()
        return operation

    def text(self, path):
        return "".join(f"{line}\n" for line in self.files[path])


SIMPLE_CONFLICT = """line0
<<<<<<< HEAD
main shared
=======
topic shared
>>>>>>> topic
line1
"""

TWO_HUNKS = """header
<<<<<<< HEAD
ours one
=======
theirs one
theirs one again
>>>>>>> topic
middle
<<<<<<< HEAD
ours two
=======
theirs two
>>>>>>> topic
footer
"""

@pytest.fixture
def memory_backend():
    return MemoryBackend(
        {"a.txt": SIMPLE_CONFLICT, "b.txt": TWO_HUNKS},
        operation=Operation.MERGE,
    )


@pytest.fixture
async def session(memory_backend):
    return await ConflictSession.open(memory_backend)


@pytest.fixture
def make_backend():
    """Factory for MemoryBackend instances with custom files."""
    return MemoryBackend
