"""Version-control backend: the capabilities the engine consumes,
and their implementation on top of the git command line."""

from __future__ import annotations

import asyncio
import contextlib
import os
import shlex
import shutil
import tempfile
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from mergeflow.conflict.errors import (
    FileReadError,
    OperationError,
    StrategyError,
    VersionControlError,
    WriteError,
)
from mergeflow.conflict.model import Side
from mergeflow.conflict.parser import split_lines
from mergeflow.core.log import logger
from mergeflow.core.runner import Runner


class Operation(str, Enum):
    """Merge-like git operations that leave unmerged paths behind."""

    MERGE = "merge"
    REBASE = "rebase"
    CHERRY_PICK = "cherry-pick"
    REVERT = "revert"


@runtime_checkable
class VersionControlBackend(Protocol):
    """Capabilities the conflict engine needs from version control.

    Every method is a coroutine: the call is issued, control returns
    to the event loop, and the result arrives on completion.
    """

    async def list_unmerged_paths(self) -> list[str]:
        ...

    async def read_file(self, path: str) -> list[str]:
        ...

    async def write_file(self, path: str, lines: Sequence[str]) -> None:
        ...

    async def stage_path(self, path: str) -> None:
        ...

    async def show_version(self, path: str, side: Side) -> list[str]:
        ...

    async def checkout(self, path: str, side: Side) -> None:
        ...

    async def active_operation(self) -> Operation | None:
        ...

    async def continue_operation(self) -> Operation:
        ...

    async def abort_operation(self) -> Operation:
        ...


# Used when no command templates are configured
DEFAULT_COMMANDS = {
    "list_unmerged": "git diff --name-only --diff-filter=U -z",
    "add_file": "git add -- {filepath}",
    "show_stage": "git show {object}",
    "checkout_side": "git checkout --{side} -- {filepath}",
    "git_dir": "git rev-parse --absolute-git-dir",
    "continue": "git {operation} --continue",
    "abort": "git {operation} --abort",
}

# State files git leaves in $GIT_DIR while an operation is paused,
# checked in this order
_OPERATION_MARKERS = (
    (Operation.REBASE, ("rebase-merge", "rebase-apply")),
    (Operation.MERGE, ("MERGE_HEAD",)),
    (Operation.CHERRY_PICK, ("CHERRY_PICK_HEAD",)),
    (Operation.REVERT, ("REVERT_HEAD",)),
)


class GitBackend:
    """VersionControlBackend backed by a git working tree.

    Git commands run through the invoke-based Runner in a worker
    thread. File content is read from and written to the working
    tree directly.
    """

    def __init__(
        self,
        workdir: Path,
        commands: dict[str, str] | None = None,
        runner: Runner | None = None,
        timeout: int = 60,
    ):
        """Initialize backend.

        Args:
            workdir: Git working tree root
            commands: Command templates keyed like DEFAULT_COMMANDS;
                missing keys fall back to the defaults
            runner: Command runner (a new Runner if omitted)
            timeout: Per-command timeout in seconds
        """
        self.workdir = Path(workdir)
        self.commands = {**DEFAULT_COMMANDS, **(commands or {})}
        self.runner = runner or Runner()
        self.timeout = timeout
        # git serializes on .git/index.lock; queue our own commands
        self._git_lock = asyncio.Lock()

    def _command(self, key: str, **fields: str) -> str:
        quoted = {name: shlex.quote(value) for name, value in fields.items()}
        return self.commands[key].format(**quoted)

    async def _git(
        self,
        key: str,
        action: str,
        env: dict[str, str] | None = None,
        **fields: str,
    ):
        cmd = self._command(key, **fields)
        async with self._git_lock:
            result = await asyncio.to_thread(
                self.runner.execute,
                cmd,
                cwd=self.workdir,
                timeout=self.timeout,
                check=False,
                env=env,
            )
        if result.exited != 0:
            raise VersionControlError(
                action,
                returncode=result.exited,
                output=f"{result.stdout}\n{result.stderr}",
            )
        return result

    def _resolve(self, path: str) -> Path:
        return self.workdir / path

    async def list_unmerged_paths(self) -> list[str]:
        """Paths git reports as unmerged, in git's order."""
        result = await self._git("list_unmerged", "diff --diff-filter=U")
        paths = [p for p in result.stdout.split("\0") if p.strip()]
        return list(dict.fromkeys(p.strip("\n") for p in paths))

    async def read_file(self, path: str) -> list[str]:
        """Read a working-tree file as lines.

        Raises:
            FileReadError: If the file is missing, unreadable, or
                binary (contains NUL bytes)
        """
        try:
            data = await asyncio.to_thread(self._resolve(path).read_bytes)
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e

        if b"\0" in data:
            raise FileReadError(
                path, "file appears to be binary and cannot be resolved"
            )
        return split_lines(data.decode("utf-8", errors="surrogateescape"))

    async def write_file(self, path: str, lines: Sequence[str]) -> None:
        """Replace a working-tree file atomically.

        Content goes to a temporary file in the same directory which
        is then renamed over the target, so readers never see a
        partial write.

        Raises:
            WriteError: If the file cannot be written
        """
        text = "".join(f"{line}\n" for line in lines)
        data = text.encode("utf-8", errors="surrogateescape")
        try:
            await asyncio.to_thread(self._atomic_write, self._resolve(path), data)
        except OSError as e:
            raise WriteError(path, e.strerror or str(e)) from e
        logger.debug("Wrote resolution", path=path, line_count=len(lines))

    @staticmethod
    def _atomic_write(target: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            if target.exists():
                shutil.copymode(target, tmp_name)
            os.replace(tmp_name, target)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise

    async def stage_path(self, path: str) -> None:
        """git add a resolved path.

        Raises:
            VersionControlError: If git add fails
        """
        await self._git("add_file", f"add -- {path}", filepath=path)
        logger.debug("Staged", path=path)

    async def show_version(self, path: str, side: Side) -> list[str]:
        """Content of one index stage of an unmerged path.

        Raises:
            VersionControlError: If that stage does not exist (e.g.
                no base for a file added on both sides)
        """
        side = Side(side)
        result = await self._git(
            "show_stage",
            f"show :{side.stage}:{path}",
            object=f":{side.stage}:{path}",
        )
        return split_lines(result.stdout)

    async def checkout(self, path: str, side: Side) -> None:
        """Replace a file with its ours/theirs version (markers gone).

        Raises:
            StrategyError: If side is BASE (git cannot check it out)
            VersionControlError: If git checkout fails
        """
        side = Side(side)
        if side is Side.BASE:
            raise StrategyError("git can only check out ours or theirs")
        await self._git(
            "checkout_side",
            f"checkout --{side.value} -- {path}",
            side=side.value,
            filepath=path,
        )

    async def active_operation(self) -> Operation | None:
        """Which merge-like operation is paused, if any."""
        result = await self._git("git_dir", "rev-parse --absolute-git-dir")
        git_dir = Path(result.stdout.strip())
        for operation, markers in _OPERATION_MARKERS:
            if any((git_dir / marker).exists() for marker in markers):
                return operation
        return None

    async def continue_operation(self) -> Operation:
        """Run '<operation> --continue' without opening an editor.

        Raises:
            OperationError: If no operation is in progress
            VersionControlError: If git refuses to continue
        """
        operation = await self._require_operation("continue")
        await self._git(
            "continue",
            f"{operation.value} --continue",
            env={"GIT_EDITOR": "true"},
            operation=operation.value,
        )
        logger.info(f"{operation.value} --continue completed")
        return operation

    async def abort_operation(self) -> Operation:
        """Run '<operation> --abort'.

        Raises:
            OperationError: If no operation is in progress
            VersionControlError: If git refuses to abort
        """
        operation = await self._require_operation("abort")
        await self._git(
            "abort",
            f"{operation.value} --abort",
            operation=operation.value,
        )
        logger.info(f"{operation.value} --abort completed")
        return operation

    async def _require_operation(self, verb: str) -> Operation:
        operation = await self.active_operation()
        if operation is None:
            raise OperationError(
                f"Nothing to {verb}: no merge, rebase, cherry-pick or "
                f"revert in progress"
            )
        return operation
