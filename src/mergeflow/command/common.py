"""Helpers shared by CLI commands."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import TYPE_CHECKING

from mergeflow.conflict.errors import ConflictError
from mergeflow.conflict.session import ConflictSession
from mergeflow.core.log import logger
from mergeflow.git.backend import GitBackend

if TYPE_CHECKING:
    from mergeflow.core.config import State


async def open_session(state: State) -> ConflictSession:
    """Open a session on the configured working tree and keep it on
    state.runtime.session."""
    git = state.config.git
    backend = GitBackend(
        workdir=git.workdir,
        commands=git.commands,
        timeout=git.timeout,
    )
    session = await ConflictSession.open(
        backend,
        marker_size=state.config.conflict.marker_size,
        verify_before_write=state.config.conflict.verify_before_write,
    )
    state.runtime.session.session = session
    return session


def reports_errors(
    func: Callable[..., Awaitable[int]]
) -> Callable[..., Awaitable[int]]:
    """Turn a ConflictError from a command into a logged exit code 1."""

    @wraps(func)
    async def wrapper(self, state: State) -> int:
        state.runtime.session.status = "running"
        try:
            exit_code = await func(self, state)
        except ConflictError as e:
            logger.error(str(e), error_type=type(e).__name__)
            state.runtime.session.status = "failed"
            return 1
        state.runtime.session.status = "complete" if exit_code == 0 else "failed"
        return exit_code

    return wrapper
