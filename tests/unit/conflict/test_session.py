"""Tests for the caller-owned conflict session."""

import pytest

from mergeflow.conflict.errors import (
    NoConflictsError,
    NotFullyResolvedError,
    OperationError,
)
from mergeflow.conflict.model import Side
from mergeflow.conflict.session import ConflictSession
from mergeflow.git.backend import Operation


async def test_open_indexes_unmerged_paths(session):
    assert session.index.paths == ["a.txt", "b.txt"]
    assert [s.hunk_count for s in session.summary()] == [1, 2]


async def test_walk_resolve_and_continue(session, memory_backend):
    """Test resolving every hunk via navigation, staging everything,
    then continuing the merge."""
    while len(session.index):
        hunk = session.next()
        await session.resolve(hunk.file_path, hunk.index_in_file, "ours")

    results = await session.stage_all()

    assert all(r.staged for r in results.values())
    assert await session.continue_operation() is Operation.MERGE
    assert memory_backend.operation is None
    with pytest.raises(NoConflictsError):
        session.next()


async def test_continue_refuses_with_files_left(session, memory_backend):
    with pytest.raises(NotFullyResolvedError, match="not yet staged"):
        await session.continue_operation()

    assert memory_backend.operation is Operation.MERGE


async def test_continue_without_operation(make_backend):
    session = await ConflictSession.open(make_backend({}))

    with pytest.raises(OperationError):
        await session.continue_operation()


async def test_abort_clears_session(session, memory_backend):
    assert await session.abort_operation() is Operation.MERGE

    assert session.index.paths == []
    assert memory_backend.unmerged == []


async def test_next_after_staging_current_file(session):
    """Test the cursor on a file that was just staged moves on to the
    next file's hunk instead of failing."""
    cursor = session.next().cursor
    await session.resolve("a.txt", 1, "ours")
    await session.stage("a.txt")

    hunk = session.next(cursor)

    assert (hunk.file_path, hunk.index_in_file) == ("b.txt", 1)
    assert session.previous(cursor).index_in_file == 2


async def test_refresh_follows_backend(session, memory_backend):
    memory_backend.unmerged.remove("a.txt")

    await session.refresh()

    assert session.index.paths == ["b.txt"]


async def test_hunk_ranges(session):
    assert session.hunk_ranges("a.txt") == [(2, 6)]


async def test_show_version(make_backend):
    backend = make_backend(
        {"a.txt": "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> x\n"},
        versions={("a.txt", Side.BASE): "original\n"},
    )
    session = await ConflictSession.open(backend)

    assert await session.show_version("a.txt", "base") == ["original"]
