"""Tests for the conflict index: building, navigation, refresh."""

import pytest

from mergeflow.conflict.errors import (
    FileReadError,
    HunkNotFoundError,
    NoConflictsError,
    PathNotTrackedError,
)
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.model import Cursor

TWO_HUNKS = """header
<<<<<<< HEAD
ours one
=======
theirs one
>>>>>>> topic
middle
<<<<<<< HEAD
ours two
=======
theirs two
>>>>>>> topic
footer
"""

ONE_HUNK = "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> x\n"

MALFORMED = "<<<<<<< HEAD\nfoo\n<<<<<<< HEAD\nbar\n=======\nbaz\n>>>>>>> x\n"


@pytest.fixture
def backend(make_backend):
    return make_backend({
        "one.txt": ONE_HUNK,
        "two.txt": TWO_HUNKS,
        "bad.txt": MALFORMED,
    })


@pytest.fixture
async def index(backend):
    return await ConflictIndex.build(backend.unmerged, backend.read_file)


async def test_build_keeps_backend_order(index):
    """Test files and flat hunks follow the unmerged path order."""
    assert index.paths == ["one.txt", "two.txt", "bad.txt"]
    assert [(h.file_path, h.index_in_file) for h in index.flat_hunks] == [
        ("one.txt", 1),
        ("two.txt", 1),
        ("two.txt", 2),
    ]
    assert len(index) == 3


async def test_malformed_file_is_tracked_without_hunks(index):
    """Test a malformed file records its error and contributes no
    hunks, without stopping the other files."""
    bad = index.get("bad.txt")

    assert bad.error is not None
    assert bad.hunks == []
    assert index.remaining_count("two.txt") == 2


async def test_build_fails_on_unreadable_file(make_backend):
    """Test a read failure aborts the build."""
    backend = make_backend({"a.txt": ONE_HUNK})

    with pytest.raises(FileReadError):
        await ConflictIndex.build(
            ["a.txt", "missing.txt"], backend.read_file
        )


async def test_build_deduplicates_paths(backend):
    index = await ConflictIndex.build(
        ["one.txt", "one.txt"], backend.read_file
    )
    assert index.paths == ["one.txt"]


async def test_find_hunk_and_stale_ordinal(index):
    """Test ordinals resolve against the current state only."""
    assert index.find_hunk("two.txt", 2).ours_lines == ["ours two"]

    with pytest.raises(HunkNotFoundError):
        index.find_hunk("two.txt", 3)
    with pytest.raises(PathNotTrackedError):
        index.find_hunk("nope.txt", 1)


async def test_next_visits_in_order_and_wraps(make_backend):
    """Test next from the initial cursor visits hunk 1, hunk 2, then
    wraps back to hunk 1."""
    backend = make_backend({"two.txt": TWO_HUNKS})
    index = await ConflictIndex.build(backend.unmerged, backend.read_file)

    first = index.next()
    second = index.next(first.cursor)
    third = index.next(second.cursor)

    assert first.index_in_file == 1
    assert second.index_in_file == 2
    assert third.index_in_file == 1


async def test_previous_wraps_to_last(index):
    first = index.flat_hunks[0]
    assert index.previous(first.cursor) is index.flat_hunks[-1]
    assert index.previous() is index.flat_hunks[-1]


async def test_next_and_previous_are_inverse(index):
    """Test previous(next(p)) == p away from the wrap boundary."""
    middle = index.flat_hunks[1]

    assert index.previous(index.next(middle.cursor).cursor) is middle
    assert index.next(index.previous(middle.cursor).cursor) is middle


async def test_next_crosses_files(index):
    """Test navigation moves from one file's last hunk to the next
    file's first."""
    assert index.next(Cursor("one.txt", 100)).file_path == "two.txt"
    assert index.next(Cursor("two.txt", 3)).index_in_file == 2


async def test_navigation_on_empty_index():
    index = ConflictIndex()

    with pytest.raises(NoConflictsError):
        index.next()
    with pytest.raises(NoConflictsError):
        index.previous()


async def test_hunk_at_cursor(index):
    """Test hunk_at picks the containing hunk, else the next below,
    else the last."""
    assert index.hunk_at(Cursor("two.txt", 3)).index_in_file == 1
    assert index.hunk_at(Cursor("two.txt", 7)).index_in_file == 2
    assert index.hunk_at(Cursor("two.txt", 13)).index_in_file == 2
    assert index.hunk_at(Cursor("bad.txt", 1)) is None
    assert index.hunk_at(Cursor()) is None


async def test_refresh_file_reparses(index, backend):
    """Test refresh picks up new content and renumbers hunks."""
    backend.files["two.txt"] = [
        "header", "ours one", "middle",
        "<<<<<<< HEAD", "ours two", "=======", "theirs two", ">>>>>>> topic",
    ]

    conflict_file = await index.refresh_file("two.txt", backend.read_file)

    assert conflict_file.remaining == 1
    assert index.find_hunk("two.txt", 1).start_line == 4
    assert len(index) == 2


async def test_refresh_file_to_zero_hunks_keeps_tracking(index, backend):
    backend.files["one.txt"] = ["a"]

    await index.refresh_file("one.txt", backend.read_file)

    assert "one.txt" in index
    assert index.get("one.txt").ready_to_stage


async def test_refresh_failure_leaves_index_untouched(index, backend):
    del backend.files["one.txt"]

    with pytest.raises(FileReadError):
        await index.refresh_file("one.txt", backend.read_file)

    assert index.remaining_count("one.txt") == 1


async def test_sync_drops_vanished_and_adds_new(index, backend):
    """Test sync follows a fresh unmerged-path list."""
    backend.files["new.txt"] = ["<<<<<<< HEAD", "=======", ">>>>>>> x"]
    one = index.get("one.txt")

    await index.sync(["one.txt", "new.txt"], backend.read_file)

    assert index.paths == ["one.txt", "new.txt"]
    assert index.get("one.txt") is one
    assert "two.txt" not in index
    assert len(index) == 2


async def test_drop(index):
    index.drop("one.txt")

    assert "one.txt" not in index
    assert index.flat_hunks[0].file_path == "two.txt"


async def test_navigation_from_dropped_file(index):
    """Test a cursor left on a dropped file still navigates from where
    the file used to be."""
    cursor = index.flat_hunks[0].cursor
    index.drop("one.txt")

    assert index.next(cursor) is index.find_hunk("two.txt", 1)
    assert index.previous(cursor) is index.find_hunk("two.txt", 2)


async def test_navigation_from_dropped_middle_file(index):
    cursor = index.find_hunk("two.txt", 2).cursor
    index.drop("two.txt")

    assert index.next(cursor) is index.find_hunk("one.txt", 1)
    assert index.previous(cursor) is index.find_hunk("one.txt", 1)


async def test_navigation_from_path_removed_by_sync(index, backend):
    cursor = index.flat_hunks[0].cursor

    await index.sync(["two.txt", "bad.txt"], backend.read_file)

    assert index.next(cursor) is index.find_hunk("two.txt", 1)
    with pytest.raises(PathNotTrackedError):
        index.next(Cursor("never.txt", 1))


async def test_summary_and_hunk_ranges(index):
    summary = {s.path: s for s in index.summary()}

    assert summary["two.txt"].hunk_count == 2
    assert summary["two.txt"].error is None
    assert summary["bad.txt"].error is not None
    assert index.hunk_ranges("two.txt") == [(2, 6), (8, 12)]
