"""Tests for the resolution engine."""

import pytest

from mergeflow.conflict.errors import (
    HunkNotFoundError,
    StrategyError,
    WriteError,
)
from mergeflow.conflict.index import ConflictIndex
from mergeflow.conflict.model import HunkState, Side, Strategy
from mergeflow.conflict.resolver import ResolutionEngine

SIMPLE = """line0
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

DIFF3 = """start
<<<<<<< HEAD
ours
||||||| ancestor
base
=======
theirs
>>>>>>> topic
end
"""


async def make_engine(backend, **kwargs):
    index = await ConflictIndex.build(backend.unmerged, backend.read_file)
    return ResolutionEngine(index, backend, **kwargs)


@pytest.fixture
def backend(make_backend):
    return make_backend({
        "simple.txt": SIMPLE,
        "two.txt": TWO_HUNKS,
        "diff3.txt": DIFF3,
    })


async def test_resolve_ours(backend):
    """Test the ours side survives verbatim with all markers removed."""
    engine = await make_engine(backend)

    conflict_file = await engine.resolve("simple.txt", 1, "ours")

    assert backend.files["simple.txt"] == ["line0", "main shared", "line1"]
    assert conflict_file.lines == ["line0", "main shared", "line1"]
    assert engine.index.remaining_count("simple.txt") == 0
    assert conflict_file.resolved[0].state is HunkState.RESOLVED_OURS


async def test_resolve_theirs_renumbers_following_hunk(backend):
    """Test a resolution that changes the line count shifts the next
    hunk, which becomes hunk 1."""
    engine = await make_engine(backend)

    await engine.resolve("two.txt", 1, Strategy.THEIRS)

    hunk = engine.index.find_hunk("two.txt", 1)
    assert hunk.ours_lines == ["ours two"]
    assert hunk.start_line == 5
    assert backend.files["two.txt"][:4] == [
        "header", "theirs one", "theirs one again", "middle",
    ]
    with pytest.raises(HunkNotFoundError):
        engine.index.find_hunk("two.txt", 2)


async def test_resolving_same_reference_twice_is_stale(backend):
    """Test a reference used after its file changed no longer finds
    the hunk it meant."""
    engine = await make_engine(backend)
    await engine.resolve("simple.txt", 1, "ours")

    with pytest.raises(HunkNotFoundError):
        await engine.resolve("simple.txt", 1, "ours")


async def test_resolve_second_hunk_first(backend):
    engine = await make_engine(backend)

    await engine.resolve("two.txt", 2, "both")

    assert backend.files["two.txt"][-3:] == ["ours two", "theirs two", "footer"]
    assert engine.index.find_hunk("two.txt", 1).start_line == 2


async def test_resolve_base_requires_diff3(backend):
    engine = await make_engine(backend)

    with pytest.raises(StrategyError, match="no base section"):
        await engine.resolve("simple.txt", 1, "base")

    await engine.resolve("diff3.txt", 1, "base")
    assert backend.files["diff3.txt"] == ["start", "base", "end"]


async def test_strategy_aliases(backend):
    engine = await make_engine(backend)

    await engine.resolve("simple.txt", 1, "remote")

    assert backend.files["simple.txt"] == ["line0", "topic shared", "line1"]


async def test_unknown_strategy_writes_nothing(backend):
    engine = await make_engine(backend)

    with pytest.raises(StrategyError):
        await engine.resolve("simple.txt", 1, "mine")

    assert ("write", "simple.txt") not in backend.calls


async def test_write_failure_leaves_index_untouched(backend):
    """Test a failed write keeps the hunk indexed and unresolved."""
    engine = await make_engine(backend)
    backend.fail_write.add("simple.txt")

    with pytest.raises(WriteError):
        await engine.resolve("simple.txt", 1, "ours")

    hunk = engine.index.find_hunk("simple.txt", 1)
    assert hunk.state is HunkState.UNRESOLVED
    assert engine.index.get("simple.txt").resolved == []


async def test_external_edit_is_detected(backend):
    """Test a file edited outside the session fails as stale and the
    index picks up the new content."""
    engine = await make_engine(backend)
    backend.files["two.txt"] = backend.files["two.txt"][8:]

    with pytest.raises(HunkNotFoundError, match="modified outside"):
        await engine.resolve("two.txt", 1, "ours")

    assert engine.index.remaining_count("two.txt") == 1
    assert engine.index.find_hunk("two.txt", 1).start_line == 1
    assert ("write", "two.txt") not in backend.calls


async def test_external_edit_ignored_without_verification(backend):
    engine = await make_engine(backend, verify_before_write=False)
    backend.files["simple.txt"] = ["edited elsewhere"]

    await engine.resolve("simple.txt", 1, "ours")

    assert backend.files["simple.txt"] == ["line0", "main shared", "line1"]


async def test_resolve_manual(backend):
    engine = await make_engine(backend)

    conflict_file = await engine.resolve_manual(
        "simple.txt", 1, ["merged by hand"]
    )

    assert backend.files["simple.txt"] == ["line0", "merged by hand", "line1"]
    assert conflict_file.resolved[0].state is HunkState.RESOLVED_MANUAL


async def test_resolve_manual_rejects_markers(backend):
    """Test start and end markers are rejected while a bare divider
    line is kept as ordinary content."""
    engine = await make_engine(backend)

    with pytest.raises(StrategyError):
        await engine.resolve_manual("simple.txt", 1, ["<<<<<<< HEAD", "x"])
    with pytest.raises(StrategyError):
        await engine.resolve_manual("simple.txt", 1, ["x", ">>>>>>> topic"])

    conflict_file = await engine.resolve_manual(
        "simple.txt", 1, ["Title", "======="]
    )

    assert backend.files["simple.txt"] == [
        "line0", "Title", "=======", "line1",
    ]
    assert conflict_file.remaining == 0
    assert conflict_file.error is None


async def test_resolve_all_bottom_up(backend):
    """Test every hunk resolves in one write with correct content."""
    engine = await make_engine(backend)

    conflict_file = await engine.resolve_all("two.txt", "theirs")

    assert backend.files["two.txt"] == [
        "header",
        "theirs one",
        "theirs one again",
        "middle",
        "theirs two",
        "footer",
    ]
    assert conflict_file.remaining == 0
    assert len(conflict_file.resolved) == 2
    assert backend.calls.count(("write", "two.txt")) == 1


async def test_resolve_all_base_fails_atomically(backend):
    engine = await make_engine(backend)

    with pytest.raises(StrategyError):
        await engine.resolve_all("two.txt", "base")

    assert engine.index.remaining_count("two.txt") == 2
    assert ("write", "two.txt") not in backend.calls


async def test_resolve_all_on_resolved_file(backend):
    engine = await make_engine(backend)
    await engine.resolve("simple.txt", 1, "ours")

    with pytest.raises(HunkNotFoundError):
        await engine.resolve_all("simple.txt", "ours")


async def test_take_side(make_backend):
    backend = make_backend(
        {"simple.txt": SIMPLE},
        versions={("simple.txt", Side.THEIRS): "line0\ntopic shared\nline1\n"},
    )
    engine = await make_engine(backend)

    conflict_file = await engine.take_side("simple.txt", "theirs")

    assert conflict_file.remaining == 0
    assert conflict_file.resolved[0].state is HunkState.RESOLVED_THEIRS
    assert backend.files["simple.txt"] == ["line0", "topic shared", "line1"]


async def test_take_side_rejects_base(backend):
    engine = await make_engine(backend)

    with pytest.raises(StrategyError):
        await engine.take_side("simple.txt", Side.BASE)
