"""Parse git conflict markers into structured hunks."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum, auto

from mergeflow.conflict.errors import MalformedConflictError
from mergeflow.conflict.model import ConflictMarkerHunk

DEFAULT_MARKER_SIZE = 7


class _State(Enum):
    SEEKING_START = auto()
    IN_OURS = auto()
    IN_BASE = auto()
    IN_THEIRS = auto()


def split_lines(text: str) -> list[str]:
    """Split file text into lines without terminators.

    Only '\\n' separates lines, so a CRLF file keeps its '\\r'
    on every line and is written back unchanged.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _is_divider(line: str, marker_size: int) -> bool:
    return line.rstrip("\r \t") == "=" * marker_size


def _label(line: str, marker_size: int) -> str:
    return line[marker_size:].strip()


def has_markers(
    lines: Sequence[str], marker_size: int = DEFAULT_MARKER_SIZE
) -> bool:
    """Return True if any line starts with a start, base, or end
    marker, or is a divider."""
    prefixes = ("<" * marker_size, "|" * marker_size, ">" * marker_size)
    return any(
        line.startswith(prefixes) or _is_divider(line, marker_size)
        for line in lines
    )


def parse(
    lines: Sequence[str] | str,
    path: str = "",
    marker_size: int = DEFAULT_MARKER_SIZE,
) -> list[ConflictMarkerHunk]:
    """Parse git conflict markers from file lines.

    Args:
        lines: File content as lines (or a single string, which
            is split with split_lines)
        path: Owning file path, recorded on each hunk
        marker_size: Marker length (git's conflict-marker-size)

    Returns:
        Hunks in file order, numbered from 1. Empty when the
        content has no markers.

    Raises:
        MalformedConflictError: On a nested start marker, an end
            marker without start and divider, or a hunk left open
            at end of input
    """
    if isinstance(lines, str):
        lines = split_lines(lines)

    start_marker = "<" * marker_size
    base_marker = "|" * marker_size
    end_marker = ">" * marker_size

    hunks: list[ConflictMarkerHunk] = []
    state = _State.SEEKING_START
    current: ConflictMarkerHunk | None = None

    for line_no, line in enumerate(lines, start=1):
        if line.startswith(start_marker):
            if current is not None:
                raise MalformedConflictError(
                    f"start marker inside the hunk opened at line "
                    f"{current.start_line}",
                    path=path,
                    line=line_no,
                )
            current = ConflictMarkerHunk(
                file_path=path,
                index_in_file=len(hunks) + 1,
                start_line=line_no,
                divider_line=0,
                end_line=0,
                ours_label=_label(line, marker_size),
            )
            state = _State.IN_OURS

        elif state is _State.SEEKING_START:
            # Outside a hunk only a stray end marker is an error;
            # dividers and base markers are ordinary content.
            if line.startswith(end_marker):
                raise MalformedConflictError(
                    "end marker without a matching start marker",
                    path=path,
                    line=line_no,
                )

        elif state is _State.IN_OURS:
            if line.startswith(base_marker):
                current.base_divider_line = line_no
                current.base_label = _label(line, marker_size)
                state = _State.IN_BASE
            elif _is_divider(line, marker_size):
                current.divider_line = line_no
                state = _State.IN_THEIRS
            elif line.startswith(end_marker):
                raise MalformedConflictError(
                    "end marker before divider",
                    path=path,
                    line=line_no,
                )
            else:
                current.ours_lines.append(line)

        elif state is _State.IN_BASE:
            if _is_divider(line, marker_size):
                current.divider_line = line_no
                state = _State.IN_THEIRS
            elif line.startswith(end_marker):
                raise MalformedConflictError(
                    "end marker before divider",
                    path=path,
                    line=line_no,
                )
            else:
                current.base_lines.append(line)

        else:  # IN_THEIRS
            if line.startswith(end_marker):
                current.end_line = line_no
                current.theirs_label = _label(line, marker_size)
                hunks.append(current)
                current = None
                state = _State.SEEKING_START
            else:
                current.theirs_lines.append(line)

    if current is not None:
        raise MalformedConflictError(
            f"hunk opened at line {current.start_line} is never closed",
            path=path,
            line=current.start_line,
        )

    return hunks
