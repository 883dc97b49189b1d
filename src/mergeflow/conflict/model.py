"""Data model for conflicted files and their marker hunks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from mergeflow.conflict.errors import (
    MalformedConflictError,
    StrategyError,
)


class Strategy(str, Enum):
    """Which content survives when a hunk is resolved."""

    OURS = "ours"
    THEIRS = "theirs"
    BASE = "base"
    BOTH = "both"

    @classmethod
    def parse(cls, token: Strategy | str) -> Strategy:
        """Convert a user-supplied token into a Strategy.

        Accepts the enum itself, any member value, and the
        mergetool names 'local' and 'remote'.

        Raises:
            StrategyError: If the token names no strategy
        """
        if isinstance(token, cls):
            return token
        if not isinstance(token, str):
            raise StrategyError(
                f"Strategy must be a string, got {type(token).__name__}"
            )

        normalized = token.strip().lower()
        normalized = _STRATEGY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise StrategyError(
                f"Unknown strategy '{token}'. Valid: {valid}"
            ) from None


_STRATEGY_ALIASES = {
    "local": "ours",
    "remote": "theirs",
}


class Side(str, Enum):
    """Index stages of an unmerged path, as numbered by git."""

    BASE = "base"
    OURS = "ours"
    THEIRS = "theirs"

    @property
    def stage(self) -> int:
        """Git index stage number (:1:, :2:, :3:)."""
        return {"base": 1, "ours": 2, "theirs": 3}[self.value]


class HunkState(str, Enum):
    """Lifecycle of a single hunk. Everything but UNRESOLVED is
    terminal."""

    UNRESOLVED = "unresolved"
    RESOLVED_OURS = "resolved_ours"
    RESOLVED_THEIRS = "resolved_theirs"
    RESOLVED_BASE = "resolved_base"
    RESOLVED_BOTH = "resolved_both"
    RESOLVED_MANUAL = "resolved_manual"

    @classmethod
    def for_strategy(cls, strategy: Strategy) -> HunkState:
        return cls(f"resolved_{strategy.value}")


class HunkRef(NamedTuple):
    """Address of a hunk: owning path and 1-based ordinal in file."""

    path: str
    index_in_file: int


class Cursor(NamedTuple):
    """Position used for navigation.

    A cursor with no path sits before the first file, so next()
    from Cursor() lands on the first hunk overall.
    """

    path: str | None = None
    line: int = 0


@dataclass
class ConflictMarkerHunk:
    """One <<<<<<< ... ======= ... >>>>>>> region in a file.

    Line numbers are 1-based and refer to the owning file's line
    array at the time of parsing.
    """

    file_path: str
    index_in_file: int
    start_line: int
    divider_line: int
    end_line: int
    ours_lines: list[str] = field(default_factory=list)
    theirs_lines: list[str] = field(default_factory=list)
    base_divider_line: int | None = None
    base_lines: list[str] = field(default_factory=list)
    ours_label: str = ""
    base_label: str = ""
    theirs_label: str = ""
    state: HunkState = HunkState.UNRESOLVED

    @property
    def ref(self) -> HunkRef:
        return HunkRef(self.file_path, self.index_in_file)

    @property
    def cursor(self) -> Cursor:
        return Cursor(self.file_path, self.start_line)

    @property
    def has_base(self) -> bool:
        """Whether the hunk was written in diff3 style."""
        return self.base_divider_line is not None

    @property
    def is_resolved(self) -> bool:
        return self.state is not HunkState.UNRESOLVED

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def lines_for(self, strategy: Strategy) -> list[str]:
        """Content that replaces the hunk under a strategy.

        Raises:
            StrategyError: If BASE is requested for a hunk without
                a diff3 base section
        """
        if strategy is Strategy.OURS:
            return list(self.ours_lines)
        if strategy is Strategy.THEIRS:
            return list(self.theirs_lines)
        if strategy is Strategy.BOTH:
            return list(self.ours_lines) + list(self.theirs_lines)
        if not self.has_base:
            raise StrategyError(
                f"{self.file_path} hunk {self.index_in_file} has no "
                f"base section (enable merge.conflictStyle=diff3)"
            )
        return list(self.base_lines)


@dataclass
class ConflictFile:
    """A conflicted file: its current lines and the hunks parsed
    from them.

    ``hunks`` is always derived from ``lines`` by the parser and
    replaced wholesale by ``reparse()``; it is never patched.
    """

    path: str
    lines: list[str] = field(default_factory=list)
    hunks: list[ConflictMarkerHunk] = field(default_factory=list)
    error: MalformedConflictError | None = None
    resolved: list[ConflictMarkerHunk] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return len(self.hunks)

    @property
    def ready_to_stage(self) -> bool:
        return not self.hunks and self.error is None

    def reparse(
        self, lines: list[str] | None = None, marker_size: int = 7
    ) -> None:
        """Replace content (optionally) and recompute hunks.

        A malformed file keeps its lines but contributes no hunks;
        the parse error is stored on ``error``.
        """
        from mergeflow.conflict.parser import parse

        if lines is not None:
            self.lines = list(lines)
        try:
            self.hunks = parse(
                self.lines, path=self.path, marker_size=marker_size
            )
            self.error = None
        except MalformedConflictError as e:
            self.hunks = []
            self.error = e

    def hunk(self, index_in_file: int) -> ConflictMarkerHunk | None:
        if 1 <= index_in_file <= len(self.hunks):
            return self.hunks[index_in_file - 1]
        return None


@dataclass(frozen=True)
class FileSummary:
    """Read-only projection of one tracked file for display."""

    path: str
    hunk_count: int
    resolved_count: int
    error: str | None = None
