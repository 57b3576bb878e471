from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence, Union
from .grid import CellGrid

PatternLike = Union[str, Pattern[str]]


@dataclass(frozen=True)
class LabelPosition:
    row: int
    col: int
    text: str


def compile_patterns(patterns: Iterable[PatternLike]) -> List[Pattern[str]]:
    return [p if isinstance(p, re.Pattern) else re.compile(p) for p in patterns]


def _as_pattern(p: Optional[PatternLike]) -> Optional[Pattern[str]]:
    if p is None:
        return None
    return p if isinstance(p, re.Pattern) else re.compile(p)


def row_matches(grid: CellGrid, row: int, pattern: PatternLike) -> bool:
    rx = _as_pattern(pattern)
    return any(c and rx.search(c) for c in grid.row(row))


def find_in_row(grid: CellGrid, row: int, pattern: PatternLike) -> int:
    """First column of `row` whose text matches `pattern`, or -1."""
    rx = _as_pattern(pattern)
    for col, c in enumerate(grid.row(row)):
        if c and rx.search(c):
            return col
    return -1


def scan_label(
    grid: CellGrid,
    patterns: Sequence[PatternLike],
    max_rows: int,
    stop_pattern: Optional[PatternLike] = None,
) -> Optional[LabelPosition]:
    """
    Bounded label search: rows 0..max_rows-1 top to bottom, columns left to
    right, and for each cell the patterns in the given order.

    When `stop_pattern` matches anywhere in a row the scan ends before that
    row is looked at (the roster header marks the end of the metadata block).
    """
    rxs = compile_patterns(patterns)
    stop = _as_pattern(stop_pattern)
    limit = min(max(0, int(max_rows)), grid.n_rows)

    for r in range(limit):
        if stop is not None and row_matches(grid, r, stop):
            return None
        for c, text in enumerate(grid.row(r)):
            if not text:
                continue
            for rx in rxs:
                if rx.search(text):
                    return LabelPosition(r, c, text)
    return None


def resolve_near(
    grid: CellGrid,
    row: int,
    label_col: int,
    invalid_pattern: Optional[PatternLike] = None,
) -> str:
    """
    Nearest plausible value around a label: left neighbours first (nearest
    first), then right neighbours. Cells that are empty after normalization or
    that match `invalid_pattern` are skipped.
    """
    invalid = _as_pattern(invalid_pattern)

    def ok(v: str) -> bool:
        return bool(v) and not (invalid is not None and invalid.search(v))

    for col in range(label_col - 1, -1, -1):
        v = grid.cell(row, col)
        if ok(v):
            return v

    for col in range(label_col + 1, grid.width(row)):
        v = grid.cell(row, col)
        if ok(v):
            return v

    return ""


def resolve_adjacent(
    grid: CellGrid,
    row: int,
    label_col: int,
    skip_pattern: Optional[PatternLike] = None,
) -> str:
    """
    Nearest value on either side of a label, distance by distance, the right
    neighbour before the left one at equal distance. Used for the gradebook
    title block, where label/value pairs sit side by side on one row.
    """
    skip = _as_pattern(skip_pattern)
    width = grid.width(row)

    for offset in range(1, width + 1):
        for col in (label_col + offset, label_col - offset):
            if col < 0 or col >= width:
                continue
            v = grid.cell(row, col)
            if v and not (skip is not None and skip.search(v)):
                return v
    return ""
