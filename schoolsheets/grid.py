from __future__ import annotations
from typing import Any, List, Sequence
from .utils import norm_cell


class CellGrid:
    """
    A decoded sheet as rows of normalized strings.

    Rows may be ragged (decoders drop trailing empty cells); any coordinate
    outside the materialized rows reads as "".
    """

    def __init__(self, rows: Sequence[Sequence[Any]] | None):
        self._rows: List[List[str]] = [[norm_cell(v) for v in (r or [])] for r in (rows or [])]

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    def width(self, row: int) -> int:
        if 0 <= row < len(self._rows):
            return len(self._rows[row])
        return 0

    def cell(self, row: int, col: int) -> str:
        if row < 0 or col < 0 or row >= len(self._rows):
            return ""
        r = self._rows[row]
        if col >= len(r):
            return ""
        return r[col]

    def row(self, row: int) -> List[str]:
        if 0 <= row < len(self._rows):
            return list(self._rows[row])
        return []

    def __len__(self) -> int:
        return len(self._rows)
