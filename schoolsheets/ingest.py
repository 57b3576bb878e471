from __future__ import annotations
import logging
from io import BytesIO
from typing import Any, Dict, List, Mapping, Sequence
import pandas as pd
from openpyxl import load_workbook
from .errors import EmptySheetError, UnreadableWorkbookError
from .grid import CellGrid

logger = logging.getLogger(__name__)

_OLE_MAGIC = b"\xd0\xcf\x11\xe0"


class Workbook:
    """Decoded workbook: sheet names in file order, each with its materialized rows."""

    def __init__(self, sheets: Mapping[str, Sequence[Sequence[Any]]]):
        self._sheets: Dict[str, List[List[Any]]] = {
            str(name): [list(r or []) for r in (rows or [])] for name, rows in sheets.items()
        }

    @property
    def sheet_names(self) -> List[str]:
        return list(self._sheets)

    def rows(self, sheet_name: str) -> List[List[Any]]:
        if sheet_name not in self._sheets:
            raise EmptySheetError("تعذر العثور على ورقة العمل المطلوبة")
        return self._sheets[sheet_name]

    def grid(self, sheet_name: str) -> CellGrid:
        return CellGrid(self.rows(sheet_name))

    def __len__(self) -> int:
        return len(self._sheets)
# =========================

# Excel (.xlsx): sheet as a matrix, merged cells optionally unfolded
# =========================
def _sheet_to_matrix(ws, expand_merged: bool = False) -> List[List[Any]]:
    merged_map = {}
    if expand_merged:
        for r in ws.merged_cells.ranges:
            min_col, min_row, max_col, max_row = r.bounds
            top_val = ws.cell(min_row, min_col).value
            for rr in range(min_row, max_row + 1):
                for cc in range(min_col, max_col + 1):
                    merged_map[(rr, cc)] = top_val

    rows = []
    for r in range(1, ws.max_row + 1):
        row_vals = []
        for c in range(1, ws.max_column + 1):
            v = ws.cell(r, c).value
            if (r, c) in merged_map and (v is None or str(v).strip() == ""):
                v = merged_map[(r, c)]
            row_vals.append(v)
        rows.append(row_vals)

    # decoders pad to the used range; drop the trailing empty rows
    while rows and all(v is None or str(v).strip() == "" for v in rows[-1]):
        rows.pop()
    return rows


def _read_xlsx(data: bytes, expand_merged: bool) -> Workbook:
    wb = load_workbook(BytesIO(data), read_only=False, data_only=True)
    sheets = {}
    for ws in wb.worksheets:
        sheets[ws.title] = _sheet_to_matrix(ws, expand_merged=expand_merged)
    return Workbook(sheets)
# =========================

# Legacy Excel (.xls), as exported by the portal
# =========================
def _read_xls(data: bytes) -> Workbook:
    frames = pd.read_excel(BytesIO(data), sheet_name=None, header=None, engine="xlrd")
    sheets = {}
    for name, df in frames.items():
        df = df.astype(object).where(pd.notna(df), None)
        sheets[str(name)] = df.values.tolist()
    return Workbook(sheets)


def load_workbook_bytes(data: bytes, filename: str = "", expand_merged: bool = False) -> Workbook:
    """
    Decode uploaded bytes into a Workbook.

    .xls files (or any payload with the OLE2 signature) go through pandas with
    the xlrd engine; everything else through openpyxl with cached values
    instead of formulas. Merged cells are left as decoded unless
    `expand_merged` is set (.xlsx only).
    """
    if not data:
        raise UnreadableWorkbookError("الملف فارغ أو لا يحتوي على بيانات")

    is_xls = filename.lower().endswith(".xls") or data[:4] == _OLE_MAGIC
    try:
        wb = _read_xls(data) if is_xls else _read_xlsx(data, expand_merged)
    except Exception as exc:
        logger.info("failed to decode %r: %s: %s", filename, type(exc).__name__, exc)
        raise UnreadableWorkbookError() from exc

    logger.info("decoded %r: %d sheet(s)", filename or "<bytes>", len(wb))
    return wb
