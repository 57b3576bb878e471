from __future__ import annotations
import logging
import re
from dataclasses import dataclass, fields, replace
from typing import List, Optional
from .grid import CellGrid
from .labels import find_in_row
from .models import Student
from .roster import STUDENT_HEADER_RE, ParseAccumulator
from .utils import split_full_name, try_parse_date

logger = logging.getLogger(__name__)

DIVISION_COL_RE = re.compile(r"^الشعبة$")
NATIONAL_ID_COL_RE = re.compile(r"(رقم\s*(الإثبات|الاثبات|الهوية)|الرقم\s*الوطني)")
BIRTH_DATE_COL_RE = re.compile(r"تاريخ\s*الميلاد")
STATUS_COL_RE = re.compile(r"حالة\s*القيد")

# fields a later encounter may fill in, never overwrite
_MERGEABLE = [f.name for f in fields(Student) if f.name not in ("id", "name")]


@dataclass(frozen=True)
class RosterHeader:
    row: int
    name_col: int
    division_col: int = -1
    national_id_col: int = -1
    birth_date_col: int = -1
    status_col: int = -1


def find_roster_header(grid: CellGrid) -> Optional[RosterHeader]:
    """First row holding a student-name label; the other columns are optional."""
    for r in range(grid.n_rows):
        name_col = find_in_row(grid, r, STUDENT_HEADER_RE)
        if name_col == -1:
            continue
        return RosterHeader(
            row=r,
            name_col=name_col,
            division_col=find_in_row(grid, r, DIVISION_COL_RE),
            national_id_col=find_in_row(grid, r, NATIONAL_ID_COL_RE),
            birth_date_col=find_in_row(grid, r, BIRTH_DATE_COL_RE),
            status_col=find_in_row(grid, r, STATUS_COL_RE),
        )
    return None


def make_student_id(national_id: str, sheet_name: str, row_offset: int) -> str:
    if national_id:
        return national_id
    return f"student-{sheet_name}-{row_offset}"


def merge_student(existing: Student, incoming: Student) -> Student:
    # first non-empty value wins per field
    for name in _MERGEABLE:
        if not getattr(existing, name) and getattr(incoming, name):
            setattr(existing, name, getattr(incoming, name))
    return existing


def _opt(grid: CellGrid, row: int, col: int) -> str:
    return grid.cell(row, col) if col != -1 else ""


def extract_students(
    grid: CellGrid,
    sheet_name: str,
    class_name: str,
    division: str,
    subject: str,
    accumulator: ParseAccumulator,
    header: Optional[RosterHeader] = None,
) -> List[Student]:
    """
    Students of one sheet, merged into the accumulator's roster.

    Returns per-sheet snapshots in table order. A sheet without a roster
    header contributes nothing; rows with an empty name cell are skipped
    without ending the table.
    """
    if header is None:
        header = find_roster_header(grid)
    if header is None:
        logger.debug("sheet %r: no roster header", sheet_name)
        return []

    out: List[Student] = []
    for r in range(header.row + 1, grid.n_rows):
        name = grid.cell(r, header.name_col)
        if not name:
            continue

        row_division = _opt(grid, r, header.division_col) or division
        national_id = _opt(grid, r, header.national_id_col)
        student_id = make_student_id(national_id, sheet_name, r - header.row)

        raw_birth = _opt(grid, r, header.birth_date_col)
        first, father, grandfather, family = split_full_name(name)
        incoming = Student(
            id=student_id,
            name=name,
            class_name=class_name,
            division=row_division,
            first_name=first,
            father_name=father,
            grandfather_name=grandfather,
            family_name=family,
            national_id=national_id,
            birth_date=try_parse_date(raw_birth) or raw_birth,
            status=_opt(grid, r, header.status_col),
        )

        existing = accumulator.roster.get(student_id)
        if existing is None:
            accumulator.roster[student_id] = incoming
            student = incoming
        else:
            student = merge_student(existing, incoming)

        accumulator.register(class_name, row_division, subject)
        out.append(replace(student))

    logger.debug("sheet %r: %d student rows", sheet_name, len(out))
    return out
