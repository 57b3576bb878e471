from __future__ import annotations
import logging
from typing import Optional
from .errors import EmptyWorkbookError, NoStudentsError
from .ingest import Workbook, load_workbook_bytes
from .models import ParsedData, SheetResult
from .roster import ParseAccumulator, extract_class_division_subject, extract_school_info
from .students import extract_students, find_roster_header

logger = logging.getLogger(__name__)


def parse_ministry_workbook(workbook: Workbook, rules: Optional[dict] = None) -> ParsedData:
    """
    Student-information report -> roster, class/division/subject tree and
    warnings.

    Sheets are walked in file order; the class of an earlier sheet is the
    fallback for later sheets that carry none. Raises EmptyWorkbookError when
    there are no sheets and NoStudentsError when no sheet yields a student.
    """
    sheet_names = workbook.sheet_names
    if not sheet_names:
        raise EmptyWorkbookError()

    acc = ParseAccumulator()
    grids = [(name, workbook.grid(name)) for name in sheet_names]
    headers = [find_roster_header(grid) for _, grid in grids]
    header_rows = [h.row if h is not None else None for h in headers]

    school_info = extract_school_info(grids, acc, header_rows, rules=rules)

    for (sheet_name, grid), header in zip(grids, headers):
        fields = extract_class_division_subject(
            grid,
            sheet_name,
            acc.fallback_class_name,
            acc,
            header_row=header.row if header is not None else None,
            rules=rules,
        )

        students = []
        if header is not None:
            students = extract_students(
                grid, sheet_name, fields.class_name, fields.division, fields.subject, acc, header=header
            )

        acc.sheets.append(SheetResult(
            sheet_name=sheet_name,
            class_name=fields.class_name,
            division=fields.division,
            subject=fields.subject or None,
            students=students,
        ))

    if not acc.roster:
        raise NoStudentsError()

    warnings = acc.finalize_warnings()
    classes = acc.build_classes()
    logger.info(
        "parsed %d sheet(s): %d student(s), %d class(es), %d warning(s)",
        len(sheet_names), len(acc.roster), len(classes), len(warnings),
    )

    return ParsedData(
        students=list(acc.roster.values()),
        classes=classes,
        school_info=None if school_info.is_empty() else school_info,
        sheets=acc.sheets,
        warnings=warnings,
    )


def parse_ministry_file(data: bytes, filename: str = "", rules: Optional[dict] = None) -> ParsedData:
    return parse_ministry_workbook(load_workbook_bytes(data, filename), rules=rules)
