"""
Gradebook ("جدول العلامات") analysis.

The sheet has a two-row header: subject names on the header row, term labels
("الفصل الأول" / "الفصل الثاني" / "المعدل") either on the same row or one row
below. A subject name opens a span that the following term columns belong
to; any static or metric column closes it.

Score limits ("النهاية العظمى" / "النهاية الصغرى") are read from labelled
rows when present. Otherwise the first row after the header in which at least
half of the subject columns hold a number is taken as the maximum row, and
the next such row as the minimum row. This is an approximation: a student row
that is half numeric, with no limit labels anywhere, would be misread. Rows
that carry a serial or a name end the search, which keeps that case rare.
"""
from __future__ import annotations
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Set, Tuple
from rapidfuzz import fuzz, process
from .errors import EmptySheetError, EmptyWorkbookError, HeaderNotFoundError
from .grid import CellGrid
from .ingest import Workbook, load_workbook_bytes
from .issues import WarningAggregator, WarningCategory
from .labels import resolve_adjacent
from .models import (
    ColumnDescriptor, FieldColumn, FieldKind, GradebookAnalysis, GradebookInfo, GradebookStudent,
    GradebookSubject, STUDENT_ATTR, SubjectTermColumn, TERM_ORDER,
)
from .utils import format_number, load_rules, parse_number, rule

logger = logging.getLogger(__name__)

RULES = load_rules()

GRADEBOOK_SHEET_NAME = "جدول العلامات"
SHEET_MATCH_THRESHOLD = 85

INFO_LABELS: List[Tuple[str, Pattern[str]]] = [
    ("directorate", re.compile(r"مديرية")),
    ("town", re.compile(r"البلدة")),
    ("school", re.compile(r"المدرسة")),
    ("district", re.compile(r"اللواء")),
    ("grade", re.compile(r"^الصف[:\s]*$")),
    ("division", re.compile(r"الشعبة")),
    ("program", re.compile(r"(البرنامج|المرحلة|المسار)")),
]

# Cells that hold nothing but an info label; never taken as a value
INFO_BARE_LABELS: Dict[str, Pattern[str]] = {
    "directorate": re.compile(r"^(ال)?مديرية(\s*التربية(\s*والتعليم)?)?\s*:?$"),
    "town": re.compile(r"^البلدة\s*:?$"),
    "school": re.compile(r"^(اسم\s*)?المدرسة\s*:?$"),
    "district": re.compile(r"^اللواء\s*:?$"),
    "grade": re.compile(r"^الصف[:\s]*$"),
    "division": re.compile(r"^الشعبة\s*:?$"),
    "program": re.compile(r"^(البرنامج|المرحلة|المسار)\s*:?$"),
}
INFO_LABEL_CELL_RE = re.compile("|".join(f"(?:{rx.pattern})" for rx in INFO_BARE_LABELS.values()))

INFO_FIELD_LABELS = {
    "directorate": "المديرية",
    "town": "البلدة",
    "school": "المدرسة",
    "district": "اللواء",
    "grade": "الصف",
    "division": "الشعبة",
    "program": "البرنامج",
}

SERIAL_HEADER_RE = re.compile(r"الرقم")
NAME_HEADER_RE = re.compile(r"^(الاسم|اسم\s*الطالب)")

STATIC_MATCHERS: List[Tuple[FieldKind, Pattern[str]]] = [
    (FieldKind.SERIAL, re.compile(r"^الرقم(\s*المتسلسل)?$")),
    (FieldKind.NAME, NAME_HEADER_RE),
    (FieldKind.NATIONALITY, re.compile(r"الجنسية")),
    (FieldKind.BIRTH_PLACE, re.compile(r"مكان\s*الولادة")),
    (FieldKind.BIRTH_DAY, re.compile(r"^اليوم$")),
    (FieldKind.BIRTH_MONTH, re.compile(r"^الشهر$")),
    (FieldKind.BIRTH_YEAR, re.compile(r"^السنة$")),
]

METRIC_MATCHERS: List[Tuple[FieldKind, Pattern[str]]] = [
    (FieldKind.RESPECT, re.compile(r"احترام\s*النظام")),
    (FieldKind.ABSENCE_DAYS, re.compile(r"عدد\s*أيام\s*غياب")),
    (FieldKind.REPEATED_GRADES, re.compile(r"الصف.*التي\s*أعادها\s*الطالب")),
    (FieldKind.COMPLETION_RESULT, re.compile(r"النتيجة\s*بعد\s*تأدية\s*اختبارات")),
    (FieldKind.TOTAL, re.compile(r"المجموع\s*العام")),
    (FieldKind.PERCENTAGE, re.compile(r"المعدل\s*العام\s*المئوي")),
    (FieldKind.ANNUAL_RESULT, re.compile(r"النتيجة\s*السنوية")),
]

TERM_MAP: Dict[str, str] = {
    "الفصل الأول": "first",
    "الفصل الثاني": "second",
    "المعدل": "average",
}

NOTE_RE = re.compile(r"تعبأ")
BIRTHDATE_GROUP_RE = re.compile(r"تاريخ\s*الولادة")

MAX_SCORE_RE = re.compile(r"النهاية\s*العظمى")
MIN_SCORE_RE = re.compile(r"النهاية\s*(الصغرى|الدنيا)")


@dataclass
class DescriptorLayout:
    descriptors: List[ColumnDescriptor]
    subjects: List[str]
    subject_columns: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def column_of(self, kind: FieldKind) -> int:
        for i, d in enumerate(self.descriptors):
            if isinstance(d, FieldColumn) and d.kind == kind:
                return i
        return -1


# =========================

# Header
# =========================
def match_static_field(label: str) -> Optional[FieldKind]:
    for kind, rx in STATIC_MATCHERS:
        if rx.search(label):
            return kind
    return None


def match_metric_field(label: str) -> Optional[FieldKind]:
    for kind, rx in METRIC_MATCHERS:
        if rx.search(label):
            return kind
    return None


def find_header_row(grid: CellGrid) -> int:
    for r in range(grid.n_rows):
        cells = grid.row(r)
        has_serial = any(SERIAL_HEADER_RE.search(c) for c in cells if c)
        has_name = any(NAME_HEADER_RE.search(c) for c in cells if c)
        if has_serial and has_name:
            return r
    raise HeaderNotFoundError()


def build_descriptors(grid: CellGrid, header_row: int) -> DescriptorLayout:
    """
    Tag every column left to right. The header row is consulted before the
    sub-header row, and static/metric labels before term/subject labels;
    `current` is the subject whose term columns are being read.
    """
    n_cols = max(grid.width(header_row), grid.width(header_row + 1))
    descriptors: List[ColumnDescriptor] = [None] * n_cols
    subjects: List[str] = []
    subject_columns: Dict[str, Dict[str, int]] = {}
    current: Optional[str] = None

    def assign(col: int, subject: str, label: str) -> None:
        term = TERM_MAP[label]
        descriptors[col] = SubjectTermColumn(subject, term)
        subject_columns.setdefault(subject, {}).setdefault(term, col)

    for col in range(n_cols):
        head = grid.cell(header_row, col)
        sub = grid.cell(header_row + 1, col)

        if head:
            kind = match_static_field(head) or match_metric_field(head)
            if kind is not None:
                descriptors[col] = FieldColumn(kind)
                current = None
                continue

            if head in TERM_MAP and current:
                assign(col, current, head)
                continue

            if NOTE_RE.search(head) or BIRTHDATE_GROUP_RE.search(head):
                current = None
            else:
                current = head
                if current not in subject_columns:
                    subject_columns[current] = {}
                    subjects.append(current)

        if not sub:
            continue

        if current and sub in TERM_MAP:
            assign(col, current, sub)
            continue

        kind = match_static_field(sub) or match_metric_field(sub)
        if kind is not None:
            descriptors[col] = FieldColumn(kind)
            current = None
            continue

        if current and sub not in TERM_MAP:
            current = None

    return DescriptorLayout(descriptors=descriptors, subjects=subjects, subject_columns=subject_columns)


# =========================

# Score limits
# =========================
def parse_score(value) -> Optional[float]:
    return parse_number(value)


def _is_student_row(grid: CellGrid, row: int, layout: DescriptorLayout) -> bool:
    serial_col = layout.column_of(FieldKind.SERIAL)
    name_col = layout.column_of(FieldKind.NAME)
    serial = grid.cell(row, serial_col) if serial_col != -1 else ""
    name = grid.cell(row, name_col) if name_col != -1 else ""
    return bool(serial or name)


def _first_student_row(grid: CellGrid, header_row: int, layout: DescriptorLayout) -> int:
    for r in range(header_row + 2, grid.n_rows):
        if not _is_student_row(grid, r, layout):
            continue
        if not (_row_has_label(grid, r, MAX_SCORE_RE) or _row_has_label(grid, r, MIN_SCORE_RE)):
            return r
    return grid.n_rows


def _row_has_label(grid: CellGrid, row: int, rx: Pattern[str]) -> bool:
    return any(c and rx.search(c) for c in grid.row(row))


def find_row_by_label(grid: CellGrid, end_row: int, rx: Pattern[str]) -> Optional[int]:
    for r in range(min(max(end_row, 0), grid.n_rows)):
        if _row_has_label(grid, r, rx):
            return r
    return None


def find_numeric_row(
    grid: CellGrid,
    begin_row: int,
    layout: DescriptorLayout,
    columns: List[int],
) -> Optional[int]:
    """First row, before any student row, where at least half of `columns` hold numbers."""
    if not columns:
        return None
    need = max(1, math.ceil(len(columns) * 0.5))
    for r in range(begin_row, grid.n_rows):
        if _is_student_row(grid, r, layout):
            break
        hits = sum(1 for c in columns if parse_score(grid.cell(r, c)) is not None)
        if hits >= need:
            return r
    return None


def _subject_anchor_columns(layout: DescriptorLayout) -> Dict[str, int]:
    out = {}
    for subject, terms in layout.subject_columns.items():
        for term in ("first", "average", "second"):
            if term in terms:
                out[subject] = terms[term]
                break
    return out


def find_score_limit_rows(grid: CellGrid, header_row: int, layout: DescriptorLayout) -> Tuple[Optional[int], Optional[int]]:
    anchors = _subject_anchor_columns(layout)
    columns = sorted(set(anchors.values()))
    end_row = _first_student_row(grid, header_row, layout)

    max_row = find_row_by_label(grid, end_row, MAX_SCORE_RE)
    if max_row is None:
        max_row = find_numeric_row(grid, header_row + 2, layout, columns)

    min_row = find_row_by_label(grid, end_row, MIN_SCORE_RE)
    if min_row is None and max_row is not None:
        min_row = find_numeric_row(grid, max_row + 1, layout, columns)

    return max_row, min_row


def extract_subject_score_limits(
    grid: CellGrid,
    layout: DescriptorLayout,
    max_row: Optional[int],
    min_row: Optional[int],
) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
    """(max, min) per subject, read from the anchor column of each subject."""
    out: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
    for subject, col in _subject_anchor_columns(layout).items():
        hi = parse_score(grid.cell(max_row, col)) if max_row is not None else None
        lo = parse_score(grid.cell(min_row, col)) if min_row is not None else None
        if hi is None and lo is None:
            continue
        out[subject] = (
            format_number(hi) if hi is not None else None,
            format_number(lo) if lo is not None else None,
        )
    return out


# =========================

# Info block and students
# =========================
def _label_cells(grid: CellGrid, rx: Pattern[str], max_rows: int):
    for r in range(min(max(0, int(max_rows)), grid.n_rows)):
        for c, text in enumerate(grid.row(r)):
            if text and rx.search(text):
                yield r, c


def _find_info_value(grid: CellGrid, key: str, rx: Pattern[str], max_rows: int) -> str:
    # bare label cells first, then any cell carrying the label word
    for pattern in (INFO_BARE_LABELS[key], rx):
        for r, c in _label_cells(grid, pattern, max_rows):
            value = resolve_adjacent(grid, r, c, INFO_LABEL_CELL_RE)
            if value:
                return value
    return ""


def extract_gradebook_info(grid: CellGrid, max_rows: int = 20) -> GradebookInfo:
    info = GradebookInfo()
    for key, rx in INFO_LABELS:
        value = _find_info_value(grid, key, rx, max_rows)
        if not value:
            continue
        if key == "division":
            value = re.sub(r"^\(|\)$", "", value).strip()
        setattr(info, key, value)
    return info


def extract_gradebook_students(
    grid: CellGrid,
    header_row: int,
    layout: DescriptorLayout,
    skip_rows: Optional[Set[int]] = None,
) -> List[GradebookStudent]:
    skip_rows = skip_rows or set()
    serial_col = layout.column_of(FieldKind.SERIAL)
    name_col = layout.column_of(FieldKind.NAME)
    students: List[GradebookStudent] = []

    for r in range(header_row + 2, grid.n_rows):
        if r in skip_rows:
            continue
        serial = grid.cell(r, serial_col) if serial_col != -1 else ""
        name = grid.cell(r, name_col) if name_col != -1 else ""
        if not serial and not name:
            continue

        student = GradebookStudent(serial=serial or str(len(students) + 1), name=name)
        for col, d in enumerate(layout.descriptors):
            if d is None:
                continue
            value = grid.cell(r, col)
            if not value:
                continue
            if isinstance(d, SubjectTermColumn):
                student.subjects.setdefault(d.subject, {})[d.term] = value
            elif d.kind in STUDENT_ATTR:
                setattr(student, STUDENT_ATTR[d.kind], value)
        students.append(student)

    return [s for s in students if s.name]


def detect_terms(students: List[GradebookStudent]) -> List[str]:
    """Terms with at least one non-empty score, across every subject and student."""
    seen = set()
    for s in students:
        for record in s.subjects.values():
            for term, value in record.items():
                if value and str(value).strip():
                    seen.add(term)
    return [t for t in TERM_ORDER if t in seen]


def select_gradebook_sheet(sheet_names: List[str]) -> str:
    for name in sheet_names:
        if GRADEBOOK_SHEET_NAME in name:
            return name
    match = process.extractOne(GRADEBOOK_SHEET_NAME, sheet_names, scorer=fuzz.partial_ratio)
    if match is not None and match[1] >= SHEET_MATCH_THRESHOLD:
        return match[0]
    return sheet_names[0]


def analyze_gradebook(workbook: Workbook, rules: Optional[dict] = None) -> GradebookAnalysis:
    rules = RULES if rules is None else rules
    names = workbook.sheet_names
    if not names:
        raise EmptyWorkbookError()

    sheet_name = select_gradebook_sheet(names)
    grid = workbook.grid(sheet_name)
    if grid.n_rows == 0:
        raise EmptySheetError()

    info = extract_gradebook_info(grid, int(rule(rules, "scan_rows", "gradebook_info", 20)))
    header_row = find_header_row(grid)
    layout = build_descriptors(grid, header_row)

    max_row, min_row = find_score_limit_rows(grid, header_row, layout)
    limits = extract_subject_score_limits(grid, layout, max_row, min_row)
    skip = {r for r in (max_row, min_row) if r is not None}
    students = extract_gradebook_students(grid, header_row, layout, skip_rows=skip)

    subjects = []
    for name in layout.subjects:
        hi, lo = limits.get(name, (None, None))
        subjects.append(GradebookSubject(name=name, max_score=hi, min_score=lo))

    warnings = WarningAggregator()
    if not subjects:
        warnings.add("لم يتم التعرف على أي مبحث في جدول العلامات.")
    for s in subjects:
        if s.max_score is None and s.min_score is None:
            warnings.add(f'لم يتم العثور على النهاية العظمى والصغرى للمبحث "{s.name}". يُنصح بالتحقق يدويًا.')
    for key, label in INFO_FIELD_LABELS.items():
        if getattr(info, key) is None:
            warnings.add(f'لم يتم العثور على {label} في رأس ورقة "{sheet_name}".', WarningCategory.LOW_CONFIDENCE)

    terms = detect_terms(students)
    logger.info(
        "gradebook %r: header row %d, %d subject(s), %d student(s), terms=%s",
        sheet_name, header_row, len(subjects), len(students), terms,
    )

    return GradebookAnalysis(
        info=info,
        subjects=subjects,
        terms=terms,
        students=students,
        sheet_name=sheet_name,
        warnings=warnings.finalize(),
    )


def analyze_gradebook_file(data: bytes, filename: str = "", rules: Optional[dict] = None) -> GradebookAnalysis:
    return analyze_gradebook(load_workbook_bytes(data, filename), rules=rules)
