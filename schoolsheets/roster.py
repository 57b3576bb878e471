from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
from .grid import CellGrid
from .labels import compile_patterns, resolve_near, scan_label
from .issues import (WarningAggregator, WarningCategory, provenance_warning, provenance_category, missing_sheets_warning)
from .models import ClassGroup, Division, Provenance, SchoolInfo, SheetResult, Student, Subject
from .utils import load_rules, rule

logger = logging.getLogger(__name__)

RULES = load_rules()

# Roster table header: the row holding the student-name column
STUDENT_HEADER_RE = re.compile(r"(اسم\s*الطالب|الاسم)")

# Label variants are anchored so that a value such as "الصف السابع" is never
# taken for the "الصف" label itself.
LABELS: Dict[str, List[str]] = {
    "class": [r"^الصف(\s*الدراسي)?\s*:?$", r"^الصف\s*/\s*المستوى\s*:?$"],
    "division": [r"^الشعبة(\s*الدراسية)?\s*:?$"],
    "subject": [r"^(المبحث|المادة\s*الدراسية|المادة)(\s*الدراسي)?\s*:?$"],
    "directorate": [r"^(المديرية|مديرية(\s*التربية(\s*والتعليم)?)?)\s*:?$"],
    "school": [r"^(المدرسة|اسم\s*المدرسة)\s*:?$"],
    "program": [r"^(البرنامج|المرحلة|المسار)\s*:?$"],
}

# A neighbour that reads like another field's label is not a value
INVALID_VALUE_RE = re.compile(
    r"(\b(اسم|الاسم|تاريخ|حالة|رقم|الجنس)\b"
    r"|^(الصف|الشعبة|المبحث|المادة|المدرسة|المديرية|البرنامج)(\s*الدراسي[ة]?)?\s*:?$)"
)

DEFAULT_POSITIONS: Dict[str, List[Tuple[int, int]]] = {
    "class": [(6, 3), (5, 3)],
    "division": [(14, 3)],
    "subject": [],
    "directorate": [(8, 23)],
    "school": [(12, 23)],
    "program": [(10, 3)],
}

DEFAULT_SCAN_ROWS = {"class": 25, "division": 30, "subject": 25, "school_info": 40}

CLASS_PLACEHOLDER = "غير محدد ({sheet})"
DIVISION_PLACEHOLDER = "بدون شعبة ({sheet})"

SHEET_NAME_SEPARATOR = " - "

SCHOOL_INFO_FIELDS = ("directorate", "school", "program")


@dataclass
class ResolvedField:
    value: str
    provenance: Provenance


@dataclass
class SheetFields:
    sheet_name: str
    class_name: str
    division: str
    subject: str
    provenance: Dict[str, Provenance] = field(default_factory=dict)


class ParseAccumulator:
    """
    Everything one parse call builds up while walking the sheets: the
    class -> division -> subjects map, the roster, per-sheet results and
    warnings. A new accumulator is created for every call.
    """

    def __init__(self):
        self.class_map: Dict[str, Dict[str, Dict[str, None]]] = {}
        self.roster: Dict[str, Student] = {}
        self.sheets: List[SheetResult] = []
        self.warnings = WarningAggregator()
        self.missing_class_sheets: List[str] = []
        self.missing_division_sheets: List[str] = []
        self.fallback_class_name: str = ""

    def register(self, class_name: str, division: str, subject: str = "") -> None:
        if not class_name or not division:
            return
        divisions = self.class_map.setdefault(class_name, {})
        subjects = divisions.setdefault(division, {})
        if subject:
            subjects.setdefault(subject, None)

    def mark_missing(self, field_key: str, sheet_name: str) -> None:
        target = self.missing_class_sheets if field_key == "class" else self.missing_division_sheets
        if sheet_name not in target:
            target.append(sheet_name)

    def build_classes(self) -> List[ClassGroup]:
        out: List[ClassGroup] = []
        for class_name, divisions in self.class_map.items():
            group = ClassGroup(class_name=class_name)
            for division, subjects in divisions.items():
                group.divisions.append(Division(
                    id=f"{class_name}-{division}",
                    division=division,
                    subjects=[Subject(id=f"{class_name}-{division}-{s}", name=s) for s in subjects],
                ))
            out.append(group)
        return out

    def finalize_warnings(self) -> List[str]:
        self.warnings.add(
            missing_sheets_warning(WarningCategory.MISSING_CLASS, self.missing_class_sheets),
            WarningCategory.MISSING_CLASS,
        )
        self.warnings.add(
            missing_sheets_warning(WarningCategory.MISSING_DIVISION, self.missing_division_sheets),
            WarningCategory.MISSING_DIVISION,
        )
        for category in WarningCategory:
            count = len(self.warnings.by_category(category))
            if count:
                logger.info("%d %s warning(s)", count, category.value)
        return self.warnings.finalize()


# =========================

# Resolution steps
# =========================
def _positions(field_key: str, rules: dict) -> List[Tuple[int, int]]:
    raw = rule(rules, "positions", field_key, DEFAULT_POSITIONS.get(field_key, []))
    out = []
    for p in raw or []:
        try:
            out.append((int(p[0]), int(p[1])))
        except (TypeError, ValueError, IndexError):
            continue
    return out


def _label_patterns(field_key: str, rules: dict) -> List[Any]:
    extra = rule(rules, "labels", field_key, [])
    return compile_patterns(list(LABELS.get(field_key, [])) + [str(x) for x in (extra or [])])


def _scan_rows(field_key: str, rules: dict) -> int:
    return int(rule(rules, "scan_rows", field_key, DEFAULT_SCAN_ROWS.get(field_key, 25)))


def read_direct(grid: CellGrid, positions: Sequence[Tuple[int, int]], header_row: Optional[int] = None) -> str:
    """
    Value at the first known fixed position that holds something. Cells at or
    below the roster header row belong to the table, not to the metadata.
    """
    for r, c in positions:
        if header_row is not None and r >= header_row:
            continue
        v = grid.cell(r, c)
        if v and not INVALID_VALUE_RE.search(v):
            return v
    return ""


def read_by_label(grid: CellGrid, patterns: Sequence[Any], max_rows: int) -> str:
    pos = scan_label(grid, patterns, max_rows, stop_pattern=STUDENT_HEADER_RE)
    if pos is None:
        return ""
    return resolve_near(grid, pos.row, pos.col, INVALID_VALUE_RE)


def parse_sheet_name(sheet_name: str) -> Tuple[str, str, str]:
    """
    "<class> - <division> - <subject...>" as used by third-party exports.
    Returns empty strings when the name carries no separator.
    """
    if SHEET_NAME_SEPARATOR not in (sheet_name or ""):
        return "", "", ""
    parts = [p.strip() for p in sheet_name.split(SHEET_NAME_SEPARATOR)]
    class_name = parts[0] if len(parts) > 0 else ""
    division = parts[1] if len(parts) > 1 else ""
    subject = SHEET_NAME_SEPARATOR.join(p for p in parts[2:] if p).strip()
    return class_name, division, subject


def _resolve(
    grid: CellGrid,
    field_key: str,
    sheet_part: str,
    header_row: Optional[int],
    rules: dict,
) -> Optional[ResolvedField]:
    v = read_direct(grid, _positions(field_key, rules), header_row)
    if v:
        return ResolvedField(v, Provenance.DIRECT)

    v = read_by_label(grid, _label_patterns(field_key, rules), _scan_rows(field_key, rules))
    if v:
        return ResolvedField(v, Provenance.ROW_LABEL)

    if sheet_part:
        return ResolvedField(sheet_part, Provenance.SHEET_NAME)

    return None


def extract_class_division_subject(
    grid: CellGrid,
    sheet_name: str,
    fallback_class_name: str,
    accumulator: ParseAccumulator,
    header_row: Optional[int] = None,
    rules: Optional[dict] = None,
) -> SheetFields:
    """
    Class, division and subject of one sheet, each through the chain
    direct cell -> label scan -> sheet name -> previous sheet (class only)
    -> placeholder (class and division only).

    Registers the triple on the accumulator and records a warning for every
    field not read from its direct cell.
    """
    rules = RULES if rules is None else rules
    name_class, name_division, name_subject = parse_sheet_name(sheet_name)

    cls = _resolve(grid, "class", name_class, header_row, rules)
    if cls is None and fallback_class_name:
        cls = ResolvedField(fallback_class_name, Provenance.PREVIOUS)
    if cls is None:
        cls = ResolvedField(CLASS_PLACEHOLDER.format(sheet=sheet_name), Provenance.DEFAULT)

    div = _resolve(grid, "division", name_division, header_row, rules)
    if div is None:
        div = ResolvedField(DIVISION_PLACEHOLDER.format(sheet=sheet_name), Provenance.DEFAULT)

    subj = _resolve(grid, "subject", name_subject, header_row, rules)
    if subj is None:
        subj = ResolvedField("", Provenance.DEFAULT)

    fields = SheetFields(
        sheet_name=sheet_name,
        class_name=cls.value,
        division=div.value,
        subject=subj.value,
        provenance={"class": cls.provenance, "division": div.provenance, "subject": subj.provenance},
    )

    for key, resolved in (("class", cls), ("division", div), ("subject", subj)):
        if not resolved.value:
            continue
        accumulator.warnings.add(
            provenance_warning(key, resolved.provenance, sheet_name, resolved.value),
            provenance_category(key, resolved.provenance),
        )

    if cls.provenance == Provenance.DEFAULT:
        accumulator.mark_missing("class", sheet_name)
        logger.warning("sheet %r: class not found, using placeholder", sheet_name)
    elif not accumulator.fallback_class_name:
        accumulator.fallback_class_name = cls.value
    if div.provenance == Provenance.DEFAULT:
        accumulator.mark_missing("division", sheet_name)
        logger.warning("sheet %r: division not found, using placeholder", sheet_name)

    accumulator.register(fields.class_name, fields.division, fields.subject)

    logger.debug(
        "sheet %r: class=%r (%s) division=%r (%s) subject=%r (%s)",
        sheet_name,
        cls.value, cls.provenance.value,
        div.value, div.provenance.value,
        subj.value, subj.provenance.value,
    )
    return fields


def extract_school_info(
    sheets: Sequence[Tuple[str, CellGrid]],
    accumulator: ParseAccumulator,
    header_rows: Optional[Sequence[Optional[int]]] = None,
    rules: Optional[dict] = None,
) -> SchoolInfo:
    """
    Directorate / school / program. Direct cells are read from the first
    sheet only; the label scan then walks every sheet in order. Fields never
    found stay None.
    """
    rules = RULES if rules is None else rules
    info = SchoolInfo()
    if not sheets:
        return info

    header_rows = list(header_rows) if header_rows is not None else [None] * len(sheets)
    first_name, first_grid = sheets[0]
    max_rows = _scan_rows("school_info", rules)

    for key in SCHOOL_INFO_FIELDS:
        v = read_direct(first_grid, _positions(key, rules), header_rows[0])
        if v:
            setattr(info, key, v)
            continue

        patterns = _label_patterns(key, rules)
        for sheet_name, grid in sheets:
            v = read_by_label(grid, patterns, max_rows)
            if v:
                setattr(info, key, v)
                accumulator.warnings.add(
                    provenance_warning(key, Provenance.ROW_LABEL, sheet_name, v),
                    WarningCategory.LOW_CONFIDENCE,
                )
                break

    logger.debug("school info: %s", info)
    return info
