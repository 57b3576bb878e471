from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class Provenance(str, Enum):
    """How a metadata field was resolved. Diagnostic only, never returned to callers."""

    DIRECT = "direct"
    ROW_LABEL = "row-label"
    SHEET_NAME = "sheet-name"
    PREVIOUS = "previous"
    DEFAULT = "default"


TERM_ORDER: Tuple[str, ...] = ("first", "second", "average")


# =========================

# Roster (ministry student-information report)
# =========================
@dataclass
class Student:
    id: str
    name: str
    class_name: str
    division: str
    first_name: str = ""
    father_name: str = ""
    grandfather_name: str = ""
    family_name: str = ""
    national_id: str = ""
    birth_date: str = ""
    status: str = ""


@dataclass
class Subject:
    id: str
    name: str


@dataclass
class Division:
    id: str
    division: str
    subjects: List[Subject] = field(default_factory=list)


@dataclass
class ClassGroup:
    class_name: str
    divisions: List[Division] = field(default_factory=list)


@dataclass
class SchoolInfo:
    directorate: Optional[str] = None
    school: Optional[str] = None
    program: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.directorate or self.school or self.program)


@dataclass
class SheetResult:
    sheet_name: str
    class_name: str
    division: str
    subject: Optional[str]
    students: List[Student] = field(default_factory=list)


@dataclass
class ParsedData:
    students: List[Student]
    classes: List[ClassGroup]
    school_info: Optional[SchoolInfo] = None
    sheets: List[SheetResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# =========================

# Gradebook ("جدول العلامات")
# =========================
class FieldKind(str, Enum):
    SERIAL = "serial"
    NAME = "name"
    NATIONALITY = "nationality"
    BIRTH_PLACE = "birthPlace"
    BIRTH_DAY = "birthDay"
    BIRTH_MONTH = "birthMonth"
    BIRTH_YEAR = "birthYear"
    RESPECT = "respect"
    ABSENCE_DAYS = "absenceDays"
    REPEATED_GRADES = "repeatedGrades"
    COMPLETION_RESULT = "completionResult"
    TOTAL = "total"
    PERCENTAGE = "percentage"
    ANNUAL_RESULT = "annualResult"


# GradebookStudent attribute for each per-student field column
STUDENT_ATTR: Dict[FieldKind, str] = {
    FieldKind.NATIONALITY: "nationality",
    FieldKind.BIRTH_PLACE: "birth_place",
    FieldKind.BIRTH_DAY: "birth_day",
    FieldKind.BIRTH_MONTH: "birth_month",
    FieldKind.BIRTH_YEAR: "birth_year",
    FieldKind.RESPECT: "respect",
    FieldKind.ABSENCE_DAYS: "absence_days",
    FieldKind.REPEATED_GRADES: "repeated_grades",
    FieldKind.COMPLETION_RESULT: "completion_result",
    FieldKind.TOTAL: "total",
    FieldKind.PERCENTAGE: "percentage",
    FieldKind.ANNUAL_RESULT: "annual_result",
}


@dataclass(frozen=True)
class FieldColumn:
    kind: FieldKind


@dataclass(frozen=True)
class SubjectTermColumn:
    subject: str
    term: str

    def __post_init__(self):
        if not self.subject:
            raise ValueError("subject column without a subject name")
        if self.term not in TERM_ORDER:
            raise ValueError(f"unknown term key: {self.term!r}")


ColumnDescriptor = Union[FieldColumn, SubjectTermColumn, None]


@dataclass
class GradebookSubject:
    name: str
    max_score: Optional[str] = None
    min_score: Optional[str] = None


@dataclass
class GradebookStudent:
    serial: str
    name: str
    nationality: Optional[str] = None
    birth_place: Optional[str] = None
    birth_day: Optional[str] = None
    birth_month: Optional[str] = None
    birth_year: Optional[str] = None
    respect: Optional[str] = None
    absence_days: Optional[str] = None
    repeated_grades: Optional[str] = None
    completion_result: Optional[str] = None
    total: Optional[str] = None
    percentage: Optional[str] = None
    annual_result: Optional[str] = None
    subjects: Dict[str, Dict[str, str]] = field(default_factory=dict)


@dataclass
class GradebookInfo:
    directorate: Optional[str] = None
    town: Optional[str] = None
    school: Optional[str] = None
    district: Optional[str] = None
    grade: Optional[str] = None
    division: Optional[str] = None
    program: Optional[str] = None


@dataclass
class GradebookAnalysis:
    info: GradebookInfo
    subjects: List[GradebookSubject]
    terms: List[str]
    students: List[GradebookStudent]
    sheet_name: str = ""
    warnings: List[str] = field(default_factory=list)
