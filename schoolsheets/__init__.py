"""
Structure inference for Excel exports of the school administration portal:
- decoding of .xlsx / .xls uploads into plain cell grids
- the student-information report: class / division / subject per sheet,
  school info, roster with national IDs and name parts
- the gradebook ("جدول العلامات"): two-row header, subject/term columns,
  score limits, per-student records
- warnings for every value that was inferred rather than read
- review export to .xlsx
"""
from .errors import (
    EmptySheetError,
    EmptyWorkbookError,
    HeaderNotFoundError,
    NoStudentsError,
    SheetParseError,
    UnreadableWorkbookError,
)
from .ingest import Workbook, load_workbook_bytes
from .ministry import parse_ministry_file, parse_ministry_workbook
from .gradebook import analyze_gradebook, analyze_gradebook_file, build_descriptors
from .export import export_gradebook_to_excel_bytes, export_parsed_to_excel_bytes, gradebook_to_frames, parsed_to_frames

__all__ = [
    "SheetParseError",
    "UnreadableWorkbookError",
    "EmptyWorkbookError",
    "EmptySheetError",
    "HeaderNotFoundError",
    "NoStudentsError",
    "Workbook",
    "load_workbook_bytes",
    "parse_ministry_workbook",
    "parse_ministry_file",
    "analyze_gradebook",
    "analyze_gradebook_file",
    "build_descriptors",
    "parsed_to_frames",
    "gradebook_to_frames",
    "export_parsed_to_excel_bytes",
    "export_gradebook_to_excel_bytes",
]
