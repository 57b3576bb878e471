import pytest

from schoolsheets import (
    EmptyWorkbookError,
    NoStudentsError,
    Workbook,
    load_workbook_bytes,
    parse_ministry_file,
    parse_ministry_workbook,
)
from schoolsheets.grid import CellGrid
from schoolsheets.models import Student
from schoolsheets.roster import ParseAccumulator
from schoolsheets.students import extract_students, find_roster_header, merge_student


class TestStudentRows:
    def test_header_columns(self):
        g = CellGrid([["", "الشعبة", "اسم الطالب", "رقم الإثبات", "تاريخ الميلاد", "حالة القيد"]])
        h = find_roster_header(g)
        assert (h.row, h.name_col, h.division_col, h.national_id_col, h.birth_date_col, h.status_col) == (0, 2, 1, 3, 4, 5)

    def test_division_column_overrides_sheet_division(self):
        g = CellGrid([
            ["اسم الطالب", "الشعبة"],
            ["أحمد محمد", "ب"],
            ["سارة علي", ""],
        ])
        acc = ParseAccumulator()
        out = extract_students(g, "S", "الصف السابع", "أ", "", acc)

        assert [s.division for s in out] == ["ب", "أ"]
        assert set(acc.class_map["الصف السابع"]) == {"أ", "ب"}

    def test_rows_without_name_are_skipped(self):
        g = CellGrid([
            ["اسم الطالب"],
            ["أحمد"],
            [""],
            ["سارة"],
        ])
        out = extract_students(g, "S", "C", "D", "", ParseAccumulator())
        assert [s.name for s in out] == ["أحمد", "سارة"]
        assert [s.id for s in out] == ["student-S-1", "student-S-3"]

    def test_no_header_no_students(self):
        assert extract_students(CellGrid([["x"]]), "S", "C", "D", "", ParseAccumulator()) == []

    def test_name_parts_and_birth_date(self):
        g = CellGrid([
            ["اسم الطالب", "تاريخ الميلاد", "حالة القيد"],
            ["ليلى سمير عبد الله", "05/03/2012", "منتظم"],
        ])
        (s,) = extract_students(g, "S", "C", "D", "", ParseAccumulator())
        assert (s.first_name, s.father_name, s.grandfather_name, s.family_name) == ("ليلى", "سمير", "عبد", "الله")
        assert s.birth_date == "2012-03-05"
        assert s.status == "منتظم"

    def test_merge_fills_only_empty_fields(self):
        existing = Student(id="1", name="أحمد", class_name="C", division="D", status="منتظم")
        incoming = Student(id="1", name="أحمد محمد", class_name="X", division="Y", status="منقول", birth_date="2012-01-01")
        merged = merge_student(existing, incoming)

        assert merged.name == "أحمد"
        assert merged.class_name == "C"
        assert merged.status == "منتظم"
        assert merged.birth_date == "2012-01-01"

    def test_same_national_id_across_sheets(self):
        acc = ParseAccumulator()
        first = CellGrid([["اسم الطالب", "رقم الإثبات"], ["أحمد محمد", 123]])
        second = CellGrid([["اسم الطالب", "رقم الإثبات", "حالة القيد"], ["أحمد محمد", 123, "منتظم"]])
        extract_students(first, "S1", "C", "D", "رياضيات", acc)
        extract_students(second, "S2", "C", "D", "علوم", acc)

        assert list(acc.roster) == ["123"]
        assert acc.roster["123"].status == "منتظم"
        assert list(acc.class_map["C"]["D"]) == ["رياضيات", "علوم"]


class TestParseMinistryWorkbook:
    def test_two_sheet_report(self, ministry_sheets):
        parsed = parse_ministry_workbook(Workbook(ministry_sheets))

        assert len(parsed.students) == 4
        assert len(parsed.classes) == 1
        group = parsed.classes[0]
        assert group.class_name == "الصف السابع"
        assert [d.division for d in group.divisions] == ["أ"]
        assert [s.name for s in group.divisions[0].subjects] == ["رياضيات", "العلوم"]
        assert group.divisions[0].id == "الصف السابع-أ"
        assert group.divisions[0].subjects[1].id == "الصف السابع-أ-العلوم"

        assert any("الصف السابع - أ - رياضيات" in w for w in parsed.warnings)
        assert parsed.school_info is None

        by_id = {s.id: s for s in parsed.students}
        assert by_id["9991"].birth_date == "2012-03-05"
        assert by_id["9991"].national_id == "9991"

    def test_one_result_per_sheet(self, ministry_sheets):
        parsed = parse_ministry_workbook(Workbook(ministry_sheets))
        assert [r.sheet_name for r in parsed.sheets] == list(ministry_sheets)
        assert [r.subject for r in parsed.sheets] == ["رياضيات", "العلوم"]
        assert [len(r.students) for r in parsed.sheets] == [2, 2]

    def test_idempotent(self, ministry_sheets):
        wb = Workbook(ministry_sheets)
        assert parse_ministry_workbook(wb) == parse_ministry_workbook(wb)

    def test_student_ids_unique(self, ministry_sheets):
        parsed = parse_ministry_workbook(Workbook(ministry_sheets))
        ids = [s.id for s in parsed.students]
        assert len(ids) == len(set(ids))

    def test_warnings_have_no_duplicates(self, ministry_sheets):
        parsed = parse_ministry_workbook(Workbook(ministry_sheets))
        assert len(parsed.warnings) == len(set(parsed.warnings))

    def test_division_and_subject_registered_under_class(self, ministry_sheets):
        parsed = parse_ministry_workbook(Workbook(ministry_sheets))
        for group in parsed.classes:
            for div in group.divisions:
                assert div.division
                assert all(s.name for s in div.subjects)

    def test_sheet_without_table_still_reported(self, ministry_sheets, make_rows):
        sheets = dict(ministry_sheets)
        sheets["ملاحظات"] = make_rows({(0, 0): "ملاحظات عامة"})
        parsed = parse_ministry_workbook(Workbook(sheets))

        assert parsed.sheets[-1].sheet_name == "ملاحظات"
        assert parsed.sheets[-1].students == []
        assert parsed.sheets[-1].class_name == "الصف السابع"
        assert any("ملاحظات" in w for w in parsed.warnings)

    def test_classless_sheet_takes_the_first_resolved_class(self, ministry_sheets, make_rows):
        sheets = dict(ministry_sheets)
        sheets["Sheet3"] = make_rows({
            (6, 3): "الصف الثامن",
            (14, 3): "ب",
            (16, 3): "اسم الطالب",
            (17, 3): "مراد سليم",
        })
        sheets["ملاحظات"] = make_rows({(0, 0): "ملاحظات عامة"})
        parsed = parse_ministry_workbook(Workbook(sheets))

        assert parsed.sheets[2].class_name == "الصف الثامن"
        assert parsed.sheets[-1].class_name == "الصف السابع"

    def test_no_sheets(self):
        with pytest.raises(EmptyWorkbookError) as ei:
            parse_ministry_workbook(Workbook({}))
        assert ei.value.message == "الملف لا يحتوي على أي أوراق عمل"

    def test_no_students(self):
        with pytest.raises(NoStudentsError) as ei:
            parse_ministry_workbook(Workbook({"S": [["الصف السابع"], ["لا يوجد جدول"]]}))
        assert ei.value.message == "لم يتم العثور على أي طلبة في الملف"

    def test_from_xlsx_bytes(self, ministry_sheets, xlsx_bytes):
        data = xlsx_bytes(ministry_sheets)
        parsed = parse_ministry_file(data, "report.xlsx")

        assert len(parsed.students) == 4
        assert [s.name for s in parsed.classes[0].divisions[0].subjects] == ["رياضيات", "العلوم"]
        assert load_workbook_bytes(data).sheet_names == list(ministry_sheets)
