import datetime as dt
import re

from schoolsheets.grid import CellGrid
from schoolsheets.labels import find_in_row, resolve_adjacent, resolve_near, scan_label
from schoolsheets.utils import norm_cell, parse_number, split_full_name, try_parse_date


class TestNormCell:
    def test_empty_values(self):
        assert norm_cell(None) == ""
        assert norm_cell(float("nan")) == ""
        assert norm_cell(":") == ""
        assert norm_cell(" -- ") == ""

    def test_integral_float_loses_fraction(self):
        assert norm_cell(7.0) == "7"
        assert norm_cell(7.5) == "7.5"

    def test_whitespace_and_nbsp(self):
        assert norm_cell("\ufeff\u00a0الصف  السابع\u00a0 ") == "الصف السابع"

    def test_dates(self):
        assert norm_cell(dt.datetime(2012, 3, 5)) == "2012-03-05"
        assert norm_cell(dt.date(2012, 3, 5)) == "2012-03-05"


class TestUtils:
    def test_parse_number(self):
        assert parse_number("8,5") == 8.5
        assert parse_number("٩٠") == 90.0
        assert parse_number(7) == 7.0
        assert parse_number("—") is None
        assert parse_number("") is None
        assert parse_number("-") is None
        assert parse_number(None) is None

    def test_split_full_name(self):
        assert split_full_name("أحمد محمد علي حسن") == ("أحمد", "محمد", "علي", "حسن")
        assert split_full_name("ليلى سمير عبد الله") == ("ليلى", "سمير", "عبد", "الله")
        assert split_full_name("يوسف أحمد") == ("يوسف", "أحمد", "", "")
        assert split_full_name("محمد أحمد علي أبو زيد") == ("محمد", "أحمد", "علي", "أبو زيد")

    def test_try_parse_date(self):
        assert try_parse_date("05/03/2012") == "2012-03-05"
        assert try_parse_date("2012-03-05") == "2012-03-05"
        assert try_parse_date(dt.datetime(2012, 3, 5)) == "2012-03-05"
        assert try_parse_date("غير معروف") is None
        assert try_parse_date("") is None


class TestCellGrid:
    def test_ragged_rows_and_out_of_range(self):
        g = CellGrid([["a", "b", "c"], ["d"], []])
        assert g.n_rows == 3
        assert g.width(1) == 1
        assert g.cell(1, 2) == ""
        assert g.cell(10, 0) == ""
        assert g.cell(0, -1) == ""
        assert g.row(5) == []
        assert g.row(2) == []

    def test_none_input(self):
        g = CellGrid(None)
        assert len(g) == 0
        assert g.cell(0, 0) == ""


class TestLabelScanner:
    def test_row_major_first_match(self):
        g = CellGrid([
            ["", "x"],
            ["الشعبة", "", "الصف"],
            ["الصف"],
        ])
        pos = scan_label(g, [r"^الصف$"], max_rows=10)
        assert (pos.row, pos.col) == (1, 2)

    def test_pattern_order_within_cell(self):
        g = CellGrid([["المبحث"]])
        pos = scan_label(g, [r"^المادة$", r"^المبحث$"], max_rows=5)
        assert pos.text == "المبحث"

    def test_max_rows_bound(self):
        g = CellGrid([[""], [""], ["الصف"]])
        assert scan_label(g, [r"^الصف$"], max_rows=2) is None
        assert scan_label(g, [r"^الصف$"], max_rows=3) is not None

    def test_stop_pattern_ends_scan_before_row(self):
        g = CellGrid([
            [""],
            ["اسم الطالب", "الصف"],
            ["الصف"],
        ])
        assert scan_label(g, [r"^الصف$"], max_rows=10, stop_pattern=r"اسم\s*الطالب") is None

    def test_find_in_row(self):
        g = CellGrid([["", "اسم الطالب", "الشعبة"]])
        assert find_in_row(g, 0, re.compile(r"^الشعبة$")) == 2
        assert find_in_row(g, 0, r"رقم") == -1


class TestValueResolver:
    def test_left_neighbour_first(self):
        g = CellGrid([["X", "LABEL", "", "Y"]])
        assert resolve_near(g, 0, 1) == "X"

    def test_right_when_left_empty(self):
        g = CellGrid([["", "LABEL", "Y"]])
        assert resolve_near(g, 0, 1) == "Y"

    def test_nearest_left_wins(self):
        g = CellGrid([["far", "", "near", "LABEL"]])
        assert resolve_near(g, 0, 3) == "near"

    def test_invalid_values_are_skipped(self):
        g = CellGrid([["حسن", "اسم الطالب", "LABEL", "Y"]])
        assert resolve_near(g, 0, 2, r"\bاسم\b") == "حسن"

    def test_separator_only_cells_are_empty(self):
        g = CellGrid([[":", "LABEL", "Y"]])
        assert resolve_near(g, 0, 1) == "Y"

    def test_nothing_found(self):
        g = CellGrid([["", "LABEL", ""]])
        assert resolve_near(g, 0, 1) == ""

    def test_adjacent_prefers_right_at_equal_distance(self):
        g = CellGrid([["L", "label", "R"]])
        assert resolve_adjacent(g, 0, 1) == "R"

    def test_adjacent_takes_nearest_side_first(self):
        g = CellGrid([["near", "label", "", "far"]])
        assert resolve_adjacent(g, 0, 1) == "near"

    def test_adjacent_passes_over_skipped_cells(self):
        g = CellGrid([["", "المدرسة:", "البلدة:", "", "ثانوية النور"]])
        assert resolve_adjacent(g, 0, 1, r"^(المدرسة|البلدة):$") == "ثانوية النور"
        assert resolve_adjacent(CellGrid([["label"]]), 0, 0) == ""
