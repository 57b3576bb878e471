from io import BytesIO

import pytest
from openpyxl import Workbook as XlsxWorkbook


def _rows_from_cells(cells, n_rows=None, n_cols=None):
    """{(row, col): value} -> padded list of rows."""
    n_rows = n_rows if n_rows is not None else max((r for r, _ in cells), default=-1) + 1
    n_cols = n_cols if n_cols is not None else max((c for _, c in cells), default=-1) + 1
    rows = [[None] * n_cols for _ in range(n_rows)]
    for (r, c), v in cells.items():
        rows[r][c] = v
    return rows


def _xlsx_bytes(sheets, merges=None):
    wb = XlsxWorkbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for r, row in enumerate(rows):
            for c, v in enumerate(row):
                if v is not None:
                    ws.cell(row=r + 1, column=c + 1, value=v)
        for rng in (merges or {}).get(name, []):
            ws.merge_cells(rng)
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


@pytest.fixture
def make_rows():
    return _rows_from_cells


@pytest.fixture
def xlsx_bytes():
    return _xlsx_bytes


@pytest.fixture
def ministry_sheets(make_rows):
    """
    Two sheets of the same class and division:
    - the first carries its metadata only in the sheet name
    - the second in the fixed cells, with the subject behind a label
    """
    name_only = make_rows({
        (0, 3): "اسم الطالب",
        (1, 3): "أحمد محمد علي حسن",
        (2, 3): "سارة خالد يوسف",
    })
    direct = make_rows({
        (2, 0): "العلوم",
        (2, 1): "المبحث",
        (6, 3): "الصف السابع",
        (14, 3): "أ",
        (16, 3): "اسم الطالب",
        (16, 4): "رقم الإثبات",
        (16, 5): "تاريخ الميلاد",
        (17, 3): "ليلى سمير عبد الله",
        (17, 4): 9991,
        (17, 5): "05/03/2012",
        (18, 3): "يوسف أحمد",
        (18, 4): 9992,
    })
    return {"الصف السابع - أ - رياضيات": name_only, "Sheet2": direct}


@pytest.fixture
def gradebook_rows():
    return [
        ["عمان الأولى", "مديرية التربية والتعليم"],
        ["ثانوية النور", "المدرسة"],
        ["الصف:", "السابع", "الشعبة", "(أ)"],
        ["الرقم المتسلسل", "الاسم", "الجنسية", "الرياضيات", "", "العلوم", "", "المجموع العام"],
        ["", "", "", "الفصل الأول", "الفصل الثاني", "الفصل الأول", "الفصل الثاني", ""],
        ["النهاية العظمى", "", "", " 100", 100, 50, 50, ""],
        ["النهاية الصغرى", "", "", 50, 50, 25, 25, ""],
        [1, "أحمد محمد", "أردني", 80, "", 40, "", "120"],
        [2, "سارة علي", "أردنية", "8,5", "", 30, "", ""],
        ["", "", "", "", "", "", "", ""],
    ]
