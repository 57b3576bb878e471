from __future__ import annotations
import pandas as pd
from io import BytesIO
from typing import Dict, List, Tuple
from .models import GradebookAnalysis, ParsedData, STUDENT_ATTR, TERM_ORDER

TERM_LABELS = {"first": "الفصل الأول", "second": "الفصل الثاني", "average": "المعدل"}

STUDENT_COLUMNS = [
    ("id", "المعرف"),
    ("name", "اسم الطالب"),
    ("first_name", "الاسم الأول"),
    ("father_name", "اسم الأب"),
    ("grandfather_name", "اسم الجد"),
    ("family_name", "اسم العائلة"),
    ("class_name", "الصف"),
    ("division", "الشعبة"),
    ("national_id", "رقم الإثبات"),
    ("birth_date", "تاريخ الميلاد"),
    ("status", "حالة القيد"),
]

GRADEBOOK_FIELD_LABELS = {
    "nationality": "الجنسية",
    "birth_place": "مكان الولادة",
    "birth_day": "اليوم",
    "birth_month": "الشهر",
    "birth_year": "السنة",
    "respect": "احترام النظام",
    "absence_days": "عدد أيام الغياب",
    "repeated_grades": "الصفوف التي أعادها الطالب",
    "completion_result": "النتيجة بعد تأدية اختبارات الإكمال",
    "total": "المجموع العام",
    "percentage": "المعدل العام المئوي",
    "annual_result": "النتيجة السنوية",
}


def parsed_to_frames(parsed: ParsedData) -> Dict[str, pd.DataFrame]:
    """Review tables for a parsed roster report, keyed by output sheet name."""
    students = pd.DataFrame(
        [{label: getattr(s, attr) for attr, label in STUDENT_COLUMNS} for s in parsed.students],
        columns=[label for _, label in STUDENT_COLUMNS],
    )

    class_rows = []
    for group in parsed.classes:
        for div in group.divisions:
            class_rows.append({
                "الصف": group.class_name,
                "الشعبة": div.division,
                "المباحث": "، ".join(s.name for s in div.subjects),
                "عدد الطلبة": sum(1 for s in parsed.students if s.class_name == group.class_name and s.division == div.division),
            })
    classes = pd.DataFrame(class_rows, columns=["الصف", "الشعبة", "المباحث", "عدد الطلبة"])

    sheets = pd.DataFrame(
        [{
            "الورقة": r.sheet_name,
            "الصف": r.class_name,
            "الشعبة": r.division,
            "المبحث": r.subject or "",
            "عدد الطلبة": len(r.students),
        } for r in parsed.sheets],
        columns=["الورقة", "الصف", "الشعبة", "المبحث", "عدد الطلبة"],
    )

    warnings = pd.DataFrame({"التنبيه": list(parsed.warnings)})

    info = parsed.school_info
    school = pd.DataFrame(
        [
            ("المديرية", info.directorate if info else None),
            ("المدرسة", info.school if info else None),
            ("البرنامج", info.program if info else None),
        ],
        columns=["البند", "القيمة"],
    )

    return {
        "الطلبة": students,
        "الصفوف والشعب": classes,
        "الأوراق": sheets,
        "بيانات المدرسة": school,
        "التنبيهات": warnings,
    }


def gradebook_to_frames(analysis: GradebookAnalysis) -> Dict[str, pd.DataFrame]:
    terms = analysis.terms or list(TERM_ORDER)
    score_cols: List[Tuple[str, str, str]] = [
        (subj.name, t, f"{subj.name} - {TERM_LABELS[t]}") for subj in analysis.subjects for t in terms
    ]
    field_attrs = [a for a in STUDENT_ATTR.values() if any(getattr(s, a) for s in analysis.students)]

    rows = []
    for s in analysis.students:
        row = {"الرقم المتسلسل": s.serial, "الاسم": s.name}
        for attr in field_attrs:
            row[GRADEBOOK_FIELD_LABELS[attr]] = getattr(s, attr) or ""
        for subject, term, label in score_cols:
            row[label] = s.subjects.get(subject, {}).get(term, "")
        rows.append(row)
    columns = ["الرقم المتسلسل", "الاسم"] + [GRADEBOOK_FIELD_LABELS[a] for a in field_attrs] + [c[2] for c in score_cols]
    students = pd.DataFrame(rows, columns=columns)

    subjects = pd.DataFrame(
        [{"المبحث": s.name, "النهاية العظمى": s.max_score or "", "النهاية الصغرى": s.min_score or ""} for s in analysis.subjects],
        columns=["المبحث", "النهاية العظمى", "النهاية الصغرى"],
    )

    info = analysis.info
    info_df = pd.DataFrame(
        [
            ("المديرية", info.directorate),
            ("البلدة", info.town),
            ("المدرسة", info.school),
            ("اللواء", info.district),
            ("الصف", info.grade),
            ("الشعبة", info.division),
            ("البرنامج", info.program),
            ("ورقة العمل", analysis.sheet_name),
        ],
        columns=["البند", "القيمة"],
    )

    return {
        "العلامات": students,
        "المباحث": subjects,
        "بيانات الجدول": info_df,
        "التنبيهات": pd.DataFrame({"التنبيه": list(analysis.warnings)}),
    }


def _write_frames(frames: Dict[str, pd.DataFrame]) -> bytes:
    bio = BytesIO()

    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        for sheet_name, df in frames.items():
            df.to_excel(writer, index=False, sheet_name=sheet_name)

        wb = writer.book
        fmt_header = wb.add_format({"bold": True, "bg_color": "#F2F2F2", "border": 1, "valign": "vcenter"})

        def format_df_sheet(sheet_name: str, df: pd.DataFrame, default_width: int = 18, max_width: int = 60):
            ws = writer.sheets.get(sheet_name)
            if ws is None:
                return
            ws.right_to_left()
            ws.freeze_panes(1, 0)
            ws.autofilter(0, 0, max(1, len(df)), max(0, len(df.columns) - 1))
            for col, name in enumerate(df.columns):
                ws.write(0, col, name, fmt_header)
                w = max(10, min(max_width, int(len(str(name)) * 1.2) + 6))
                ws.set_column(col, col, max(default_width, w))

        for sheet_name, df in frames.items():
            format_df_sheet(sheet_name, df)

    return bio.getvalue()


def export_parsed_to_excel_bytes(parsed: ParsedData) -> bytes:
    return _write_frames(parsed_to_frames(parsed))


def export_gradebook_to_excel_bytes(analysis: GradebookAnalysis) -> bytes:
    return _write_frames(gradebook_to_frames(analysis))
