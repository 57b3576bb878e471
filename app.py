from __future__ import annotations
import logging
import os
import streamlit as st
import pandas as pd
from schoolsheets import (
    SheetParseError,
    analyze_gradebook,
    export_gradebook_to_excel_bytes,
    export_parsed_to_excel_bytes,
    load_workbook_bytes,
    parse_ministry_workbook,
    gradebook_to_frames,
    parsed_to_frames,
)

logging.basicConfig(
    level=os.environ.get("SCHOOLSHEETS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("schoolsheets.app")

st.set_page_config(page_title="قراءة كشوفات المدرسة", layout="wide")
st.title("قراءة ملفات Excel المصدّرة من المنصة")

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
REPORT_TYPES = {
    "ministry": "كشف معلومات الطلبة",
    "gradebook": "جدول العلامات",
}
# =========================

# Helpers
# =========================
def _show_warnings(warnings: list[str]) -> None:
    if not warnings:
        st.success("تمت قراءة جميع البيانات من مواقعها المعتادة.")
        return
    with st.expander(f"تنبيهات ({len(warnings)})", expanded=True):
        for w in warnings:
            st.warning(w)


def _show_info_table(df: pd.DataFrame) -> None:
    view = df.copy()
    view["القيمة"] = view["القيمة"].fillna("—")
    st.dataframe(view, width="stretch", hide_index=True)


def _render_ministry(parsed) -> None:
    frames = parsed_to_frames(parsed)
    _show_warnings(parsed.warnings)

    st.subheader("بيانات المدرسة")
    _show_info_table(frames["بيانات المدرسة"])

    st.subheader("الصفوف والشعب")
    for group in parsed.classes:
        with st.expander(group.class_name, expanded=False):
            for div in group.divisions:
                subjects = "، ".join(s.name for s in div.subjects) or "—"
                st.write(f"الشعبة {div.division}: {subjects}")

    st.subheader(f"الطلبة ({len(parsed.students)})")
    q = st.text_input("بحث بالاسم", value="")
    students = frames["الطلبة"]
    if q.strip():
        students = students[students["اسم الطالب"].astype(str).str.contains(q.strip(), na=False)]
    st.dataframe(students.head(1000), width="stretch", hide_index=True)

    st.subheader("الأوراق")
    st.dataframe(frames["الأوراق"], width="stretch", hide_index=True)

    st.download_button(
        "تنزيل ملف المراجعة",
        data=export_parsed_to_excel_bytes(parsed),
        file_name="مراجعة_كشف_الطلبة.xlsx",
        mime=XLSX_MIME,
    )


def _render_gradebook(analysis) -> None:
    frames = gradebook_to_frames(analysis)
    _show_warnings(analysis.warnings)

    st.subheader("بيانات الجدول")
    _show_info_table(frames["بيانات الجدول"])

    st.subheader("المباحث")
    st.dataframe(frames["المباحث"], width="stretch", hide_index=True)

    st.subheader(f"العلامات ({len(analysis.students)} طالب)")
    st.caption("الفصول المكتشفة: " + ("، ".join(analysis.terms) if analysis.terms else "لا يوجد"))
    st.dataframe(frames["العلامات"].head(1000), width="stretch", hide_index=True)

    st.download_button(
        "تنزيل ملف المراجعة",
        data=export_gradebook_to_excel_bytes(analysis),
        file_name="مراجعة_جدول_العلامات.xlsx",
        mime=XLSX_MIME,
    )
# =========================

# Upload
# =========================
report_type = st.radio(
    "نوع الملف",
    list(REPORT_TYPES),
    format_func=lambda k: REPORT_TYPES[k],
    horizontal=True,
)
expand_merged = st.checkbox("توزيع قيم الخلايا المدمجة على كامل النطاق (xlsx فقط)", value=False)

upload = st.file_uploader(
    "حمّل ملف Excel كما صدر من المنصة",
    type=["xlsx", "xls"],
    accept_multiple_files=False,
)

if not upload:
    st.info("حمّل ملفًا للبدء.")
    st.stop()

try:
    workbook = load_workbook_bytes(upload.getvalue(), upload.name, expand_merged=expand_merged)
    st.caption(f"عدد أوراق العمل: {len(workbook)}")
    if report_type == "ministry":
        result = parse_ministry_workbook(workbook)
    else:
        result = analyze_gradebook(workbook)
except SheetParseError as e:
    logger.warning("parse failed for %r: %s", upload.name, e.message)
    st.error(e.message)
    st.stop()

if report_type == "ministry":
    _render_ministry(result)
else:
    _render_gradebook(result)
