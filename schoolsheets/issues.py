from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, List, Optional
from .models import Provenance


class WarningCategory(str, Enum):
    MISSING_CLASS = "missing-class"
    MISSING_DIVISION = "missing-division"
    LOW_CONFIDENCE = "low-confidence-source"


FIELD_LABELS = {
    "class": "الصف",
    "division": "الشعبة",
    "subject": "المبحث",
    "directorate": "المديرية",
    "school": "المدرسة",
    "program": "البرنامج",
}

PROVENANCE_MESSAGES = {
    Provenance.ROW_LABEL: 'تم تحديد {field} في ورقة "{sheet}" من تسمية قريبة ("{value}") وليس من موقعه المعتاد. يُنصح بالتحقق يدويًا.',
    Provenance.SHEET_NAME: 'تم استنتاج {field} ("{value}") من اسم الورقة "{sheet}". يُنصح بالتحقق يدويًا.',
    Provenance.PREVIOUS: 'لم يُعثر على {field} في ورقة "{sheet}"، فاستُخدمت القيمة "{value}" من ورقة سابقة. يُنصح بالتحقق يدويًا.',
    Provenance.DEFAULT: 'لم يُعثر على {field} في ورقة "{sheet}"، فاستُخدمت القيمة الافتراضية "{value}". يُرجى التحقق يدويًا.',
}

MISSING_SHEETS_MESSAGES = {
    WarningCategory.MISSING_CLASS: "أوراق بدون صف محدد: {sheets}. يُرجى مراجعة هذه الأوراق وتحديد الصف يدويًا.",
    WarningCategory.MISSING_DIVISION: "أوراق بدون شعبة محددة: {sheets}. يُرجى مراجعة هذه الأوراق وتحديد الشعبة يدويًا.",
}


def provenance_warning(field_key: str, provenance: Provenance, sheet_name: str, value: str) -> Optional[str]:
    # direct reads are trusted silently
    template = PROVENANCE_MESSAGES.get(provenance)
    if template is None:
        return None
    return template.format(field=FIELD_LABELS.get(field_key, field_key), sheet=sheet_name, value=value)


def provenance_category(field_key: str, provenance: Provenance) -> WarningCategory:
    if provenance == Provenance.DEFAULT:
        if field_key == "class":
            return WarningCategory.MISSING_CLASS
        if field_key == "division":
            return WarningCategory.MISSING_DIVISION
    return WarningCategory.LOW_CONFIDENCE


def missing_sheets_warning(category: WarningCategory, sheet_names: Iterable[str]) -> Optional[str]:
    names = [s for s in sheet_names if s]
    template = MISSING_SHEETS_MESSAGES.get(category)
    if not names or template is None:
        return None
    return template.format(sheets="، ".join(names))


class WarningAggregator:
    """
    Ordered set of warning texts. The same text added twice is kept once, in
    the position it was first seen. An empty result means full confidence.
    """

    def __init__(self):
        self._items: Dict[str, WarningCategory] = {}

    def add(self, text: Optional[str], category: WarningCategory = WarningCategory.LOW_CONFIDENCE) -> bool:
        if not text:
            return False
        if text in self._items:
            return False
        self._items[text] = category
        return True

    def by_category(self, category: WarningCategory) -> List[str]:
        return [t for t, c in self._items.items() if c == category]

    def finalize(self) -> List[str]:
        return list(self._items)

    def __contains__(self, text: object) -> bool:
        return text in self._items

    def __len__(self) -> int:
        return len(self._items)
