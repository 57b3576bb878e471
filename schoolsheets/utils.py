import os
import re
import json
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional
from dateutil import parser as dtparser

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_DATA_DIR = PACKAGE_DIR / "data"

RULES_ENV = "SCHOOLSHEETS_RULES"


def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def rules_path() -> Path:
    override = os.environ.get(RULES_ENV)
    if override:
        return Path(override)
    return DEFAULT_DATA_DIR / "rules.json"


def load_rules() -> dict:
    rules = load_json(rules_path(), {})
    return rules if isinstance(rules, dict) else {}


def rule(rules: dict, section: str, key: str, default: Any) -> Any:
    # rules.json is optional and may be partial
    block = rules.get(section)
    if not isinstance(block, dict):
        return default
    value = block.get(key)
    return default if value is None else value


_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F]")
_WS_RE = re.compile(r"\s+")
_SEPARATOR_ONLY_RE = re.compile(r"^[:\-]+$")


def _stringify(v: Any) -> str:
    if isinstance(v, bool):
        return str(v)
    if isinstance(v, float):
        if math.isnan(v) or math.isinf(v):
            return ""
        if v.is_integer():
            return str(int(v))
        return repr(v)
    if isinstance(v, datetime):
        if v.hour == v.minute == v.second == 0:
            return v.strftime("%Y-%m-%d")
        return v.isoformat(sep=" ")
    if isinstance(v, date):
        return v.strftime("%Y-%m-%d")
    return str(v)


def norm_cell(v: Any) -> str:
    """
    Normalization of a raw cell value:
    - None / NaN -> ""
    - integral floats without the trailing ".0" (xls decoders return 7.0)
    - dates as YYYY-MM-DD
    - BOM / non-breaking spaces, collapsed whitespace, trimmed
    - a lone ':' or any run of ':'/'-' counts as empty
    """
    if v is None:
        return ""
    s = _stringify(v)
    if s.lower() == "nan":
        return ""
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    s = _WS_RE.sub(" ", s).strip()
    if not s or _SEPARATOR_ONLY_RE.match(s):
        return ""
    return s


def split_full_name(name: str) -> tuple[str, str, str, str]:
    # first / father / grandfather / family (the rest)
    parts = [p for p in _WS_RE.split(name or "") if p]
    first = parts[0] if len(parts) > 0 else ""
    father = parts[1] if len(parts) > 1 else ""
    grandfather = parts[2] if len(parts) > 2 else ""
    family = " ".join(parts[3:])
    return first, father, grandfather, family


_ARABIC_INDIC = str.maketrans("٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹", "01234567890123456789")
_NON_NUMERIC_RE = re.compile(r"[^0-9.,\-]")


def parse_number(v: Any) -> Optional[float]:
    """
    Score text -> float. Everything except digits, '.', ',' and '-' is dropped,
    commas become dots. Empty or non-finite results give None, never 0.
    """
    if v is None:
        return None
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        x = float(v)
        return x if math.isfinite(x) else None
    text = str(v).translate(_ARABIC_INDIC)
    text = _NON_NUMERIC_RE.sub("", text).replace(",", ".")
    if not text:
        return None
    try:
        x = float(text)
    except ValueError:
        return None
    return x if math.isfinite(x) else None


def format_number(x: float) -> str:
    if float(x).is_integer():
        return str(int(x))
    return repr(float(x))


def try_parse_date(s: Any) -> Optional[str]:
    # birth dates arrive as datetime cells or as dd/mm/yyyy text
    if s is None:
        return None

    if hasattr(s, "year") and hasattr(s, "month") and hasattr(s, "day"):
        try:
            return f"{int(s.year):04d}-{int(s.month):02d}-{int(s.day):02d}"
        except (TypeError, ValueError):
            return None

    txt = norm_cell(s).translate(_ARABIC_INDIC)
    if not txt:
        return None

    # dd/mm/yyyy
    if re.match(r"^\d{1,2}[./-]\d{1,2}[./-]\d{2,4}$", txt):
        try:
            dt = dtparser.parse(txt, dayfirst=True)
            return dt.strftime("%Y-%m-%d")
        except (ValueError, OverflowError):
            return None

    # yyyy-mm-dd
    if re.match(r"^\d{4}[./-]\d{1,2}[./-]\d{1,2}$", txt):
        try:
            dt = dtparser.parse(txt, dayfirst=False)
            return dt.strftime("%Y-%m-%d")
        except (ValueError, OverflowError):
            return None

    return None
