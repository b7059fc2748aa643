"""
名稱正規化與值格式化

- normalize_name：去掉 Figma 裝飾前綴、統一分隔符為「.」、轉小寫（冪等）
- format_value：Figma 顏色物件 / 數字 / 字型物件 → 標準字串
- css_var_name：token 名稱 → CSS custom property 名稱
"""

import json
import re

from .classifiers import is_font_weight

DELIMITER = "."

# 字型物件的辨識欄位
TYPOGRAPHY_KEYS = ("fontFamily", "fontSize", "fontWeight", "lineHeight", "letterSpacing")

_LEADING_JUNK_RE = re.compile(r"^[\W_]+")
_SEPARATOR_RE = re.compile(r"[\s/.]*[/.][\s/.]*")
_SPACE_RE = re.compile(r"\s+")


def normalize_name(name) -> str:
    """Figma 名稱 → 標準 token 路徑，例如 '✦ Color/Primary/500' → 'color.primary.500'."""
    if name is None:
        return ""
    cleaned = str(name).strip()
    cleaned = _LEADING_JUNK_RE.sub("", cleaned)
    cleaned = _SEPARATOR_RE.sub(DELIMITER, cleaned)
    cleaned = _SPACE_RE.sub("-", cleaned)
    cleaned = cleaned.strip(DELIMITER)
    return cleaned.lower()


def css_var_name(name: str) -> str:
    """'color/primary/500'、'Color Primary 500' → 'color-primary-500'."""
    slug = str(name).lower()
    slug = re.sub(r"[/.]", "-", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def css_var(name: str) -> str:
    return f"var(--{css_var_name(name)})"


def _channel(value) -> int:
    try:
        v = float(value)
    except (TypeError, ValueError):
        v = 0.0
    v = min(max(v, 0.0), 1.0)
    return int(v * 255 + 0.5)


def format_number(number) -> str:
    number = float(number)
    if number.is_integer():
        return str(int(number))
    return f"{number:.4f}".rstrip("0").rstrip(".")


def is_color_object(value) -> bool:
    return isinstance(value, dict) and all(k in value for k in ("r", "g", "b"))


def is_typography_object(value) -> bool:
    return isinstance(value, dict) and any(k in value for k in TYPOGRAPHY_KEYS)


def format_color(value: dict) -> str:
    r, g, b = _channel(value.get("r")), _channel(value.get("g")), _channel(value.get("b"))
    a = value.get("a", 1)
    try:
        a = float(a)
    except (TypeError, ValueError):
        a = 1.0
    if a >= 1:
        return f"#{r:02X}{g:02X}{b:02X}"
    return f"rgba({r}, {g}, {b}, {max(a, 0.0):.2f})"


def is_unitless_number(number: float) -> bool:
    """font-weight（100–900，間隔 50）或 (0, 10) 之間的小數（行高比例）不加單位."""
    if is_font_weight(number):
        return True
    return 0 < number < 10 and not float(number).is_integer()


def format_value(value, resolved_type=None) -> str:
    """resolved_type 為 Figma 的 resolvedType（BOOLEAN / STRING / FLOAT / COLOR）."""
    if value is None:
        return ""
    if resolved_type == "BOOLEAN" and isinstance(value, (int, float)):
        value = bool(value)
    elif resolved_type == "STRING" and not isinstance(value, (dict, list)):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_color_object(value):
        return format_color(value)
    if is_typography_object(value):
        # 保留結構，下游可再 json.loads
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (int, float)):
        if is_unitless_number(value):
            return format_number(value)
        return f"{format_number(value)}px"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
