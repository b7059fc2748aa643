"""
分類器 — 由 scope / 名稱 / 值 推斷 token 類別

三個分類器皆為純函式、永不拋例外，回傳類別字串或 None。
優先順序：明確提示（$type / Figma scopes）→ 名稱 → 值 → unknown
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .models import CATEGORIES, TokenCategory

# 字級與行高判斷範圍（經驗值，可由 config 覆寫）
FONT_SIZE_MIN_PX = 8.0
FONT_SIZE_MAX_PX = 120.0
LINE_HEIGHT_RATIO_MIN = 0.5
LINE_HEIGHT_RATIO_MAX = 3.0
REM_BASE_PX = 16.0


def number_setting(section: dict, key: str, default: float) -> float:
    """設定值不是數字時退回預設值（config 驗證已印出警告）."""
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


@dataclass
class Heuristics:
    font_size_min: float = FONT_SIZE_MIN_PX
    font_size_max: float = FONT_SIZE_MAX_PX
    ratio_min: float = LINE_HEIGHT_RATIO_MIN
    ratio_max: float = LINE_HEIGHT_RATIO_MAX

    @classmethod
    def from_config(cls, config: dict) -> "Heuristics":
        typo = (config or {}).get("typography", {})
        if not isinstance(typo, dict):
            typo = {}
        return cls(
            font_size_min=number_setting(typo, "fontSizeMin", FONT_SIZE_MIN_PX),
            font_size_max=number_setting(typo, "fontSizeMax", FONT_SIZE_MAX_PX),
            ratio_min=number_setting(typo, "lineHeightMin", LINE_HEIGHT_RATIO_MIN),
            ratio_max=number_setting(typo, "lineHeightMax", LINE_HEIGHT_RATIO_MAX),
        )


DEFAULT_HEURISTICS = Heuristics()


# ─── Scope ──────────────────────────────────────────────────────────────────

# 依序比對，第一個命中者勝出
_SCOPE_TABLE = (
    ({"CORNER_RADIUS"}, TokenCategory.RADIUS),
    ({"GAP", "WIDTH_HEIGHT"}, TokenCategory.SPACING),
    ({"ALL_FILLS", "FRAME_FILL", "SHAPE_FILL", "TEXT_FILL", "STROKE_COLOR"}, TokenCategory.COLOR),
    ({"EFFECT_COLOR", "EFFECT_FLOAT"}, TokenCategory.SHADOW),
)


def classify_scopes(scopes) -> Optional[str]:
    """Figma variable scopes → 類別."""
    if not scopes or not isinstance(scopes, (list, tuple, set)):
        return None
    present = {str(s).upper() for s in scopes}
    for names, category in _SCOPE_TABLE:
        if present & names:
            return category
    return None


# ─── Name ───────────────────────────────────────────────────────────────────

_HUES = (
    "red", "orange", "amber", "yellow", "lime", "green", "emerald", "teal",
    "cyan", "sky", "blue", "indigo", "violet", "purple", "fuchsia", "pink",
    "rose", "gray", "grey", "slate", "zinc", "stone", "white", "black",
)

_NAME_KEYWORDS = (
    (TokenCategory.COLOR, frozenset((
        "color", "colors", "colour", "bg", "background", "fill", "stroke", "border",
        "text", "icon", "primary", "secondary", "accent", "brand", "neutral",
    ) + _HUES)),
    (TokenCategory.SPACING, frozenset((
        "space", "spacer", "spacing", "gap", "margin", "padding", "inset",
    ))),
    (TokenCategory.RADIUS, frozenset(("radius", "radii", "corner", "rounded", "borderradius"))),
    (TokenCategory.TYPOGRAPHY, frozenset((
        "font", "typography", "heading", "body", "display", "caption", "label",
        "letterspacing", "lineheight", "fontsize", "fontweight", "fontfamily",
    ))),
    (TokenCategory.SHADOW, frozenset(("shadow", "shadows", "elevation"))),
    (TokenCategory.SIZING, frozenset(("size", "sizing", "width", "height", "min", "max"))),
    (TokenCategory.BLUR, frozenset(("blur",))),
)

# 兩個字組成的複合關鍵字，例如 line-height / letterSpacing
_COMPOUNDS = frozenset(("lineheight", "letterspacing", "fontsize", "fontweight", "fontfamily", "borderradius"))

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SPLIT_RE = re.compile(r"[^A-Za-z0-9]+")


def _words(name: str) -> List[str]:
    words = []
    for part in _SPLIT_RE.split(name):
        if not part:
            continue
        words.extend(w.lower() for w in _CAMEL_RE.split(part) if w)
    # 合併複合字
    merged: List[str] = []
    i = 0
    while i < len(words):
        if i + 1 < len(words) and words[i] + words[i + 1] in _COMPOUNDS:
            merged.append(words[i] + words[i + 1])
            i += 2
            continue
        merged.append(words[i])
        i += 1
    return merged


def classify_name(name) -> Optional[str]:
    """依名稱關鍵字推斷類別（color → spacing → radius → typography → shadow → sizing）."""
    if not name:
        return None
    words = set(_words(str(name)))
    if not words:
        return None
    for category, keywords in _NAME_KEYWORDS:
        if words & keywords:
            return category
    return None


# ─── Value ──────────────────────────────────────────────────────────────────

_HEX_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_COLOR_FN_RE = re.compile(r"^(?:rgba?|hsla?)\s*\(", re.IGNORECASE)
_DIMENSION_RE = re.compile(r"^(-?\d*\.?\d+)(px|rem|em|%|pt)$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^-?\d*\.?\d+$")
_SHADOW_RE = re.compile(r"^-?\d*\.?\d+(?:px|rem|em)?\s+-?\d*\.?\d+(?:px|rem|em)?(?:\s|$)")
_SHADOW_COLOR_RE = re.compile(r"^-?\d*\.?\d+(?:px|rem|em)?\s+.*(?:rgba?|hsla?)\s*\(")
_FONT_WEIGHT_KEYWORDS = frozenset(("normal", "bold", "bolder", "lighter"))

NAMED_COLORS = frozenset((
    "transparent", "currentcolor", "black", "white", "red", "green", "blue",
    "yellow", "orange", "purple", "pink", "gray", "grey", "navy", "teal",
    "aqua", "fuchsia", "lime", "maroon", "olive", "silver", "cyan", "magenta",
    "indigo", "violet", "gold", "coral", "crimson", "salmon", "tomato",
    "turquoise", "beige", "ivory", "khaki", "lavender", "tan", "brown",
    "rebeccapurple", "whitesmoke", "aliceblue", "slategray", "darkgray",
    "lightgray",
))


def is_font_weight(number: float) -> bool:
    return 100 <= number <= 900 and number % 50 == 0


def classify_value(value, name_hint: Optional[str] = None,
                   heuristics: Heuristics = DEFAULT_HEURISTICS) -> Optional[str]:
    """依值的字面形狀推斷類別；name_hint 為名稱分類器的結果."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    lower = text.lower()

    if _HEX_RE.match(text) or _COLOR_FN_RE.match(text) or lower in NAMED_COLORS:
        return TokenCategory.COLOR

    if lower in _FONT_WEIGHT_KEYWORDS:
        return TokenCategory.TYPOGRAPHY

    if re.search(r"\binset\b", lower) or _SHADOW_RE.match(lower):
        return TokenCategory.SHADOW
    if _SHADOW_COLOR_RE.match(lower):
        return TokenCategory.SHADOW

    m = _DIMENSION_RE.match(lower)
    if m:
        number, unit = float(m.group(1)), m.group(2)
        if name_hint == TokenCategory.TYPOGRAPHY:
            px = number * REM_BASE_PX if unit in ("rem", "em") else number
            if unit != "%" and heuristics.font_size_min <= px <= heuristics.font_size_max:
                return TokenCategory.TYPOGRAPHY
        return TokenCategory.SPACING

    if _NUMBER_RE.match(lower):
        number = float(lower)
        if is_font_weight(number):
            return TokenCategory.TYPOGRAPHY
        if name_hint == TokenCategory.TYPOGRAPHY and heuristics.ratio_min <= number <= heuristics.ratio_max:
            return TokenCategory.TYPOGRAPHY
    return None


# ─── Resolution ─────────────────────────────────────────────────────────────

def first_non_null(classifiers: Iterable[Callable[[], Optional[str]]]) -> Optional[str]:
    """依序呼叫，回傳第一個非 None 的結果."""
    for classify in classifiers:
        result = classify()
        if result is not None:
            return result
    return None


def resolve_category(name, value, hint: Optional[str] = None,
                     heuristics: Heuristics = DEFAULT_HEURISTICS) -> str:
    """明確提示 → 名稱 → 值；全部落空則為 unknown."""
    name_category = classify_name(name)
    category = first_non_null((
        lambda: hint if hint in CATEGORIES and hint != TokenCategory.UNKNOWN else None,
        lambda: name_category,
        lambda: classify_value(value, name_category, heuristics),
    ))
    return category or TokenCategory.UNKNOWN
