"""
分類器測試：scope → 名稱 → 值 的優先順序與各分類器行為
"""
import pytest

from dsos_tokens.classifiers import (
    Heuristics,
    classify_name,
    classify_scopes,
    classify_value,
    first_non_null,
    resolve_category,
)
from dsos_tokens.models import CATEGORIES


# ─── scopes ──────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("scopes,expected", [
    (["CORNER_RADIUS"], "radius"),
    (["GAP"], "spacing"),
    (["WIDTH_HEIGHT"], "spacing"),
    (["ALL_FILLS"], "color"),
    (["TEXT_FILL", "STROKE_COLOR"], "color"),
    (["EFFECT_COLOR"], "shadow"),
    (["CORNER_RADIUS", "GAP"], "radius"),
])
def test_classify_scopes(scopes, expected):
    assert classify_scopes(scopes) == expected


def test_classify_scopes_no_match():
    assert classify_scopes([]) is None
    assert classify_scopes(None) is None
    assert classify_scopes(["ALL_SCOPES"]) is None


# ─── name ────────────────────────────────────────────────────────────────────

class TestClassifyName:
    @pytest.mark.parametrize("name,expected", [
        ("color.primary.500", "color"),
        ("text.primary", "color"),
        ("spacing.md", "spacing"),
        ("radius.lg", "radius"),
        ("font.size.body", "typography"),
        ("shadow.card", "shadow"),
        ("size.avatar.sm", "sizing"),
        ("blur.backdrop", "blur"),
    ])
    def test_keywords(self, name, expected):
        assert classify_name(name) == expected

    def test_compound_words(self):
        # line-height 不應因為 height 被判成 sizing
        assert classify_name("lineHeight.body") == "typography"
        # border-radius 不應因為 border 被判成 color
        assert classify_name("border-radius-sm") == "radius"

    def test_color_beats_spacing(self):
        assert classify_name("spacing.blue") == "color"

    def test_no_keyword(self):
        assert classify_name("misc.thing") is None
        assert classify_name("") is None


# ─── value ───────────────────────────────────────────────────────────────────

class TestClassifyValue:
    @pytest.mark.parametrize("value,expected", [
        ("#FF0000", "color"),
        ("#fff", "color"),
        ("rgba(0, 0, 0, 0.5)", "color"),
        ("transparent", "color"),
        ("16px", "spacing"),
        ("1.5rem", "spacing"),
        ("bold", "typography"),
        ("700", "typography"),
        ("0 2px 4px rgba(0,0,0,0.1)", "shadow"),
        ("inset 0 1px #000", "shadow"),
    ])
    def test_shapes(self, value, expected):
        assert classify_value(value) == expected

    def test_dimension_with_typography_hint(self):
        assert classify_value("16px", "typography") == "typography"
        assert classify_value("1rem", "typography") == "typography"

    def test_dimension_outside_font_range_stays_spacing(self):
        assert classify_value("200px", "typography") == "spacing"

    def test_ratio_needs_typography_hint(self):
        assert classify_value("1.5") is None
        assert classify_value("1.5", "typography") == "typography"

    def test_custom_heuristics(self):
        narrow = Heuristics(font_size_min=10, font_size_max=20)
        assert classify_value("24px", "typography", narrow) == "spacing"

    def test_unrecognized(self):
        assert classify_value("hello") is None
        assert classify_value("") is None
        assert classify_value(None) is None


# ─── resolution ──────────────────────────────────────────────────────────────

class TestResolveCategory:
    def test_name_beats_value(self):
        assert resolve_category("radius.sm", "#FFFFFF") == "radius"

    def test_value_used_when_name_silent(self):
        assert resolve_category("misc.main", "#123456") == "color"

    def test_hint_beats_name(self):
        assert resolve_category("color.primary", "#000", hint="spacing") == "spacing"

    def test_unknown_hint_ignored(self):
        assert resolve_category("color.primary", "#000", hint="unknown") == "color"
        assert resolve_category("color.primary", "#000", hint="bogus") == "color"

    @pytest.mark.parametrize("name,value", [
        (None, None),
        ("", ""),
        ("x", {}),
        ("123", 123),
        ("weird name", "???"),
    ])
    def test_total(self, name, value):
        assert resolve_category(name, value) in CATEGORIES

    def test_falls_back_to_unknown(self):
        assert resolve_category("misc.thing", "hello") == "unknown"


def test_first_non_null_short_circuits():
    calls = []

    def make(result):
        def f():
            calls.append(result)
            return result
        return f

    assert first_non_null([make(None), make("color"), make("spacing")]) == "color"
    assert calls == [None, "color"]


def test_heuristics_from_config_ignores_bad_values():
    h = Heuristics.from_config({"typography": {"fontSizeMin": "big", "fontSizeMax": 64}})
    assert h.font_size_min == 8.0
    assert h.font_size_max == 64.0
