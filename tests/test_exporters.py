"""
匯出格式測試：SCSS / Tailwind / CSS / JSON
"""
import json

import pytest

from dsos_tokens.exporters import export_tokens, tailwind_theme, to_css, to_scss, to_tailwind
from dsos_tokens.models import Token

TOKENS = [
    Token(name="color.primary", value="#3B82F6", type="color"),
    Token(name="spacing.md", value="16px", type="spacing"),
    Token(name="radius.sm", value="4px", type="radius"),
    Token(name="misc", value="hello", type="unknown"),
]


def test_scss_variables_map_and_mixin():
    scss = to_scss(TOKENS)
    assert "$ds-color-primary: #3B82F6;" in scss
    assert "$ds-tokens: (" in scss
    assert "  'color.primary': #3B82F6," in scss
    assert "@mixin ds-token($property, $token-name) {" in scss
    assert scss.index("// Color") < scss.index("// Spacing")


def test_scss_without_prefix():
    scss = to_scss(TOKENS[:1], prefix="")
    assert "$color-primary: #3B82F6;" in scss
    assert "$tokens: (" in scss


def test_tailwind_theme():
    extend = tailwind_theme(TOKENS)["theme"]["extend"]
    assert extend["colors"] == {"color.primary": "#3B82F6"}
    assert extend["spacing"] == {"spacing.md": "16px"}
    assert extend["borderRadius"] == {"radius.sm": "4px"}
    # unknown 類別不輸出
    assert "hello" not in json.dumps(extend)


def test_tailwind_output():
    out = to_tailwind(TOKENS)
    assert out.startswith("// DS-OS Design Tokens - Tailwind Config")
    assert "module.exports = {" in out


def test_css_prefix():
    assert "  --ds-spacing-md: 16px;" in to_css(TOKENS)


def test_json_grouped():
    data = json.loads(export_tokens(TOKENS, "json"))
    assert data["color"]["color.primary"] == {"value": "#3B82F6", "type": "color"}


def test_unknown_format():
    with pytest.raises(ValueError):
        export_tokens(TOKENS, "xml")
