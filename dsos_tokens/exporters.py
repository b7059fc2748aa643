"""
匯出 — 把 token 清單轉成其他工具可直接使用的格式

css / scss / tailwind / json / style-dictionary
"""

from __future__ import annotations

import json
from typing import Callable, Dict, List

from .formatting import css_var_name
from .models import CATEGORIES, Token, TokenCategory

DEFAULT_PREFIX = "ds"

# token 類別 → tailwind theme.extend 的 key
TAILWIND_KEYS = {
    TokenCategory.COLOR: "colors",
    TokenCategory.SPACING: "spacing",
    TokenCategory.SIZING: "spacing",
    TokenCategory.TYPOGRAPHY: "fontSize",
    TokenCategory.RADIUS: "borderRadius",
    TokenCategory.SHADOW: "boxShadow",
    TokenCategory.BLUR: "blur",
}


def _grouped(tokens: List[Token]) -> Dict[str, List[Token]]:
    groups: Dict[str, List[Token]] = {}
    for category in CATEGORIES:
        members = sorted((t for t in tokens if t.type == category), key=lambda t: t.name)
        if members:
            groups[category] = members
    return groups


def _prefixed(prefix: str, name: str) -> str:
    slug = css_var_name(name)
    return f"{prefix}-{slug}" if prefix else slug


def to_css(tokens: List[Token], prefix: str = DEFAULT_PREFIX) -> str:
    lines = ["/* DS-OS Design Tokens - CSS Variables */", "", ":root {"]
    for category, members in _grouped(tokens).items():
        lines.append(f"  /* {category.capitalize()} */")
        for t in members:
            lines.append(f"  --{_prefixed(prefix, t.name)}: {t.value};")
        lines.append("")
    if lines[-1] == "":
        lines.pop()
    lines.append("}")
    return "\n".join(lines) + "\n"


def to_scss(tokens: List[Token], prefix: str = DEFAULT_PREFIX) -> str:
    """SCSS 變數 + token map + 取值 mixin."""
    lines = ["// DS-OS Design Tokens - SCSS Variables", ""]
    ordered: List[Token] = []
    for category, members in _grouped(tokens).items():
        lines.append(f"// {category.capitalize()}")
        for t in members:
            lines.append(f"${_prefixed(prefix, t.name)}: {t.value};")
            ordered.append(t)
        lines.append("")

    map_name = f"{prefix}-tokens" if prefix else "tokens"
    lines.append("// Token Map (for programmatic access)")
    lines.append(f"${map_name}: (")
    for i, t in enumerate(ordered):
        sep = "," if i < len(ordered) - 1 else ""
        lines.append(f"  '{t.name}': {t.value}{sep}")
    lines.append(");")
    lines.append("")
    lines.append("// Mixin for applying tokens")
    mixin_name = f"{prefix}-token" if prefix else "token"
    lines.append(f"@mixin {mixin_name}($property, $token-name) {{")
    lines.append(f"  #{{$property}}: map-get(${map_name}, $token-name);")
    lines.append("}")
    return "\n".join(lines) + "\n"


def tailwind_theme(tokens: List[Token]) -> dict:
    extend: Dict[str, Dict[str, str]] = {}
    for category, members in _grouped(tokens).items():
        key = TAILWIND_KEYS.get(category)
        if key is None:
            continue
        bucket = extend.setdefault(key, {})
        for t in members:
            bucket[t.name] = t.value
    return {"theme": {"extend": extend}}


def to_tailwind(tokens: List[Token]) -> str:
    """tailwind.config.js 片段（theme.extend）；unknown 類別不輸出."""
    body = json.dumps(tailwind_theme(tokens), indent=2, ensure_ascii=False)
    return (
        "// DS-OS Design Tokens - Tailwind Config\n"
        "// Add this to your tailwind.config.js\n\n"
        '/** @type {import("tailwindcss").Config} */\n'
        f"module.exports = {body};\n"
    )


def to_json(tokens: List[Token]) -> str:
    output = {
        category: {t.name: {"value": t.value, "type": t.type} for t in members}
        for category, members in _grouped(tokens).items()
    }
    return json.dumps(output, indent=2, ensure_ascii=False) + "\n"


def to_style_dictionary(tokens: List[Token]) -> str:
    output = {
        category: {t.name: {"value": t.value} for t in members}
        for category, members in _grouped(tokens).items()
    }
    return json.dumps(output, indent=2, ensure_ascii=False) + "\n"


EXPORTERS: Dict[str, Callable[..., str]] = {
    "css": to_css,
    "scss": to_scss,
    "tailwind": to_tailwind,
    "json": to_json,
    "style-dictionary": to_style_dictionary,
}

EXTENSIONS = {
    "css": "css",
    "scss": "scss",
    "tailwind": "js",
    "json": "json",
    "style-dictionary": "json",
}


def export_tokens(tokens: List[Token], fmt: str, prefix: str = DEFAULT_PREFIX) -> str:
    if fmt not in EXPORTERS:
        raise ValueError(f"Unknown export format '{fmt}'; choose one of {sorted(EXPORTERS)}")
    if fmt in ("css", "scss"):
        return EXPORTERS[fmt](tokens, prefix)
    return EXPORTERS[fmt](tokens)
