"""
Token 檔案解析 — 自動偵測格式

偵測順序（第一個 can_parse 為 True 者勝出）：
  1. Figma Variables（variables 陣列，支援多 mode）
  2. Flat Tokens（{"tokens": {name: value}}）
  3. Legacy Nested（頂層皆為 color/spacing/... 類別鍵）
  4. Generic Nested / DTCG（兜底，遞迴解析 $value / value）

所有 parser 輸出相同的 ParsedToken 列表；無法辨識的節點直接略過，不拋例外。
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

from .classifiers import DEFAULT_HEURISTICS, Heuristics, classify_scopes, resolve_category
from .errors import MalformedInput
from .formatting import format_value, is_color_object, normalize_name
from .models import ImportPreview, ParsedToken, TokenCategory

EMPTY_RESULT_WARNING = "No tokens found in this file."

# DTCG $type → 類別
DTCG_TYPE_MAP = {
    "color": TokenCategory.COLOR,
    "dimension": TokenCategory.SPACING,
    "spacing": TokenCategory.SPACING,
    "sizing": TokenCategory.SIZING,
    "borderradius": TokenCategory.RADIUS,
    "radius": TokenCategory.RADIUS,
    "fontfamily": TokenCategory.TYPOGRAPHY,
    "fontfamilies": TokenCategory.TYPOGRAPHY,
    "fontweight": TokenCategory.TYPOGRAPHY,
    "fontweights": TokenCategory.TYPOGRAPHY,
    "fontsize": TokenCategory.TYPOGRAPHY,
    "fontsizes": TokenCategory.TYPOGRAPHY,
    "fontstyle": TokenCategory.TYPOGRAPHY,
    "lineheight": TokenCategory.TYPOGRAPHY,
    "lineheights": TokenCategory.TYPOGRAPHY,
    "letterspacing": TokenCategory.TYPOGRAPHY,
    "typography": TokenCategory.TYPOGRAPHY,
    "shadow": TokenCategory.SHADOW,
    "boxshadow": TokenCategory.SHADOW,
    "blur": TokenCategory.BLUR,
}

# 舊版巢狀格式的類別鍵
LEGACY_CATEGORY_KEYS = {
    "color": TokenCategory.COLOR,
    "colors": TokenCategory.COLOR,
    "font": TokenCategory.TYPOGRAPHY,
    "typography": TokenCategory.TYPOGRAPHY,
    "space": TokenCategory.SPACING,
    "spacing": TokenCategory.SPACING,
    "size": TokenCategory.SIZING,
    "sizing": TokenCategory.SIZING,
    "radius": TokenCategory.RADIUS,
    "radii": TokenCategory.RADIUS,
    "shadow": TokenCategory.SHADOW,
    "shadows": TokenCategory.SHADOW,
}


def dtcg_category(type_name) -> Optional[str]:
    if not isinstance(type_name, str):
        return None
    return DTCG_TYPE_MAP.get(type_name.strip().lower())


def _is_primitive(value) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def _is_alias(value) -> bool:
    return isinstance(value, dict) and value.get("type") == "VARIABLE_ALIAS"


def _join(parent: str, key) -> str:
    return f"{parent}/{key}" if parent else str(key)


class FormatParser:
    """格式 parser 介面：can_parse 判斷結構、parse 產出 ParsedToken."""

    format_name = "base"

    def __init__(self, heuristics: Optional[Heuristics] = None):
        self.heuristics = heuristics or DEFAULT_HEURISTICS

    def can_parse(self, doc) -> bool:
        raise NotImplementedError

    def parse(self, doc) -> List[ParsedToken]:
        raise NotImplementedError

    def _make_token(self, raw_name, value: str, hint: Optional[str] = None,
                    description=None) -> Optional[ParsedToken]:
        name = normalize_name(raw_name)
        if not name:
            return None
        return ParsedToken(
            name=name,
            value=value,
            type=resolve_category(name, value, hint, self.heuristics),
            description=description if isinstance(description, str) and description else None,
        )


# ════════════════════════════════════════════════════════════
# Figma Variables
# ════════════════════════════════════════════════════════════

class FigmaVariablesParser(FormatParser):
    format_name = "figma-variables"

    def can_parse(self, doc) -> bool:
        return isinstance(doc, dict) and isinstance(doc.get("variables"), list)

    def parse(self, doc) -> List[ParsedToken]:
        mode_names = self._mode_names(doc)
        tokens = []
        for variable in doc.get("variables", []):
            if not isinstance(variable, dict) or not variable.get("name"):
                continue
            values = self._mode_values(variable, mode_names)
            if not values:
                continue
            modes = list(values.keys())
            default_value = values[modes[0]]
            token = self._make_token(
                variable["name"],
                default_value,
                hint=classify_scopes(variable.get("scopes")),
                description=variable.get("description"),
            )
            if token is None:
                continue
            if len(modes) > 1:
                token.value_by_mode = values
                token.modes = modes
            tokens.append(token)
        return tokens

    def _mode_names(self, doc: dict) -> Dict[str, str]:
        """收集 modeId → mode 名稱（頂層 modes 或 variableCollections 內的 modes）."""
        names: Dict[str, str] = {}

        def collect(modes):
            if isinstance(modes, dict):
                for mode_id, info in modes.items():
                    if isinstance(info, dict) and info.get("name"):
                        names[str(mode_id)] = str(info["name"])
                    elif isinstance(info, str) and info:
                        names[str(mode_id)] = info
            elif isinstance(modes, list):
                for info in modes:
                    if isinstance(info, dict) and info.get("modeId") and info.get("name"):
                        names[str(info["modeId"])] = str(info["name"])

        collect(doc.get("modes"))
        collections = doc.get("variableCollections")
        if isinstance(collections, dict):
            collections = list(collections.values())
        if isinstance(collections, list):
            for collection in collections:
                if isinstance(collection, dict):
                    collect(collection.get("modes"))
        return names

    def _mode_values(self, variable: dict, mode_names: Dict[str, str]) -> Dict[str, str]:
        values: Dict[str, str] = {}
        resolved_type = variable.get("resolvedType")
        resolved = variable.get("resolvedValuesByMode")
        if isinstance(resolved, dict):
            for mode_id, mode_data in resolved.items():
                if not isinstance(mode_data, dict) or "resolvedValue" not in mode_data:
                    continue
                raw = mode_data["resolvedValue"]
                if raw is None or _is_alias(raw):
                    continue
                values[mode_names.get(str(mode_id), str(mode_id))] = format_value(raw, resolved_type)
        if values:
            return values

        raw_values = variable.get("valuesByMode")
        if isinstance(raw_values, dict):
            for mode_id, raw in raw_values.items():
                # 別名由設計工具端解析，這裡不匯入
                if raw is None or _is_alias(raw):
                    continue
                values[mode_names.get(str(mode_id), str(mode_id))] = format_value(raw, resolved_type)
        return values


# ════════════════════════════════════════════════════════════
# Flat Tokens
# ════════════════════════════════════════════════════════════

class FlatTokensParser(FormatParser):
    format_name = "flat-tokens"

    def can_parse(self, doc) -> bool:
        if not isinstance(doc, dict) or not isinstance(doc.get("tokens"), dict):
            return False
        tokens = doc["tokens"]
        if not tokens:
            return True
        return _is_primitive(next(iter(tokens.values())))

    def parse(self, doc) -> List[ParsedToken]:
        tokens = []
        for key, raw in doc.get("tokens", {}).items():
            if raw is None:
                continue
            if not (_is_primitive(raw) or isinstance(raw, bool) or is_color_object(raw)):
                continue
            token = self._make_token(key, format_value(raw))
            if token:
                tokens.append(token)
        return tokens


# ════════════════════════════════════════════════════════════
# Legacy Nested
# ════════════════════════════════════════════════════════════

def _has_value_leaves(node) -> bool:
    if isinstance(node, dict):
        if "$value" in node or "value" in node:
            return True
        return any(_has_value_leaves(v) for v in node.values())
    if isinstance(node, list):
        return any(_has_value_leaves(v) for v in node)
    return False


class LegacyNestedParser(FormatParser):
    """{"color": {"primary": "#000"}, "spacing": {...}} — 類別鍵決定整個子樹的類別."""

    format_name = "legacy-nested"

    def can_parse(self, doc) -> bool:
        if not isinstance(doc, dict) or not doc:
            return False
        if not all(str(k).lower() in LEGACY_CATEGORY_KEYS for k in doc):
            return False
        return not _has_value_leaves(doc)

    def parse(self, doc) -> List[ParsedToken]:
        tokens: List[ParsedToken] = []
        self._walk(doc, "", None, tokens)
        return tokens

    def _walk(self, node: dict, path: str, category: Optional[str], out: List[ParsedToken]) -> None:
        for key, value in node.items():
            # 只有頂層鍵決定類別，font.size 仍屬 typography
            current = category if path else LEGACY_CATEGORY_KEYS.get(str(key).lower())
            child_path = _join(path, key)
            if isinstance(value, dict):
                if is_color_object(value):
                    token = self._make_token(child_path, format_value(value), current)
                    if token:
                        out.append(token)
                    continue
                self._walk(value, child_path, current, out)
            elif _is_primitive(value):
                token = self._make_token(child_path, format_value(value), current)
                if token:
                    out.append(token)


# ════════════════════════════════════════════════════════════
# Generic Nested / DTCG
# ════════════════════════════════════════════════════════════

class GenericJSONParser(FormatParser):
    format_name = "generic-json"

    def can_parse(self, doc) -> bool:
        return True

    def parse(self, doc) -> List[ParsedToken]:
        tokens: List[ParsedToken] = []
        self._walk(doc, "", None, tokens)
        return tokens

    def _leaf(self, path: str, raw, hint, description, out: List[ParsedToken]) -> None:
        token = self._make_token(path or "token", format_value(raw), hint, description)
        if token:
            out.append(token)

    def _walk(self, node, path: str, inherited: Optional[str], out: List[ParsedToken]) -> None:
        if node is None:
            return
        if isinstance(node, (str, int, float, bool)):
            self._leaf(path, node, inherited, None, out)
        elif isinstance(node, dict):
            if "$value" in node:
                if node["$value"] is None:
                    return
                hint = dtcg_category(node.get("$type")) or inherited
                self._leaf(path, node["$value"], hint, node.get("$description"), out)
                return
            value = node.get("value")
            if value is not None and not isinstance(value, (dict, list)):
                hint = dtcg_category(node.get("type")) or dtcg_category(node.get("$type")) or inherited
                self._leaf(path, node["value"], hint, node.get("description"), out)
                return
            # 群組層級的 $type 會被子 token 繼承
            group_type = dtcg_category(node.get("$type")) or inherited
            for key, child in node.items():
                key = str(key)
                if key.startswith("$") or key.startswith("_"):
                    continue
                self._walk(child, _join(path, key), group_type, out)
        elif isinstance(node, list):
            for idx, child in enumerate(node):
                self._walk(child, _join(path, idx), inherited, out)


# ════════════════════════════════════════════════════════════
# Detection
# ════════════════════════════════════════════════════════════

PARSER_CHAIN = (FigmaVariablesParser, FlatTokensParser, LegacyNestedParser, GenericJSONParser)


def build_parsers(heuristics: Optional[Heuristics] = None) -> List[FormatParser]:
    return [cls(heuristics) for cls in PARSER_CHAIN]


def detect_format(doc, heuristics: Optional[Heuristics] = None) -> FormatParser:
    for parser in build_parsers(heuristics):
        if parser.can_parse(doc):
            return parser
    return GenericJSONParser(heuristics)


def _dedupe(tokens: List[ParsedToken]) -> List[ParsedToken]:
    """同名 token 以最後一筆為準，保留第一次出現的位置."""
    by_name: Dict[str, ParsedToken] = {}
    for token in tokens:
        by_name[token.name] = token
    return list(by_name.values())


def detect_and_parse(doc, heuristics: Optional[Heuristics] = None) -> List[ParsedToken]:
    return _dedupe(detect_format(doc, heuristics).parse(doc))


def parse_json_text(text) -> object:
    """解析 JSON 文字；失敗時拋 MalformedInput."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedInput(f"File is not valid UTF-8: {e}") from e
    elif isinstance(text, str):
        text = text.lstrip("\ufeff")
    try:
        return json.loads(text)
    except (TypeError, ValueError) as e:
        raise MalformedInput(f"Invalid JSON: {e}") from e


def build_preview(source, heuristics: Optional[Heuristics] = None) -> ImportPreview:
    """JSON 文字或已解析的物件 → ImportPreview（含總數與分類統計）."""
    doc = parse_json_text(source) if isinstance(source, (str, bytes, bytearray)) else source
    parser = detect_format(doc, heuristics)
    tokens = _dedupe(parser.parse(doc))
    warnings = [] if tokens else [EMPTY_RESULT_WARNING]
    return ImportPreview(tokens=tokens, format=parser.format_name, warnings=warnings)
