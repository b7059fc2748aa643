"""
資料模型 — Token / SourceFile / TokenBundle / DependencyEdge

所有 parser 都輸出 ParsedToken；Registry 儲存 Token；Compiler 產出 TokenBundle。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class TokenCategory:
    COLOR = "color"
    TYPOGRAPHY = "typography"
    SPACING = "spacing"
    SIZING = "sizing"
    RADIUS = "radius"
    SHADOW = "shadow"
    BLUR = "blur"
    UNKNOWN = "unknown"


# CSS 輸出順序也依此排列
CATEGORIES = (
    TokenCategory.COLOR,
    TokenCategory.TYPOGRAPHY,
    TokenCategory.SPACING,
    TokenCategory.SIZING,
    TokenCategory.RADIUS,
    TokenCategory.SHADOW,
    TokenCategory.BLUR,
    TokenCategory.UNKNOWN,
)

BUNDLE_GLOBAL = "global"
BUNDLE_COMPONENT = "component"


@dataclass
class ParsedToken:
    name: str
    value: str
    type: str = TokenCategory.UNKNOWN
    description: Optional[str] = None
    value_by_mode: Optional[Dict[str, str]] = None
    modes: Optional[List[str]] = None

    def to_dict(self) -> dict:
        data = {"name": self.name, "value": self.value, "type": self.type}
        if self.description:
            data["description"] = self.description
        if self.value_by_mode:
            data["valueByMode"] = dict(self.value_by_mode)
        if self.modes:
            data["modes"] = list(self.modes)
        return data


@dataclass
class Token:
    name: str
    value: str
    type: str = TokenCategory.UNKNOWN
    description: Optional[str] = None
    value_by_mode: Optional[Dict[str, str]] = None
    modes: Optional[List[str]] = None
    source_file_id: Optional[str] = None
    id: Optional[int] = None

    def value_for_mode(self, mode: Optional[str]) -> str:
        """取得指定 mode 的值；沒有該 mode 時退回預設值."""
        if mode and self.value_by_mode and mode in self.value_by_mode:
            return self.value_by_mode[mode]
        return self.value

    @classmethod
    def from_parsed(cls, parsed: ParsedToken, source_file_id: Optional[str] = None) -> "Token":
        return cls(
            name=parsed.name,
            value=parsed.value,
            type=parsed.type,
            description=parsed.description,
            value_by_mode=dict(parsed.value_by_mode) if parsed.value_by_mode else None,
            modes=list(parsed.modes) if parsed.modes else None,
            source_file_id=source_file_id,
        )

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "value": self.value,
            "type": self.type,
            "description": self.description,
            "valueByMode": self.value_by_mode,
            "modes": self.modes,
            "sourceFileId": self.source_file_id,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class SourceFile:
    id: str
    name: str
    original_name: str
    token_count: int = 0
    is_active: bool = True
    uploaded_at: str = ""
    uploaded_by: str = ""
    content: str = ""


@dataclass
class TokenBundle:
    kind: str
    version: str
    css_content: str
    json_content: str
    token_count: int
    modes: List[str] = field(default_factory=list)
    component_id: Optional[str] = None
    content_hash: str = ""
    token_set_hash: str = ""
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class DependencyEdge:
    source: str
    target: str
    kind: str  # "reference" | "alias"

    def to_dict(self) -> dict:
        return {"from": self.source, "to": self.target, "kind": self.kind}


@dataclass
class ImportPreview:
    """匯入前的預覽結果（UI 可逐列修改 type 後再 commit）."""
    tokens: List[ParsedToken]
    format: str
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.tokens)

    @property
    def by_category(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for t in self.tokens:
            counts[t.type] = counts.get(t.type, 0) + 1
        return counts

    @property
    def is_empty(self) -> bool:
        return not self.tokens

    def set_type(self, name: str, category: str) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"category '{category}' must be one of {CATEGORIES}")
        for t in self.tokens:
            if t.name == name:
                t.type = category
                return
        raise KeyError(f"Token not in preview: {name!r}")

    def to_dict(self) -> dict:
        return {
            "format": self.format,
            "total": self.total,
            "byCategory": self.by_category,
            "warnings": list(self.warnings),
            "tokens": [t.to_dict() for t in self.tokens],
        }
