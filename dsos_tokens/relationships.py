"""
Token 關係分析 — reference / alias edges

- reference：`color.primary.500` → 已存在的 `color.primary`、`color`
- alias：同類別且值相近的 token（顏色看 RGB 距離、尺寸看數值差），雙向
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .classifiers import number_setting
from .models import DependencyEdge, Token, TokenCategory

REFERENCE = "reference"
ALIAS = "alias"

COLOR_DISTANCE_THRESHOLD = 10.0
NUMERIC_DISTANCE_THRESHOLD = 1.0

_NUMERIC_CATEGORIES = (TokenCategory.SPACING, TokenCategory.SIZING, TokenCategory.RADIUS)

_HEX6_RE = re.compile(r"#([0-9a-f]{6})", re.IGNORECASE)
_HEX3_RE = re.compile(r"#([0-9a-f]{3})\b", re.IGNORECASE)
_RGB_RE = re.compile(r"rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")
_LEADING_NUMBER_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*([a-z%]*)", re.IGNORECASE)


@dataclass
class SimilarityThresholds:
    color_distance: float = COLOR_DISTANCE_THRESHOLD
    numeric_distance: float = NUMERIC_DISTANCE_THRESHOLD

    @classmethod
    def from_config(cls, config: dict) -> "SimilarityThresholds":
        rel = (config or {}).get("relationships", {})
        if not isinstance(rel, dict):
            rel = {}
        return cls(
            color_distance=number_setting(rel, "colorDistance", COLOR_DISTANCE_THRESHOLD),
            numeric_distance=number_setting(rel, "numericDistance", NUMERIC_DISTANCE_THRESHOLD),
        )


DEFAULT_THRESHOLDS = SimilarityThresholds()


@dataclass
class TokenGraph:
    tokens: List[Token]
    edges: List[DependencyEdge] = field(default_factory=list)

    def dependencies(self, name: str) -> List[DependencyEdge]:
        return [e for e in self.edges if e.source == name]

    def dependents(self, name: str) -> List[DependencyEdge]:
        return [e for e in self.edges if e.target == name]

    def to_dict(self) -> dict:
        return {
            "nodes": [
                {"name": t.name, "type": t.type, "dependencies": [e.target for e in self.dependencies(t.name)]}
                for t in self.tokens
            ],
            "edges": [e.to_dict() for e in self.edges],
        }


def parse_color(value) -> Optional[Tuple[int, int, int]]:
    """#RRGGBB / #RGB / rgb(a)(r, g, b) → (r, g, b)."""
    text = str(value or "")
    m = _HEX6_RE.search(text)
    if m:
        h = m.group(1)
        return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)
    m = _HEX3_RE.search(text)
    if m:
        h = m.group(1)
        return int(h[0] * 2, 16), int(h[1] * 2, 16), int(h[2] * 2, 16)
    m = _RGB_RE.search(text)
    if m:
        return int(m.group(1)), int(m.group(2)), int(m.group(3))
    return None


def color_distance(a: Tuple[int, int, int], b: Tuple[int, int, int]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def _leading_number(value) -> Optional[Tuple[float, str]]:
    m = _LEADING_NUMBER_RE.match(str(value or ""))
    if not m:
        return None
    return float(m.group(1)), m.group(2).lower()


def are_similar(a: Token, b: Token, thresholds: SimilarityThresholds = DEFAULT_THRESHOLDS) -> bool:
    """同類別且值相近 → 可能互為 alias；對稱."""
    if a.type != b.type:
        return False
    if a.type == TokenCategory.COLOR:
        ca, cb = parse_color(a.value), parse_color(b.value)
        if ca and cb:
            return color_distance(ca, cb) < thresholds.color_distance
        return False
    if a.type in _NUMERIC_CATEGORIES:
        na, nb = _leading_number(a.value), _leading_number(b.value)
        if na and nb and na[1] == nb[1]:
            return abs(na[0] - nb[0]) < thresholds.numeric_distance
    return False


def build_graph(tokens: List[Token], thresholds: SimilarityThresholds = DEFAULT_THRESHOLDS) -> TokenGraph:
    by_name: Dict[str, Token] = {t.name: t for t in tokens}
    edges: List[DependencyEdge] = []
    seen = set()

    def add(edge: DependencyEdge) -> None:
        key = (edge.source, edge.target)
        if key not in seen:
            seen.add(key)
            edges.append(edge)

    for token in tokens:
        parts = token.name.split(".")
        for i in range(1, len(parts)):
            parent = ".".join(parts[:i])
            if parent in by_name:
                add(DependencyEdge(token.name, parent, REFERENCE))

    for i, token in enumerate(tokens):
        for other in tokens[i + 1:]:
            if other.name == token.name or not are_similar(token, other, thresholds):
                continue
            add(DependencyEdge(token.name, other.name, ALIAS))
            add(DependencyEdge(other.name, token.name, ALIAS))

    return TokenGraph(tokens=list(tokens), edges=edges)


def summarize(graph: TokenGraph) -> dict:
    """統計 edge 數與每個 token 的 dependencies / dependents."""
    per_token = {}
    for t in graph.tokens:
        deps = graph.dependencies(t.name)
        dependents = graph.dependents(t.name)
        if not deps and not dependents:
            continue
        per_token[t.name] = {
            "type": t.type,
            "dependencies": [{"name": e.target, "kind": e.kind} for e in deps],
            "dependents": [{"name": e.source, "kind": e.kind} for e in dependents],
        }
    return {
        "tokens": len(graph.tokens),
        "references": sum(1 for e in graph.edges if e.kind == REFERENCE),
        "aliases": sum(1 for e in graph.edges if e.kind == ALIAS),
        "byToken": per_token,
    }
