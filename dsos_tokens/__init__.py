"""
dsos-tokens — 設計 token 匯入、分類、registry 與 bundle 編譯

Figma Variables / 扁平 tokens / 舊版巢狀 / DTCG 四種 JSON 格式 →
統一的 token 清單 → SQLite registry → 具版本號的 CSS / JSON bundle。
"""

__version__ = "0.1.0"

from .models import (
    CATEGORIES,
    DependencyEdge,
    ImportPreview,
    ParsedToken,
    SourceFile,
    Token,
    TokenBundle,
    TokenCategory,
)
from .errors import EmptyCompilationInput, MalformedInput, TokenPipelineError
from .classifiers import Heuristics, classify_name, classify_scopes, classify_value, resolve_category
from .formatting import css_var, css_var_name, format_value, normalize_name
from .parsers import build_preview, detect_and_parse, detect_format, parse_json_text
from .registry import TokenRegistry
from .compiler import (
    CompileResult,
    TokenCompiler,
    extract_token_refs,
    match_figma_variables,
    match_token_refs,
    render_bundle,
)
from .relationships import SimilarityThresholds, build_graph, summarize
from .exporters import export_tokens, to_scss, to_tailwind
from .config import load_config, validate_config

__all__ = [
    "__version__",
    "CATEGORIES",
    "DependencyEdge",
    "ImportPreview",
    "ParsedToken",
    "SourceFile",
    "Token",
    "TokenBundle",
    "TokenCategory",
    "EmptyCompilationInput",
    "MalformedInput",
    "TokenPipelineError",
    "Heuristics",
    "classify_name",
    "classify_scopes",
    "classify_value",
    "resolve_category",
    "css_var",
    "css_var_name",
    "format_value",
    "normalize_name",
    "build_preview",
    "detect_and_parse",
    "detect_format",
    "parse_json_text",
    "TokenRegistry",
    "CompileResult",
    "TokenCompiler",
    "extract_token_refs",
    "match_figma_variables",
    "match_token_refs",
    "render_bundle",
    "SimilarityThresholds",
    "build_graph",
    "summarize",
    "export_tokens",
    "to_scss",
    "to_tailwind",
    "load_config",
    "validate_config",
]
