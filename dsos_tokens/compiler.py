"""
Token Compiler — 由 registry 產生 CSS / JSON bundle

- 全域 bundle：所有啟用中的 token，預設 mode 寫在 :root，其餘 mode 以
  [data-theme="<mode>"] 區塊覆寫
- 元件 bundle：只包含元件程式碼 / 文件中引用到的 token，CSS 以
  [data-component="<id>"] 限定範圍
- 版本：token 集合（名稱 + 類別）變動 → minor；只有值變動 → patch；
  內容完全相同 → 版本不變；major 只能手動升級
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import EmptyCompilationInput
from .formatting import css_var, css_var_name, format_value
from .models import BUNDLE_COMPONENT, BUNDLE_GLOBAL, CATEGORIES, Token, TokenBundle

MODE_ATTRIBUTE = "data-theme"
COMPONENT_ATTRIBUTE = "data-component"
DEFAULT_MODE = "default"
INITIAL_VERSION = "1.0.0"

_UNSAFE_VALUE_RE = re.compile(r"[;{}]")


@dataclass
class RenderedBundle:
    css: str
    payload: dict
    modes: List[str]
    token_count: int
    token_set_hash: str
    content_hash: str
    warnings: List[str] = field(default_factory=list)

    def json_for(self, version: str) -> str:
        return dump_bundle_json(self.payload, version)


@dataclass
class CompileResult:
    bundle: TokenBundle
    changed: bool
    bump: str  # initial | minor | patch | none
    warnings: List[str] = field(default_factory=list)
    matched: List[dict] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)


def dump_bundle_json(payload: dict, version: Optional[str] = None) -> str:
    data = dict(payload)
    if version is not None:
        data["version"] = version
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)


# ════════════════════════════════════════════════════════════
# Versioning
# ════════════════════════════════════════════════════════════

def parse_version(version: str) -> Tuple[int, int, int]:
    parts = (version or "").strip().lstrip("v").split(".")
    if len(parts) != 3:
        raise ValueError(f"Invalid version: {version!r}")
    try:
        major, minor, patch = (int(p) for p in parts)
    except ValueError:
        raise ValueError(f"Invalid version: {version!r}")
    return major, minor, patch


def next_version(previous: Optional[TokenBundle], token_set_hash: str, content_hash: str) -> Tuple[str, str]:
    """回傳 (新版本, 升級類型)."""
    if previous is None:
        return INITIAL_VERSION, "initial"
    major, minor, patch = parse_version(previous.version)
    if previous.token_set_hash != token_set_hash:
        return f"{major}.{minor + 1}.0", "minor"
    if previous.content_hash != content_hash:
        return f"{major}.{minor}.{patch + 1}", "patch"
    return previous.version, "none"


def bump_major_version(version: str) -> str:
    major, _, _ = parse_version(version)
    return f"{major + 1}.0.0"


# ════════════════════════════════════════════════════════════
# Rendering
# ════════════════════════════════════════════════════════════

def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _category(token: Token) -> str:
    return token.type if token.type in CATEGORIES else CATEGORIES[-1]


def token_set_hash(tokens: List[Token]) -> str:
    members = sorted(f"{t.name}\t{_category(t)}" for t in tokens)
    return _sha256("\n".join(members))


def collect_modes(tokens: List[Token], default_mode: Optional[str] = None) -> List[str]:
    """所有 token 的 mode 聯集，依出現順序；第一個為預設 mode."""
    modes: List[str] = []
    for t in tokens:
        for mode in t.modes or []:
            if mode not in modes:
                modes.append(mode)
    if default_mode and default_mode in modes:
        modes.remove(default_mode)
        modes.insert(0, default_mode)
    return modes or [DEFAULT_MODE]


_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _composite(value) -> Optional[object]:
    """typography / shadow 等複合值以 JSON 字串儲存，解析回 dict / list."""
    text = str(value).strip()
    if not text.startswith(("{", "[")):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    return parsed if isinstance(parsed, (dict, list)) else None


def _css_part(value) -> Optional[str]:
    if isinstance(value, list):
        if not value or not all(isinstance(v, (str, int, float)) and not isinstance(v, bool) for v in value):
            return None
        text = ", ".join(str(v) for v in value)
    elif isinstance(value, (dict, bool)) or value is None:
        return None
    else:
        text = format_value(value)
    if not text.strip() or _UNSAFE_VALUE_RE.search(text):
        return None
    return text


def _declarations(token: Token, mode: str) -> List[Tuple[str, str]]:
    """token 在某 mode 下的 CSS 宣告；複合物件展開成 --name-<sub-key>."""
    base = css_var_name(token.name)
    value = token.value_for_mode(mode)
    if value is None or not str(value).strip():
        return []
    composite = _composite(value)
    if composite is None:
        if _UNSAFE_VALUE_RE.search(str(value)):
            return []
        return [(base, str(value))]
    if not isinstance(composite, dict):
        return []
    decls = []
    for key, sub in composite.items():
        suffix = css_var_name(_CAMEL_RE.sub("-", str(key)))
        text = _css_part(sub)
        if suffix and text is not None:
            decls.append((f"{base}-{suffix}", text))
    return decls


def _usable_tokens(tokens: List[Token], warnings: List[str]) -> List[Token]:
    usable = []
    seen: Dict[str, str] = {}
    for t in sorted(tokens, key=lambda t: (CATEGORIES.index(_category(t)), t.name or "")):
        var_name = css_var_name(t.name or "")
        if not var_name:
            warnings.append(f"Skipped token {t.name!r}: name has no CSS-safe characters")
            continue
        if t.value is None or not str(t.value).strip():
            warnings.append(f"Skipped token '{t.name}': empty value")
            continue
        if _UNSAFE_VALUE_RE.search(str(t.value)) and _composite(t.value) is None:
            warnings.append(f"Skipped token '{t.name}': value contains ';', '{{' or '}}'")
            continue
        if var_name in seen:
            warnings.append(f"Skipped token '{t.name}': --{var_name} already defined by '{seen[var_name]}'")
            continue
        seen[var_name] = t.name
        usable.append(t)
    return usable


def _mode_selector(mode: str, mode_attribute: str) -> str:
    return f'[{mode_attribute}="{css_var_name(mode) or mode}"]'


def _global_payload(tokens: List[Token], modes: List[str]) -> dict:
    default_mode = modes[0]
    payload = {
        "modes": modes,
        "tokens": {css_var_name(t.name): t.value_for_mode(default_mode) for t in tokens},
        "cssVars": {t.name: css_var(t.name) for t in tokens},
    }
    if len(modes) > 1:
        payload["modeValues"] = {
            mode: {css_var_name(t.name): t.value_for_mode(mode) for t in tokens}
            for mode in modes
        }
    return payload


def _component_payload(tokens: List[Token], modes: List[str], component_id: str) -> dict:
    default_mode = modes[0]
    entries = {}
    for t in tokens:
        entry = {"value": t.value_for_mode(default_mode), "cssVar": css_var(t.name), "type": _category(t)}
        if len(modes) > 1:
            entry["valueByMode"] = {mode: t.value_for_mode(mode) for mode in modes}
        entries[t.name] = entry
    return {"component": component_id, "modes": modes, "tokens": entries}


def render_bundle(
    tokens: List[Token],
    title: str = "DS-OS Generated Token Bundle",
    mode_attribute: str = MODE_ATTRIBUTE,
    default_mode: Optional[str] = None,
    component_id: Optional[str] = None,
) -> RenderedBundle:
    """依類別分組，輸出 CSS custom properties 與 JSON；輸入相同則輸出逐位元相同.

    content_hash 不含版本號，版本在寫入時才填進 JSON。
    """
    warnings: List[str] = []
    usable = _usable_tokens(tokens, warnings)
    modes = collect_modes(usable, default_mode)
    default_mode = modes[0]

    if component_id is not None:
        scope = f'[{COMPONENT_ATTRIBUTE}="{component_id}"]'

        def mode_selector(mode):
            return f"{_mode_selector(mode, mode_attribute)} {scope}"
    else:
        scope = ":root"

        def mode_selector(mode):
            return _mode_selector(mode, mode_attribute)

    overrides: Dict[str, List[Token]] = {}
    for mode in modes[1:]:
        overrides[mode] = [
            t for t in usable
            if t.value_by_mode and mode in t.value_by_mode
            and t.value_for_mode(mode) != t.value_for_mode(default_mode)
        ]

    # 與預設值完全相同的 mode 併入根選擇器，巢狀主題時才會重設回預設值
    root_selectors = [scope]
    if len(modes) > 1:
        root_selectors.append(mode_selector(default_mode))
        root_selectors.extend(mode_selector(m) for m in modes[1:] if not overrides[m])
    root_selector = ",\n".join(root_selectors)

    lines = [
        f"/* {title} */",
        f"/* Token Count: {len(usable)} */",
        f"/* Modes: {', '.join(modes)} */",
        "",
        f"{root_selector} {{",
    ]
    emitted: Dict[str, str] = {}
    for category in CATEGORIES:
        group = [t for t in usable if _category(t) == category]
        if not group:
            continue
        lines.append(f"  /* {category.capitalize()} Tokens */")
        for t in group:
            decls = _declarations(t, default_mode)
            if not decls:
                warnings.append(f"Token '{t.name}' has no CSS form; kept in JSON only")
            for var_name, value in decls:
                if var_name in emitted:
                    warnings.append(f"Skipped CSS for '{t.name}': --{var_name} already defined by '{emitted[var_name]}'")
                    continue
                emitted[var_name] = t.name
                lines.append(f"  --{var_name}: {value};")
        if lines[-1] == f"  /* {category.capitalize()} Tokens */":
            lines.pop()
            continue
        lines.append("")
    if lines[-1] == "":
        lines.pop()
    lines.append("}")

    for mode in modes[1:]:
        decls = [
            (var_name, value)
            for t in overrides[mode]
            for var_name, value in _declarations(t, mode)
            if emitted.get(var_name) == t.name
        ]
        if not decls:
            continue
        lines.append("")
        lines.append(f"{mode_selector(mode)} {{")
        for var_name, value in decls:
            lines.append(f"  --{var_name}: {value};")
        lines.append("}")
    css = "\n".join(lines) + "\n"

    if component_id is not None:
        payload = _component_payload(usable, modes, component_id)
    else:
        payload = _global_payload(usable, modes)

    return RenderedBundle(
        css=css,
        payload=payload,
        modes=modes,
        token_count=len(usable),
        token_set_hash=token_set_hash(usable),
        content_hash=_sha256(css + "\0" + dump_bundle_json(payload)),
        warnings=warnings,
    )


# ════════════════════════════════════════════════════════════
# Component references
# ════════════════════════════════════════════════════════════

_CSS_VAR_RE = re.compile(r"--([a-zA-Z0-9][a-zA-Z0-9-]*)")
_PATH_RE = re.compile(r"\b([a-zA-Z][a-zA-Z0-9-]*(?:[./][a-zA-Z0-9-]+)+)\b")
_PATH_SPLIT_RE = re.compile(r"[./]")


def extract_token_refs(code: str, docs: str = "", tokens: Optional[List[Token]] = None) -> List[str]:
    """從元件程式碼 / 文件擷取 token 引用，回傳 CSS 變數形式（去重、依出現順序）.

    - var(--color-primary) 或 --color-primary
    - 裸路徑 color.primary / spacing/4（第一段須與既有 token 的第一段相同，
      props.children 之類的屬性存取不算）
    """
    text = f"{code or ''}\n{docs or ''}"
    refs: List[str] = []

    def add(ref: str) -> None:
        ref = css_var_name(ref)
        if ref and ref not in refs:
            refs.append(ref)

    for match in _CSS_VAR_RE.finditer(text):
        add(match.group(1))

    roots = {_PATH_SPLIT_RE.split(t.name)[0].lower() for t in tokens or [] if t.name}
    if roots:
        for match in _PATH_RE.finditer(text):
            path = match.group(1)
            if _PATH_SPLIT_RE.split(path)[0].lower() in roots:
                add(path)
    return refs


def _similarity(a: str, b: str) -> float:
    return min(len(a), len(b)) / max(len(a), len(b))


def match_token_refs(refs: List[str], tokens: List[Token]) -> Tuple[List[dict], List[str]]:
    """引用 → token；先比對正規化名稱，再以包含關係做模糊比對（重疊最長者勝）.

    回傳 (matched, unmatched)；matched 每筆為 {ref, name, value, type, cssVar}。
    """
    by_var: Dict[str, Token] = {}
    for t in sorted(tokens, key=lambda t: t.name):
        by_var.setdefault(css_var_name(t.name), t)

    matched: List[dict] = []
    unmatched: List[str] = []
    seen = set()
    for ref in refs:
        token = by_var.get(ref)
        if token is None:
            best = None
            for var_name, candidate in by_var.items():
                if not var_name or not (ref in var_name or var_name in ref):
                    continue
                score = (min(len(ref), len(var_name)), _similarity(ref, var_name))
                if best is None or score > best[0]:
                    best = (score, candidate)
            token = best[1] if best else None
        if token is None:
            unmatched.append(ref)
            continue
        if token.name in seen:
            continue
        seen.add(token.name)
        matched.append({
            "ref": ref,
            "name": token.name,
            "value": token.value,
            "type": token.type,
            "cssVar": css_var(token.name),
        })
    return matched, unmatched


def match_figma_variables(figma_vars: List[dict], tokens: List[Token]) -> List[dict]:
    """Figma 變數名稱 → 最相近的專案 token，附 0–1 信心分數."""
    results = []
    for var in figma_vars:
        figma_name = css_var_name(var.get("name", ""))
        figma_parts = [p for p in figma_name.split("-") if p]
        best = None
        for t in tokens:
            token_name = css_var_name(t.name)
            if not token_name or not figma_name:
                continue
            if token_name == figma_name:
                best = (1.0, t)
                break
            if token_name in figma_name or figma_name in token_name:
                score = _similarity(token_name, figma_name)
            else:
                token_parts = token_name.split("-")
                common = [p for p in figma_parts if p in token_parts]
                score = len(common) / max(len(figma_parts), len(token_parts))
            if score > 0 and (best is None or score > best[0]):
                best = (score, t)
        results.append({
            "figmaVarName": var.get("name", ""),
            "figmaVarId": var.get("id", ""),
            "matchedToken": {
                "name": best[1].name,
                "value": best[1].value,
                "type": best[1].type,
                "cssVar": css_var(best[1].name),
            } if best else None,
            "confidence": round(best[0], 4) if best else 0.0,
        })
    return results


# ════════════════════════════════════════════════════════════
# Compiler
# ════════════════════════════════════════════════════════════

class TokenCompiler:
    """讀取 registry 的啟用 token，產生並保存 bundle."""

    def __init__(self, registry, mode_attribute: str = MODE_ATTRIBUTE, default_mode: Optional[str] = None):
        self.registry = registry
        self.mode_attribute = mode_attribute
        self.default_mode = default_mode

    @classmethod
    def from_config(cls, registry, config: dict) -> "TokenCompiler":
        compile_cfg = (config or {}).get("compile", {}) or {}
        return cls(
            registry,
            mode_attribute=compile_cfg.get("modeAttribute") or MODE_ATTRIBUTE,
            default_mode=compile_cfg.get("defaultMode"),
        )

    def _finish(self, kind: str, rendered: RenderedBundle, component_id: Optional[str] = None) -> CompileResult:
        previous = self.registry.get_bundle(kind, component_id)
        version, bump = next_version(previous, rendered.token_set_hash, rendered.content_hash)
        if bump == "none":
            return CompileResult(bundle=previous, changed=False, bump=bump, warnings=rendered.warnings)
        bundle = TokenBundle(
            kind=kind,
            version=version,
            css_content=rendered.css,
            json_content=rendered.json_for(version),
            token_count=rendered.token_count,
            modes=rendered.modes,
            component_id=component_id,
            content_hash=rendered.content_hash,
            token_set_hash=rendered.token_set_hash,
            created_at=previous.created_at if previous else "",
        )
        self.registry.save_bundle(bundle)
        return CompileResult(bundle=bundle, changed=True, bump=bump, warnings=rendered.warnings)

    def compile_global(self) -> CompileResult:
        tokens = self.registry.list_tokens(active_only=True)
        if not tokens:
            raise EmptyCompilationInput()
        rendered = render_bundle(tokens, mode_attribute=self.mode_attribute, default_mode=self.default_mode)
        if rendered.token_count == 0:
            raise EmptyCompilationInput("Every active token was skipped as malformed; nothing to compile.")
        return self._finish(BUNDLE_GLOBAL, rendered)

    def compile_component(self, component_id: str, code: str, docs: str = "") -> CompileResult:
        tokens = self.registry.list_tokens(active_only=True)
        refs = extract_token_refs(code, docs, tokens)
        matched, unmatched = match_token_refs(refs, tokens)
        if not matched:
            raise EmptyCompilationInput(
                f"No token references in component '{component_id}' matched the registry."
            )
        names = {m["name"] for m in matched}
        rendered = render_bundle(
            [t for t in tokens if t.name in names],
            title=f"DS-OS Component Token Bundle: {component_id}",
            mode_attribute=self.mode_attribute,
            default_mode=self.default_mode,
            component_id=component_id,
        )
        if rendered.token_count == 0:
            raise EmptyCompilationInput(
                f"Every token referenced by component '{component_id}' was skipped as malformed."
            )
        result = self._finish(BUNDLE_COMPONENT, rendered, component_id)
        result.matched = matched
        result.unmatched = unmatched
        return result

    def bump_major(self, kind: str = BUNDLE_GLOBAL, component_id: Optional[str] = None) -> TokenBundle:
        """手動升級 major 版本（內容不變）."""
        bundle = self.registry.get_bundle(kind, component_id)
        if bundle is None:
            raise KeyError(f"No {kind} bundle to bump; compile first.")
        bundle.version = bump_major_version(bundle.version)
        payload = json.loads(bundle.json_content)
        payload.pop("version", None)
        bundle.json_content = dump_bundle_json(payload, bundle.version)
        return self.registry.save_bundle(bundle)
