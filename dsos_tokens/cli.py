#!/usr/bin/env python3
"""
ds-tokens CLI — 設計 token 匯入、管理與編譯

  ds-tokens preview tokens.json            # 偵測格式並預覽分類結果
  ds-tokens import tokens.json             # 匯入 registry
  ds-tokens compile                        # 產生全域 CSS / JSON bundle
  ds-tokens component Button Button.tsx    # 產生元件 bundle
  ds-tokens watch tokens/                  # 監聽 JSON 變更並自動重新匯入、編譯
"""

import argparse
import asyncio
import json
import os
import sys
import threading
import time
from pathlib import Path

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from dsos_tokens import __version__

from .classifiers import Heuristics
from .compiler import TokenCompiler
from .config import DEFAULT_CONFIG_PATH, load_config, registry_settings
from .errors import TokenPipelineError
from .exporters import DEFAULT_PREFIX, EXPORTERS, EXTENSIONS, export_tokens
from .formatting import css_var_name
from .models import BUNDLE_COMPONENT, BUNDLE_GLOBAL, CATEGORIES, SourceFile
from .parsers import build_preview
from .registry import TokenRegistry
from .relationships import SimilarityThresholds, build_graph, summarize

DEFAULT_OUTPUT_DIR = os.path.join(".ds-tokens", "dist")
_PREVIEW_ROWS = 20


def _open_registry(config: dict) -> TokenRegistry:
    return TokenRegistry(**registry_settings(config))


def _output_dir(args, config: dict) -> Path:
    out = getattr(args, "output_dir", None) or config.get("compile", {}).get("outputDir") or DEFAULT_OUTPUT_DIR
    return Path(out)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


def _print_preview(preview) -> None:
    print(f"   Format: {preview.format}")
    print(f"   Tokens: {preview.total}")
    for category in CATEGORIES:
        count = preview.by_category.get(category)
        if count:
            print(f"     {category:<11} {count}")
    for t in preview.tokens[:_PREVIEW_ROWS]:
        print(f"   {t.type:<11} {t.name} = {t.value}")
    if preview.total > _PREVIEW_ROWS:
        print(f"   ... ({preview.total - _PREVIEW_ROWS} more)")
    for w in preview.warnings:
        print(f"   ⚠️  {w}")


def _apply_type_overrides(preview, overrides) -> None:
    """--type name=category：匯入前手動修正分類."""
    for item in overrides or []:
        name, sep, category = item.partition("=")
        if not sep:
            raise ValueError(f"--type expects NAME=CATEGORY, got '{item}'")
        preview.set_type(name.strip(), category.strip())


def import_file(registry: TokenRegistry, path: str, heuristics: Heuristics, name=None,
                replace: bool = False, overrides=None, uploaded_by: str = ""):
    """讀檔 → 預覽 → 寫入 registry；沒有 token 時不寫入，回傳 (preview, SourceFile | None)."""
    text = _read_text(path)
    preview = build_preview(text, heuristics)
    _apply_type_overrides(preview, overrides)
    if preview.is_empty:
        return preview, None
    source = registry.commit_import(
        preview.tokens,
        original_name=os.path.basename(path),
        name=name,
        uploaded_by=uploaded_by,
        content=text,
        replace=replace,
    )
    return preview, source


def reimport_file(registry: TokenRegistry, path: str, heuristics: Heuristics):
    """重新匯入同名檔案：先寫入新版，再移除舊檔案紀錄（只會刪掉新版已不存在的 token）."""
    original_name = os.path.basename(path)
    previous = [f for f in registry.list_files() if f.original_name == original_name]
    preview, source = import_file(registry, path, heuristics)
    if source is None:
        return preview, None
    for old in previous:
        registry.remove_file(old.id)
    return preview, source


def _write_bundle(bundle, out_dir: Path, stem: str) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    css_path = out_dir / f"{stem}.css"
    css_path.write_text(bundle.css_content, encoding="utf-8")
    (out_dir / f"{stem}.json").write_text(bundle.json_content + "\n", encoding="utf-8")
    return css_path


def _print_compile_result(result) -> None:
    bundle = result.bundle
    if result.changed:
        print(f"   ✅ v{bundle.version} ({result.bump}) — {bundle.token_count} tokens, modes: {', '.join(bundle.modes)}")
    else:
        print(f"   ✅ Up to date: v{bundle.version} ({bundle.token_count} tokens)")
    for w in result.warnings:
        print(f"   ⚠️  {w}")


# ════════════════════════════════════════════════════════════
# Commands
# ════════════════════════════════════════════════════════════

def cmd_preview(args, config: dict):
    """預覽：偵測格式、分類，不寫入."""
    print(f"👁️  Preview: {args.file}")
    preview = build_preview(_read_text(args.file), Heuristics.from_config(config))
    if args.json:
        print(json.dumps(preview.to_dict(), indent=2, ensure_ascii=False))
        return
    _print_preview(preview)


def cmd_import(args, config: dict):
    """匯入：預覽 → (修正分類) → commit."""
    print(f"📥 Importing: {args.file}")
    with _open_registry(config) as registry:
        preview, source = import_file(
            registry, args.file, Heuristics.from_config(config),
            name=args.name, replace=args.replace, overrides=args.type, uploaded_by=args.by or "",
        )
    _print_preview(preview)
    if source is None:
        print("   ⚠️  Nothing imported.")
        return
    print(f"✅ Imported {source.token_count} tokens as '{source.name}' (file id: {source.id})")


def cmd_list(args, config: dict):
    with _open_registry(config) as registry:
        tokens = registry.list_tokens(active_only=args.active, category=args.category)
    if args.json:
        print(json.dumps([t.to_dict() for t in tokens], indent=2, ensure_ascii=False))
        return
    print(f"📋 {len(tokens)} tokens")
    for t in tokens:
        modes = f"  [{', '.join(t.modes)}]" if t.modes else ""
        print(f"   {t.type:<11} {t.name} = {t.value}{modes}")


def cmd_set_type(args, config: dict):
    with _open_registry(config) as registry:
        token = registry.set_type(args.name, args.category)
    print(f"✅ {token.name} → {token.type}")


def _print_file(f: SourceFile) -> None:
    state = "✅" if f.is_active else "⏸️ "
    print(f"   {state} {f.id}  {f.name}  ({f.token_count} tokens, {f.original_name}, {f.uploaded_at})")


def cmd_files(args, config: dict):
    with _open_registry(config) as registry:
        files = registry.list_files()
    print(f"📁 {len(files)} files")
    for f in files:
        _print_file(f)


def cmd_toggle(args, config: dict):
    with _open_registry(config) as registry:
        active = registry.toggle_active(args.file_id)
    print(f"✅ {args.file_id} is now {'active' if active else 'inactive'}")


def cmd_rename_file(args, config: dict):
    with _open_registry(config) as registry:
        f = registry.rename_file(args.file_id, args.name)
    print(f"✅ Renamed {f.id} → '{f.name}'")


def cmd_remove_file(args, config: dict):
    with _open_registry(config) as registry:
        removed = registry.remove_file(args.file_id)
    print(f"🗑️  Removed {args.file_id} and {removed} tokens")


def cmd_compile(args, config: dict):
    """編譯全域 bundle 並寫出 tokens.css / tokens.json."""
    print("🔨 Compiling global bundle...")
    with _open_registry(config) as registry:
        result = TokenCompiler.from_config(registry, config).compile_global()
    _print_compile_result(result)
    css_path = _write_bundle(result.bundle, _output_dir(args, config), "tokens")
    print(f"   📄 {css_path}")


def cmd_component(args, config: dict):
    """依元件程式碼 / 文件中的引用產生元件 bundle."""
    print(f"🧩 Compiling component bundle: {args.component_id}")
    code = _read_text(args.code)
    docs = _read_text(args.docs) if args.docs else ""
    with _open_registry(config) as registry:
        result = TokenCompiler.from_config(registry, config).compile_component(args.component_id, code, docs)
    _print_compile_result(result)
    for m in result.matched:
        note = "" if m["ref"] == css_var_name(m["name"]) else f"  (from {m['ref']})"
        print(f"   🔗 {m['name']} → {m['cssVar']}{note}")
    for ref in result.unmatched:
        print(f"   ⚠️  Unmatched reference: {ref}")
    css_path = _write_bundle(result.bundle, _output_dir(args, config) / "components", args.component_id)
    print(f"   📄 {css_path}")


def cmd_graph(args, config: dict):
    """reference / alias 關係."""
    with _open_registry(config) as registry:
        tokens = registry.list_tokens(active_only=True)
    graph = build_graph(tokens, SimilarityThresholds.from_config(config))
    summary = summarize(graph)
    if args.json:
        print(json.dumps({**graph.to_dict(), "summary": summary}, indent=2, ensure_ascii=False))
        return
    print(f"🕸️  {summary['tokens']} tokens, {summary['references']} references, {summary['aliases']} aliases")
    for name, info in summary["byToken"].items():
        deps = ", ".join(f"{d['name']} ({d['kind']})" for d in info["dependencies"]) or "-"
        print(f"   {name}  → {deps}")


def cmd_export(args, config: dict):
    with _open_registry(config) as registry:
        tokens = registry.list_tokens(active_only=True)
    output = export_tokens(tokens, args.format, args.prefix)
    if not args.output:
        print(output, end="")
        return
    target = Path(args.output)
    # 沒有副檔名視為目錄，檔名依格式決定
    if not target.suffix:
        target = target / f"tokens.{EXTENSIONS[args.format]}"
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(output, encoding="utf-8")
    print(f"✅ Exported {len(tokens)} tokens → {target}")


def cmd_bump_major(args, config: dict):
    kind = BUNDLE_COMPONENT if args.component else BUNDLE_GLOBAL
    with _open_registry(config) as registry:
        bundle = TokenCompiler.from_config(registry, config).bump_major(kind, args.component)
    print(f"✅ {args.component or 'global'} bundle → v{bundle.version}")


# ─── Watch ──────────────────────────────────────────────────────────────────

_WATCHED_EXTENSIONS = (".json",)


class ChangeHandler(FileSystemEventHandler):
    """檔案變更事件處理器，帶 debounce 防抖；callback 收到變更的路徑."""

    def __init__(self, callback, loop: asyncio.AbstractEventLoop, debounce: float = 1.0,
                 ignore=()):
        self.callback = callback
        self.loop = loop
        self.last_trigger = 0.0
        self.debounce_seconds = debounce
        self.ignore = {os.path.basename(p) for p in ignore}

    def on_modified(self, event):
        if event.is_directory:
            return
        if not event.src_path.endswith(_WATCHED_EXTENSIONS):
            return
        if os.path.basename(event.src_path) in self.ignore:
            return
        current_time = time.time()
        if current_time - self.last_trigger < self.debounce_seconds:
            return
        self.last_trigger = current_time
        print(f"\n🔄 File changed: {event.src_path}")
        asyncio.run_coroutine_threadsafe(self.callback(event.src_path), self.loop)

    on_created = on_modified


def cmd_watch(args, config: dict):
    """Watch: JSON 變更時重新匯入並重新編譯全域 bundle."""
    watch_cfg = config.get("watch", {})
    paths = args.paths or watch_cfg.get("paths") or ["."]
    debounce = args.debounce if args.debounce is not None else watch_cfg.get("debounce", 1.0)
    heuristics = Heuristics.from_config(config)
    print(f"👀 Watching for token changes in {', '.join(paths)}...")
    print("   Press Ctrl+C to stop.")

    # 在獨立執行緒中運行 event loop
    loop = asyncio.new_event_loop()

    async def sync_task(path: str):
        # sqlite 連線不可跨執行緒，每次都重新開啟
        try:
            with _open_registry(config) as registry:
                preview, source = reimport_file(registry, path, heuristics)
                if source is None:
                    print(f"   ⚠️  {path}: {'; '.join(preview.warnings) or 'no tokens'}")
                    return
                print(f"   📥 {source.token_count} tokens from {source.original_name}")
                result = TokenCompiler.from_config(registry, config).compile_global()
            _print_compile_result(result)
            _write_bundle(result.bundle, _output_dir(args, config), "tokens")
        except (TokenPipelineError, KeyError, ValueError, OSError) as e:
            print(f"   ❌ {path}: {_error_message(e)}")

    def run_loop():
        asyncio.set_event_loop(loop)
        loop.run_forever()

    loop_thread = threading.Thread(target=run_loop, daemon=True)
    loop_thread.start()

    event_handler = ChangeHandler(sync_task, loop, debounce=float(debounce), ignore=[args.config])
    observer = Observer()
    for path in paths:
        observer.schedule(event_handler, path=path, recursive=True)
    observer.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n👋 Stopping watch...")
        observer.stop()
    finally:
        observer.join()
        loop.call_soon_threadsafe(loop.stop)


# ════════════════════════════════════════════════════════════
# Entry
# ════════════════════════════════════════════════════════════

COMMANDS = {
    "preview": cmd_preview,
    "import": cmd_import,
    "list": cmd_list,
    "set-type": cmd_set_type,
    "files": cmd_files,
    "toggle": cmd_toggle,
    "rename-file": cmd_rename_file,
    "remove-file": cmd_remove_file,
    "compile": cmd_compile,
    "component": cmd_component,
    "graph": cmd_graph,
    "export": cmd_export,
    "bump-major": cmd_bump_major,
    "watch": cmd_watch,
}


def _error_message(e: Exception) -> str:
    # KeyError 的 str() 會多一層引號
    if isinstance(e, KeyError) and e.args:
        return str(e.args[0])
    return str(e)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ds-tokens",
        description="ds-tokens: design token ingestion, registry and bundle compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Config path")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command")

    preview_p = sub.add_parser("preview", help="Detect format and preview classified tokens",
        epilog="Examples:\n  ds-tokens preview figma-variables.json\n  ds-tokens preview tokens.json --json",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    preview_p.add_argument("file", help="Token JSON file")
    preview_p.add_argument("--json", action="store_true", help="Print the preview as JSON")

    import_p = sub.add_parser("import", help="Import a token file into the registry",
        epilog="Examples:\n  ds-tokens import tokens.json\n  ds-tokens import tokens.json --type color.brand=color --replace",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    import_p.add_argument("file", help="Token JSON file")
    import_p.add_argument("--name", help="Display name for the file (default: file name)")
    import_p.add_argument("--type", action="append", metavar="NAME=CATEGORY",
                          help="Override a token's category before committing (repeatable)")
    import_p.add_argument("--replace", action="store_true", help="Delete all existing tokens first")
    import_p.add_argument("--by", help="Uploader name")

    list_p = sub.add_parser("list", help="List tokens")
    list_p.add_argument("--category", choices=CATEGORIES, help="Only this category")
    list_p.add_argument("--active", action="store_true", help="Only tokens from active files")
    list_p.add_argument("--json", action="store_true", help="Print as JSON")

    type_p = sub.add_parser("set-type", help="Reclassify a token")
    type_p.add_argument("name", help="Token name")
    type_p.add_argument("category", choices=CATEGORIES, help="New category")

    sub.add_parser("files", help="List imported token files")

    toggle_p = sub.add_parser("toggle", help="Activate / deactivate a token file")
    toggle_p.add_argument("file_id", help="File id (see 'files')")

    rename_p = sub.add_parser("rename-file", help="Rename a token file")
    rename_p.add_argument("file_id", help="File id")
    rename_p.add_argument("name", help="New display name")

    remove_p = sub.add_parser("remove-file", help="Remove a token file and its tokens")
    remove_p.add_argument("file_id", help="File id")

    compile_p = sub.add_parser("compile", help="Compile the global CSS / JSON bundle")
    compile_p.add_argument("--output-dir", help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")

    comp_p = sub.add_parser("component", help="Compile a component bundle from its code",
        epilog="Examples:\n  ds-tokens component Button src/Button.tsx --docs docs/Button.md",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    comp_p.add_argument("component_id", help="Component id")
    comp_p.add_argument("code", help="Component source file")
    comp_p.add_argument("--docs", help="Component documentation file")
    comp_p.add_argument("--output-dir", help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")

    graph_p = sub.add_parser("graph", help="Show reference / alias relationships")
    graph_p.add_argument("--json", action="store_true", help="Print nodes and edges as JSON")

    export_p = sub.add_parser("export", help="Export active tokens",
        epilog="Examples:\n  ds-tokens export --format scss --output styles/_tokens.scss\n  ds-tokens export --format tailwind",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    export_p.add_argument("--format", "-f", choices=sorted(EXPORTERS), default="css", help="Export format")
    export_p.add_argument("--prefix", default=DEFAULT_PREFIX, help="Variable prefix for css / scss")
    export_p.add_argument("--output", "-o", help="Output file or directory (default: stdout)")

    bump_p = sub.add_parser("bump-major", help="Manually bump a bundle's major version")
    bump_p.add_argument("--component", help="Component id (default: global bundle)")

    watch_p = sub.add_parser("watch", help="Watch token JSON files and auto import + compile",
        epilog="Examples:\n  ds-tokens watch tokens/\n  ds-tokens watch tokens/ --debounce 2",
        formatter_class=argparse.RawDescriptionHelpFormatter)
    watch_p.add_argument("paths", nargs="*", help="Directories to watch (default: watch.paths or .)")
    watch_p.add_argument("--debounce", type=float, help="Seconds between triggers")
    watch_p.add_argument("--output-dir", help=f"Output directory (default: {DEFAULT_OUTPUT_DIR})")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return
    config = load_config(args.config)
    try:
        command(args, config)
    except (TokenPipelineError, KeyError, ValueError, OSError) as e:
        print(f"❌ {_error_message(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
