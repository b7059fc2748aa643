"""設定檔載入與基本驗證."""

import json
import os
from pathlib import Path
from typing import Any

from .registry import DEFAULT_DB_PATH

DEFAULT_CONFIG_PATH = "ds-tokens.config.json"
DB_ENV_VAR = "DSOS_TOKENS_DB"

# 已知有效的頂層欄位
_KNOWN_TOP_KEYS = {"registry", "compile", "relationships", "typography", "watch"}

# 各區塊已知欄位（用於拼字提示）
_KNOWN_SECTION_KEYS = {
    "registry": {"path", "tenant", "project"},
    "compile": {"outputDir", "modeAttribute", "defaultMode"},
    "relationships": {"colorDistance", "numericDistance"},
    "typography": {"fontSizeMin", "fontSizeMax", "lineHeightMin", "lineHeightMax"},
    "watch": {"paths", "debounce"},
}

# 需為數字的欄位
_NUMERIC_KEYS = {
    "relationships": ("colorDistance", "numericDistance"),
    "typography": ("fontSizeMin", "fontSizeMax", "lineHeightMin", "lineHeightMax"),
    "watch": ("debounce",),
}


def _warn(msg: str) -> None:
    print(f"   ⚠️  [config] {msg}")


def validate_config(cfg: dict) -> None:
    """對 config 做基本欄位驗證，印出警告但不拋例外。"""
    if not cfg:
        return

    # 頂層未知欄位
    for key in cfg:
        if key not in _KNOWN_TOP_KEYS:
            known = ", ".join(sorted(_KNOWN_TOP_KEYS))
            _warn(f"未知頂層欄位 '{key}'（已知欄位：{known}）")

    # 各區塊欄位
    for section, known_keys in _KNOWN_SECTION_KEYS.items():
        section_cfg = cfg.get(section, {})
        if not isinstance(section_cfg, dict):
            _warn(f"'{section}' 應為物件，目前是 {type(section_cfg).__name__}")
            continue
        for key in section_cfg:
            if key not in known_keys:
                known = ", ".join(sorted(known_keys))
                _warn(f"[{section}] 未知欄位 '{key}'（已知欄位：{known}）")

    # 數值類型
    for section, keys in _NUMERIC_KEYS.items():
        section_cfg = cfg.get(section, {})
        if not isinstance(section_cfg, dict):
            continue
        for key in keys:
            val = section_cfg.get(key)
            if val is not None and (isinstance(val, bool) or not isinstance(val, (int, float))):
                _warn(f"{section}.{key} 應為數字，目前是 {type(val).__name__}")

    # 字級範圍
    typo = cfg.get("typography", {})
    if isinstance(typo, dict):
        lo, hi = typo.get("fontSizeMin"), typo.get("fontSizeMax")
        if isinstance(lo, (int, float)) and isinstance(hi, (int, float)) and lo > hi:
            _warn(f"typography.fontSizeMin ({lo}) 大於 fontSizeMax ({hi})")

    # watch.paths 應為字串陣列
    paths = cfg.get("watch", {}).get("paths") if isinstance(cfg.get("watch"), dict) else None
    if paths is not None and not (isinstance(paths, list) and all(isinstance(p, str) for p in paths)):
        _warn("watch.paths 應為字串陣列")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """載入 JSON 設定檔，不存在則回傳空 dict；存在則做基本驗證。"""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg: Any = json.load(f)
    if not isinstance(cfg, dict):
        print(f"   ⚠️  [config] '{config_path}' 格式錯誤，應為 JSON 物件，回傳空設定。")
        return {}
    validate_config(cfg)
    return cfg


def registry_settings(cfg: dict) -> dict:
    """registry 路徑 / tenant / project；環境變數 DSOS_TOKENS_DB 優先於設定檔."""
    section = cfg.get("registry", {}) if isinstance(cfg.get("registry"), dict) else {}
    return {
        "db_path": os.environ.get(DB_ENV_VAR) or section.get("path") or DEFAULT_DB_PATH,
        "tenant": section.get("tenant") or "default",
        "project": section.get("project") or "default",
    }
