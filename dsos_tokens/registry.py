"""
Token Registry — SQLite 儲存層

以 (tenant, project) 為範圍保存 token、來源檔案與編譯後的 bundle。
匯入一個檔案時，檔案紀錄與所有 token 在同一個 transaction 內寫入，
確保 tokenCount 與實際筆數一致。
"""

from __future__ import annotations

import json
import os
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from .models import CATEGORIES, BUNDLE_GLOBAL, ParsedToken, SourceFile, Token, TokenBundle

DEFAULT_DB_PATH = os.path.join(".ds-tokens", "registry.db")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tokens (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant         TEXT NOT NULL,
    project        TEXT NOT NULL,
    name           TEXT NOT NULL,
    value          TEXT NOT NULL,
    type           TEXT NOT NULL,
    description    TEXT,
    value_by_mode  TEXT,
    modes          TEXT,
    source_file_id TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    UNIQUE (tenant, project, name)
);
CREATE TABLE IF NOT EXISTS token_files (
    id             TEXT PRIMARY KEY,
    tenant         TEXT NOT NULL,
    project        TEXT NOT NULL,
    name           TEXT NOT NULL,
    original_name  TEXT NOT NULL,
    content        TEXT DEFAULT '',
    token_count    INTEGER NOT NULL DEFAULT 0,
    is_active      INTEGER NOT NULL DEFAULT 1,
    uploaded_at    TEXT NOT NULL,
    uploaded_by    TEXT DEFAULT ''
);
CREATE TABLE IF NOT EXISTS token_bundles (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant         TEXT NOT NULL,
    project        TEXT NOT NULL,
    kind           TEXT NOT NULL,
    component_id   TEXT NOT NULL DEFAULT '',
    version        TEXT NOT NULL,
    modes          TEXT,
    css_content    TEXT NOT NULL,
    json_content   TEXT NOT NULL,
    token_count    INTEGER NOT NULL,
    content_hash   TEXT NOT NULL,
    token_set_hash TEXT NOT NULL,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL,
    UNIQUE (tenant, project, kind, component_id)
);
"""

_TOKEN_COLUMNS = "id, name, value, type, description, value_by_mode, modes, source_file_id"
_FILE_COLUMNS = "id, name, original_name, token_count, is_active, uploaded_at, uploaded_by, content"
_BUNDLE_COLUMNS = ("kind, version, css_content, json_content, token_count, modes, component_id, "
                   "content_hash, token_set_hash, created_at, updated_at")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(value) -> Optional[str]:
    return json.dumps(value, ensure_ascii=False) if value else None


def _load(text):
    return json.loads(text) if text else None


def _row_to_token(row: tuple) -> Token:
    tid, name, value, ttype, desc, by_mode, modes, source = row
    return Token(
        id=tid, name=name, value=value, type=ttype, description=desc,
        value_by_mode=_load(by_mode), modes=_load(modes), source_file_id=source,
    )


def _row_to_file(row: tuple) -> SourceFile:
    fid, name, original, count, active, uploaded_at, uploaded_by, content = row
    return SourceFile(
        id=fid, name=name, original_name=original, token_count=count,
        is_active=bool(active), uploaded_at=uploaded_at, uploaded_by=uploaded_by or "",
        content=content or "",
    )


def _row_to_bundle(row: tuple) -> TokenBundle:
    (kind, version, css, js, count, modes, component_id,
     content_hash, set_hash, created_at, updated_at) = row
    return TokenBundle(
        kind=kind, version=version, css_content=css, json_content=js,
        token_count=count, modes=_load(modes) or [], component_id=component_id or None,
        content_hash=content_hash, token_set_hash=set_hash,
        created_at=created_at, updated_at=updated_at,
    )


def _check_category(category: str) -> None:
    if category not in CATEGORIES:
        raise ValueError(f"category '{category}' must be one of {CATEGORIES}")


class TokenRegistry:
    """單一 (tenant, project) 範圍內的 token 儲存."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, tenant: str = "default", project: str = "default"):
        self.db_path = str(db_path)
        self.tenant = tenant
        self.project = project
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path)
        self.conn.executescript(_SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def _scope(self) -> tuple:
        return (self.tenant, self.project)

    # ─── Tokens ──────────────────────────────────────────────────────────────

    def list_tokens(self, active_only: bool = False, category: Optional[str] = None) -> List[Token]:
        """列出 token；active_only 時排除停用檔案的 token（手動新增者一律保留）."""
        q = f"SELECT {', '.join('t.' + c.strip() for c in _TOKEN_COLUMNS.split(','))} FROM tokens t"
        clauses = ["t.tenant=?", "t.project=?"]
        params: list = list(self._scope)
        if active_only:
            q += " LEFT JOIN token_files f ON f.id = t.source_file_id"
            clauses.append("(t.source_file_id IS NULL OR f.is_active = 1)")
        if category:
            clauses.append("t.type=?")
            params.append(category)
        q += " WHERE " + " AND ".join(clauses) + " ORDER BY t.name"
        return [_row_to_token(r) for r in self.conn.execute(q, params).fetchall()]

    def get_token(self, name: str) -> Optional[Token]:
        row = self.conn.execute(
            f"SELECT {_TOKEN_COLUMNS} FROM tokens WHERE tenant=? AND project=? AND name=?",
            (*self._scope, name),
        ).fetchone()
        return _row_to_token(row) if row else None

    def create_token(self, token: Token) -> Token:
        """新增單一 token（手動新增）；同名已存在時拋 ValueError."""
        _check_category(token.type)
        if not token.name:
            raise ValueError("name is required")
        now = _now()
        try:
            with self.conn:
                cur = self.conn.execute(
                    "INSERT INTO tokens (tenant, project, name, value, type, description, "
                    "value_by_mode, modes, source_file_id, created_at, updated_at) "
                    "VALUES (?,?,?,?,?,?,?,?,?,?,?)",
                    (*self._scope, token.name, token.value, token.type, token.description,
                     _dump(token.value_by_mode), _dump(token.modes), token.source_file_id, now, now),
                )
        except sqlite3.IntegrityError:
            raise ValueError(f"Token with name '{token.name}' already exists")
        token.id = cur.lastrowid
        return token

    def update_token(self, token_name: str, **fields) -> Token:
        """更新 value / description / type / valueByMode / modes."""
        token = self.get_token(token_name)
        if token is None:
            raise KeyError(f"Token not found: {token_name!r}")
        for key, value in fields.items():
            if key not in ("value", "description", "type", "value_by_mode", "modes"):
                raise ValueError(f"Field '{key}' cannot be updated")
            setattr(token, key, value)
        _check_category(token.type)
        with self.conn:
            self.conn.execute(
                "UPDATE tokens SET value=?, type=?, description=?, value_by_mode=?, modes=?, updated_at=? "
                "WHERE id=?",
                (token.value, token.type, token.description, _dump(token.value_by_mode),
                 _dump(token.modes), _now(), token.id),
            )
        return token

    def set_type(self, name: str, category: str) -> Token:
        """手動重新分類."""
        return self.update_token(name, type=category)

    def remove_token(self, name: str) -> bool:
        with self.conn:
            cur = self.conn.execute(
                "DELETE FROM tokens WHERE tenant=? AND project=? AND name=?", (*self._scope, name)
            )
        return cur.rowcount > 0

    # ─── Import ──────────────────────────────────────────────────────────────

    def commit_import(
        self,
        tokens: Iterable[ParsedToken],
        original_name: str,
        name: Optional[str] = None,
        uploaded_by: str = "",
        content: str = "",
        replace: bool = False,
    ) -> SourceFile:
        """將預覽中的 token 整批寫入並建立來源檔案紀錄（全部成功或全部不寫）.

        同名 token 會被更新並改掛到新檔案；replace=True 時先清空此範圍內所有 token。
        """
        tokens = list(tokens)
        for t in tokens:
            _check_category(t.type)
        now = _now()
        source = SourceFile(
            id=uuid.uuid4().hex,
            name=name or original_name,
            original_name=original_name,
            token_count=len(tokens),
            is_active=True,
            uploaded_at=now,
            uploaded_by=uploaded_by,
            content=content,
        )
        with self.conn:
            if replace:
                self.conn.execute("DELETE FROM tokens WHERE tenant=? AND project=?", self._scope)
            self._insert_file(source)
            for t in tokens:
                self.conn.execute(
                    "INSERT INTO tokens (tenant, project, name, value, type, description, "
                    "value_by_mode, modes, source_file_id, created_at, updated_at) "
                    "VALUES (?,?,?,?,?,?,?,?,?,?,?) "
                    "ON CONFLICT (tenant, project, name) DO UPDATE SET "
                    "value=excluded.value, type=excluded.type, description=excluded.description, "
                    "value_by_mode=excluded.value_by_mode, modes=excluded.modes, "
                    "source_file_id=excluded.source_file_id, updated_at=excluded.updated_at",
                    (*self._scope, t.name.strip(), t.value, t.type, t.description,
                     _dump(t.value_by_mode), _dump(t.modes), source.id, now, now),
                )
        return source

    # ─── Source files ────────────────────────────────────────────────────────

    def _insert_file(self, source: SourceFile) -> None:
        self.conn.execute(
            f"INSERT INTO token_files (tenant, project, {_FILE_COLUMNS}) VALUES (?,?,?,?,?,?,?,?,?,?)",
            (*self._scope, source.id, source.name, source.original_name, source.token_count,
             int(source.is_active), source.uploaded_at, source.uploaded_by, source.content),
        )

    def create_file(self, original_name: str, name: Optional[str] = None,
                    uploaded_by: str = "", content: str = "") -> SourceFile:
        """建立空的來源檔案紀錄（預設啟用）."""
        source = SourceFile(
            id=uuid.uuid4().hex,
            name=name or original_name,
            original_name=original_name,
            uploaded_at=_now(),
            uploaded_by=uploaded_by,
            content=content,
        )
        with self.conn:
            self._insert_file(source)
        return source

    def list_files(self) -> List[SourceFile]:
        rows = self.conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM token_files WHERE tenant=? AND project=? "
            "ORDER BY uploaded_at DESC, rowid DESC",
            self._scope,
        ).fetchall()
        return [_row_to_file(r) for r in rows]

    def get_file(self, file_id: str) -> Optional[SourceFile]:
        row = self.conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM token_files WHERE tenant=? AND project=? AND id=?",
            (*self._scope, file_id),
        ).fetchone()
        return _row_to_file(row) if row else None

    def _require_file(self, file_id: str) -> SourceFile:
        source = self.get_file(file_id)
        if source is None:
            raise KeyError(f"File not found: {file_id!r}")
        return source

    def rename_file(self, file_id: str, name: str) -> SourceFile:
        source = self._require_file(file_id)
        with self.conn:
            self.conn.execute("UPDATE token_files SET name=? WHERE id=?", (name, file_id))
        source.name = name
        return source

    def set_file_active(self, file_id: str, active: bool) -> SourceFile:
        source = self._require_file(file_id)
        with self.conn:
            self.conn.execute("UPDATE token_files SET is_active=? WHERE id=?", (int(active), file_id))
        source.is_active = active
        return source

    def toggle_active(self, file_id: str) -> bool:
        """切換啟用狀態，回傳新狀態；token 本身不刪除."""
        source = self._require_file(file_id)
        return self.set_file_active(file_id, not source.is_active).is_active

    def remove_file(self, file_id: str) -> int:
        """刪除檔案與其所有 token，回傳刪除的 token 數."""
        self._require_file(file_id)
        with self.conn:
            cur = self.conn.execute(
                "DELETE FROM tokens WHERE tenant=? AND project=? AND source_file_id=?",
                (*self._scope, file_id),
            )
            self.conn.execute("DELETE FROM token_files WHERE id=?", (file_id,))
        return cur.rowcount

    # ─── Bundles ─────────────────────────────────────────────────────────────

    def get_bundle(self, kind: str = BUNDLE_GLOBAL, component_id: Optional[str] = None) -> Optional[TokenBundle]:
        row = self.conn.execute(
            f"SELECT {_BUNDLE_COLUMNS} FROM token_bundles "
            "WHERE tenant=? AND project=? AND kind=? AND component_id=?",
            (*self._scope, kind, component_id or ""),
        ).fetchone()
        return _row_to_bundle(row) if row else None

    def save_bundle(self, bundle: TokenBundle) -> TokenBundle:
        now = _now()
        bundle.created_at = bundle.created_at or now
        bundle.updated_at = now
        with self.conn:
            self.conn.execute(
                "INSERT INTO token_bundles (tenant, project, kind, component_id, version, modes, "
                "css_content, json_content, token_count, content_hash, token_set_hash, created_at, updated_at) "
                "VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?) "
                "ON CONFLICT (tenant, project, kind, component_id) DO UPDATE SET "
                "version=excluded.version, modes=excluded.modes, css_content=excluded.css_content, "
                "json_content=excluded.json_content, token_count=excluded.token_count, "
                "content_hash=excluded.content_hash, token_set_hash=excluded.token_set_hash, "
                "updated_at=excluded.updated_at",
                (*self._scope, bundle.kind, bundle.component_id or "", bundle.version,
                 _dump(bundle.modes), bundle.css_content, bundle.json_content, bundle.token_count,
                 bundle.content_hash, bundle.token_set_hash, bundle.created_at, bundle.updated_at),
            )
        return bundle
