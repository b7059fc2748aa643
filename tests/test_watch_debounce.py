"""
Watch Mode / ChangeHandler debounce 單元測試
不需要真實檔案系統事件，用 mock event 物件測試防抖與 loop 排程邏輯。
"""
import asyncio
import json
import time
from unittest.mock import MagicMock, patch

from dsos_tokens.classifiers import Heuristics
from dsos_tokens.cli import _WATCHED_EXTENSIONS, ChangeHandler, reimport_file
from dsos_tokens.registry import TokenRegistry


# ─── helper: 建立假 FileModifiedEvent ────────────────────────────────────────

def make_event(src_path: str, is_directory: bool = False):
    ev = MagicMock()
    ev.is_directory = is_directory
    ev.src_path = src_path
    return ev


# ─── ChangeHandler.on_modified 過濾邏輯 ──────────────────────────────────────

class TestChangeHandlerFilter:
    """測試 on_modified 的過濾條件：目錄、副檔名、忽略清單、callback 呼叫。"""

    def setup_method(self):
        self.loop = asyncio.new_event_loop()
        self.paths = []

        async def dummy_callback(path):
            self.paths.append(path)

        self.callback = dummy_callback
        self.handler = ChangeHandler(dummy_callback, self.loop, debounce=0.0,
                                     ignore=["ds-tokens.config.json"])

    def teardown_method(self):
        self.loop.close()

    def test_directory_event_ignored(self):
        ev = make_event("/tokens/", is_directory=True)
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            mock_run.assert_not_called()

    def test_non_json_ignored(self):
        for ext in [".png", ".md", ".css", ".db", ".tsx"]:
            ev = make_event(f"/tokens/file{ext}")
            with patch("asyncio.run_coroutine_threadsafe") as mock_run:
                self.handler.on_modified(ev)
                mock_run.assert_not_called()

    def test_config_file_ignored(self):
        ev = make_event("/project/ds-tokens.config.json")
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            mock_run.assert_not_called()

    def test_json_triggers_callback_on_loop(self):
        ev = make_event("/tokens/colors.json")
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            mock_run.assert_called_once()
            coro = mock_run.call_args[0][0]
            assert mock_run.call_args[0][1] is self.loop
            self.loop.run_until_complete(coro)
        assert self.paths == ["/tokens/colors.json"]

    def test_created_files_trigger_too(self):
        ev = make_event("/tokens/new.json")
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_created(ev)
            mock_run.assert_called_once()
            mock_run.call_args[0][0].close()


# ─── ChangeHandler debounce 邏輯 ─────────────────────────────────────────────

class TestChangeHandlerDebounce:
    """測試防抖：短時間內重複觸發只呼叫一次 callback。"""

    def setup_method(self):
        self.loop = asyncio.new_event_loop()

        async def dummy(path):
            pass

        self.handler = ChangeHandler(dummy, self.loop, debounce=0.5)

    def teardown_method(self):
        self.loop.close()

    def _close_all(self, mock_run):
        for c in mock_run.call_args_list:
            c[0][0].close()

    def test_debounce_blocks_rapid_events(self):
        ev = make_event("/tokens/colors.json")
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            self.handler.on_modified(ev)
            self.handler.on_modified(ev)
            assert mock_run.call_count == 1
            self._close_all(mock_run)

    def test_debounce_allows_event_after_window(self):
        ev = make_event("/tokens/colors.json")
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            assert mock_run.call_count == 1

            # 模擬時間過了超過 debounce 視窗
            self.handler.last_trigger = time.time() - 1.0

            self.handler.on_modified(ev)
            assert mock_run.call_count == 2
            self._close_all(mock_run)

    def test_debounce_timestamp_updated(self):
        ev = make_event("/tokens/colors.json")
        before = time.time() - 0.01
        with patch("asyncio.run_coroutine_threadsafe") as mock_run:
            self.handler.on_modified(ev)
            assert self.handler.last_trigger >= before
            self._close_all(mock_run)


def test_watched_extensions_only_json():
    assert _WATCHED_EXTENSIONS == (".json",)


# ─── 重新匯入 ────────────────────────────────────────────────────────────────

def test_reimport_replaces_previous_file(tmp_path):
    token_file = tmp_path / "colors.json"
    token_file.write_text(json.dumps({"tokens": {"color-a": "#000", "color-b": "#111"}}), encoding="utf-8")
    with TokenRegistry(str(tmp_path / "r.db")) as registry:
        reimport_file(registry, str(token_file), Heuristics())
        token_file.write_text(json.dumps({"tokens": {"color-a": "#222"}}), encoding="utf-8")
        _, source = reimport_file(registry, str(token_file), Heuristics())

        files = registry.list_files()
        assert [f.id for f in files] == [source.id]
        tokens = registry.list_tokens()
        assert [(t.name, t.value) for t in tokens] == [("color-a", "#222")]


def test_reimport_empty_file_keeps_tokens(tmp_path):
    token_file = tmp_path / "colors.json"
    token_file.write_text(json.dumps({"tokens": {"color-a": "#000"}}), encoding="utf-8")
    with TokenRegistry(str(tmp_path / "r.db")) as registry:
        reimport_file(registry, str(token_file), Heuristics())
        token_file.write_text("{}", encoding="utf-8")
        preview, source = reimport_file(registry, str(token_file), Heuristics())
        assert source is None
        assert preview.is_empty
        assert len(registry.list_tokens()) == 1
