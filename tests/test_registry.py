"""
TokenRegistry（SQLite）測試：匯入、檔案啟用/停用、刪除連動與 bundle 保存
"""
import pytest

from dsos_tokens.models import ParsedToken, Token, TokenBundle
from dsos_tokens.registry import TokenRegistry


@pytest.fixture
def registry(tmp_path):
    reg = TokenRegistry(str(tmp_path / "registry.db"))
    yield reg
    reg.close()


def parsed(name, value, type_="color", **kw):
    return ParsedToken(name=name, value=value, type=type_, **kw)


# ─── import / tokens ─────────────────────────────────────────────────────────

class TestCommitImport:
    def test_file_and_tokens_written_together(self, registry):
        source = registry.commit_import(
            [parsed("color.primary", "#3B82F6"), parsed("spacing.md", "16px", "spacing")],
            original_name="tokens.json",
        )
        assert source.token_count == 2
        assert source.name == "tokens.json"
        assert registry.get_file(source.id).token_count == 2
        names = [t.name for t in registry.list_tokens()]
        assert names == ["color.primary", "spacing.md"]
        assert all(t.source_file_id == source.id for t in registry.list_tokens())

    def test_modes_round_trip(self, registry):
        registry.commit_import(
            [parsed("surface", "#FFF", value_by_mode={"Light": "#FFF", "Dark": "#000"}, modes=["Light", "Dark"])],
            original_name="themes.json",
        )
        token = registry.get_token("surface")
        assert token.modes == ["Light", "Dark"]
        assert token.value_for_mode("Dark") == "#000"
        assert token.value_for_mode("Sepia") == "#FFF"

    def test_invalid_category_writes_nothing(self, registry):
        with pytest.raises(ValueError):
            registry.commit_import(
                [parsed("color.a", "#000"), parsed("bad", "1", "nonsense")],
                original_name="bad.json",
            )
        assert registry.list_tokens() == []
        assert registry.list_files() == []

    def test_reimport_reassigns_source_file(self, registry):
        first = registry.commit_import([parsed("color.a", "#000")], original_name="a.json")
        second = registry.commit_import([parsed("color.a", "#111")], original_name="b.json")
        token = registry.get_token("color.a")
        assert token.value == "#111"
        assert token.source_file_id == second.id
        # 舊檔案已不擁有該 token
        assert registry.remove_file(first.id) == 0
        assert registry.get_token("color.a") is not None

    def test_replace_clears_existing(self, registry):
        registry.commit_import([parsed("color.a", "#000")], original_name="a.json")
        registry.commit_import([parsed("color.b", "#111")], original_name="b.json", replace=True)
        assert [t.name for t in registry.list_tokens()] == ["color.b"]


class TestTokens:
    def test_create_and_duplicate(self, registry):
        registry.create_token(Token(name="radius.sm", value="4px", type="radius"))
        with pytest.raises(ValueError):
            registry.create_token(Token(name="radius.sm", value="8px", type="radius"))

    def test_update_and_set_type(self, registry):
        registry.create_token(Token(name="misc", value="hello"))
        registry.update_token("misc", value="world", description="note")
        registry.set_type("misc", "typography")
        token = registry.get_token("misc")
        assert (token.value, token.description, token.type) == ("world", "note", "typography")

    def test_update_errors(self, registry):
        with pytest.raises(KeyError):
            registry.set_type("missing", "color")
        registry.create_token(Token(name="misc", value="x"))
        with pytest.raises(ValueError):
            registry.set_type("misc", "nonsense")
        with pytest.raises(ValueError):
            registry.update_token("misc", name="renamed")

    def test_rename_rejected_keeps_token(self, registry):
        registry.create_token(Token(name="misc", value="x"))
        with pytest.raises(ValueError, match="name"):
            registry.update_token("misc", name="renamed", value="y")
        assert registry.get_token("renamed") is None
        assert registry.get_token("misc").value == "x"

    def test_remove_token(self, registry):
        registry.create_token(Token(name="misc", value="x"))
        assert registry.remove_token("misc") is True
        assert registry.remove_token("misc") is False

    def test_list_by_category(self, registry):
        registry.commit_import(
            [parsed("color.a", "#000"), parsed("spacing.a", "4px", "spacing")], original_name="t.json"
        )
        assert [t.name for t in registry.list_tokens(category="spacing")] == ["spacing.a"]


# ─── source files ────────────────────────────────────────────────────────────

class TestSourceFiles:
    def test_inactive_file_excluded_from_active_tokens(self, registry):
        source = registry.commit_import([parsed("color.a", "#000")], original_name="a.json")
        registry.create_token(Token(name="color.manual", value="#fff", type="color"))

        assert registry.toggle_active(source.id) is False
        active = [t.name for t in registry.list_tokens(active_only=True)]
        assert active == ["color.manual"]
        # 停用不刪 token
        assert len(registry.list_tokens()) == 2

        assert registry.toggle_active(source.id) is True
        assert len(registry.list_tokens(active_only=True)) == 2

    def test_remove_cascades(self, registry):
        source = registry.commit_import(
            [parsed("color.a", "#000"), parsed("color.b", "#111")], original_name="a.json"
        )
        registry.create_token(Token(name="color.manual", value="#fff", type="color"))
        assert registry.remove_file(source.id) == 2
        assert registry.get_file(source.id) is None
        assert [t.name for t in registry.list_tokens()] == ["color.manual"]

    def test_rename(self, registry):
        source = registry.commit_import([parsed("color.a", "#000")], original_name="a.json", name="Brand")
        assert registry.rename_file(source.id, "Brand v2").name == "Brand v2"
        assert registry.get_file(source.id).name == "Brand v2"
        assert registry.get_file(source.id).original_name == "a.json"

    def test_missing_file(self, registry):
        for op in (registry.toggle_active, registry.remove_file):
            with pytest.raises(KeyError):
                op("nope")
        with pytest.raises(KeyError):
            registry.rename_file("nope", "x")


# ─── bundles / scoping ───────────────────────────────────────────────────────

def test_bundle_upsert(registry):
    bundle = TokenBundle(kind="global", version="1.0.0", css_content=":root {}", json_content="{}",
                         token_count=0, modes=["default"], content_hash="c", token_set_hash="s")
    registry.save_bundle(bundle)
    bundle.version = "1.0.1"
    registry.save_bundle(bundle)
    stored = registry.get_bundle("global")
    assert stored.version == "1.0.1"
    assert stored.modes == ["default"]
    assert registry.get_bundle("component", "Button") is None


def test_projects_are_isolated(tmp_path):
    path = str(tmp_path / "shared.db")
    with TokenRegistry(path, project="web") as web, TokenRegistry(path, project="mobile") as mobile:
        web.create_token(Token(name="color.a", value="#000", type="color"))
        assert mobile.list_tokens() == []
        assert [t.name for t in web.list_tokens()] == ["color.a"]


def test_create_file_defaults_active(registry):
    source = registry.create_file("manual.json", name="Manual")
    stored = registry.get_file(source.id)
    assert stored.is_active is True
    assert stored.token_count == 0
    assert stored.name == "Manual"
