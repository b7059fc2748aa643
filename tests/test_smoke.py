"""
Smoke tests：驗證套件可匯入、版本與公開 API 存在。
"""


def test_import_package():
    """套件可正常匯入"""
    import dsos_tokens
    assert dsos_tokens.__version__ == "0.1.0"


def test_public_api():
    """公開 API 可從 dsos_tokens 取得"""
    from dsos_tokens import (
        TokenCompiler,
        TokenRegistry,
        build_graph,
        build_preview,
        detect_and_parse,
        load_config,
        normalize_name,
        resolve_category,
        to_scss,
        to_tailwind,
    )
    assert callable(build_preview)
    assert callable(detect_and_parse)
    assert callable(load_config)
    assert callable(build_graph)
    assert TokenCompiler.__name__ == "TokenCompiler"
    assert TokenRegistry.__name__ == "TokenRegistry"


def test_pipeline_end_to_end(tmp_path):
    """JSON → preview → registry → bundle"""
    from dsos_tokens import TokenCompiler, TokenRegistry, build_preview

    preview = build_preview('{"tokens": {"color-primary": "#3B82F6", "spacing-md": "16px"}}')
    with TokenRegistry(str(tmp_path / "r.db")) as registry:
        registry.commit_import(preview.tokens, original_name="tokens.json")
        result = TokenCompiler(registry).compile_global()
    assert result.bundle.version == "1.0.0"
    assert "--color-primary: #3B82F6;" in result.bundle.css_content
