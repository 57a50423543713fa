"""Tests for the LSP server: diagnostics and folding ranges."""

from __future__ import annotations

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    FoldingRangeKind,
    PublishDiagnosticsParams,
    TextDocumentItem,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import Workspace

from cfold.lsp import _folding, _validate


@pytest.fixture
def lsp_env():
    """Create a LanguageServer with an initialized workspace and captured diagnostics."""
    ls = LanguageServer("test", "v0", text_document_sync_kind=TextDocumentSyncKind.Full)
    ws = Workspace(None)
    ls.protocol._workspace = ws

    published: list[PublishDiagnosticsParams] = []
    ls.text_document_publish_diagnostics = lambda params: published.append(params)

    def put(source: str, uri: str = "file:///test.cpp", language_id: str = "cpp") -> None:
        ws.put_text_document(
            TextDocumentItem(uri=uri, language_id=language_id, version=0, text=source)
        )

    return ls, published, put


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class TestDiagnostics:
    def test_clean_document(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("int main() {\n    return 0;\n}\n")
        _validate(ls, "file:///test.cpp")

        assert len(published) == 1
        assert published[0].uri == "file:///test.cpp"
        assert published[0].diagnostics == []

    def test_unbalanced_close_is_error(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("int x;\n  }\n")
        _validate(ls, "file:///test.cpp")

        (d,) = published[0].diagnostics
        assert d.severity == DiagnosticSeverity.Error
        assert d.code == "unbalanced-close"
        assert d.source == "cfold"
        # } is at 2:3 (1-based) -> line 1, character 2 (0-based)
        assert d.range.start.line == 1
        assert d.range.start.character == 2

    def test_columns_in_utf16_units(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('s = "\U0001F600"; }\n')
        _validate(ls, "file:///test.cpp")

        (d,) = published[0].diagnostics
        # The emoji is one code point but two UTF-16 units.
        assert d.range.start.line == 0
        assert d.range.start.character == 10
        assert d.range.end.character == 11

    def test_unterminated_literal_is_warning(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put('s = "abc\n')
        _validate(ls, "file:///test.cpp")

        (d,) = published[0].diagnostics
        assert d.severity == DiagnosticSeverity.Warning
        assert "unterminated" in d.message

    def test_language_from_uri(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("#region A\n#endregion\n", uri="file:///A.cs", language_id="")
        _validate(ls, "file:///A.cs")
        assert published[0].diagnostics == []

    def test_dangling_directive(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("#endif\n")
        _validate(ls, "file:///test.cpp")

        (d,) = published[0].diagnostics
        assert d.code == "dangling-directive"


# ---------------------------------------------------------------------------
# Folding ranges
# ---------------------------------------------------------------------------


class TestFolding:
    def test_ranges_and_kinds(self, lsp_env) -> None:
        ls, _, put = lsp_env
        put("/*\n * doc\n */\n#if A\nint a;\n#endif\nvoid f() {\n  g();\n}\n")
        ranges = _folding(ls, "file:///test.cpp")

        assert [(r.start_line, r.end_line) for r in ranges] == [(0, 2), (3, 5), (6, 8)]
        assert [r.kind for r in ranges] == [
            FoldingRangeKind.Comment,
            FoldingRangeKind.Region,
            None,
        ]

    def test_else_branch_ends_before_directive(self, lsp_env) -> None:
        ls, _, put = lsp_env
        put("#ifdef A\nint a;\n#else\nint b;\n#endif\n")
        ranges = _folding(ls, "file:///test.cpp")
        assert [(r.start_line, r.end_line) for r in ranges] == [(0, 1), (2, 4)]
