"""Minimal LSP server for cfold: diagnostics and folding ranges."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_FOLDING_RANGE,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    FoldingRange,
    FoldingRangeKind,
    FoldingRangeParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import TextDocument

from cfold import __version__
from cfold.errors import LexError, ProfileError
from cfold.folding import FoldingOptions, folding_ranges
from cfold.model import RegionKind
from cfold.pipeline import FileResult, MatchOptions, process_source
from cfold.profiles import LanguageProfile, get_profile, profile_for_path

server = LanguageServer("cfold-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Full)

FOLDING = FoldingOptions()

_FOLD_KINDS = {
    RegionKind.BLOCK_COMMENT: FoldingRangeKind.Comment,
    RegionKind.PREPROCESSOR_CONDITIONAL: FoldingRangeKind.Region,
    RegionKind.DIRECTIVE_REGION: FoldingRangeKind.Region,
}


def _profile(uri: str, language_id: str | None) -> LanguageProfile:
    if language_id:
        try:
            return get_profile(language_id)
        except ProfileError:
            pass
    return profile_for_path(uri)


def _analyze(doc: TextDocument) -> FileResult:
    uri = doc.uri
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    profile = _profile(uri, doc.language_id)
    return process_source(doc.source, profile, filename, MatchOptions(comments=True))


def _client_position(doc: TextDocument, line: int, character: int) -> Position:
    """Convert a code point column into the client's position encoding."""
    return doc.position_codec.position_to_client_units(
        doc.lines, Position(line=line, character=character)
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Match the document and publish lex/match diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    result = _analyze(doc)
    diagnostics: list[Diagnostic] = []

    for err in result.diagnostics:
        line = err.position.line - 1
        col = err.position.column - 1
        diagnostics.append(
            Diagnostic(
                range=Range(
                    start=_client_position(doc, line, col),
                    end=_client_position(doc, line, col + 1),
                ),
                message=err.message,
                severity=(
                    DiagnosticSeverity.Warning
                    if isinstance(err, LexError)
                    else DiagnosticSeverity.Error
                ),
                code=err.kind.value,
                source="cfold",
            )
        )

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def _folding(ls: LanguageServer, uri: str) -> list[FoldingRange]:
    result = _analyze(ls.workspace.get_text_document(uri))
    return [
        FoldingRange(
            start_line=fold.start_line,
            end_line=fold.end_line,
            kind=_FOLD_KINDS.get(fold.kind),
        )
        for fold in folding_ranges(result, FOLDING)
    ]


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_FOLDING_RANGE)
def folding_range(ls: LanguageServer, params: FoldingRangeParams) -> list[FoldingRange]:
    return _folding(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
