"""--debug span and region dumps to stderr."""

from __future__ import annotations

import sys
from typing import TextIO

from cfold.pipeline import FileResult

_PREVIEW = 40


def dump_spans(result: FileResult, *, file: TextIO = sys.stderr) -> None:
    """Print one line per classified span: class, position, length, preview."""
    file.write(f"Spans {result.filename} [{result.language}]\n")
    for span in result.spans:
        preview = span.text(result.source)
        if len(preview) > _PREVIEW:
            preview = preview[: _PREVIEW - 3] + "..."
        file.write(
            f"  {span.lex_class.name:<20} {span.start.line}:{span.start.column}"
            f" +{span.length} {preview!r}\n"
        )


def dump_regions(result: FileResult, *, file: TextIO = sys.stderr) -> None:
    """Print the region tree, indented by nesting depth."""
    file.write(f"Regions {result.filename}\n")
    for region in sorted(result.regions, key=lambda r: (r.open.offset, r.group_id)):
        indent = "  " * (region.depth + 1)
        close = f"{region.close.line}:{region.close.column}" if region.close else "<open>"
        chain = f" chain={region.chain_id}" if region.chain_id != region.group_id else ""
        file.write(
            f"{indent}@_{region.group_id}_ {region.kind.value}"
            f" {region.open.line}:{region.open.column} -> {close}{chain}\n"
        )
