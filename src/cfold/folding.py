"""Folding ranges derived from matched regions, for editors and the LSP."""

from __future__ import annotations

import re
from dataclasses import dataclass

from cfold.model import Region, RegionKind
from cfold.pipeline import FileResult
from cfold.spans import LexClass

_DIRECTIVE_HEAD_RE = re.compile(r"#[ \t]*([A-Za-z_]\w*)[ \t]*([A-Za-z_]\w*)?")


@dataclass(frozen=True, slots=True)
class FoldingOptions:
    """Which regions become folds.

    ``documentation`` covers ``/**`` blocks and ``comments`` every other
    block comment. ``preprocessor_max_depth`` is the deepest conditional
    nesting level (0 for top level) that still folds. ``min_lines`` drops
    regions whose opener and closer are fewer lines apart than it.
    """

    preprocessor: bool = True
    preprocessor_max_depth: int = 1
    ignore_include_guard: bool = True
    comments: bool = True
    documentation: bool = True
    min_lines: int = 0


@dataclass(frozen=True, slots=True)
class FoldRange:
    """Zero-based, inclusive line range."""

    start_line: int
    end_line: int
    kind: RegionKind
    group_id: int


def include_guard(result: FileResult) -> int | None:
    """Offset of an ``#ifndef X`` / ``#define X`` pair opening the file, if any."""
    heads = []
    for span in result.spans:
        if span.lex_class != LexClass.PREPROCESSOR_LINE:
            continue
        m = _DIRECTIVE_HEAD_RE.match(span.text(result.source))
        if m is None:
            continue
        heads.append((span.start.offset, m.group(1), m.group(2)))
        if len(heads) == 2:
            break
    if len(heads) < 2:
        return None
    (offset, first, name), (_, second, defined) = heads
    if first == "ifndef" and second == "define" and name and name == defined:
        return offset
    return None


def folding_ranges(result: FileResult, options: FoldingOptions | None = None) -> list[FoldRange]:
    """Fold every resolved region the options allow, sorted by start line."""
    if options is None:
        options = FoldingOptions()

    guard = include_guard(result) if options.ignore_include_guard else None
    branch_opens = {
        r.open.offset for r in result.regions if r.kind == RegionKind.PREPROCESSOR_CONDITIONAL
    }

    folds: list[FoldRange] = []
    for region in result.regions:
        if region.close is None or not _wanted(region, options, guard, result.source):
            continue
        start = region.open.line - 1
        end = region.close.line - 1
        if end - start < options.min_lines:
            continue
        if region.close.offset in branch_opens:
            # A branch closed by #else/#elif stops short of that directive.
            end -= 1
        if end <= start:
            continue
        folds.append(FoldRange(start, end, region.kind, region.group_id))

    folds.sort(key=lambda f: (f.start_line, -f.end_line, f.group_id))
    return folds


def is_documentation(region: Region, source: str) -> bool:
    """True for a block comment opened with ``/**``."""
    return region.kind == RegionKind.BLOCK_COMMENT and source.startswith("/**", region.open.offset)


def _wanted(region: Region, options: FoldingOptions, guard: int | None, source: str) -> bool:
    if region.kind == RegionKind.BLOCK_COMMENT:
        if is_documentation(region, source):
            return options.documentation
        return options.comments
    if region.kind == RegionKind.PREPROCESSOR_CONDITIONAL:
        if not options.preprocessor:
            return False
        if guard is not None and region.open.offset == guard:
            return False
        return region.depth <= options.preprocessor_max_depth
    if region.kind == RegionKind.DIRECTIVE_REGION:
        return options.preprocessor
    return True
