"""Annotator: serializes matched regions as inline @_N_ tags."""

from __future__ import annotations

import re
from bisect import bisect_right
from collections import Counter
from typing import Iterable

from cfold.model import AnnotatedDocument, Marker, Region, Role, Tag

STYLES = ("line", "inline")

TAG_RE = re.compile(r" @_(\d+)_")


def format_tag(group_id: int) -> str:
    return f" @_{group_id}_"


def build_document(text: str, regions: Iterable[Region]) -> AnnotatedDocument:
    """Collect open/close tags per offset. Unresolved regions only get an open tag."""
    by_offset: dict[int, list[Tag]] = {}
    warnings = 0
    for region in regions:
        open_tag = Tag(region.group_id, Role.OPEN, region.open.offset)
        by_offset.setdefault(region.open_end, []).append(open_tag)
        if region.close_end is None:
            warnings += 1
            continue
        close_tag = Tag(region.group_id, Role.CLOSE, region.close.offset)
        by_offset.setdefault(region.close_end, []).append(close_tag)

    markers = tuple(
        Marker(offset, tuple(sorted(tags, key=_tag_key)))
        for offset, tags in sorted(by_offset.items())
    )
    return AnnotatedDocument(text, markers, warnings)


def _tag_key(tag: Tag) -> tuple[int, int]:
    return (tag.group_id, 0 if tag.role == Role.OPEN else 1)


def render(doc: AnnotatedDocument, style: str = "line") -> str:
    """Serialize an annotated document.

    ``line`` appends every tag to the end of the physical line where its
    delimiter starts, which is the layout of the recorded fixture corpus. ``inline``
    inserts tags directly after the delimiter they belong to.
    """
    if style == "line":
        return _render_line(doc)
    if style == "inline":
        return _render_inline(doc)
    raise ValueError(f"unknown annotation style '{style}' (expected one of {', '.join(STYLES)})")


def annotate(text: str, regions: Iterable[Region], style: str = "line") -> str:
    """Convenience function: build and render in one step."""
    return render(build_document(text, regions), style)


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------


def _render_line(doc: AnnotatedDocument) -> str:
    lines = _physical_lines(doc.text)
    if not lines:
        return doc.text

    starts: list[int] = []
    offset = 0
    for line in lines:
        starts.append(offset)
        offset += len(line)

    per_line: dict[int, list[Tag]] = {}
    for marker in doc.markers:
        for tag in marker.tags:
            idx = max(0, bisect_right(starts, tag.anchor) - 1)
            per_line.setdefault(idx, []).append(tag)

    parts: list[str] = []
    for idx, line in enumerate(lines):
        tags = per_line.get(idx)
        if not tags:
            parts.append(line)
            continue
        body, ending = _split_ending(line)
        parts.append(body)
        parts.extend(format_tag(t.group_id) for t in sorted(tags, key=_tag_key))
        parts.append(ending)
    return "".join(parts)


def _render_inline(doc: AnnotatedDocument) -> str:
    parts: list[str] = []
    prev = 0
    for marker in doc.markers:
        parts.append(doc.text[prev : marker.offset])
        parts.extend(format_tag(gid) for gid in marker.ids)
        prev = marker.offset
    parts.append(doc.text[prev:])
    return "".join(parts)


def _physical_lines(text: str) -> list[str]:
    # Only \n ends a line; the classifier and matcher count lines the same way.
    pieces = text.split("\n")
    lines = [piece + "\n" for piece in pieces[:-1]]
    if pieces[-1]:
        lines.append(pieces[-1])
    return lines


def _split_ending(line: str) -> tuple[str, str]:
    if line.endswith("\r\n"):
        return line[:-2], "\r\n"
    if line.endswith("\n"):
        return line[:-1], "\n"
    return line, ""


# ---------------------------------------------------------------------------
# Tagged-text helpers for fixture comparison
# ---------------------------------------------------------------------------


def strip_markers(text: str) -> str:
    """Remove every @_N_ tag, restoring the unannotated text."""
    return TAG_RE.sub("", text)


def tag_counts(text: str) -> Counter[int]:
    """Count occurrences of each group id in annotated text."""
    return Counter(int(m.group(1)) for m in TAG_RE.finditer(text))


def unpaired_tags(text: str) -> list[int]:
    """Ids that occur exactly once: regions left open at end of file."""
    return sorted(gid for gid, count in tag_counts(text).items() if count == 1)
