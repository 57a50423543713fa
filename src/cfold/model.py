"""Region and annotation data types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from cfold.spans import Position


class RegionKind(Enum):
    BRACE = "brace"
    PREPROCESSOR_CONDITIONAL = "preprocessor-conditional"
    DIRECTIVE_REGION = "directive-region"  # C# #region ... #endregion
    BLOCK_COMMENT = "block-comment"


class Role(Enum):
    OPEN = "open"
    CLOSE = "close"


@dataclass(frozen=True, slots=True)
class Region:
    """A matched (or, with close=None, unresolved) structural pair.

    ``open_end``/``close_end`` are the offsets just past the opening and
    closing tokens. For conditional branches ``chain_id`` is the group id
    of the chain's first branch; for everything else it equals ``group_id``.
    """

    kind: RegionKind
    open: Position
    open_end: int
    close: Position | None
    close_end: int | None
    depth: int
    group_id: int
    chain_id: int

    @property
    def resolved(self) -> bool:
        return self.close is not None


@dataclass(frozen=True, slots=True)
class Tag:
    """One group id at a marker position.

    ``anchor`` is the offset where the delimiter starts; line style tags the
    physical line holding it, so a continued directive is tagged on its
    first line.
    """

    group_id: int
    role: Role
    anchor: int


@dataclass(frozen=True, slots=True)
class Marker:
    """All tags anchored at one offset, in ascending group id order."""

    offset: int
    tags: tuple[Tag, ...]

    @property
    def ids(self) -> tuple[int, ...]:
        return tuple(t.group_id for t in self.tags)


@dataclass(frozen=True, slots=True)
class AnnotatedDocument:
    """Source text plus the markers to serialize into it."""

    text: str
    markers: tuple[Marker, ...]
    warnings: int
