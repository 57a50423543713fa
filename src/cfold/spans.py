"""Lexical classes, positions, and classified spans."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class LexClass(Enum):
    CODE = auto()
    LINE_COMMENT = auto()  # // ... (may continue with a trailing backslash)
    BLOCK_COMMENT = auto()  # /* ... */, never nested
    STRING_LITERAL = auto()  # "..." with backslash escapes
    CHAR_LITERAL = auto()  # '...' with backslash escapes
    RAW_STRING_LITERAL = auto()  # R"d(...)d" or C# @"..."
    PREPROCESSOR_LINE = auto()  # line-leading # directive


@dataclass(frozen=True, slots=True)
class Position:
    """Source position, 1-based line and column, 0-based character offset."""

    line: int
    column: int
    offset: int


@dataclass(frozen=True, slots=True)
class ClassifiedSpan:
    """Half-open range [start.offset, end) tagged with one lexical class."""

    lex_class: LexClass
    start: Position
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start.offset

    def text(self, source: str) -> str:
        return source[self.start.offset : self.end]


def is_ident_char(ch: str) -> bool:
    """Return True if ch can appear in a C-family identifier or number."""
    return ch.isalnum() or ch == "_"
