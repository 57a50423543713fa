"""Diagnostic types with formatted source context."""

from __future__ import annotations

from enum import Enum

from cfold.spans import Position


class LexErrorKind(Enum):
    UNTERMINATED_LITERAL = "unterminated-literal"
    UNTERMINATED_COMMENT = "unterminated-comment"


class MatchErrorKind(Enum):
    UNBALANCED_CLOSE = "unbalanced-close"
    DANGLING_DIRECTIVE = "dangling-directive"
    UNCLOSED_AT_EOF = "unclosed-at-eof"
    MAX_DEPTH_EXCEEDED = "max-depth-exceeded"


class ProfileError(Exception):
    """Raised for an unknown or invalid language profile. Fatal to a batch."""


class SourceError(Exception):
    """Diagnostic anchored at a source position.

    Scanning never raises these; they are collected on the file result so
    the rest of the file (and the rest of the batch) is still processed.
    """

    severity = "error"

    def __init__(self, kind: Enum, message: str, position: Position, source: str) -> None:
        self.kind = kind
        self.message = message
        self.position = position
        self.source = source
        super().__init__(message)

    def __reduce__(self):
        return (self.__class__, (self.kind, self.message, self.position, self.source))

    def __str__(self) -> str:
        return self.format()

    def source_line(self) -> str:
        """The physical line holding the position, without its line ending."""
        offset = min(max(self.position.offset, 0), len(self.source))
        start = self.source.rfind("\n", 0, offset) + 1
        end = self.source.find("\n", offset)
        if end == -1:
            end = len(self.source)
        return self.source[start:end].rstrip("\r")

    def format(self, filename: str = "<input>") -> str:
        col = self.position.column
        source_line = self.source_line()

        pad = " " * (col - 1)

        line_num = str(self.position.line)
        gutter_width = len(line_num) + 1

        blank_gutter = " " * gutter_width + "|"
        line_gutter = f"{line_num:>{gutter_width - 1}} |"

        return (
            f"{self.severity}: {self.message}\n"
            f"{' ' * gutter_width}--> {filename}:{self.position.line}:{col}\n"
            f"{blank_gutter}\n"
            f"{line_gutter} {source_line}\n"
            f"{blank_gutter} {pad}^"
        )


class LexError(SourceError):
    """Unterminated literal or comment; the span was closed at the break."""

    severity = "warning"
    kind: LexErrorKind


class MatchError(SourceError):
    """Structural delimiter that could not be paired."""

    kind: MatchErrorKind
