"""Lexical classifier: splits C-family source into classified spans."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cfold.errors import LexError, LexErrorKind
from cfold.profiles import CPP, LanguageProfile
from cfold.spans import ClassifiedSpan, LexClass, Position, is_ident_char

log = logging.getLogger(__name__)

_RAW_DELIMITER_FORBIDDEN = frozenset(" ()\\\t\v\f\r\n")


@dataclass(frozen=True, slots=True)
class Classification:
    """Classifier output: exhaustive spans plus recoverable warnings."""

    spans: tuple[ClassifiedSpan, ...]
    errors: tuple[LexError, ...]


class Classifier:
    """Classify every character of a source text into one LexClass."""

    def __init__(self, source: str, profile: LanguageProfile = CPP) -> None:
        self._source = source
        self._profile = profile
        self._pos = 0
        self._line = 1
        self._col = 1
        self._spans: list[ClassifiedSpan] = []
        self._errors: list[LexError] = []
        self._code_start: Position | None = None
        self._at_line_start = True

        quote_starts = {profile.string_quote}
        if profile.char_quote:
            quote_starts.add(profile.char_quote)
        self._quote_starts = frozenset(quote_starts)
        self._prefixes = sorted(
            profile.literal_prefixes | profile.raw_string_prefixes | profile.verbatim_prefixes,
            key=len,
            reverse=True,
        )

    def classify(self) -> Classification:
        """Scan the full source and return its spans and warnings."""
        while self._pos < len(self._source):
            self._lex_code()
        self._flush_code(self._pos)
        log.debug(
            "classified %d chars into %d spans (%d warnings) [%s]",
            len(self._source),
            len(self._spans),
            len(self._errors),
            self._profile.name,
        )
        return Classification(tuple(self._spans), tuple(self._errors))

    # ------------------------------------------------------------------
    # Position helpers
    # ------------------------------------------------------------------

    def _current_pos(self) -> Position:
        return Position(self._line, self._col, self._pos)

    def _pos_on_line(self, offset: int) -> Position:
        """Position of an earlier offset on the current line."""
        return Position(self._line, self._col - (self._pos - offset), offset)

    def _peek(self, offset: int = 0) -> str:
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _starts_with(self, text: str) -> bool:
        return self._source.startswith(text, self._pos)

    def _advance(self) -> str:
        ch = self._source[self._pos]
        self._pos += 1
        if ch == "\n":
            self._line += 1
            self._col = 1
        else:
            self._col += 1
        return ch

    def _advance_to(self, target: int) -> None:
        chunk = self._source[self._pos : target]
        newlines = chunk.count("\n")
        if newlines:
            self._line += newlines
            self._col = len(chunk) - chunk.rfind("\n")
        else:
            self._col += len(chunk)
        self._pos = target

    def _at_newline(self) -> bool:
        ch = self._peek()
        return ch == "\n" or (ch == "\r" and self._peek(1) == "\n")

    def _at_continuation(self) -> bool:
        """Backslash immediately followed by a line break."""
        if not self._profile.line_continuation or self._peek() != self._profile.escape:
            return False
        nxt = self._peek(1)
        return nxt == "\n" or (nxt == "\r" and self._peek(2) == "\n")

    def _advance_newline(self) -> None:
        if self._peek() == "\r":
            self._advance()
        self._advance()

    # ------------------------------------------------------------------
    # Span bookkeeping
    # ------------------------------------------------------------------

    def _flush_code(self, end: int) -> None:
        start = self._code_start
        if start is not None and end > start.offset:
            self._spans.append(ClassifiedSpan(LexClass.CODE, start, end))
        self._code_start = None

    def _begin(self, start_offset: int | None = None) -> Position:
        """Close pending code at *start_offset* and return the new span start."""
        if start_offset is None:
            start = self._current_pos()
        else:
            start = self._pos_on_line(start_offset)
        self._flush_code(start.offset)
        return start

    def _emit(self, lex_class: LexClass, start: Position) -> None:
        if self._pos > start.offset:
            self._spans.append(ClassifiedSpan(lex_class, start, self._pos))

    def _warn(self, kind: LexErrorKind, message: str, pos: Position) -> None:
        self._errors.append(LexError(kind, message, pos, self._source))

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    def _lex_code(self) -> None:
        if self._code_start is None:
            self._code_start = self._current_pos()

        ch = self._peek()
        profile = self._profile

        if ch == "\n":
            self._advance()
            self._at_line_start = True
            return

        if ch in " \t\r\f\v":
            self._advance()
            return

        if ch == profile.directive_char and self._at_line_start:
            self._lex_directive()
            return

        self._at_line_start = False

        if profile.line_comment and self._starts_with(profile.line_comment):
            self._lex_line_comment(self._begin())
            return

        if profile.block_comment and self._starts_with(profile.block_comment[0]):
            self._lex_block_comment(self._begin())
            return

        if ch in self._quote_starts:
            if ch == profile.char_quote and self._is_digit_separator():
                self._advance()
                return
            self._lex_literal(ch)
            return

        self._advance()

    def _is_digit_separator(self) -> bool:
        """True for the ' in 1'000'000 (C++14 digit separators)."""
        if not self._profile.digit_separator:
            return False
        floor = self._code_start.offset if self._code_start is not None else self._pos
        idx = self._pos - 1
        if idx < floor or not is_ident_char(self._source[idx]):
            return False
        while idx > floor and (
            is_ident_char(self._source[idx - 1]) or self._source[idx - 1] in "'."
        ):
            idx -= 1
        return self._source[idx].isdigit()

    def _literal_prefix(self) -> str:
        """Return the literal prefix (L, u8, R, @...) ending at the quote, if any."""
        floor = self._code_start.offset if self._code_start is not None else self._pos
        for prefix in self._prefixes:
            start = self._pos - len(prefix)
            if start < floor or not self._source.startswith(prefix, start):
                continue
            if start > floor and is_ident_char(self._source[start - 1]):
                continue
            return prefix
        return ""

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def _lex_line_comment(self, start: Position) -> None:
        while self._pos < len(self._source) and not self._at_newline():
            if self._at_continuation():
                self._advance()
                self._advance_newline()
                continue
            self._advance()
        self._emit(LexClass.LINE_COMMENT, start)

    def _lex_block_comment(self, start: Position) -> None:
        opener, closer = self._profile.block_comment
        self._advance_to(self._pos + len(opener))
        end = self._source.find(closer, self._pos)
        if end == -1:
            self._advance_to(len(self._source))
            self._emit(LexClass.BLOCK_COMMENT, start)
            self._warn(LexErrorKind.UNTERMINATED_COMMENT, "unterminated block comment", start)
            return
        self._advance_to(end + len(closer))
        self._emit(LexClass.BLOCK_COMMENT, start)

    # ------------------------------------------------------------------
    # Literals
    # ------------------------------------------------------------------

    def _lex_literal(self, quote: str) -> None:
        profile = self._profile
        prefix = self._literal_prefix()
        start = self._begin(self._pos - len(prefix))

        if quote == profile.string_quote:
            if prefix in profile.raw_string_prefixes and self._lex_raw_string(start):
                return
            if prefix in profile.verbatim_prefixes:
                self._lex_verbatim_string(start)
                return
            self._lex_quoted(LexClass.STRING_LITERAL, quote, start)
            return

        self._lex_quoted(LexClass.CHAR_LITERAL, quote, start)

    def _lex_quoted(self, lex_class: LexClass, quote: str, start: Position) -> None:
        """Scan an escaped literal that must close on its own logical line."""
        escape = self._profile.escape
        self._advance()  # opening quote

        while self._pos < len(self._source):
            if self._at_newline():
                break
            ch = self._peek()
            if ch == escape:
                if self._at_continuation():
                    self._advance()
                    self._advance_newline()
                    continue
                self._advance()
                if self._pos < len(self._source) and not self._at_newline():
                    self._advance()
                continue
            self._advance()
            if ch == quote:
                self._emit(lex_class, start)
                return

        self._emit(lex_class, start)
        what = "string" if lex_class == LexClass.STRING_LITERAL else "character"
        self._warn(LexErrorKind.UNTERMINATED_LITERAL, f"unterminated {what} literal", start)

    def _lex_raw_string(self, start: Position) -> bool:
        """Scan R"delim(...)delim". Returns False if the opener is malformed."""
        quote_at = self._pos
        open_paren = -1
        limit = min(len(self._source), quote_at + 2 + self._profile.raw_delimiter_max)
        for idx in range(quote_at + 1, limit):
            ch = self._source[idx]
            if ch == "(":
                open_paren = idx
                break
            if ch in _RAW_DELIMITER_FORBIDDEN:
                break
        if open_paren == -1:
            return False

        delimiter = self._source[quote_at + 1 : open_paren]
        terminator = ")" + delimiter + self._profile.string_quote
        end = self._source.find(terminator, open_paren + 1)
        if end == -1:
            self._advance_to(len(self._source))
            self._emit(LexClass.RAW_STRING_LITERAL, start)
            self._warn(
                LexErrorKind.UNTERMINATED_LITERAL,
                f"unterminated raw string literal (expected '{terminator}')",
                start,
            )
            return True
        self._advance_to(end + len(terminator))
        self._emit(LexClass.RAW_STRING_LITERAL, start)
        return True

    def _lex_verbatim_string(self, start: Position) -> None:
        """Scan @"..." where a doubled quote is an embedded quote."""
        quote = self._profile.string_quote
        self._advance()  # opening quote
        while True:
            end = self._source.find(quote, self._pos)
            if end == -1:
                self._advance_to(len(self._source))
                self._emit(LexClass.RAW_STRING_LITERAL, start)
                self._warn(
                    LexErrorKind.UNTERMINATED_LITERAL,
                    "unterminated verbatim string literal",
                    start,
                )
                return
            if self._source.startswith(quote, end + 1):
                self._advance_to(end + 2)
                continue
            self._advance_to(end + 1)
            self._emit(LexClass.RAW_STRING_LITERAL, start)
            return

    # ------------------------------------------------------------------
    # Preprocessor directives
    # ------------------------------------------------------------------

    def _lex_directive(self) -> None:
        """Classify a directive line, splitting out any comments it holds."""
        profile = self._profile
        segment = self._begin()
        self._at_line_start = False

        while self._pos < len(self._source) and not self._at_newline():
            if self._at_continuation():
                self._advance()
                self._advance_newline()
                continue

            if profile.line_comment and self._starts_with(profile.line_comment):
                self._emit(LexClass.PREPROCESSOR_LINE, segment)
                self._lex_line_comment(self._current_pos())
                return

            if profile.block_comment and self._starts_with(profile.block_comment[0]):
                self._emit(LexClass.PREPROCESSOR_LINE, segment)
                self._lex_block_comment(self._current_pos())
                segment = self._current_pos()
                continue

            ch = self._advance()
            if ch in self._quote_starts:
                self._skip_directive_quote(ch)

        self._emit(LexClass.PREPROCESSOR_LINE, segment)

    def _skip_directive_quote(self, quote: str) -> None:
        # Quoted text stays part of the directive; a // inside it is not a comment.
        escape = self._profile.escape
        while self._pos < len(self._source) and not self._at_newline():
            ch = self._advance()
            if ch == escape and self._pos < len(self._source) and not self._at_newline():
                self._advance()
            elif ch == quote:
                return


def classify(source: str, profile: LanguageProfile = CPP) -> Classification:
    """Convenience function: classify source text with the given profile."""
    return Classifier(source, profile).classify()
