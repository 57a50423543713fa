"""Region matcher: pairs braces and directive chains over classified spans."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from cfold.errors import MatchError, MatchErrorKind
from cfold.model import Region, RegionKind
from cfold.profiles import CPP, LanguageProfile
from cfold.spans import ClassifiedSpan, LexClass, Position

log = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256

_BLANK = r"[ \t]*(?:\\\r?\n[ \t]*)*"
_KEYWORD = _BLANK + r"([A-Za-z_][A-Za-z0-9_]*)"
_BLANK_RE = re.compile(_BLANK)
_KEYWORD_RE = re.compile(_KEYWORD)


@dataclass
class MatchContext:
    """Group id allocator for one file's matching pass."""

    next_id: int = 0

    def allocate(self) -> int:
        group_id = self.next_id
        self.next_id += 1
        return group_id


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Matched regions (close order, then unresolved ones) plus diagnostics."""

    regions: tuple[Region, ...]
    errors: tuple[MatchError, ...]

    @property
    def unresolved(self) -> tuple[Region, ...]:
        return tuple(r for r in self.regions if not r.resolved)


@dataclass(slots=True)
class _Frame:
    kind: RegionKind
    open: Position
    open_end: int
    depth: int
    group_id: int
    chain_id: int
    keyword: str


class _Stack:
    """Push-down stack of open frames with a bounded depth."""

    def __init__(self, name: str, max_depth: int) -> None:
        self.name = name
        self.max_depth = max_depth
        self.frames: list[_Frame] = []
        self.overflow = 0
        self.overflow_reported = False

    @property
    def full(self) -> bool:
        return len(self.frames) >= self.max_depth

    def top(self) -> _Frame | None:
        return self.frames[-1] if self.frames else None


class Matcher:
    """Walk classified spans and pair structural delimiters."""

    def __init__(
        self,
        source: str,
        spans: Iterable[ClassifiedSpan],
        profile: LanguageProfile = CPP,
        *,
        context: MatchContext | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        comments: bool = False,
    ) -> None:
        self._source = source
        self._spans = spans
        self._profile = profile
        self._ctx = context if context is not None else MatchContext()
        self._comments = comments
        self._braces = _Stack("brace", max_depth)
        self._directives = _Stack("directive", max_depth)
        self._finished: list[Region] = []
        self._open_comments: list[Region] = []
        self._errors: list[MatchError] = []

        self._brace_re = re.compile(
            "[" + re.escape(profile.brace_open + profile.brace_close) + "\n]"
        )
        self._directive_re = None
        self._head_re = None
        if profile.directive_char is not None:
            self._directive_re = re.compile(re.escape(profile.directive_char) + _KEYWORD)
            self._head_re = re.compile(re.escape(profile.directive_char) + _BLANK)
        # Directive whose keyword is still to come after an embedded comment.
        self._pending: Position | None = None
        self._in_directive = False

    def match(self) -> MatchResult:
        """Run the full pass. Never raises on malformed input."""
        for span in self._spans:
            lex_class = span.lex_class
            if lex_class == LexClass.PREPROCESSOR_LINE:
                if self._in_directive:
                    self._scan_continuation(span)
                else:
                    self._scan_directive(span)
                self._in_directive = True
                continue
            if lex_class != LexClass.BLOCK_COMMENT:
                # A block comment is whitespace inside a directive; anything
                # else ends it.
                self._in_directive = False
                self._pending = None
            if lex_class == LexClass.CODE:
                self._scan_code(span)
            elif lex_class == LexClass.BLOCK_COMMENT and self._comments:
                self._scan_comment(span)

        unresolved = self._drain()
        return MatchResult(tuple(self._finished) + unresolved, tuple(self._errors))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _error(self, kind: MatchErrorKind, message: str, pos: Position) -> None:
        self._errors.append(MatchError(kind, message, pos, self._source))

    def _push(
        self,
        stack: _Stack,
        kind: RegionKind,
        pos: Position,
        end: int,
        keyword: str,
    ) -> None:
        if stack.overflow or stack.full:
            stack.overflow += 1
            if not stack.overflow_reported:
                stack.overflow_reported = True
                self._error(
                    MatchErrorKind.MAX_DEPTH_EXCEEDED,
                    f"{stack.name} nesting deeper than {stack.max_depth} levels",
                    pos,
                )
            return
        group_id = self._ctx.allocate()
        frame = _Frame(
            kind=kind,
            open=pos,
            open_end=end,
            depth=len(stack.frames),
            group_id=group_id,
            chain_id=group_id,
            keyword=keyword,
        )
        stack.frames.append(frame)
        log.debug("push %s @_%d_ [L%d:%d]", kind.value, group_id, pos.line, pos.column)

    def _finish(self, frame: _Frame, pos: Position, end: int) -> None:
        region = Region(
            kind=frame.kind,
            open=frame.open,
            open_end=frame.open_end,
            close=pos,
            close_end=end,
            depth=frame.depth,
            group_id=frame.group_id,
            chain_id=frame.chain_id,
        )
        self._finished.append(region)
        log.debug(
            "pop %s @_%d_ [L%d->L%d]",
            frame.kind.value,
            frame.group_id,
            frame.open.line,
            pos.line,
        )

    def _drain(self) -> tuple[Region, ...]:
        """Turn every still-open frame into an unresolved region."""
        frames = sorted(self._braces.frames + self._directives.frames, key=lambda f: f.group_id)
        regions = []
        for frame in frames:
            if frame.kind == RegionKind.BRACE:
                message = f"'{self._profile.brace_open}' is never closed"
            else:
                message = f"'#{frame.keyword}' is never closed"
            self._error(MatchErrorKind.UNCLOSED_AT_EOF, message, frame.open)
            regions.append(
                Region(
                    kind=frame.kind,
                    open=frame.open,
                    open_end=frame.open_end,
                    close=None,
                    close_end=None,
                    depth=frame.depth,
                    group_id=frame.group_id,
                    chain_id=frame.chain_id,
                )
            )
        self._braces.frames.clear()
        self._directives.frames.clear()
        regions.extend(self._open_comments)
        return tuple(sorted(regions, key=lambda r: r.group_id))

    # ------------------------------------------------------------------
    # Braces
    # ------------------------------------------------------------------

    def _scan_code(self, span: ClassifiedSpan) -> None:
        line = span.start.line
        line_start = span.start.offset - (span.start.column - 1)
        opener = self._profile.brace_open

        for m in self._brace_re.finditer(self._source, span.start.offset, span.end):
            offset = m.start()
            ch = m.group()
            if ch == "\n":
                line += 1
                line_start = offset + 1
                continue
            pos = Position(line, offset - line_start + 1, offset)
            if ch == opener:
                self._push(self._braces, RegionKind.BRACE, pos, offset + 1, ch)
            else:
                self._close_brace(pos, offset + 1)

    def _close_brace(self, pos: Position, end: int) -> None:
        stack = self._braces
        if stack.overflow:
            stack.overflow -= 1
            return
        if not stack.frames:
            self._error(
                MatchErrorKind.UNBALANCED_CLOSE,
                f"unbalanced '{self._profile.brace_close}' with no open block",
                pos,
            )
            return
        self._finish(stack.frames.pop(), pos, end)

    # ------------------------------------------------------------------
    # Directives
    # ------------------------------------------------------------------

    def _scan_directive(self, span: ClassifiedSpan) -> None:
        if self._directive_re is None:
            return
        m = self._directive_re.match(self._source, span.start.offset, span.end)
        if m is not None:
            self._dispatch(m.group(1), span.start, span)
        elif self._head_re.fullmatch(self._source, span.start.offset, span.end):
            # "# /* note */ if X": the keyword follows the comment.
            self._pending = span.start

    def _scan_continuation(self, span: ClassifiedSpan) -> None:
        """Directive text resumed after an embedded block comment.

        Only a bare directive head can still be completed here; any other
        text is operands or a definition body and never opens a region.
        """
        if self._pending is None:
            return
        m = _KEYWORD_RE.match(self._source, span.start.offset, span.end)
        if m is not None:
            pos, self._pending = self._pending, None
            self._dispatch(m.group(1), pos, span)
        elif not _BLANK_RE.fullmatch(self._source, span.start.offset, span.end):
            self._pending = None

    def _dispatch(self, keyword: str, pos: Position, span: ClassifiedSpan) -> None:
        role = self._profile.directive_role(keyword)
        if role is None:
            return

        text = self._source[span.start.offset : span.end].rstrip()
        end = span.start.offset + len(text)
        stack = self._directives

        if role == "open":
            self._push(stack, RegionKind.PREPROCESSOR_CONDITIONAL, pos, end, keyword)
        elif role == "region_open":
            self._push(stack, RegionKind.DIRECTIVE_REGION, pos, end, keyword)
        elif role == "branch":
            self._branch(keyword, pos, end)
        elif role == "close":
            self._close_directive(RegionKind.PREPROCESSOR_CONDITIONAL, keyword, pos, end)
        else:
            self._close_directive(RegionKind.DIRECTIVE_REGION, keyword, pos, end)

    def _branch(self, keyword: str, pos: Position, end: int) -> None:
        stack = self._directives
        if stack.overflow:
            return
        top = stack.top()
        if top is None or top.kind != RegionKind.PREPROCESSOR_CONDITIONAL:
            self._error(
                MatchErrorKind.DANGLING_DIRECTIVE,
                f"'#{keyword}' without a matching conditional",
                pos,
            )
            return
        stack.frames.pop()
        self._finish(top, pos, end)
        # The new branch stays in the same chain and at the same depth.
        group_id = self._ctx.allocate()
        stack.frames.append(
            _Frame(
                kind=RegionKind.PREPROCESSOR_CONDITIONAL,
                open=pos,
                open_end=end,
                depth=top.depth,
                group_id=group_id,
                chain_id=top.chain_id,
                keyword=keyword,
            )
        )
        log.debug("branch #%s @_%d_ chain @_%d_ [L%d]", keyword, group_id, top.chain_id, pos.line)

    def _close_directive(self, kind: RegionKind, keyword: str, pos: Position, end: int) -> None:
        stack = self._directives
        if stack.overflow:
            stack.overflow -= 1
            return
        top = stack.top()
        if top is None or top.kind != kind:
            self._error(
                MatchErrorKind.DANGLING_DIRECTIVE,
                f"'#{keyword}' without a matching opening directive",
                pos,
            )
            return
        self._finish(stack.frames.pop(), pos, end)

    # ------------------------------------------------------------------
    # Block comments
    # ------------------------------------------------------------------

    def _scan_comment(self, span: ClassifiedSpan) -> None:
        text = span.text(self._source)
        newlines = text.count("\n")
        if not newlines:
            return
        opener, closer = self._profile.block_comment or ("", "")
        group_id = self._ctx.allocate()
        open_end = span.start.offset + len(opener)

        terminated = len(text) >= len(opener) + len(closer) and text.endswith(closer)
        if not terminated:
            # The classifier already reported the unterminated comment.
            self._open_comments.append(
                Region(RegionKind.BLOCK_COMMENT, span.start, open_end, None, None, 0, group_id, group_id)
            )
            return

        close_offset = span.end - len(closer)
        column = close_offset - (span.start.offset + text.rfind("\n"))
        close = Position(span.start.line + newlines, column, close_offset)
        self._finished.append(
            Region(RegionKind.BLOCK_COMMENT, span.start, open_end, close, span.end, 0, group_id, group_id)
        )


def match(
    source: str,
    spans: Iterable[ClassifiedSpan],
    profile: LanguageProfile = CPP,
    *,
    start_id: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
    comments: bool = False,
) -> MatchResult:
    """Convenience function: match regions over already classified spans."""
    return Matcher(
        source,
        spans,
        profile,
        context=MatchContext(start_id),
        max_depth=max_depth,
        comments=comments,
    ).match()
