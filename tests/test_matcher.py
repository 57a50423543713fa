"""Tests for the region matcher: braces, directive chains, comments, limits."""

from __future__ import annotations

from cfold.errors import MatchErrorKind
from cfold.lexer import classify
from cfold.matcher import MatchContext, Matcher
from cfold.model import RegionKind
from cfold.profiles import CPP

from .conftest import regions_of

BRACE = RegionKind.BRACE
COND = RegionKind.PREPROCESSOR_CONDITIONAL


def _kinds(result) -> list[MatchErrorKind]:
    return [e.kind for e in result.errors]


# ---------------------------------------------------------------------------
# Braces
# ---------------------------------------------------------------------------


class TestBraces:
    def test_single_pair(self, match_source) -> None:
        result = match_source("void f() { }")
        assert result.errors == ()
        (region,) = result.regions
        assert region.kind == BRACE
        assert region.group_id == 0
        assert region.chain_id == 0
        assert region.depth == 0
        assert (region.open.line, region.open.column, region.open.offset) == (1, 10, 9)
        assert region.close.offset == 11
        assert region.open_end == 10
        assert region.close_end == 12

    def test_nested_ids_in_open_order(self, match_source) -> None:
        result = match_source("{ { } { } }")
        regions = sorted(result.regions, key=lambda r: r.group_id)
        assert [r.group_id for r in regions] == [0, 1, 2]
        assert [r.depth for r in regions] == [0, 1, 1]
        # Regions are listed in the order they close.
        assert [r.group_id for r in result.regions] == [1, 2, 0]

    def test_braces_in_literals_and_comments_ignored(self, match_source) -> None:
        src = 'x = "{"; c = \'}\'; // {\n/* } */ s = R"({)";\n'
        result = match_source(src)
        assert result.regions == ()
        assert result.errors == ()

    def test_brace_on_later_line(self, match_source) -> None:
        result = match_source("int f()\n{\n    return 0;\n}\n")
        (region,) = result.regions
        assert (region.open.line, region.open.column) == (2, 1)
        assert (region.close.line, region.close.column) == (4, 1)

    def test_unbalanced_close(self, match_source) -> None:
        result = match_source("} int x; { }")
        assert _kinds(result) == [MatchErrorKind.UNBALANCED_CLOSE]
        assert result.errors[0].position.column == 1
        assert len(result.regions) == 1

    def test_unclosed_at_eof(self, match_source) -> None:
        result = match_source("void f() { int x = 1;")
        assert _kinds(result) == [MatchErrorKind.UNCLOSED_AT_EOF]
        assert result.errors[0].position.column == 10
        (region,) = result.regions
        assert region.close is None
        assert not region.resolved
        assert result.unresolved == (region,)


# ---------------------------------------------------------------------------
# Preprocessor chains
# ---------------------------------------------------------------------------


class TestDirectiveChains:
    def test_if_else_endif(self, match_source) -> None:
        src = "#if A\nfoo();\n#else\nbar();\n#endif\n"
        result = match_source(src)
        assert result.errors == ()
        first, second = regions_of(result, COND)
        assert first.group_id == 0
        assert second.group_id == 1
        assert first.chain_id == second.chain_id == 0
        # #else closes the first branch and opens the second.
        assert first.close == second.open
        assert second.close.line == 5

    def test_elif_chain_shares_chain_id(self, match_source) -> None:
        src = "#ifdef A\n#elif B\n#elif C\n#else\n#endif\n"
        result = match_source(src)
        branches = regions_of(result, COND)
        assert [r.group_id for r in branches] == [0, 1, 2, 3]
        assert {r.chain_id for r in branches} == {0}
        assert all(r.depth == 0 for r in branches)

    def test_nested_conditionals(self, match_source) -> None:
        src = "#if A\n#ifndef B\n#endif\n#endif\n"
        result = match_source(src)
        outer, inner = regions_of(result, COND)
        assert outer.depth == 0
        assert inner.depth == 1
        assert inner.chain_id == inner.group_id == 1

    def test_directive_stack_independent_of_braces(self, match_source) -> None:
        src = "#if A\nvoid f() {\n#else\nvoid f() {\n#endif\n}\n"
        result = match_source(src)
        # Two opens, one close: the second brace pairs with the closing one.
        assert _kinds(result) == [MatchErrorKind.UNCLOSED_AT_EOF]
        braces = regions_of(result, BRACE)
        assert [r.resolved for r in braces] == [False, True]
        assert len(regions_of(result, COND)) == 2

    def test_dangling_endif(self, match_source) -> None:
        result = match_source("int x;\n#endif\n")
        assert _kinds(result) == [MatchErrorKind.DANGLING_DIRECTIVE]
        assert result.errors[0].position.line == 2

    def test_dangling_else(self, match_source) -> None:
        result = match_source("#else\n")
        assert _kinds(result) == [MatchErrorKind.DANGLING_DIRECTIVE]
        assert result.regions == ()

    def test_unclosed_if(self, match_source) -> None:
        result = match_source("#if A\nint x;\n")
        assert _kinds(result) == [MatchErrorKind.UNCLOSED_AT_EOF]
        assert "#if" in result.errors[0].message

    def test_other_directives_ignored(self, match_source) -> None:
        result = match_source("#include <x.h>\n#define Y { \n#pragma once\n")
        assert result.regions == ()
        assert result.errors == ()

    def test_directive_with_comment_anchor(self, match_source) -> None:
        src = "#if A // note\n#endif\n"
        (region,) = match_source(src).regions
        assert region.open_end == len("#if A")

    def test_text_after_embedded_comment_is_not_a_directive(self, match_source) -> None:
        result = match_source("#define X /**/#if Y\nint a;\n")
        assert result.errors == ()
        assert result.regions == ()

    def test_text_after_multiline_embedded_comment(self, match_source) -> None:
        result = match_source("#define X /* a\n b */ #endif\n")
        assert result.errors == ()
        assert result.regions == ()

    def test_keyword_after_embedded_comment(self, match_source) -> None:
        result = match_source("# /**/ if X\nint a;\n#endif\n")
        assert result.errors == ()
        (region,) = regions_of(result, COND)
        assert (region.open.line, region.open.column) == (1, 1)
        assert region.open_end == len("# /**/ if X")
        assert region.close.line == 3

    def test_operands_after_embedded_comment(self, match_source) -> None:
        result = match_source("#if A /* c */ && B\n#endif\n")
        assert result.errors == ()
        (region,) = result.regions
        assert region.open_end == len("#if A")

    def test_spaced_directive_keyword(self, match_source) -> None:
        result = match_source("#  ifdef X\n  #  endif\n")
        assert result.errors == ()
        assert len(result.regions) == 1

    def test_elifdef_is_cpp_only(self, match_source) -> None:
        src = "#ifdef A\n#elifdef B\n#endif\n"
        assert len(match_source(src, "cpp").regions) == 2
        assert len(match_source(src, "c").regions) == 1


class TestCSharpRegions:
    def test_region_pair(self, match_source) -> None:
        src = "#region Helpers\nclass A { }\n#endregion\n"
        result = match_source(src, "csharp")
        assert result.errors == ()
        (region,) = regions_of(result, RegionKind.DIRECTIVE_REGION)
        assert region.group_id == 0
        assert region.close.line == 3
        (brace,) = regions_of(result, BRACE)
        assert brace.group_id == 1

    def test_endregion_does_not_close_if(self, match_source) -> None:
        result = match_source("#if DEBUG\n#endregion\n#endif\n", "csharp")
        assert _kinds(result) == [MatchErrorKind.DANGLING_DIRECTIVE]
        assert len(result.regions) == 1


# ---------------------------------------------------------------------------
# Comment regions
# ---------------------------------------------------------------------------


class TestCommentRegions:
    def test_multiline_comment_is_region_when_enabled(self, match_source) -> None:
        src = "/* a\n b */\nint x;\n"
        result = match_source(src, comments=True)
        (region,) = result.regions
        assert region.kind == RegionKind.BLOCK_COMMENT
        assert region.open_end == 2
        assert (region.close.line, region.close.column, region.close.offset) == (2, 4, 8)
        assert region.close_end == 10

    def test_comments_disabled_by_default(self, match_source) -> None:
        assert match_source("/* a\n b */\n").regions == ()

    def test_single_line_comment_is_not_a_region(self, match_source) -> None:
        assert match_source("/* a */\n", comments=True).regions == ()

    def test_unterminated_comment_is_unresolved(self, match_source) -> None:
        result = match_source("{ }\n/* a\n b", comments=True)
        assert result.errors == ()
        comment = regions_of(result, RegionKind.BLOCK_COMMENT)[0]
        assert comment.close is None


# ---------------------------------------------------------------------------
# Ids and limits
# ---------------------------------------------------------------------------


class TestIdsAndLimits:
    def test_start_id(self, match_source) -> None:
        result = match_source("{ }", start_id=5)
        assert result.regions[0].group_id == 5

    def test_context_shared_across_passes(self) -> None:
        ctx = MatchContext()
        src = "{ }"
        spans = classify(src).spans
        Matcher(src, spans, CPP, context=ctx).match()
        second = Matcher(src, spans, CPP, context=ctx).match()
        assert second.regions[0].group_id == 1
        assert ctx.next_id == 2

    def test_max_depth_reported_once(self, match_source) -> None:
        result = match_source("{{{{ }}}}", max_depth=2)
        assert _kinds(result) == [MatchErrorKind.MAX_DEPTH_EXCEEDED]
        assert sorted(r.group_id for r in result.regions) == [0, 1]
        assert all(r.resolved for r in result.regions)

    def test_deep_nesting_within_limit(self, match_source) -> None:
        depth = 200
        result = match_source("{" * depth + "}" * depth)
        assert result.errors == ()
        assert max(r.depth for r in result.regions) == depth - 1

    def test_directive_max_depth(self, match_source) -> None:
        src = "#if A\n#if B\n#else\n#endif\n#endif\n"
        result = match_source(src, max_depth=1)
        assert _kinds(result) == [MatchErrorKind.MAX_DEPTH_EXCEEDED]
        (region,) = result.regions
        assert region.close.line == 5
