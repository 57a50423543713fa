"""Shared test fixtures and helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from cfold.lexer import Classification, classify
from cfold.matcher import MatchResult, match
from cfold.model import Region, RegionKind
from cfold.profiles import CPP, LanguageProfile, get_profile
from cfold.spans import ClassifiedSpan, LexClass

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def classify_source():
    """Return a helper that classifies source with a profile name."""

    def _classify(source: str, language: str = "cpp") -> Classification:
        return classify(source, get_profile(language))

    return _classify


@pytest.fixture
def match_source():
    """Return a helper that classifies and matches source in one step."""

    def _match(
        source: str,
        language: str | LanguageProfile = CPP,
        **kwargs,
    ) -> MatchResult:
        profile = get_profile(language) if isinstance(language, str) else language
        spans = classify(source, profile).spans
        return match(source, spans, profile, **kwargs)

    return _match


def assert_classes(spans: tuple[ClassifiedSpan, ...], expected: list[LexClass]) -> None:
    """Assert that the span classes match the expected list."""
    actual = [s.lex_class for s in spans]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_texts(spans: tuple[ClassifiedSpan, ...], source: str, expected: list[str]) -> None:
    """Assert that the span texts match the expected list."""
    actual = [s.text(source) for s in spans]
    assert actual == expected, f"Expected {expected}, got {actual}"


def assert_covering(spans: tuple[ClassifiedSpan, ...], source: str) -> None:
    """Assert that spans are non-empty, contiguous, and cover the whole source."""
    offset = 0
    for span in spans:
        assert span.start.offset == offset, f"gap or overlap at {offset}: {span}"
        assert span.end > span.start.offset, f"empty span {span}"
        offset = span.end
    assert offset == len(source)


def regions_of(result: MatchResult, kind: RegionKind) -> list[Region]:
    """Return the regions of one kind, ordered by group id."""
    return sorted((r for r in result.regions if r.kind == kind), key=lambda r: r.group_id)
