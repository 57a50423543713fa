"""cfold: structural region matcher for C-family source."""

from __future__ import annotations

__version__ = "0.1.0"


def annotate_source(
    source: str,
    language: str = "cpp",
    style: str = "line",
    *,
    start_id: int = 0,
    comments: bool = False,
) -> str:
    """Classify, match, and annotate C-family source in one call."""
    from cfold.pipeline import MatchOptions, process_source
    from cfold.profiles import get_profile

    options = MatchOptions(start_id=start_id, comments=comments)
    result = process_source(source, get_profile(language), options=options)
    return result.render(style)
