"""Per-language lexical rule tables."""

from __future__ import annotations

from dataclasses import dataclass

from cfold.errors import ProfileError


@dataclass(frozen=True, slots=True)
class LanguageProfile:
    """Static lexical rules for one source language.

    Instances are immutable and shared by every scan, including scans
    running in worker processes.
    """

    name: str
    line_comment: str = "//"
    block_comment: tuple[str, str] | None = ("/*", "*/")
    string_quote: str = '"'
    char_quote: str | None = "'"
    escape: str = "\\"
    # Identifier prefixes that belong to the following literal (L"x", u8'c').
    literal_prefixes: frozenset[str] = frozenset({"L", "u", "U", "u8"})
    # C++11 raw strings: R"delim(...)delim"
    raw_string_prefixes: frozenset[str] = frozenset()
    raw_delimiter_max: int = 16
    # C# verbatim strings: @"..." where "" is an embedded quote
    verbatim_prefixes: frozenset[str] = frozenset()
    line_continuation: bool = True
    digit_separator: bool = False
    directive_char: str | None = "#"
    conditional_open: frozenset[str] = frozenset({"if", "ifdef", "ifndef"})
    conditional_branch: frozenset[str] = frozenset({"elif", "else"})
    conditional_close: frozenset[str] = frozenset({"endif"})
    region_open: frozenset[str] = frozenset()
    region_close: frozenset[str] = frozenset()
    brace_open: str = "{"
    brace_close: str = "}"

    def directive_role(self, keyword: str) -> str | None:
        """Classify a directive keyword as open/branch/close/region_open/region_close."""
        if keyword in self.conditional_open:
            return "open"
        if keyword in self.conditional_branch:
            return "branch"
        if keyword in self.conditional_close:
            return "close"
        if keyword in self.region_open:
            return "region_open"
        if keyword in self.region_close:
            return "region_close"
        return None


C = LanguageProfile(name="c")

CPP = LanguageProfile(
    name="cpp",
    raw_string_prefixes=frozenset({"R", "LR", "uR", "UR", "u8R"}),
    digit_separator=True,
    conditional_branch=frozenset({"elif", "elifdef", "elifndef", "else"}),
)

OBJC = LanguageProfile(name="objc")

CSHARP = LanguageProfile(
    name="csharp",
    literal_prefixes=frozenset({"$"}),
    verbatim_prefixes=frozenset({"@", "$@", "@$"}),
    line_continuation=False,
    conditional_open=frozenset({"if"}),
    conditional_branch=frozenset({"elif", "else"}),
    region_open=frozenset({"region"}),
    region_close=frozenset({"endregion"}),
)

PROFILES: dict[str, LanguageProfile] = {p.name: p for p in (C, CPP, OBJC, CSHARP)}

_ALIASES = {
    "h": "c",
    "c++": "cpp",
    "cxx": "cpp",
    "cc": "cpp",
    "hpp": "cpp",
    "objective-c": "objc",
    "objectivec": "objc",
    "objective-cpp": "objc",
    "m": "objc",
    "cs": "csharp",
    "c#": "csharp",
}

# File suffix -> profile name, used when no language is given.
EXTENSIONS = {
    ".c": "c",
    ".h": "cpp",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".cxx": "cpp",
    ".c++": "cpp",
    ".hh": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".ipp": "cpp",
    ".inl": "cpp",
    ".m": "objc",
    ".mm": "objc",
    ".cs": "csharp",
}


def get_profile(name: str) -> LanguageProfile:
    """Look up a profile by name or alias (case-insensitive)."""
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    try:
        return PROFILES[key]
    except KeyError:
        known = ", ".join(sorted(PROFILES))
        raise ProfileError(f"unknown language profile '{name}' (known: {known})") from None


def profile_for_path(path: str, default: str = "cpp") -> LanguageProfile:
    """Pick a profile from a file suffix, falling back to *default*."""
    dot = path.rfind(".")
    suffix = path[dot:].lower() if dot != -1 else ""
    return get_profile(EXTENSIONS.get(suffix, default))
