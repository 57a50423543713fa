"""Per-file classify -> match -> annotate pipeline and the batch driver."""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Iterator

from cfold.annotate import build_document, render
from cfold.errors import LexError, MatchError, SourceError
from cfold.lexer import classify
from cfold.matcher import DEFAULT_MAX_DEPTH, match
from cfold.model import AnnotatedDocument, Region
from cfold.profiles import CPP, EXTENSIONS, LanguageProfile, get_profile, profile_for_path
from cfold.spans import ClassifiedSpan, Position

log = logging.getLogger(__name__)

DEFAULT_EXCLUDES = frozenset({".git", ".hg", ".svn", ".idea", ".vscode", "node_modules", "__pycache__"})


@dataclass(frozen=True, slots=True)
class MatchOptions:
    """Knobs for one matching pass."""

    max_depth: int = DEFAULT_MAX_DEPTH
    start_id: int = 0
    comments: bool = False


@dataclass(frozen=True, slots=True)
class FileResult:
    """Everything produced for one input file."""

    filename: str
    language: str
    source: str
    spans: tuple[ClassifiedSpan, ...]
    regions: tuple[Region, ...]
    lex_errors: tuple[LexError, ...]
    match_errors: tuple[MatchError, ...]
    document: AnnotatedDocument
    encoding: str = "utf-8"

    @property
    def ok(self) -> bool:
        return not self.match_errors

    @property
    def diagnostics(self) -> list[SourceError]:
        found: list[SourceError] = [*self.lex_errors, *self.match_errors]
        return sorted(found, key=lambda e: e.position.offset)

    def render(self, style: str = "line") -> str:
        return render(self.document, style)


def process_source(
    source: str,
    profile: LanguageProfile = CPP,
    filename: str = "<input>",
    options: MatchOptions | None = None,
) -> FileResult:
    """Run classifier, matcher and annotator over one in-memory text."""
    if options is None:
        options = MatchOptions()
    started = time.perf_counter()

    classification = classify(source, profile)
    matched = match(
        source,
        classification.spans,
        profile,
        start_id=options.start_id,
        max_depth=options.max_depth,
        comments=options.comments,
    )
    document = build_document(source, matched.regions)

    log.debug(
        "%s: %d regions, %d warnings, %d errors in %.1fms",
        filename,
        len(matched.regions),
        len(classification.errors),
        len(matched.errors),
        (time.perf_counter() - started) * 1000,
    )
    return FileResult(
        filename=filename,
        language=profile.name,
        source=source,
        spans=classification.spans,
        regions=matched.regions,
        lex_errors=classification.errors,
        match_errors=matched.errors,
        document=document,
    )


def read_source(path: Path) -> tuple[str, str]:
    """Read a file as UTF-8, falling back to Latin-1. Returns (text, encoding)."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return raw.decode("latin-1"), "latin-1"


def process_file(
    path: Path,
    profile: LanguageProfile | None = None,
    options: MatchOptions | None = None,
) -> FileResult:
    """Read and process one file. A missing profile is chosen from the suffix."""
    if profile is None:
        profile = profile_for_path(str(path))
    source, encoding = read_source(path)
    result = process_source(source, profile, str(path), options)
    return replace(result, encoding=encoding)


# ---------------------------------------------------------------------------
# JSON records
# ---------------------------------------------------------------------------


def _position_record(pos: Position | None) -> dict[str, int] | None:
    if pos is None:
        return None
    return {"line": pos.line, "column": pos.column, "offset": pos.offset}


def to_record(result: FileResult) -> dict[str, Any]:
    """Structured form of a file result, ready for json.dumps."""
    regions = sorted(result.regions, key=lambda r: r.group_id)
    return {
        "file": result.filename,
        "language": result.language,
        "regions": [
            {
                "group_id": r.group_id,
                "chain_id": r.chain_id,
                "kind": r.kind.value,
                "depth": r.depth,
                "open": _position_record(r.open),
                "close": _position_record(r.close),
            }
            for r in regions
        ],
        "diagnostics": [
            {
                "severity": err.severity,
                "kind": err.kind.value,
                "message": err.message,
                "line": err.position.line,
                "column": err.position.column,
            }
            for err in result.diagnostics
        ],
    }


# ---------------------------------------------------------------------------
# Batch processing
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BatchItem:
    """Outcome for one file of a batch: a result, or a read failure."""

    path: Path
    result: FileResult | None = None
    error: str | None = None


def discover(
    root: Path,
    extensions: Iterable[str] | None = None,
    exclude_dirs: Iterable[str] = DEFAULT_EXCLUDES,
) -> list[Path]:
    """List source files under *root* with a known (or given) suffix, sorted."""
    if extensions:
        suffixes = {e.lower() if e.startswith(".") else "." + e.lower() for e in extensions}
    else:
        suffixes = set(EXTENSIONS)
    excluded = {d.lower() for d in exclude_dirs}

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d.lower() not in excluded)
        for name in filenames:
            if Path(name).suffix.lower() in suffixes:
                found.append(Path(dirpath, name))
    return sorted(found)


def _process_path(path: Path, language: str | None, options: MatchOptions) -> BatchItem:
    profile = get_profile(language) if language else None
    try:
        return BatchItem(path, result=process_file(path, profile, options))
    except OSError as exc:
        return BatchItem(path, error=f"cannot read {path}: {exc.strerror or exc}")


def run_batch(
    paths: Iterable[Path],
    *,
    language: str | None = None,
    options: MatchOptions | None = None,
    jobs: int = 1,
    cancel: threading.Event | None = None,
) -> Iterator[BatchItem]:
    """Process files independently and yield items as they complete.

    With ``jobs > 1`` files are spread over a process pool. Setting *cancel*
    (or interrupting the consumer) stops the batch: queued files are
    dropped, already-yielded items are unaffected.
    """
    if options is None:
        options = MatchOptions()
    if language:
        get_profile(language)  # unknown profiles fail before any work starts
    paths = list(paths)

    if jobs <= 1:
        for done, path in enumerate(paths):
            if cancel is not None and cancel.is_set():
                log.info("batch cancelled, %d files skipped", len(paths) - done)
                return
            yield _process_path(path, language, options)
        return

    executor = ProcessPoolExecutor(max_workers=jobs)
    pending: set[Future[BatchItem]] = set()
    try:
        pending = {executor.submit(_process_path, p, language, options) for p in paths}
        while pending:
            if cancel is not None and cancel.is_set():
                log.info("batch cancelled, %d files skipped", len(pending))
                return
            done, pending = wait(pending, timeout=0.2, return_when=FIRST_COMPLETED)
            for future in done:
                yield future.result()
    finally:
        for future in pending:
            future.cancel()
        executor.shutdown(wait=True, cancel_futures=True)


@dataclass
class OutputSink:
    """Writes one complete output file per result under a root directory.

    Each file goes to a temporary name first and is renamed into place, so
    an interrupted batch never leaves a partially written output.
    """

    root: Path
    written: list[Path] = field(default_factory=list)

    def write(self, relative: Path, text: str, encoding: str = "utf-8") -> Path:
        target = self.root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".cfold-", dir=target.parent)
        try:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
                f.write(text)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self.written.append(target)
        return target
