"""Command-line interface for cfold."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cfold.annotate import STYLES
from cfold.errors import ProfileError
from cfold.matcher import DEFAULT_MAX_DEPTH
from cfold.pipeline import FileResult, MatchOptions, to_record
from cfold.profiles import get_profile

MODES = ("annotate", "json")

CONFIG_NAME = "cfold.toml"

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Parsed CLI options."""

    input_path: Path
    output_path: Path | None
    language: str | None
    mode: str
    style: str
    jobs: int
    match: MatchOptions
    extensions: list[str]
    debug: bool


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser (separate function for testability)."""
    p = argparse.ArgumentParser(
        prog="cfold",
        description="Structural region matcher for C-family source",
    )
    p.add_argument("input", help="Input source file or directory")
    p.add_argument(
        "-o",
        "--output",
        help="Output file, or output directory for directory input (default: stdout)",
    )
    p.add_argument("-l", "--language", help="Language profile (default: from file suffix)")
    p.add_argument("-m", "--mode", choices=MODES, default=None, help="Output mode (default: annotate)")
    p.add_argument("-s", "--style", choices=STYLES, default=None, help="Tag style (default: line)")
    p.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        metavar="N",
        help="Worker processes for directory input (default: CPU count)",
    )
    p.add_argument(
        "--max-depth",
        type=int,
        default=None,
        metavar="N",
        help=f"Nesting limit per stack (default: {DEFAULT_MAX_DEPTH})",
    )
    p.add_argument("--start-id", type=int, default=None, metavar="N", help="First group id (default: 0)")
    p.add_argument(
        "--comments",
        action="store_true",
        default=None,
        help="Treat multi-line block comments as regions",
    )
    p.add_argument(
        "--ext",
        action="append",
        default=[],
        metavar="SUFFIX",
        help="File suffix to pick up in directory input (repeatable)",
    )
    p.add_argument(
        "--config",
        metavar="FILE",
        help=f"Config file (default: auto-discover {CONFIG_NAME})",
    )
    p.add_argument("--debug", action="store_true", help="Dump spans and regions to stderr")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Load a TOML config file, returning an empty dict on missing/absent file."""
    path = config_path if config_path is not None else input_dir / CONFIG_NAME

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise argparse.ArgumentTypeError(f"invalid config {path}: {exc}") from exc


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def _int_option(cli: int | None, cfg: Any, default: int, name: str, minimum: int) -> int:
    value = default
    if isinstance(cfg, int) and not isinstance(cfg, bool):
        value = cfg
    elif cfg is not None:
        raise argparse.ArgumentTypeError(f"config value '{name}' must be an integer")
    if cli is not None:
        value = cli
    if value < minimum:
        raise argparse.ArgumentTypeError(f"{name} must be at least {minimum} (got {value})")
    return value


def _choice_option(cli: str | None, cfg: Any, default: str, name: str, choices: tuple[str, ...]) -> str:
    value = cli if cli is not None else (cfg if cfg is not None else default)
    if value not in choices:
        raise argparse.ArgumentTypeError(
            f"invalid {name} '{value}' (expected one of {', '.join(choices)})"
        )
    return value


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.
    """
    input_path = Path(args.input)
    input_dir = input_path if input_path.is_dir() else input_path.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)
    output_cfg = _section(config, "output")
    matcher_cfg = _section(config, "matcher")
    batch_cfg = _section(config, "batch")

    # Language: config < CLI, validated up front
    language = args.language if args.language else config.get("language")
    if language is not None:
        language = get_profile(str(language)).name

    mode = _choice_option(args.mode, output_cfg.get("mode"), "annotate", "mode", MODES)
    style = _choice_option(args.style, output_cfg.get("style"), "line", "style", STYLES)

    max_depth = _int_option(
        args.max_depth, matcher_cfg.get("max_depth"), DEFAULT_MAX_DEPTH, "max_depth", 1
    )
    start_id = _int_option(args.start_id, matcher_cfg.get("start_id"), 0, "start_id", 0)
    comments = bool(matcher_cfg.get("comments", False))
    if args.comments is not None:
        comments = args.comments

    jobs = _int_option(args.jobs, batch_cfg.get("jobs"), os.cpu_count() or 1, "jobs", 1)

    # Extensions: config < CLI
    extensions: list[str] = []
    cfg_ext = batch_cfg.get("extensions")
    if isinstance(cfg_ext, list):
        extensions.extend(str(e) for e in cfg_ext)
    extensions.extend(args.ext)

    output_path = Path(args.output) if args.output else None

    return CliOptions(
        input_path=input_path,
        output_path=output_path,
        language=language,
        mode=mode,
        style=style,
        jobs=jobs,
        match=MatchOptions(max_depth=max_depth, start_id=start_id, comments=comments),
        extensions=extensions,
        debug=args.debug,
    )


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(asctime)s.%(msecs)03d][%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def _report(result: FileResult) -> None:
    """Print a file's diagnostics to stderr."""
    for err in result.diagnostics:
        print(err.format(result.filename), file=sys.stderr)


def _render(result: FileResult, options: CliOptions) -> str:
    if options.mode == "json":
        return json.dumps(to_record(result), indent=2) + "\n"
    return result.render(options.style)


def run_file(options: CliOptions) -> int:
    """Process a single input file."""
    from cfold.debug import dump_regions, dump_spans
    from cfold.pipeline import process_file

    profile = get_profile(options.language) if options.language else None
    result = process_file(options.input_path, profile, options.match)

    if options.debug:
        dump_spans(result)
        dump_regions(result)

    text = _render(result, options)
    if options.output_path:
        encoding = "utf-8" if options.mode == "json" else result.encoding
        with open(options.output_path, "w", encoding=encoding, newline="") as f:
            f.write(text)
    else:
        sys.stdout.write(text)

    _report(result)
    return 0 if result.ok else 1


def run_directory(options: CliOptions) -> int:
    """Process every matching file under a directory."""
    from cfold.pipeline import OutputSink, discover, run_batch

    paths = discover(options.input_path, options.extensions or None)
    log.info("%d files under %s", len(paths), options.input_path)
    sink = OutputSink(options.output_path) if options.output_path else None
    records: list[dict[str, Any]] = []
    status = 0

    for item in run_batch(paths, language=options.language, options=options.match, jobs=options.jobs):
        if item.result is None:
            print(f"error: {item.error}", file=sys.stderr)
            status = 1
            continue
        result = item.result
        if options.debug:
            from cfold.debug import dump_regions

            dump_regions(result)
        _report(result)
        if not result.ok:
            status = 1

        if sink is None:
            records.append(to_record(result))
            continue
        relative = item.path.relative_to(options.input_path)
        if options.mode == "json":
            sink.write(relative.with_name(relative.name + ".json"), _render(result, options))
        else:
            sink.write(relative, _render(result, options), result.encoding)

    if sink is None:
        records.sort(key=lambda r: r["file"])
        sys.stdout.write(json.dumps(records, indent=2) + "\n")
    return status


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns exit code (0/1/2). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        options = resolve_options(args)
    except (argparse.ArgumentTypeError, ProfileError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if not options.input_path.exists():
        print(f"error: no such file or directory: {options.input_path}", file=sys.stderr)
        return 2

    if not options.input_path.is_dir():
        try:
            return run_file(options)
        except OSError as exc:
            print(f"error: cannot read {options.input_path}: {exc.strerror or exc}", file=sys.stderr)
            return 2

    if options.mode == "annotate" and options.output_path is None:
        print("error: annotating a directory requires -o/--output DIR", file=sys.stderr)
        return 2

    try:
        return run_directory(options)
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130
