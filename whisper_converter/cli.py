"""Command-line interface for the WhisperKit archive converter.

WHY: Exported recordings pile up as ``.whisper`` archives. The CLI turns
a file or a whole folder of them into audio files plus transcript JSON
in one command, and tells the operator exactly what went where.

HOW: Uses argparse for the flags, configures logging, discovers the
archives, and hands them to batch.run_batch(). Per-archive lines and the
final summary are printed to stderr as each archive completes.

RULES:
- Required: --input, --audio-dir, --transcript-dir (the two directories
  may come from WHISPER_AUDIO_DIR / WHISPER_TRANSCRIPT_DIR instead)
- Missing inputs or unknown flags are usage errors (exit 2) raised
  before any archive is opened
- No archives found → exit 1
- Any per-archive failure → exit 1, after the full summary
- Status output goes to stderr (not stdout)
- camelCase aliases (--audioDir, --transcriptDir) are accepted
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from whisper_converter import config
from whisper_converter.batch import (
    BatchSummary,
    ConvertOptions,
    discover_archives,
    display_path,
    run_batch,
)
from whisper_converter.core.errors import DiscoveryError
from whisper_converter.formatters import FORMATTERS, PRIMARY_FORMAT


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.DEFAULT_LOG_LEVEL, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _parse_formats(parser: argparse.ArgumentParser, value: Optional[str]) -> List[str]:
    if not value:
        return []
    keys = [k.strip() for k in value.split(",") if k.strip()]
    for key in keys:
        if key not in FORMATTERS:
            parser.error("unknown format '{}'. Available formats: {}".format(
                key, ", ".join(sorted(FORMATTERS))
            ))
    return [k for k in keys if k != PRIMARY_FORMAT]


def _print_summary(summary: BatchSummary) -> None:
    _status("")
    _status("Conversion summary:")
    for result in summary.results:
        _status("• Audio: {}".format(result.audio_path))
        _status("  Transcript: {}".format(result.transcript_path))
        for extra in result.extra_paths:
            _status("  Also: {}".format(extra))
        _status("  Segments: {} ({:.1f}s)".format(result.segment_count, result.duration_s))
    if summary.duplicates:
        _status("")
        _status("Skipped {} duplicate archive(s).".format(len(summary.duplicates)))
    if summary.failures:
        _status("")
        _status("Completed with {} failure(s).".format(summary.failure_count))
    else:
        _status("")
        _status("All archives converted successfully.")


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable; tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="whisper-convert",
        description="Convert WhisperKit .whisper archives into standalone audio "
                    "files and transcript JSON for note-taking workflows.",
    )

    parser.add_argument(
        "--input",
        required=True,
        help="Path to a .whisper file or a directory that contains them.",
    )

    parser.add_argument(
        "--audio-dir", "--audioDir",
        dest="audio_dir",
        default=config.DEFAULT_AUDIO_DIR,
        help="Where to write extracted audio files (default: $WHISPER_AUDIO_DIR).",
    )

    parser.add_argument(
        "--transcript-dir", "--transcriptDir",
        dest="transcript_dir",
        default=config.DEFAULT_TRANSCRIPT_DIR,
        help="Where to write transcript JSON files (default: $WHISPER_TRANSCRIPT_DIR).",
    )

    parser.add_argument(
        "--flat",
        action="store_true",
        default=config.DEFAULT_FLAT,
        help="Do not create year/month subfolders.",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse archives and report results without writing files.",
    )

    parser.add_argument(
        "--skip-duplicates",
        action="store_true",
        help="Skip archives whose audio or segments match a transcript "
             "already in the transcript directory.",
    )

    parser.add_argument(
        "--formats",
        default=None,
        help="Comma-separated extra output formats written next to the "
             "transcript JSON. Available: {}.".format(", ".join(sorted(FORMATTERS))),
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Always ends with SystemExit carrying the run's exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    missing = [
        flag for flag, value in (
            ("--audio-dir", args.audio_dir),
            ("--transcript-dir", args.transcript_dir),
        )
        if not value
    ]
    if missing:
        parser.error("missing required arguments: {}".format(", ".join(missing)))

    extra_formats = _parse_formats(parser, args.formats)
    _configure_logging(args.verbose)

    try:
        sources = discover_archives(Path(args.input).expanduser().resolve())
    except DiscoveryError as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    options = ConvertOptions(
        audio_dir=Path(args.audio_dir).expanduser().resolve(),
        transcript_dir=Path(args.transcript_dir).expanduser().resolve(),
        flat=args.flat,
        dry_run=args.dry_run,
        extra_formats=extra_formats,
        skip_duplicates=args.skip_duplicates,
    )

    _status("Found {} {} file(s). Starting conversion...".format(
        len(sources), config.ARCHIVE_EXTENSION
    ))
    if options.dry_run:
        _status("Dry run: nothing will be written to {} or {}".format(
            display_path(options.audio_dir), display_path(options.transcript_dir)
        ))

    summary = run_batch(sources, options, on_status=_status)
    _print_summary(summary)
    sys.exit(summary.exit_code)


if __name__ == "__main__":
    main()
