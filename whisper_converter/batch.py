"""Batch driver: discover archives, convert each one, aggregate results.

WHY: Operators point the converter at a folder of exported recordings
and expect every convertible archive to come out the other end, even
when a few are corrupt. One bad archive must not cost them the rest.

HOW: discover_archives() finds ``.whisper`` files (single file or
depth-first directory walk). convert_archive() runs the full pipeline
for one archive: read → build transcript → format → place.
run_batch() calls convert_archive() sequentially, catches
ConversionError per archive, and collects a BatchSummary. Progress is
reported through an optional on_status callback.

RULES:
- Archives are processed one at a time, in discovery order
- Directory walk order is os.listdir order (not sorted)
- Unreadable directories and already-scanned directories (symlink
  loops) are skipped with a warning
- No archives found → DiscoveryError (fatal for the run)
- ArchiveError / WriteError → counted failure, batch continues
- DuplicateArchiveError → counted as skipped, batch continues
- Only one archive's audio payload is held in memory at a time
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import jsonschema

from whisper_converter.config import ARCHIVE_EXTENSION, TRANSCRIPT_SOURCE_TAG
from whisper_converter.core.archive import read_archive
from whisper_converter.core.builder import build_transcript
from whisper_converter.core.errors import (
    ConversionError,
    DiscoveryError,
    DuplicateArchiveError,
    MalformedMetadataError,
)
from whisper_converter.core.ir import ConversionResult, TranscriptDocument
from whisper_converter.core.placement import (
    PlacementOptions,
    derive_base_name,
    place_outputs,
    resolve_audio_extension,
)
from whisper_converter.formatters import FORMATTERS, PRIMARY_FORMAT
from whisper_converter.formatters.base import FormatterOutput

logger = logging.getLogger(__name__)


@dataclass
class ConvertOptions(PlacementOptions):
    """PlacementOptions plus pipeline switches.

    RULES:
    - extra_formats: formatter keys written in addition to the JSON
    - skip_duplicates: compare against transcripts already under
      transcript_dir before writing anything
    """

    extra_formats: list[str] = field(default_factory=list)
    skip_duplicates: bool = False


@dataclass
class BatchSummary:
    """Aggregate outcome of a run."""

    results: list[ConversionResult] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)
    duplicates: list[tuple[Path, Path]] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _is_archive(path: Path) -> bool:
    return path.name.lower().endswith(ARCHIVE_EXTENSION)


def _walk(directory: Path, visited: set[Path]) -> Iterator[Path]:
    real = directory.resolve()
    if real in visited:
        logger.warning("Skipping %s: already scanned through another link", directory)
        return
    visited.add(real)

    try:
        names = os.listdir(directory)
    except OSError as e:
        logger.warning("Skipping unreadable directory %s: %s", directory, e)
        return

    for name in names:
        child = directory / name
        if child.is_dir():
            yield from _walk(child, visited)
        elif child.is_file() and _is_archive(child):
            yield child


def discover_archives(input_path: str | Path) -> list[Path]:
    """List the archives to convert.

    Args:
        input_path: A ``.whisper`` file or a directory to scan recursively.

    Returns:
        Archive paths in discovery order.

    Raises:
        DiscoveryError: The path does not exist or holds no archives.
    """
    path = Path(input_path)
    if not path.exists():
        raise DiscoveryError("Input path does not exist: {}".format(path))

    if path.is_dir():
        sources = list(_walk(path, set()))
    elif path.is_file() and _is_archive(path):
        sources = [path]
    else:
        sources = []

    if not sources:
        raise DiscoveryError("No {} files found at {}".format(ARCHIVE_EXTENSION, path))
    return sources


# ---------------------------------------------------------------------------
# Duplicate detection
# ---------------------------------------------------------------------------


def find_existing_conversion(
    transcript_root: Path,
    document: TranscriptDocument,
) -> Path | None:
    """Find a transcript under ``transcript_root`` for the same recording.

    A stored transcript matches when it was written by this converter
    and shares the audio SHA-1 or the segments SHA-1 with ``document``.
    Unreadable or foreign JSON files are ignored.
    """
    if not transcript_root.is_dir():
        return None
    for candidate in sorted(transcript_root.rglob("*.json")):
        try:
            stored = json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            continue
        if not isinstance(stored, dict) or stored.get("source") != TRANSCRIPT_SOURCE_TAG:
            continue
        if document.audio_sha1 and stored.get("audioSha1") == document.audio_sha1:
            return candidate
        if document.segments_sha1 and stored.get("segmentsSha1") == document.segments_sha1:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Single-archive pipeline
# ---------------------------------------------------------------------------


def _render(document: TranscriptDocument, archive_path: Path, extra_formats: list[str]) -> list[FormatterOutput]:
    outputs: list[FormatterOutput] = []
    for key in [PRIMARY_FORMAT] + [k for k in extra_formats if k != PRIMARY_FORMAT]:
        formatter = FORMATTERS[key]()
        try:
            outputs.extend(formatter.format(document))
        except jsonschema.ValidationError as e:
            raise MalformedMetadataError(
                archive_path,
                "Transcript failed {} validation: {}".format(formatter.name, e.message),
            ) from e
    return outputs


def convert_archive(
    archive_path: str | Path,
    options: ConvertOptions,
    now_ms: float | None = None,
) -> ConversionResult:
    """Convert one archive into an audio file plus transcript(s).

    Args:
        archive_path: The ``.whisper`` file.
        options: Output roots, layout, dry-run and formatter selection.
        now_ms: Reference time for date bucketing (tests only).

    Returns:
        ConversionResult describing the resolved output paths.

    Raises:
        ArchiveError: The archive or its metadata is unusable.
        WriteError: Output could not be written.
        DuplicateArchiveError: skip_duplicates is on and a matching
            transcript already exists.
    """
    archive_path = Path(archive_path)
    payload = read_archive(archive_path)
    metadata = payload.metadata

    document = build_transcript(metadata, archive_name=archive_path.name, audio=payload.audio)

    if options.skip_duplicates:
        existing = find_existing_conversion(options.transcript_dir, document)
        if existing is not None:
            raise DuplicateArchiveError(archive_path, existing)

    outputs = _render(document, archive_path, options.extra_formats)

    placed = place_outputs(
        options,
        archive_path,
        base_name=derive_base_name(metadata.get("originalMediaFilename"), archive_path),
        audio_extension=resolve_audio_extension(
            metadata.get("originalMediaExtension"), payload.audio
        ),
        audio=payload.audio,
        outputs=outputs,
        created_at=metadata.get("dateCreated"),
        now_ms=now_ms,
    )

    return ConversionResult(
        source=archive_path,
        audio_path=placed.audio_path,
        transcript_path=placed.output_paths[0],
        segment_count=len(document.segments),
        duration_s=document.duration_s,
        dry_run=options.dry_run,
        extra_paths=placed.output_paths[1:],
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def display_path(path: Path) -> str:
    """Path relative to the working directory when possible."""
    try:
        return str(path.resolve().relative_to(Path.cwd().resolve()))
    except ValueError:
        return str(path)


def run_batch(
    sources: list[Path],
    options: ConvertOptions,
    on_status: Callable[[str], None] | None = None,
    now_ms: float | None = None,
) -> BatchSummary:
    """Convert every archive in ``sources``, isolating failures.

    Args:
        sources: Archives in the order they should be processed.
        options: Shared conversion options.
        on_status: Optional callback receiving one line per archive.
        now_ms: Reference time for date bucketing (tests only).

    Returns:
        BatchSummary with results, failures and skipped duplicates.
    """
    summary = BatchSummary()
    report = on_status or (lambda msg: None)
    prefix = "(dry run) " if options.dry_run else ""

    for source in sources:
        try:
            result = convert_archive(source, options, now_ms=now_ms)
        except DuplicateArchiveError as e:
            summary.duplicates.append((source, e.existing_transcript))
            report("- Skipped {}: already converted as {}".format(
                source.name, display_path(e.existing_transcript)
            ))
            continue
        except ConversionError as e:
            logger.debug("Conversion of %s failed", source, exc_info=True)
            summary.failures.append((source, e.message))
            report("✗ Failed to convert {}: {}".format(source, e.message))
            continue

        summary.results.append(result)
        report("✓ {}{} → {}".format(prefix, source.name, display_path(result.transcript_path)))

    return summary
