"""Output naming, date bucketing, and collision-safe file placement.

WHY: Converted files land in folders a person browses and links to from
notes. Names must be readable and link-safe, recordings should group by
month, and a re-run over a growing output folder must never overwrite an
earlier conversion.

HOW: slugify() turns titles into identifiers. derive_base_name() picks
the media title, then the archive name, then a timestamp. The audio
extension comes from metadata or a three-entry magic-byte table.
place_outputs() resolves ``-1``, ``-2``, … suffixes against the live
filesystem and writes each file in exclusive-create mode so a file that
appears between check and write is never clobbered.

RULES:
- Slugs contain only [a-z0-9_-]; slugify() is idempotent
- Sniffing looks at the first 12 bytes only; short payloads fall back
- Buckets are UTC "YYYY/MM"; no confident date → "unsorted"
- Collision suffixes start at 1 and increase monotonically
- Dry-run resolves the same paths but creates nothing
- Filesystem failures surface as WriteError, and files already written
  for that archive are removed first
"""

from __future__ import annotations

import logging
import re
import time
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from whisper_converter.config import (
    DEFAULT_AUDIO_EXTENSION,
    FALLBACK_BASENAME_PREFIX,
    UNSORTED_FOLDER,
)
from whisper_converter.core.errors import WriteError
from whisper_converter.core.timestamps import resolve_timestamp
from whisper_converter.formatters.base import FormatterOutput

logger = logging.getLogger(__name__)

_NON_SLUG_CHARS = re.compile(r"[^A-Za-z0-9_\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_HYPHEN_RUN = re.compile(r"-+")
_NON_EXTENSION_CHARS = re.compile(r"[^A-Za-z0-9]")

# (offset, signature, extension); first match wins
_AUDIO_SIGNATURES = (
    (0, b"RIFF", "wav"),
    (4, b"ftyp", "m4a"),
    (0, b"ID3", "mp3"),
)
_SNIFF_LENGTH = 12


def slugify(text: Any) -> str:
    """Convert arbitrary text into a lower-case, hyphenated identifier.

    Steps: NFKD decomposition, drop anything but ASCII word characters,
    whitespace and hyphens, strip, whitespace runs → "-", hyphen runs →
    "-", lower-case. Non-string input yields "".
    """
    if not isinstance(text, str):
        return ""
    value = unicodedata.normalize("NFKD", text)
    value = _NON_SLUG_CHARS.sub("", value).strip()
    value = _WHITESPACE_RUN.sub("-", value)
    value = _HYPHEN_RUN.sub("-", value)
    return value.lower()


def derive_base_name(
    original_media_filename: Any,
    archive_path: str | Path,
    clock_ns: Callable[[], int] = time.time_ns,
) -> str:
    """Pick the shared base name for the audio and transcript files."""
    return (
        slugify(original_media_filename)
        or slugify(Path(archive_path).stem)
        or "{}-{}".format(FALLBACK_BASENAME_PREFIX, clock_ns())
    )


def sanitize_extension(extension: Any) -> str | None:
    """Clean a declared media extension (".m4a" → "m4a"); None if unusable."""
    if not isinstance(extension, str):
        return None
    cleaned = _NON_EXTENSION_CHARS.sub("", extension.strip().lstrip("."))
    return cleaned or None


def detect_audio_extension(payload: bytes, fallback: str = DEFAULT_AUDIO_EXTENSION) -> str:
    """Guess the audio container from its magic bytes.

    RULES:
    - ``RIFF`` at offset 0 → wav
    - ``ftyp`` at offset 4 → m4a
    - ``ID3`` at offset 0 → mp3
    - fewer than 12 bytes, or no match → fallback
    """
    header = bytes(payload[:_SNIFF_LENGTH])
    if len(header) < _SNIFF_LENGTH:
        return fallback
    for offset, signature, extension in _AUDIO_SIGNATURES:
        if header[offset:offset + len(signature)] == signature:
            return extension
    return fallback


def resolve_audio_extension(declared: Any, payload: bytes) -> str:
    return sanitize_extension(declared) or detect_audio_extension(payload)


def date_subfolder(date_value: Any, now_ms: float | None = None) -> Path | None:
    """``YYYY/MM`` for a metadata date, or None when it can't be resolved."""
    moment = resolve_timestamp(date_value, now_ms=now_ms)
    if moment is None:
        return None
    return Path(str(moment.year), "{:02d}".format(moment.month))


def resolve_unique_path(
    directory: Path,
    filename: str,
    reserved: set[Path] | None = None,
) -> Path:
    """First free path for ``filename`` in ``directory``.

    ``name.ext`` is tried first, then ``name-1.ext``, ``name-2.ext``, …
    A path counts as taken when it exists on disk or is in ``reserved``
    (paths already claimed earlier in the same conversion).
    """
    reserved = reserved or set()
    stem = Path(filename).stem
    suffix = Path(filename).suffix

    candidate = directory / filename
    counter = 1
    while candidate.exists() or candidate in reserved:
        candidate = directory / "{}-{}{}".format(stem, counter, suffix)
        counter += 1
    return candidate


@dataclass
class PlacementOptions:
    """Where and how converted files are placed.

    RULES:
    - audio_dir / transcript_dir are roots; buckets are created below them
    - flat=True disables the YYYY/MM (or "unsorted") bucket
    - dry_run=True never touches the filesystem
    """

    audio_dir: Path
    transcript_dir: Path
    flat: bool = False
    dry_run: bool = False


@dataclass
class PlacedFiles:
    """Resolved paths for one archive, in the order they were placed."""

    audio_path: Path
    output_paths: list[Path] = field(default_factory=list)


def bucket_for(created_at: Any, flat: bool, now_ms: float | None = None) -> Path | None:
    if flat:
        return None
    return date_subfolder(created_at, now_ms=now_ms) or Path(UNSORTED_FOLDER)


def _ensure_dir(directory: Path, archive_path: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WriteError(
            archive_path, "Cannot create directory {}: {}".format(directory, e)
        ) from e


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove incomplete output %s", path)


def _write_exclusive(
    directory: Path,
    filename: str,
    data: bytes,
    reserved: set[Path],
    archive_path: Path,
) -> Path:
    """Write ``data`` under the first free name, never replacing a file.

    A file this call created but could not finish writing is removed
    before WriteError is raised.
    """
    while True:
        path = resolve_unique_path(directory, filename, reserved)
        try:
            f = open(path, "xb")
        except FileExistsError:
            logger.debug("%s appeared before it could be written, retrying", path)
            reserved.add(path)
            continue
        except OSError as e:
            raise WriteError(archive_path, "Cannot write {}: {}".format(path, e)) from e

        try:
            with f:
                f.write(data)
        except OSError as e:
            _discard(path)
            raise WriteError(archive_path, "Cannot write {}: {}".format(path, e)) from e
        return path


def place_outputs(
    options: PlacementOptions,
    archive_path: str | Path,
    base_name: str,
    audio_extension: str,
    audio: bytes,
    outputs: list[FormatterOutput],
    created_at: Any = None,
    now_ms: float | None = None,
) -> PlacedFiles:
    """Resolve (and unless dry-run, write) the audio file and formatter outputs.

    Args:
        options: Output roots and layout/dry-run flags.
        archive_path: Source archive, used for error context.
        base_name: Shared stem for every file of this archive.
        audio_extension: Extension for the audio file, without dot.
        audio: Raw audio payload.
        outputs: Formatter outputs to write into the transcript directory.
        created_at: Raw ``dateCreated`` value used for bucketing.
        now_ms: Reference time for epoch disambiguation (tests only).

    Returns:
        PlacedFiles with the audio path and one path per output.

    Raises:
        WriteError: Creating a directory or writing a file failed.
    """
    archive_path = Path(archive_path)
    bucket = bucket_for(created_at, options.flat, now_ms=now_ms)
    audio_dir = options.audio_dir / bucket if bucket else options.audio_dir
    transcript_dir = options.transcript_dir / bucket if bucket else options.transcript_dir

    audio_filename = "{}.{}".format(base_name, audio_extension)
    reserved: set[Path] = set()

    if options.dry_run:
        audio_path = resolve_unique_path(audio_dir, audio_filename, reserved)
        reserved.add(audio_path)
        placed = PlacedFiles(audio_path=audio_path)
        for output in outputs:
            path = resolve_unique_path(transcript_dir, base_name + output.suffix, reserved)
            reserved.add(path)
            placed.output_paths.append(path)
        return placed

    _ensure_dir(audio_dir, archive_path)
    _ensure_dir(transcript_dir, archive_path)

    written: list[Path] = []
    try:
        audio_path = _write_exclusive(audio_dir, audio_filename, audio, reserved, archive_path)
        written.append(audio_path)
        reserved.add(audio_path)
        placed = PlacedFiles(audio_path=audio_path)
        for output in outputs:
            path = _write_exclusive(
                transcript_dir,
                base_name + output.suffix,
                output.content.encode("utf-8"),
                reserved,
                archive_path,
            )
            written.append(path)
            reserved.add(path)
            placed.output_paths.append(path)
    except WriteError:
        # all or nothing: an audio file without its transcript is not kept
        for path in written:
            _discard(path)
        raise

    logger.debug("Placed %s and %d output(s)", audio_path, len(placed.output_paths))
    return placed
