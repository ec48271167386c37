"""Build the normalized TranscriptDocument from WhisperKit metadata.

WHY: The raw ``transcripts`` array mixes complete and incomplete
segments, uses millisecond timings relative to a per-archive offset,
and embeds speaker objects. Consumers want one flat, second-based
document they can trust without re-validating.

HOW: build_segments() walks the raw segments once, dropping any without
two finite bounds, applying the global offset, and mapping words with
the same rule. build_transcript() wraps the segments with passthrough
metadata and provenance hashes.

RULES:
- A segment missing a finite start or end (before or after the offset)
  is dropped, never clamped
- A word missing a finite startTime or endTime is dropped, never clamped
- Segment id is the source id when present, else the pre-filter index
- Segment text is stripped; word text is kept as-is
- createdAt / updatedAt / speakers are NOT normalized here
- model: modelQualityID, then modelEngine, then "unknown"
"""

from __future__ import annotations

import hashlib
import logging
import math
from typing import Any

from whisper_converter.config import TRANSCRIPT_SOURCE_TAG, UNKNOWN_MODEL
from whisper_converter.core.ir import TranscriptDocument, TranscriptSegment, TranscriptWord
from whisper_converter.core.timestamps import is_finite_number, ms_to_seconds, offset_ms

logger = logging.getLogger(__name__)


def _shifted_bounds(
    raw: dict[str, Any], start_key: str, end_key: str, global_offset_ms: float
) -> tuple[float, float] | None:
    """Offset-applied (start, end) in seconds, or None if either is unusable."""
    start_ms = raw.get(start_key)
    end_ms = raw.get(end_key)
    if not is_finite_number(start_ms) or not is_finite_number(end_ms):
        return None
    # start + offset can overflow to inf even when both are finite
    start = ms_to_seconds(start_ms + global_offset_ms)
    end = ms_to_seconds(end_ms + global_offset_ms)
    if start is None or end is None:
        return None
    return start, end


def _build_words(raw_words: Any, global_offset_ms: float) -> list[TranscriptWord]:
    if not isinstance(raw_words, list):
        return []
    words: list[TranscriptWord] = []
    for raw in raw_words:
        if not isinstance(raw, dict):
            continue
        bounds = _shifted_bounds(raw, "startTime", "endTime", global_offset_ms)
        if bounds is None:
            continue
        text = raw.get("text")
        words.append(TranscriptWord(
            text=text if isinstance(text, str) else "",
            start=bounds[0],
            end=bounds[1],
        ))
    return words


def _speaker_field(speaker: Any, key: str) -> Any:
    if not isinstance(speaker, dict):
        return None
    return speaker.get(key)


def build_segments(metadata: dict[str, Any], global_offset_ms: float) -> list[TranscriptSegment]:
    """Normalize the raw ``transcripts`` array into TranscriptSegments.

    Args:
        metadata: Parsed metadata.json object.
        global_offset_ms: Offset added to every segment and word timing.

    Returns:
        Segments with both bounds, in source order.
    """
    raw_segments = metadata.get("transcripts")
    if not isinstance(raw_segments, list):
        return []

    segments: list[TranscriptSegment] = []
    for index, raw in enumerate(raw_segments):
        if not isinstance(raw, dict):
            continue
        bounds = _shifted_bounds(raw, "start", "end", global_offset_ms)
        if bounds is None:
            continue

        text = raw.get("text")
        segment_id = raw.get("id")
        segments.append(TranscriptSegment(
            id=segment_id if segment_id is not None else index,
            start=bounds[0],
            end=bounds[1],
            text=text.strip() if isinstance(text, str) else "",
            speaker_id=_speaker_field(raw.get("speaker"), "id"),
            speaker_name=_speaker_field(raw.get("speaker"), "name"),
            words=_build_words(raw.get("words"), global_offset_ms),
        ))

    dropped = len(raw_segments) - len(segments)
    if dropped:
        logger.debug("Dropped %d segment(s) without complete timing", dropped)
    return segments


def resolve_model(metadata: dict[str, Any]) -> Any:
    for key in ("modelQualityID", "modelEngine"):
        value = metadata.get(key)
        if value is not None:
            return value
    return UNKNOWN_MODEL


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def fingerprint_audio(audio: bytes) -> str:
    """SHA-1 hex digest of the raw audio payload."""
    return hashlib.sha1(audio).hexdigest()


def fingerprint_segments(segments: list[TranscriptSegment]) -> str:
    """SHA-1 over ``startMs-endMs:text`` of every segment, joined by ``|``.

    Millisecond rounding makes the digest stable against float noise in
    second-based timings read back from earlier transcript files.
    """
    normalized = "|".join(
        "{}-{}:{}".format(
            _round_half_up(segment.start * 1000),
            _round_half_up(segment.end * 1000),
            segment.text.strip(),
        )
        for segment in segments
    )
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


def build_transcript(
    metadata: dict[str, Any],
    archive_name: str | None = None,
    audio: bytes | None = None,
) -> TranscriptDocument:
    """Build the complete TranscriptDocument for one archive.

    Args:
        metadata: Parsed metadata.json object.
        archive_name: File name of the source archive (provenance only).
        audio: Raw audio payload; when given its SHA-1 is recorded.

    Returns:
        TranscriptDocument ready for the formatters.
    """
    segments = build_segments(metadata, offset_ms(metadata.get("startTimeOffset")))
    speakers = metadata.get("speakers")
    duration_ms = max([0.0] + [segment.end * 1000 for segment in segments])

    return TranscriptDocument(
        source=TRANSCRIPT_SOURCE_TAG,
        model=resolve_model(metadata),
        created_at=metadata.get("dateCreated"),
        updated_at=metadata.get("dateUpdated"),
        speakers=speakers if isinstance(speakers, list) else [],
        segments=segments,
        original_media_filename=metadata.get("originalMediaFilename"),
        original_archive=archive_name,
        duration_ms=duration_ms,
        audio_sha1=fingerprint_audio(audio) if audio is not None else None,
        segments_sha1=fingerprint_segments(segments) if segments else None,
    )
