"""Intermediate representation dataclasses for converted archives.

WHY: WhisperKit metadata is loosely typed JSON: timings may be missing,
speakers are embedded objects, timestamps have unknown units. The rest
of the pipeline (formatters, placement, batch reporting) should not
have to re-check any of that. The IR is the cleaned, typed form that
everything downstream consumes.

HOW: Five dataclasses:
  ArchivePayload     — raw bytes pulled out of one archive
  TranscriptWord     — one word with second-based timing
  TranscriptSegment  — one segment with timing, text, speaker, words
  TranscriptDocument — the complete transcript plus provenance
  ConversionResult   — what one archive conversion produced on disk

RULES:
- All IR times are float seconds, global offset already applied
- speaker_id / speaker_name are None when the segment had no speaker
- created_at / updated_at / speakers are verbatim metadata values
- to_dict() emits the camelCase keys of the transcript JSON format
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass
class ArchivePayload:
    """The two payloads extracted from a ``.whisper`` archive.

    RULES:
    - metadata: parsed ``metadata.json`` object (always a dict)
    - audio: ``originalAudio`` bytes, uninterpreted
    """

    source_path: Path
    metadata: dict[str, Any]
    audio: bytes


@dataclass
class TranscriptWord:
    text: str
    start: float
    end: float

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "end": self.end}


@dataclass
class TranscriptSegment:
    """A single time-bounded utterance from the archive.

    RULES:
    - id: the source segment id, or its pre-filter index when absent
    - text: stripped of surrounding whitespace, "" when absent
    - words: only words that had both bounds, in source order
    """

    id: str | int
    start: float
    end: float
    text: str
    speaker_id: Any = None
    speaker_name: Any = None
    words: list[TranscriptWord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "text": self.text,
            "speakerId": self.speaker_id,
            "speakerName": self.speaker_name,
            "words": [w.to_dict() for w in self.words],
        }


@dataclass
class TranscriptDocument:
    """The normalized transcript written next to the extracted audio.

    WHY: Note-taking workflows read one flat JSON per recording. The
    document keeps raw timestamps and speakers untouched so consumers
    can apply their own interpretation, while segments are normalized
    to seconds.

    HOW: Built by core.builder.build_transcript() and serialized by the
    transcript_json formatter.

    RULES:
    - source is always TRANSCRIPT_SOURCE_TAG
    - model falls back to "unknown"
    - provenance fields (original_* / duration_ms / *_sha1) are used by
      duplicate detection on later runs
    """

    source: str
    model: Any
    created_at: Any
    updated_at: Any
    speakers: list[Any]
    segments: list[TranscriptSegment]
    original_media_filename: Any = None
    original_archive: str | None = None
    duration_ms: float = 0.0
    audio_sha1: str | None = None
    segments_sha1: str | None = None

    @property
    def duration_s(self) -> float:
        """Span from the first segment's start to the last segment's end."""
        if not self.segments:
            return 0.0
        return self.segments[-1].end - self.segments[0].start

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "model": self.model,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "speakers": list(self.speakers),
            "segments": [s.to_dict() for s in self.segments],
            "originalMediaFilename": self.original_media_filename,
            "originalArchive": self.original_archive,
            "durationMs": self.duration_ms,
            "audioSha1": self.audio_sha1,
            "segmentsSha1": self.segments_sha1,
        }


@dataclass
class ConversionResult:
    """Outcome of converting one archive.

    RULES:
    - audio_path / transcript_path are the resolved, collision-free paths
    - in dry-run mode the paths are reported but nothing exists on disk
    - extra_paths holds optional formatter outputs (e.g. plain text)
    """

    source: Path
    audio_path: Path
    transcript_path: Path
    segment_count: int
    duration_s: float
    dry_run: bool = False
    extra_paths: list[Path] = field(default_factory=list)
