"""Plain text transcript formatter with timecoded lines.

WHY: Skimming a JSON transcript is awkward. A plain text rendering next
to it lets someone find the quote they want before embedding the clip.

HOW: One line per segment: ``[HH:MM:SS] Speaker: text``. The speaker
prefix uses the segment's speaker name, falling back to its id, and is
left out entirely when the segment has no speaker.

RULES:
- One line per segment, in document order
- Timecode is the segment start, truncated to whole seconds
- Segments with empty text are skipped
- Output suffix: ".txt"
- Media type: "text/plain"
"""

from __future__ import annotations

from whisper_converter.core.ir import TranscriptDocument, TranscriptSegment
from whisper_converter.formatters.base import BaseFormatter, FormatterOutput


def _timecode(seconds: float) -> str:
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return "{:02d}:{:02d}:{:02d}".format(hours, minutes, secs)


def _speaker_label(segment: TranscriptSegment) -> str | None:
    for value in (segment.speaker_name, segment.speaker_id):
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


class PlainTextFormatter(BaseFormatter):
    """Formatter that produces a timecoded plain text transcript."""

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(self, document: TranscriptDocument) -> list[FormatterOutput]:
        lines: list[str] = []
        for segment in document.segments:
            if not segment.text:
                continue
            speaker = _speaker_label(segment)
            prefix = "[{}] ".format(_timecode(segment.start))
            if speaker:
                prefix += "{}: ".format(speaker)
            lines.append(prefix + segment.text)

        content = "\n".join(lines)
        if content:
            content += "\n"

        return [
            FormatterOutput(
                suffix=".txt",
                content=content,
                media_type="text/plain",
            )
        ]
