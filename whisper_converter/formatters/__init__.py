"""Transcript formatter registry.

WHY: The CLI and batch driver need a single lookup to find formatters by
name. The transcript JSON is always written; other formats are opt-in
via ``--formats``.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["plain_text"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags)
- Values are BaseFormatter subclasses (not instances)
- PRIMARY_FORMAT names the formatter whose output is the transcript path
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from whisper_converter.formatters.plain_text import PlainTextFormatter
from whisper_converter.formatters.transcript_json import TranscriptJsonFormatter

if TYPE_CHECKING:
    from whisper_converter.formatters.base import BaseFormatter

PRIMARY_FORMAT = "transcript_json"

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "transcript_json": TranscriptJsonFormatter,
    "plain_text": PlainTextFormatter,
}
