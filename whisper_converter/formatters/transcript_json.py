"""Transcript JSON formatter — the document note-taking workflows read.

WHY: The consumer only understands a flat JSON transcript next to a
plain audio file. This formatter serializes the TranscriptDocument IR
into that exact shape and refuses to emit anything that does not match
the bundled schema.

HOW: TranscriptDocument.to_dict() produces the camelCase structure.
The result is validated with jsonschema against transcript_schema.json
(shipped inside this package) and pretty-printed with two-space indent.

RULES:
- Top-level keys: source, model, createdAt, updatedAt, speakers,
  segments, plus provenance keys used for duplicate detection
- Times are float seconds; createdAt/updatedAt are verbatim
- Non-ASCII text is written as-is (UTF-8), not escaped
- Output suffix: ".json"
- Validate output against the schema before returning; raise on failure
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

from whisper_converter.core.ir import TranscriptDocument
from whisper_converter.formatters.base import BaseFormatter, FormatterOutput

SCHEMA_PATH = Path(__file__).resolve().parent / "transcript_schema.json"


def _load_schema() -> dict[str, Any]:
    """Load the transcript JSON schema from disk.

    Cached at module level after first call to avoid repeated I/O.
    """
    with open(SCHEMA_PATH, encoding="utf-8") as f:
        return json.load(f)


_CACHED_SCHEMA: dict[str, Any] | None = None


def _get_schema() -> dict[str, Any]:
    global _CACHED_SCHEMA
    if _CACHED_SCHEMA is None:
        _CACHED_SCHEMA = _load_schema()
    return _CACHED_SCHEMA


class TranscriptJsonFormatter(BaseFormatter):
    """Formatter that produces the normalized transcript JSON document."""

    @property
    def name(self) -> str:
        return "Transcript JSON"

    def format(self, document: TranscriptDocument) -> list[FormatterOutput]:
        """Serialize the TranscriptDocument as pretty-printed JSON.

        Raises:
            jsonschema.ValidationError: If the generated JSON does not
                conform to transcript_schema.json.
        """
        output = document.to_dict()
        jsonschema.validate(instance=output, schema=_get_schema())

        content = json.dumps(output, indent=2, ensure_ascii=False)

        return [
            FormatterOutput(
                suffix=".json",
                content=content,
                media_type="application/json",
            )
        ]
