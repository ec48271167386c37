"""Configuration constants, archive layout names, and .env loading.

WHY: The converter depends on a handful of format facts (entry names,
the archive extension, the producer's epoch) and a few operator
defaults (output folders, flat layout). Keeping them as plain
module-level values makes them easy to find and override.

HOW: python-dotenv loads the .env file on import. Format constants are
module-level strings and ints. Operator defaults are read from the
environment with safe fallbacks.

RULES:
- Archive entry names are exact and case-sensitive
- The archive extension is matched case-insensitively
- Output folder defaults are optional; the CLI still requires a value
  from either the flag or the environment
- No value here is ever computed from the archive contents
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the working directory (where the converter is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Archive layout
# ---------------------------------------------------------------------------

ARCHIVE_EXTENSION = ".whisper"
"""File extension of WhisperKit archives (compared lower-case)."""

METADATA_ENTRY = "metadata.json"
AUDIO_ENTRY = "originalAudio"

# ---------------------------------------------------------------------------
# Transcript document
# ---------------------------------------------------------------------------

TRANSCRIPT_SOURCE_TAG = "whisperkit"
"""Constant ``source`` value written into every transcript document."""

UNKNOWN_MODEL = "unknown"

# ---------------------------------------------------------------------------
# Output placement
# ---------------------------------------------------------------------------

DEFAULT_AUDIO_EXTENSION = "m4a"
UNSORTED_FOLDER = "unsorted"
FALLBACK_BASENAME_PREFIX = "whisper"

# ---------------------------------------------------------------------------
# Timestamp disambiguation
# ---------------------------------------------------------------------------

APPLE_EPOCH_OFFSET_SECONDS = 978307200
"""Seconds between the Unix epoch and 2001-01-01T00:00:00Z."""

APPLE_EPOCH_OFFSET_MILLISECONDS = APPLE_EPOCH_OFFSET_SECONDS * 1000

PLAUSIBLE_YEAR_MIN = 2000
PLAUSIBLE_YEAR_MAX = 2100

# ---------------------------------------------------------------------------
# Operator defaults (overridable via environment / .env)
# ---------------------------------------------------------------------------

DEFAULT_AUDIO_DIR = os.getenv("WHISPER_AUDIO_DIR") or None
DEFAULT_TRANSCRIPT_DIR = os.getenv("WHISPER_TRANSCRIPT_DIR") or None
DEFAULT_FLAT = os.getenv("WHISPER_FLAT", "false").lower() == "true"
DEFAULT_LOG_LEVEL = os.getenv("WHISPER_LOG_LEVEL", "WARNING").upper()
