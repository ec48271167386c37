"""WhisperKit Archive Converter — .whisper archives to audio + transcript JSON.

WHY: The transcription app exports each recording as a packaged
``.whisper`` container. Note-taking workflows that embed audio clips
with time-aligned quotes only understand a plain audio file plus a flat
transcript document. This package bridges the two.

HOW: Four-stage pipeline — read (zip container), build (normalized
transcript IR), format (pluggable formatters), place (named, bucketed,
collision-safe files). A batch driver runs the pipeline per archive.

RULES:
- Every stage below the batch driver raises typed errors; only the
  batch driver catches them
- The transcript JSON is the stable contract with downstream consumers
- Existing output files are never overwritten
"""

__version__ = "0.1.0"
