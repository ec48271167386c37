"""Reader for WhisperKit ``.whisper`` archives.

WHY: The transcription app packages each recording as a zip container
with a JSON metadata entry and the original audio. Everything else in
the pipeline needs those two payloads and nothing more.

HOW: zipfile opens the container for random access; the two entries are
looked up by exact name. The metadata is decoded as UTF-8 JSON, the
audio is returned as raw bytes.

RULES:
- Entry names are exact: "metadata.json" and "originalAudio"
- Missing metadata is reported before missing audio
- Metadata must decode to a JSON object, anything else is malformed
- Every failure surfaces as an ArchiveError subclass, so a batch can
  move on to the next archive
- Read-only: the archive file is never modified
"""

from __future__ import annotations

import json
import logging
import zipfile
import zlib
from pathlib import Path

from whisper_converter.config import AUDIO_ENTRY, METADATA_ENTRY
from whisper_converter.core.errors import (
    InvalidArchiveError,
    MalformedMetadataError,
    MissingAudioPayloadError,
    MissingMetadataError,
)
from whisper_converter.core.ir import ArchivePayload

logger = logging.getLogger(__name__)


def _read_entry(archive: zipfile.ZipFile, name: str) -> bytes | None:
    try:
        info = archive.getinfo(name)
    except KeyError:
        return None
    return archive.read(info)


def read_archive(path: str | Path) -> ArchivePayload:
    """Extract the metadata document and audio payload from an archive.

    Args:
        path: Path to a ``.whisper`` file.

    Returns:
        ArchivePayload with the parsed metadata dict and audio bytes.

    Raises:
        InvalidArchiveError: The file is not a readable zip container.
        MissingMetadataError: No ``metadata.json`` entry.
        MalformedMetadataError: The metadata is not a UTF-8 JSON object.
        MissingAudioPayloadError: No ``originalAudio`` entry.
    """
    archive_path = Path(path)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            raw_metadata = _read_entry(archive, METADATA_ENTRY)
            if raw_metadata is None:
                raise MissingMetadataError(archive_path)

            try:
                metadata = json.loads(raw_metadata.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                raise MalformedMetadataError(
                    archive_path, "metadata.json is not valid JSON: {}".format(e)
                ) from e
            except RecursionError as e:
                raise MalformedMetadataError(
                    archive_path, "metadata.json is nested too deeply to parse."
                ) from e
            if not isinstance(metadata, dict):
                raise MalformedMetadataError(
                    archive_path,
                    "metadata.json must contain a JSON object, got {}.".format(
                        type(metadata).__name__
                    ),
                )

            audio = _read_entry(archive, AUDIO_ENTRY)
            if audio is None:
                raise MissingAudioPayloadError(archive_path)
    # NotImplementedError: unsupported compression; RuntimeError: encrypted entry
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        EOFError,
        NotImplementedError,
        RuntimeError,
        OSError,
    ) as e:
        raise InvalidArchiveError(
            archive_path, "Cannot open {} as an archive: {}".format(archive_path.name, e)
        ) from e

    logger.debug(
        "Read %s: %d metadata keys, %d audio bytes",
        archive_path.name, len(metadata), len(audio),
    )
    return ArchivePayload(source_path=archive_path, metadata=metadata, audio=audio)
