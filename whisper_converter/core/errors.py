"""Exception hierarchy for archive conversion.

WHY: The batch driver must tell recoverable per-archive failures apart
from fatal run-level problems. Typed exceptions make that split explicit
instead of matching on message text.

HOW: ConversionError is the single base the batch driver catches per
archive. ArchiveError covers everything wrong with the input container;
WriteError covers filesystem failures on the output side.
DiscoveryError is raised before any archive is touched and ends the run.

RULES:
- Every ConversionError carries the archive path it concerns
- Nothing below the batch driver catches ConversionError
- DiscoveryError is NOT a ConversionError
- DuplicateArchiveError is a skip signal, not a failure
"""

from __future__ import annotations

from pathlib import Path


class ConversionError(Exception):
    """Base for failures isolated to a single archive."""

    def __init__(self, archive_path: str | Path, message: str) -> None:
        self.archive_path = Path(archive_path)
        self.message = message
        super().__init__(message)


class ArchiveError(ConversionError):
    """The archive could not be read as a WhisperKit container."""


class InvalidArchiveError(ArchiveError):
    """The file is not a readable zip container."""


class MissingMetadataError(ArchiveError):
    """The archive has no ``metadata.json`` entry."""

    def __init__(self, archive_path: str | Path) -> None:
        super().__init__(
            archive_path,
            "metadata.json not found in archive {}.".format(Path(archive_path).name),
        )


class MissingAudioPayloadError(ArchiveError):
    """The archive has no ``originalAudio`` entry."""

    def __init__(self, archive_path: str | Path) -> None:
        super().__init__(
            archive_path,
            "originalAudio payload missing from archive {}.".format(Path(archive_path).name),
        )


class MalformedMetadataError(ArchiveError):
    """``metadata.json`` is not valid UTF-8 JSON describing an object."""


class WriteError(ConversionError):
    """Creating an output directory or writing an output file failed."""


class DiscoveryError(Exception):
    """No archives were found at the input path."""


class DuplicateArchiveError(ConversionError):
    """The archive was already converted into the transcript folder.

    Raised only when duplicate detection is enabled. The batch driver
    reports it as skipped, not failed.
    """

    def __init__(self, archive_path: str | Path, existing_transcript: str | Path) -> None:
        self.existing_transcript = Path(existing_transcript)
        super().__init__(
            archive_path,
            "Already converted: {}".format(self.existing_transcript),
        )
