"""Shared test fixtures for the whisper_converter test suite.

WHY: Almost every test needs a real ``.whisper`` archive on disk. Building
them through one factory keeps the zip layout identical everywhere and
lets each test state only the metadata it cares about.

HOW: ``make_archive`` writes a zip into tmp_path with optional
``metadata.json`` and ``originalAudio`` entries. Sample metadata and
audio headers are module constants so tests can import them.

RULES:
- All archives live under tmp_path
- NOW_MS pins "now" for epoch disambiguation (2026-01-01T00:00:00Z)
- The default audio payload is a 44-byte WAV header
"""

import json
import zipfile
from typing import Any, Dict

import pytest

NOW_MS = 1767225600000.0

RIFF_AUDIO = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 32
MP4_AUDIO = b"\x00\x00\x00\x20ftypM4A " + b"\x00" * 32
ID3_AUDIO = b"ID3\x04\x00\x00\x00\x00\x00\x00" + b"\x00" * 32

EPISODE_METADATA: Dict[str, Any] = {
    "originalMediaFilename": "Episode 1!",
    "transcripts": [{"start": 1000, "end": 2000, "text": " Hello "}],
    "dateCreated": 1700000000,
}


@pytest.fixture
def episode_metadata():
    """The single-segment metadata document from the end-to-end scenario."""
    return json.loads(json.dumps(EPISODE_METADATA))


@pytest.fixture
def make_archive(tmp_path):
    """Factory writing a ``.whisper`` zip and returning its path.

    Args (of the returned callable):
        name: File name inside ``directory`` (default "recording.whisper").
        metadata: Dict serialized to metadata.json.
        audio: Bytes stored as originalAudio.
        raw_metadata: Bytes written verbatim instead of ``metadata``.
        include_metadata / include_audio: Drop an entry when False.
        directory: Target directory (default tmp_path / "input").
    """

    def _make(
        name="recording.whisper",
        metadata=None,
        audio=RIFF_AUDIO,
        raw_metadata=None,
        include_metadata=True,
        include_audio=True,
        directory=None,
    ):
        target_dir = directory if directory is not None else tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            if include_metadata:
                if raw_metadata is not None:
                    zf.writestr("metadata.json", raw_metadata)
                else:
                    zf.writestr(
                        "metadata.json",
                        json.dumps(metadata if metadata is not None else EPISODE_METADATA),
                    )
            if include_audio:
                zf.writestr("originalAudio", audio)
        return path

    return _make
