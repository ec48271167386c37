"""Tests for archive discovery, single-archive conversion, and batches.

WHY: These are the end-to-end paths an operator actually runs: point at
a folder, get audio + transcript pairs, and still get the good ones
when some archives are broken.

HOW: Real archives are written with make_archive, converted into
tmp_path output roots, and the resulting files are inspected. Date
bucketing uses the pinned NOW_MS.

RULES:
- All file I/O tests use tmp_path fixtures for isolation
"""

import json
import os
from pathlib import Path

import pytest

from conftest import MP4_AUDIO, NOW_MS, RIFF_AUDIO
from whisper_converter import batch
from whisper_converter.batch import (
    ConvertOptions,
    convert_archive,
    discover_archives,
    run_batch,
)
from whisper_converter.core.errors import DiscoveryError, DuplicateArchiveError


@pytest.fixture
def options(tmp_path):
    return ConvertOptions(audio_dir=tmp_path / "audio", transcript_dir=tmp_path / "transcripts")


class TestDiscovery:

    def test_single_file(self, make_archive):
        path = make_archive()
        assert discover_archives(path) == [path]

    def test_extension_case_insensitive(self, make_archive):
        path = make_archive(name="LOUD.WHISPER")
        assert discover_archives(path) == [path]

    def test_recursive_directory(self, tmp_path, make_archive):
        root = tmp_path / "exports"
        top = make_archive(name="a.whisper", directory=root)
        nested = make_archive(name="b.Whisper", directory=root / "2024" / "march")
        (root / "notes.txt").write_text("ignore me", encoding="utf-8")
        found = discover_archives(root)
        assert sorted(found) == sorted([top, nested])

    def test_depth_first(self, tmp_path, make_archive):
        root = tmp_path / "exports"
        deep = make_archive(name="deep.whisper", directory=root / "sub" / "subsub")
        sibling = make_archive(name="sibling.whisper", directory=root / "sub")
        found = discover_archives(root)
        assert set(found) == {deep, sibling}
        assert len(found) == 2

    def test_non_archive_file(self, tmp_path):
        path = tmp_path / "audio.m4a"
        path.write_bytes(MP4_AUDIO)
        with pytest.raises(DiscoveryError):
            discover_archives(path)

    def test_empty_directory(self, tmp_path):
        (tmp_path / "empty").mkdir()
        with pytest.raises(DiscoveryError):
            discover_archives(tmp_path / "empty")

    def test_missing_path(self, tmp_path):
        with pytest.raises(DiscoveryError):
            discover_archives(tmp_path / "does-not-exist")


class TestConvertArchive:
    """The end-to-end scenario: "Episode 1!" with a RIFF payload."""

    def test_end_to_end(self, tmp_path, make_archive, options):
        result = convert_archive(make_archive(), options, now_ms=NOW_MS)

        assert result.audio_path == tmp_path / "audio" / "2023" / "11" / "episode-1.wav"
        assert result.transcript_path == tmp_path / "transcripts" / "2023" / "11" / "episode-1.json"
        assert result.audio_path.read_bytes() == RIFF_AUDIO
        assert result.segment_count == 1
        assert result.duration_s == pytest.approx(1.0)

        data = json.loads(result.transcript_path.read_text(encoding="utf-8"))
        assert data["source"] == "whisperkit"
        assert data["model"] == "unknown"
        assert data["createdAt"] == 1700000000
        assert data["updatedAt"] is None
        assert data["speakers"] == []
        segment = data["segments"][0]
        assert segment["start"] == 1.0
        assert segment["end"] == 2.0
        assert segment["text"] == "Hello"
        assert segment["speakerId"] is None
        assert data["originalArchive"] == "recording.whisper"

    def test_dry_run_reports_same_paths_without_writing(self, tmp_path, make_archive, options):
        options.dry_run = True
        result = convert_archive(make_archive(), options, now_ms=NOW_MS)

        assert result.dry_run
        assert result.audio_path == tmp_path / "audio" / "2023" / "11" / "episode-1.wav"
        assert result.transcript_path == tmp_path / "transcripts" / "2023" / "11" / "episode-1.json"
        assert not (tmp_path / "audio").exists()
        assert not (tmp_path / "transcripts").exists()

    def test_flat_and_unsorted(self, tmp_path, make_archive, options):
        undated = make_archive(name="undated.whisper", metadata={"transcripts": []})
        result = convert_archive(undated, options, now_ms=NOW_MS)
        assert result.audio_path == tmp_path / "audio" / "unsorted" / "undated.wav"
        assert result.segment_count == 0
        assert result.duration_s == 0

        options.flat = True
        result = convert_archive(make_archive(), options, now_ms=NOW_MS)
        assert result.audio_path == tmp_path / "audio" / "episode-1.wav"

    def test_declared_extension(self, tmp_path, make_archive, options):
        metadata = {"originalMediaFilename": "call", "originalMediaExtension": ".caf"}
        result = convert_archive(make_archive(metadata=metadata, audio=MP4_AUDIO), options, now_ms=NOW_MS)
        assert result.audio_path.name == "call.caf"

    def test_repeat_conversion_never_overwrites(self, make_archive, options):
        archive = make_archive()
        first = convert_archive(archive, options, now_ms=NOW_MS)
        second = convert_archive(archive, options, now_ms=NOW_MS)
        assert first.transcript_path.exists()
        assert second.transcript_path.name == "episode-1-1.json"
        assert second.audio_path.name == "episode-1-1.wav"

    def test_extra_formats(self, make_archive, options):
        options.extra_formats = ["plain_text"]
        result = convert_archive(make_archive(), options, now_ms=NOW_MS)
        assert [p.name for p in result.extra_paths] == ["episode-1.txt"]
        assert result.extra_paths[0].read_text(encoding="utf-8") == "[00:00:01] Hello\n"

    def test_skip_duplicates(self, make_archive, options):
        archive = make_archive()
        first = convert_archive(archive, options, now_ms=NOW_MS)
        options.skip_duplicates = True
        with pytest.raises(DuplicateArchiveError) as exc_info:
            convert_archive(archive, options, now_ms=NOW_MS)
        assert exc_info.value.existing_transcript == first.transcript_path

    def test_duplicate_by_segments_only(self, make_archive, options):
        convert_archive(make_archive(name="one.whisper"), options, now_ms=NOW_MS)
        reencoded = make_archive(name="two.whisper", audio=MP4_AUDIO)
        options.skip_duplicates = True
        with pytest.raises(DuplicateArchiveError):
            convert_archive(reencoded, options, now_ms=NOW_MS)

    def test_unrelated_json_ignored_by_duplicate_scan(self, tmp_path, make_archive, options):
        options.transcript_dir.mkdir(parents=True)
        (options.transcript_dir / "other.json").write_text('{"source": "elsewhere"}', encoding="utf-8")
        (options.transcript_dir / "broken.json").write_text("{", encoding="utf-8")
        options.skip_duplicates = True
        result = convert_archive(make_archive(), options, now_ms=NOW_MS)
        assert result.transcript_path.exists()


class TestRunBatch:

    def test_failure_is_isolated(self, tmp_path, make_archive, options):
        good_one = make_archive(name="one.whisper", metadata={"originalMediaFilename": "One"})
        broken = make_archive(name="two.whisper", raw_metadata=b"{broken")
        good_two = make_archive(name="three.whisper", metadata={"originalMediaFilename": "Three"})
        lines = []

        summary = run_batch([good_one, broken, good_two], options, on_status=lines.append, now_ms=NOW_MS)

        assert len(summary.results) == 2
        assert summary.failure_count == 1
        assert summary.failures[0][0] == broken
        assert summary.exit_code == 1
        for result in summary.results:
            assert result.audio_path.exists()
            assert result.transcript_path.exists()
        assert len(lines) == 3
        assert lines[0].startswith("✓ one.whisper")
        assert lines[1].startswith("✗ Failed to convert")
        assert "two.whisper" in lines[1]

    def test_clean_batch_exit_code(self, make_archive, options):
        summary = run_batch([make_archive()], options, now_ms=NOW_MS)
        assert summary.exit_code == 0
        assert summary.failures == []

    def test_results_in_input_order(self, make_archive, options):
        names = ["c.whisper", "a.whisper", "b.whisper"]
        sources = [make_archive(name=n, metadata={"originalMediaFilename": n[0]}) for n in names]
        summary = run_batch(sources, options, now_ms=NOW_MS)
        assert [r.source for r in summary.results] == sources

    def test_write_failure_counts_as_failure(self, tmp_path, make_archive):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        options = ConvertOptions(audio_dir=blocker, transcript_dir=tmp_path / "t")
        summary = run_batch([make_archive()], options, now_ms=NOW_MS)
        assert summary.failure_count == 1
        assert summary.results == []

    def test_duplicates_are_skipped_not_failed(self, make_archive, options):
        archive = make_archive()
        options.skip_duplicates = True
        lines = []
        summary = run_batch([archive, archive], options, on_status=lines.append, now_ms=NOW_MS)
        assert len(summary.results) == 1
        assert len(summary.duplicates) == 1
        assert summary.exit_code == 0
        assert lines[1].startswith("- Skipped recording.whisper")

    def test_dry_run_status_prefix(self, make_archive, options):
        options.dry_run = True
        lines = []
        run_batch([make_archive()], options, on_status=lines.append, now_ms=NOW_MS)
        assert lines[0].startswith("✓ (dry run) recording.whisper")


class TestBatchSurvivesHostileArchives:
    """A bad archive ahead of a good one must not stop the good one."""

    def _assert_isolated(self, bad, good, options):
        summary = run_batch([bad, good], options, now_ms=NOW_MS)
        assert [source for source, _ in summary.failures] == [bad]
        assert [result.source for result in summary.results] == [good]
        assert summary.results[0].transcript_path.exists()
        assert summary.exit_code == 1

    def test_deeply_nested_metadata(self, make_archive, options):
        bad = make_archive(name="deep.whisper", raw_metadata=b"[" * 100000 + b"]" * 100000)
        self._assert_isolated(bad, make_archive(name="good.whisper"), options)

    def test_unsupported_compression(self, make_archive, options):
        bad = make_archive(name="weird.whisper")
        data = bytearray(bad.read_bytes())
        index = data.find(b"PK\x01\x02")
        while index >= 0:
            data[index + 10:index + 12] = (99).to_bytes(2, "little")
            index = data.find(b"PK\x01\x02", index + 4)
        bad.write_bytes(bytes(data))
        self._assert_isolated(bad, make_archive(name="good.whisper"), options)

    def test_timings_overflowing_after_offset(self, make_archive, options):
        bad = make_archive(name="overflow.whisper", metadata={
            "transcripts": [{"start": 1e308, "end": 1e308}],
            "startTimeOffset": {"hours": 1e305},
        })
        good = make_archive(name="good.whisper")
        summary = run_batch([bad, good], options, now_ms=NOW_MS)
        assert summary.failures == []
        assert [r.segment_count for r in summary.results] == [0, 1]


class TestDiscoveryRobustness:

    def test_unreadable_subdirectory_is_skipped(self, tmp_path, make_archive, monkeypatch):
        root = tmp_path / "exports"
        readable = make_archive(name="a.whisper", directory=root)
        make_archive(name="b.whisper", directory=root / "locked")
        real_listdir = os.listdir

        def listdir(path):
            if Path(path).name == "locked":
                raise PermissionError(13, "Permission denied", str(path))
            return real_listdir(path)

        monkeypatch.setattr(batch.os, "listdir", listdir)
        assert discover_archives(root) == [readable]

    def test_unreadable_root_is_discovery_error(self, tmp_path, monkeypatch):
        root = tmp_path / "locked"
        root.mkdir()

        def listdir(path):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr(batch.os, "listdir", listdir)
        with pytest.raises(DiscoveryError):
            discover_archives(root)

    def test_symlink_loop_terminates(self, tmp_path, make_archive):
        root = tmp_path / "exports"
        archive = make_archive(name="a.whisper", directory=root)
        (root / "sub").mkdir()
        try:
            os.symlink(root, root / "sub" / "back-to-root", target_is_directory=True)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not available")
        assert discover_archives(root) == [archive]
