"""Tests for single-chunk download and ZIP bundling."""
from __future__ import annotations

import base64
import io
import zipfile
from datetime import datetime

import pytest

from tts_batch.tts.orchestrator import AudioChunk, ChunkStatus
from tts_batch.tts.packager import (
    NothingToDownloadError,
    build_bundle,
    bundle_filename,
    decode_chunk_audio,
    download_chunk,
    entry_name,
    write_chunks,
)


def _done(index: int, audio: bytes = None) -> AudioChunk:
    audio = audio if audio is not None else f"mp3-{index}".encode()
    return AudioChunk(
        chunk_index=index,
        text=f"text {index}",
        status=ChunkStatus.COMPLETED,
        audio_payload=base64.b64encode(audio).decode("ascii"),
        filename=f"minimax-Wise_Woman-chunk{index}-1.mp3",
        size=len(audio),
    )


def _failed(index: int) -> AudioChunk:
    return AudioChunk(chunk_index=index, text="x", status=ChunkStatus.FAILED, error="boom")


class TestDecode:

    def test_bare_base64(self):
        assert decode_chunk_audio("SUQz") == b"ID3"

    def test_data_url(self):
        assert decode_chunk_audio("data:audio/mpeg;base64,SUQz") == b"ID3"

    @pytest.mark.parametrize("payload", ["", "not base64!!"])
    def test_invalid(self, payload):
        with pytest.raises(ValueError):
            decode_chunk_audio(payload)


class TestDownloadChunk:

    def test_completed_chunk(self):
        f = download_chunk(_done(2, b"abc"))
        assert f.filename == "minimax-Wise_Woman-chunk2-1.mp3"
        assert f.audio == b"abc"

    def test_failed_chunk_has_nothing(self):
        with pytest.raises(NothingToDownloadError, match="Chunk 4 has no audio"):
            download_chunk(_failed(4))


class TestBundle:

    def test_naming(self):
        now = datetime(2025, 3, 9, 14, 5, 7)
        assert bundle_filename("Fish Audio", now) == "Fish_Audio_Audio_2025-03-09T14-05-07.zip"
        assert entry_name(0, "a.mp3") == "001_a.mp3"
        assert entry_name(11, "b.mp3") == "012_b.mp3"

    def test_entries_in_chunk_order(self):
        chunks = [_done(2), _failed(1), _done(0), _done(3)]
        bundle = build_bundle(chunks, "MiniMax", datetime(2025, 1, 2, 3, 4, 5))

        assert bundle.filename == "MiniMax_Audio_2025-01-02T03-04-05.zip"
        assert bundle.entries == [
            "001_minimax-Wise_Woman-chunk0-1.mp3",
            "003_minimax-Wise_Woman-chunk2-1.mp3",
            "004_minimax-Wise_Woman-chunk3-1.mp3",
        ]
        with zipfile.ZipFile(io.BytesIO(bundle.data)) as archive:
            assert archive.namelist() == bundle.entries
            assert archive.read(bundle.entries[0]) == b"mp3-0"
            assert archive.read(bundle.entries[2]) == b"mp3-3"

    def test_nothing_completed(self):
        with pytest.raises(NothingToDownloadError):
            build_bundle([_failed(0), _failed(1)], "MiniMax")

    def test_empty_input(self):
        with pytest.raises(NothingToDownloadError):
            build_bundle([], "MiniMax")

    def test_undecodable_chunk_skipped(self):
        broken = _done(1)
        broken.audio_payload = "%%%"
        bundle = build_bundle([_done(0), broken], "MiniMax")
        assert bundle.entries == ["001_minimax-Wise_Woman-chunk0-1.mp3"]

    def test_write(self, tmp_path):
        bundle = build_bundle([_done(0)], "ElevenLabs", datetime(2025, 1, 1))
        path = bundle.write(tmp_path / "out")
        assert path.name == "ElevenLabs_Audio_2025-01-01T00-00-00.zip"
        assert path.read_bytes() == bundle.data


class TestWriteChunks:

    def test_writes_completed_only(self, tmp_path):
        paths = write_chunks([_done(1), _failed(2), _done(0)], tmp_path)
        assert [p.name for p in paths] == [
            "minimax-Wise_Woman-chunk0-1.mp3",
            "minimax-Wise_Woman-chunk1-1.mp3",
        ]
        assert paths[0].read_bytes() == b"mp3-0"

    def test_nothing_to_write(self, tmp_path):
        with pytest.raises(NothingToDownloadError):
            write_chunks([_failed(0)], tmp_path)
