"""
Result Packager.

Turns completed chunks back into files:
    - download_chunk(): one chunk's MP3 under its stored filename
    - build_bundle(): every completed chunk in one ZIP archive

Bundle Layout:
    <Display Name>_Audio_<YYYY-MM-DDTHH-MM-SS>.zip
        001_<filename of chunk 0>
        002_<filename of chunk 1>
        ...

Entries are prefixed with the 1-based chunk index zero-padded to three
digits, so lexicographic order equals chunk order. Chunks that are not
completed are left out; a bundle with nothing in it is refused with
NothingToDownloadError.
"""
from __future__ import annotations

import base64
import binascii
import io
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from tts_batch.core.logging import get_logger, info, warn
from tts_batch.tts.orchestrator import AudioChunk, ChunkStatus

_LOG = get_logger("tts-batch.packager")

_DATA_URL_PREFIX = "data:"


class NothingToDownloadError(Exception):
    """No completed chunk is available to package."""

    def __init__(self, message: str = "No completed audio chunks to download"):
        self.message = message
        super().__init__(message)


@dataclass
class ChunkFile:
    """One decoded chunk ready to write."""
    chunk_index: int
    filename: str
    audio: bytes


@dataclass
class Bundle:
    """
    A built archive.

    Attributes:
        filename: Archive name.
        data: ZIP bytes.
        entries: Entry names in archive order.
    """
    filename: str
    data: bytes
    entries: List[str]

    def write(self, directory: str | Path) -> Path:
        path = Path(directory) / self.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.data)
        return path


def decode_chunk_audio(payload: str) -> bytes:
    """
    Decode a chunk payload (bare base64 or a ``data:...;base64,`` URL).

    Raises:
        ValueError: If the payload is empty or not valid base64.
    """
    if not payload:
        raise ValueError("empty audio payload")
    if payload.startswith(_DATA_URL_PREFIX):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 audio payload: {e}") from e


def download_chunk(chunk: AudioChunk) -> ChunkFile:
    """
    Decode one completed chunk.

    Raises:
        NothingToDownloadError: If the chunk is not completed.
        ValueError: If its payload cannot be decoded.
    """
    if chunk.status != ChunkStatus.COMPLETED:
        raise NothingToDownloadError(f"Chunk {chunk.chunk_index} has no audio ({chunk.status.value})")
    return ChunkFile(
        chunk_index=chunk.chunk_index,
        filename=chunk.filename or f"chunk{chunk.chunk_index}.mp3",
        audio=decode_chunk_audio(chunk.audio_payload),
    )


def entry_name(chunk_index: int, filename: str) -> str:
    return f"{chunk_index + 1:03d}_{filename}"


def bundle_filename(display_name: str, now: Optional[datetime] = None) -> str:
    """``<display name>_Audio_<YYYY-MM-DDTHH-MM-SS>.zip``; spaces become underscores."""
    now = now or datetime.now()
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{display_name.replace(' ', '_')}_Audio_{stamp}.zip"


def build_bundle(
    chunks: Iterable[AudioChunk],
    display_name: str,
    now: Optional[datetime] = None,
) -> Bundle:
    """
    Zip every completed chunk in ascending chunk index order.

    A completed chunk whose payload cannot be decoded is skipped with a
    warning; the rest of the bundle is still produced.

    Raises:
        NothingToDownloadError: If no chunk can be packaged.
    """
    completed = sorted(
        (c for c in chunks if c.status == ChunkStatus.COMPLETED),
        key=lambda c: c.chunk_index,
    )
    if not completed:
        raise NothingToDownloadError()

    buffer = io.BytesIO()
    entries: List[str] = []
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for chunk in completed:
            try:
                chunk_file = download_chunk(chunk)
            except ValueError as e:
                warn(_LOG, "bundle_skip_chunk", chunk=chunk.chunk_index, error=str(e))
                continue
            name = entry_name(chunk_file.chunk_index, chunk_file.filename)
            archive.writestr(name, chunk_file.audio)
            entries.append(name)

    if not entries:
        raise NothingToDownloadError("No completed audio chunks could be decoded")

    bundle = Bundle(filename=bundle_filename(display_name, now), data=buffer.getvalue(), entries=entries)
    info(_LOG, "bundle_built", filename=bundle.filename, entries=len(entries), bytes=len(bundle.data))
    return bundle


def write_chunks(chunks: Iterable[AudioChunk], directory: str | Path) -> List[Path]:
    """
    Write each completed chunk as its own file.

    Raises:
        NothingToDownloadError: If no chunk is completed.
    """
    out_dir = Path(directory)
    written: List[Path] = []
    for chunk in sorted(chunks, key=lambda c: c.chunk_index):
        if chunk.status != ChunkStatus.COMPLETED:
            continue
        try:
            chunk_file = download_chunk(chunk)
        except ValueError as e:
            warn(_LOG, "chunk_write_skipped", chunk=chunk.chunk_index, error=str(e))
            continue
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / chunk_file.filename
        path.write_bytes(chunk_file.audio)
        written.append(path)
    if not written:
        raise NothingToDownloadError()
    return written
