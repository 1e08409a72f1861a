"""
zstd streaming helpers.

Everything here streams in CHUNK_SIZE pieces; nothing holds a whole chart
or artifact in memory except read_artifact().
"""
import hashlib
import os
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

import zstandard

from config import CHUNK_SIZE
from errors import CompressionError, DecompressionError


# ── Decompression ──────────────────────────────────────────────────────────────

def iter_decompressed(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the decompressed bytes of a .zst file.

    Concatenated frames are decoded one after another, like ``zstd -dc``.
    Raises DecompressionError on a corrupt stream, a stream that stops inside
    a frame, or an empty file.
    """
    dctx = zstandard.ZstdDecompressor()
    dobj = None
    frames = 0
    with open(path, "rb") as fin:
        try:
            while True:
                chunk = fin.read(chunk_size)
                if not chunk:
                    break
                while chunk:
                    if dobj is None:
                        dobj = dctx.decompressobj()
                    out = dobj.decompress(chunk)
                    if out:
                        yield out
                    if dobj.eof:
                        chunk = dobj.unused_data
                        dobj = None
                        frames += 1
                    else:
                        chunk = b""
        except zstandard.ZstdError as e:
            raise DecompressionError(path, str(e)) from e
    if dobj is not None:
        raise DecompressionError(path, "truncated stream (ends inside a frame)")
    if frames == 0:
        raise DecompressionError(path, "empty file")


def decompress_to(src: Path, dest: Path, *, exclusive: bool = False) -> int:
    """Decompress ``src`` into ``dest``; returns bytes written.

    With ``exclusive`` the call fails with FileExistsError instead of
    overwriting. A partially written ``dest`` is removed before any error
    propagates.
    """
    fout = open(dest, "xb" if exclusive else "wb")
    written = 0
    try:
        with fout:
            for chunk in iter_decompressed(src):
                fout.write(chunk)
                written += len(chunk)
    except BaseException:
        dest.unlink(missing_ok=True)
        raise
    return written


def read_artifact(path: Path) -> bytes:
    """Return the full decompressed content of a stored artifact."""
    return b"".join(iter_decompressed(path))


# ── Hashing ────────────────────────────────────────────────────────────────────

def md5_chunks(chunks: Iterable[bytes]) -> str:
    h = hashlib.md5()
    for chunk in chunks:
        h.update(chunk)
    return h.hexdigest()


def iter_file(path: Path, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


# ── Compression ────────────────────────────────────────────────────────────────

def make_compressor(level: int, threads: int) -> zstandard.ZstdCompressor:
    """zstd CLI semantics: ``threads == 0`` means one worker per core."""
    return zstandard.ZstdCompressor(level=level, threads=-1 if threads == 0 else threads)


def compress_stream(source: BinaryIO, dest: Path, *, level: int, threads: int) -> int:
    """Compress everything readable from ``source`` into ``dest``.

    Returns the number of compressed bytes written. Raises CompressionError;
    the caller owns removal of ``dest`` on failure.
    """
    cctx = make_compressor(level, threads)
    try:
        with open(dest, "wb") as fout:
            _, written = cctx.copy_stream(source, fout, read_size=CHUNK_SIZE)
    except (zstandard.ZstdError, OSError) as e:
        raise CompressionError(dest, str(e)) from e
    return written


def compress_file(src: Path, dest: Path, *, level: int, threads: int) -> int:
    """Compress ``src`` to ``dest`` via ``dest.tmp``; dest appears only when complete."""
    tmp = dest.with_name(dest.name + ".tmp")
    try:
        with open(src, "rb") as fin:
            written = compress_stream(fin, tmp, level=level, threads=threads)
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    return written
