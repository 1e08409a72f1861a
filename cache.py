"""
Content-addressed baseline cache.
Artifacts are keyed by the MD5 of the chart's *uncompressed* bytes and
sharded by the first hex characters of the digest:

    <root>/<md5[:2]>/<md5>.<suffix>

A slot file is only ever created by os.replace() of a finished ``.tmp``
file, so an existing slot is always a complete artifact.
"""
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import codec
from config import SHARD_WIDTH
from models import InputRef


# ── Content identity ───────────────────────────────────────────────────────────

def file_md5(path: Path) -> str:
    """MD5 hex digest of a file's raw bytes (reads in 64KB chunks)."""
    return codec.md5_chunks(codec.iter_file(path))


def zst_md5(path: Path) -> str:
    """MD5 hex digest of a .zst file's decompressed bytes, without a temp file."""
    return codec.md5_chunks(codec.iter_decompressed(path))


def identity(ref: InputRef) -> str:
    """Digest of the logical (uncompressed) content of ``ref``.

    Raises OSError if the file cannot be read and DecompressionError if a
    compressed ref is corrupt or truncated.
    """
    if ref.compressed:
        return zst_md5(ref.path)
    return file_md5(ref.path)


def identity_via_plain(ref: InputRef, materializer) -> str:
    """Digest computed by materializing ``ref`` first and hashing the plain copy.

    Equivalent to identity(); kept for the temp-file workflow and for
    checking that both routes agree.
    """
    plain = materializer.ensure_plain(ref)
    try:
        return file_md5(plain.path)
    finally:
        materializer.release(plain)


# ── Slots ──────────────────────────────────────────────────────────────────────

def slot_for(root: Path, digest: str, suffix: str, width: int = SHARD_WIDTH) -> Path:
    """Cache slot path for ``digest``. Pure; touches nothing on disk."""
    return Path(root) / digest[:width] / f"{digest}.{suffix}"


def slot_exists(slot: Path) -> bool:
    return slot.is_file()


def ensure_parent(slot: Path) -> None:
    os.makedirs(slot.parent, exist_ok=True)


@contextmanager
def staged_write(slot: Path) -> Iterator[Path]:
    """Yield a ``.tmp`` path next to ``slot``; move it into place on success.

    On any failure the staged file is removed and a pre-existing slot file is
    left as it was.
    """
    tmp = slot.with_name(slot.name + ".tmp")
    try:
        yield tmp
        os.replace(tmp, slot)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def read_artifact(slot: Path) -> bytes:
    return codec.read_artifact(slot)


def resolve_baseline_dir(path: Path) -> Path:
    """Use ``<path>/baseline`` when the baseline checkout is nested one level down."""
    nested = Path(path) / "baseline"
    if nested.is_dir():
        return nested
    return Path(path)
