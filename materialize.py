"""
Plain-file materialization for compressed charts.

The analyzer only accepts a file path, so a .sm.zst has to exist on disk as
a plain .sm while it runs. Two placements are supported:

  sibling  song.sm.zst -> song.sm next to it. An existing song.sm is never
           deleted and is reused only when it holds the same bytes as the
           .zst; otherwise a private scratch copy stands in for it. One we
           create is deleted when the item ends.
  temp     a unique file inside a private scratch directory. Always ours;
           the whole directory is removed when the run ends.

Every file the run creates is tracked in a TransientFiles list and removed
exactly once, whichever way the run ends.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, NamedTuple, Optional

import codec
from log import get_logger
from models import InputRef

logger = get_logger("materialize")


class PlainFile(NamedTuple):
    path: Path
    owned: bool


class TransientFiles:
    """Ownership list of plain files created by the current run."""

    def __init__(self) -> None:
        self._paths: List[Path] = []

    def __contains__(self, path: Path) -> bool:
        return path in self._paths

    def __len__(self) -> int:
        return len(self._paths)

    def add(self, path: Path) -> None:
        self._paths.append(path)

    def release(self, path: Path) -> bool:
        """Remove ``path`` if it is owned; returns False if it was not."""
        if path not in self._paths:
            return False
        self._paths.remove(path)
        path.unlink(missing_ok=True)
        logger.debug("removed transient %s", path)
        return True

    def release_all(self) -> None:
        while self._paths:
            self.release(self._paths[-1])


class Materializer:
    """Hands out plain paths for input refs and cleans up after them."""

    def __init__(self, mode: str = "sibling", scratch_root: Optional[Path] = None) -> None:
        if mode not in ("sibling", "temp"):
            raise ValueError(f"unknown materialize mode: {mode}")
        self.mode = mode
        self.owned = TransientFiles()
        self._scratch_root = scratch_root
        self._scratch: Optional[Path] = None

    def __enter__(self) -> "Materializer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def scratch_dir(self) -> Optional[Path]:
        return self._scratch

    def ensure_plain(self, ref: InputRef, digest: Optional[str] = None) -> PlainFile:
        """Return a plain on-disk form of ``ref`` and whether this run owns it.

        ``digest`` is the identity of ``ref`` when the caller already has it.
        In sibling mode an existing plain file is reused only if its content
        matches; otherwise a private copy in the scratch directory is used.
        Raises DecompressionError (nothing left behind) or OSError.
        """
        if not ref.compressed:
            return PlainFile(ref.path, False)
        if self.mode == "temp":
            return self._materialize_temp(ref)
        return self._materialize_sibling(ref, digest)

    def release(self, plain: PlainFile) -> None:
        """End-of-item release. Temp-mode files live until close()."""
        if plain.owned and self.mode == "sibling":
            self.owned.release(plain.path)

    def close(self) -> None:
        self.owned.release_all()
        if self._scratch is not None:
            shutil.rmtree(self._scratch, ignore_errors=True)
            self._scratch = None

    # ── internals ──────────────────────────────────────────────────────────────

    def _materialize_sibling(self, ref: InputRef, digest: Optional[str]) -> PlainFile:
        plain = ref.plain_path
        if not plain.exists():
            logger.info("decomp: %s", plain)
            try:
                codec.decompress_to(ref.path, plain, exclusive=True)
            except FileExistsError:
                pass
            else:
                self.owned.add(plain)
                return PlainFile(plain, True)

        # someone else's file: usable only if it holds the same bytes as the .zst
        if digest is None:
            digest = codec.md5_chunks(codec.iter_decompressed(ref.path))
        if codec.md5_chunks(codec.iter_file(plain)) == digest:
            return PlainFile(plain, False)
        logger.warning("stale plain copy, using a private one instead: %s", plain)
        return self._materialize_temp(ref)

    def _materialize_temp(self, ref: InputRef) -> PlainFile:
        if self._scratch is None:
            root = str(self._scratch_root) if self._scratch_root else None
            self._scratch = Path(tempfile.mkdtemp(prefix="simcache.", dir=root))
        fd, name = tempfile.mkstemp(
            prefix="plain.", suffix=f".{ref.extension}", dir=self._scratch
        )
        os.close(fd)
        plain = Path(name)
        self.owned.add(plain)
        logger.debug("decomp: %s -> %s", ref.path, plain)
        try:
            codec.decompress_to(ref.path, plain)
        except BaseException:
            self.owned.release(plain)
            raise
        return PlainFile(plain, True)


__all__ = ["Materializer", "PlainFile", "TransientFiles"]
