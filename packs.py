"""
Pack cleanup: drop everything that is not a simfile, then store loose
simfiles as .zst.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import codec
from config import COMPRESSED_SUFFIX, PACK_KEEP_EXTENSIONS
from errors import CompressionError, PreconditionError
from log import get_logger
from sources import classify

logger = get_logger("packs")


@dataclass
class CleanupReport:
    deleted: List[Path] = field(default_factory=list)
    compressed: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)


def _walk_files(root: Path):
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_file():
                yield path


def clean_packs(
    packs_dir: Path,
    *,
    level: int,
    threads: int,
    dry_run: bool = False,
) -> CleanupReport:
    packs_dir = Path(packs_dir)
    if not packs_dir.is_dir():
        raise PreconditionError(f"PACKS_DIR not found or not a directory: {packs_dir}")

    report = CleanupReport()
    patterns = ", ".join(
        f"*.{ext}" for ext in PACK_KEEP_EXTENSIONS
    ) + ", " + ", ".join(f"*.{ext}{COMPRESSED_SUFFIX}" for ext in PACK_KEEP_EXTENSIONS)
    logger.info("Cleaning: deleting files not matching {%s}", patterns)

    for path in list(_walk_files(packs_dir)):
        keep, _ = classify(path.name, PACK_KEEP_EXTENSIONS)
        if keep:
            continue
        logger.info("del : %s", path)
        if not dry_run:
            path.unlink(missing_ok=True)
        report.deleted.append(path)

    logger.info("Compressing: *.sm/*.ssc/*.dwi -> *%s (level %d)", COMPRESSED_SUFFIX, level)
    for path in list(_walk_files(packs_dir)):
        keep, compressed = classify(path.name, PACK_KEEP_EXTENSIONS)
        if not keep or compressed:
            continue
        out = path.with_name(path.name + COMPRESSED_SUFFIX)

        # already compressed: leave both files alone
        if out.exists():
            logger.info("skip: %s", out)
            report.skipped.append(out)
            continue

        logger.info("zst : %s", out)
        if dry_run:
            report.compressed.append(out)
            continue
        try:
            codec.compress_file(path, out, level=level, threads=threads)
        except (CompressionError, OSError) as e:
            logger.warning("failed to compress: %s (%s)", path, e)
            report.failed.append(path)
            continue
        path.unlink()
        report.compressed.append(out)

    return report


__all__ = ["CleanupReport", "clean_packs"]
