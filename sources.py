"""
Chart discovery: walks a packs directory for plain and .zst simfiles.
"""
import os
from pathlib import Path
from typing import Iterator, Sequence

from config import COMPRESSED_SUFFIX, SIMFILE_EXTENSIONS
from models import InputRef


def classify(name: str, extensions: Sequence[str] = SIMFILE_EXTENSIONS):
    """Return ``(is_chart, compressed)`` for a file name.

    ``song.sm`` -> (True, False), ``song.ssc.zst`` -> (True, True),
    anything else -> (False, False). Case-insensitive.
    """
    lower = name.lower()
    compressed = lower.endswith(COMPRESSED_SUFFIX)
    if compressed:
        lower = lower[: -len(COMPRESSED_SUFFIX)]
    for ext in extensions:
        if lower.endswith("." + ext.lower()):
            return True, compressed
    return False, False


def discover(root: Path, extensions: Sequence[str] = SIMFILE_EXTENSIONS) -> Iterator[InputRef]:
    """Yield an InputRef for every chart file under ``root``.

    Order is whatever the filesystem walk produces.
    """
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            is_chart, compressed = classify(name, extensions)
            if not is_chart:
                continue
            path = Path(dirpath) / name
            if not path.is_file():
                continue
            yield InputRef(path=path, compressed=compressed)


def relative_name(ref: InputRef, root: Path) -> str:
    """``Pack/Song/file.ssc.zst`` style name used in reports."""
    try:
        return ref.path.relative_to(root).as_posix()
    except ValueError:
        return ref.path.as_posix()
