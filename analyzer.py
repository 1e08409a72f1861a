"""
External analyzer invocation.
The analyzer is a black box: ``<analyzer> <chart-path> [extra args]`` writes
its result to stdout and exits 0. Its stdout is handed out as a stream so the
compressor can consume it while it is produced.
"""
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Sequence

from errors import AnalyzerError, PreconditionError
from log import get_logger

logger = get_logger("analyzer")

STDERR_TAIL_BYTES = 4096
STDERR_TAIL_LINES = 20


# ── Resolution ─────────────────────────────────────────────────────────────────

def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def resolve_analyzer(name: str, search_dirs: Optional[Sequence[Path]] = None) -> Path:
    """Locate the analyzer executable.

    A name containing a path separator is taken as a path. A bare name is
    looked up in ``search_dirs`` (default: the current directory), then on
    PATH. Raises PreconditionError if nothing executable is found.
    """
    if not name:
        raise PreconditionError("no analyzer configured")

    if os.sep in name or (os.altsep and os.altsep in name):
        candidate = Path(name)
        if _is_executable(candidate):
            return candidate
        raise PreconditionError(f"analyzer not found or not executable: {name}")

    for directory in search_dirs if search_dirs is not None else (Path.cwd(),):
        candidate = Path(directory) / name
        if _is_executable(candidate):
            return candidate

    found = shutil.which(name)
    if found:
        return Path(found)
    raise PreconditionError(
        f"analyzer {name!r} not found or not executable. "
        "Set HARNESS_BIN / RSSP_BIN or pass --analyzer."
    )


def _tail(stderr_file) -> str:
    stderr_file.seek(0, os.SEEK_END)
    size = stderr_file.tell()
    stderr_file.seek(max(0, size - STDERR_TAIL_BYTES))
    text = stderr_file.read().decode("utf-8", errors="replace")
    return "\n".join(text.splitlines()[-STDERR_TAIL_LINES:])


# ── Runner ─────────────────────────────────────────────────────────────────────

class AnalyzerRunner:
    """Runs one analyzer process per chart."""

    def __init__(self, executable: Path, extra_args: Sequence[str] = ()) -> None:
        self.executable = Path(executable)
        self.extra_args = tuple(extra_args)
        self.invocations = 0

    def argv(self, plain_path: Path) -> list:
        return [str(self.executable), str(plain_path), *self.extra_args]

    @contextmanager
    def run(self, plain_path: Path) -> Iterator[BinaryIO]:
        """Start the analyzer and yield its stdout.

        After the with-block the process is reaped; a non-zero exit raises
        AnalyzerError. If the block raises, the process is killed and the
        block's exception propagates unchanged.
        """
        argv = self.argv(plain_path)
        logger.debug("exec: %s", " ".join(argv))
        # stderr goes to a spool file so a chatty analyzer cannot block on it
        with tempfile.TemporaryFile() as stderr:
            try:
                proc = subprocess.Popen(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=stderr,
                )
            except OSError as e:
                raise AnalyzerError(plain_path, None, str(e)) from e
            self.invocations += 1

            try:
                yield proc.stdout
            except BaseException:
                proc.kill()
                raise
            finally:
                proc.stdout.close()
                returncode = proc.wait()

            if returncode != 0:
                tail = _tail(stderr)
                if tail:
                    logger.debug("analyzer stderr:\n%s", tail)
                raise AnalyzerError(plain_path, returncode, tail)


__all__ = ["AnalyzerRunner", "resolve_analyzer"]
