"""
Error taxonomy for the baseline pipeline.

PreconditionError aborts the whole run. Everything else is caught at the
item boundary, logged with the offending path, and the batch continues.
Unreadable files and mkdir failures surface as plain OSError.
"""
from typing import Optional


class SimcacheError(Exception):
    """Base class for simcache errors."""


class PreconditionError(SimcacheError):
    """A required tool or directory is missing; nothing was processed."""


class ConfigError(PreconditionError):
    """An environment variable or flag has an invalid value."""


class DecompressionError(SimcacheError):
    """A .zst input is corrupt or truncated."""

    def __init__(self, path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class AnalyzerError(SimcacheError):
    """The analyzer could not be started or exited non-zero."""

    def __init__(self, path, exit_code: Optional[int], stderr_tail: str = "") -> None:
        if exit_code is None:
            message = f"analyzer could not be started for {path}"
        else:
            message = f"analyzer exited with status {exit_code} for {path}"
        if stderr_tail.strip():
            message += f": {stderr_tail.strip().splitlines()[-1]}"
        super().__init__(message)
        self.path = path
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class CompressionError(SimcacheError):
    """Writing the compressed artifact failed."""

    def __init__(self, path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
