import os
import shlex
from dataclasses import dataclass, field, replace as _dc_replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

from errors import ConfigError

# Inputs
SIMFILE_EXTENSIONS = ("sm", "ssc")
PACK_KEEP_EXTENSIONS = ("sm", "ssc", "dwi")
COMPRESSED_SUFFIX = ".zst"

# Cache layout
SHARD_WIDTH = 2
CHUNK_SIZE = 65536

# Compression (0 threads = all cores)
DEFAULT_ZSTD_LEVEL = 10
DEFAULT_ZSTD_THREADS = 0

MATERIALIZE_MODES = ("sibling", "temp")

# Defaults for the two analyzer flavours
PRESETS = {
    "harness": {
        "packs_dir": "packs",
        "baseline_dir": "baseline",
        "analyzer_env": "HARNESS_BIN",
        "analyzer_bin": "itgmania-reference-harness",
        "analyzer_args": (),
        "artifact_suffix": "json.zst",
        "materialize_mode": "sibling",
    },
    "rssp": {
        "packs_dir": "tests/data/packs",
        "baseline_dir": "tests/data/baseline",
        "analyzer_env": "RSSP_BIN",
        "analyzer_bin": "./target/release/rssp",
        "analyzer_args": ("--json",),
        "artifact_suffix": "rssp.json.zst",
        "materialize_mode": "temp",
    },
}
DEFAULT_PRESET = "harness"


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one pipeline run."""

    packs_dir: Path
    baseline_dir: Path
    analyzer_bin: str
    analyzer_args: Tuple[str, ...] = ()
    artifact_suffix: str = "json.zst"
    materialize_mode: str = "sibling"
    zstd_level: int = DEFAULT_ZSTD_LEVEL
    zstd_threads: int = DEFAULT_ZSTD_THREADS
    strict: bool = False
    scratch_dir: Optional[Path] = field(default=None)

    def __post_init__(self) -> None:
        if self.materialize_mode not in MATERIALIZE_MODES:
            raise ConfigError(
                f"unknown materialize mode {self.materialize_mode!r} "
                f"(expected one of: {', '.join(MATERIALIZE_MODES)})"
            )
        if not 1 <= self.zstd_level <= 22:
            raise ConfigError(f"zstd level must be between 1 and 22, got {self.zstd_level}")
        if self.zstd_threads < 0:
            raise ConfigError(f"zstd thread count must be >= 0, got {self.zstd_threads}")
        if not self.artifact_suffix or self.artifact_suffix.startswith("."):
            raise ConfigError(f"invalid artifact suffix {self.artifact_suffix!r}")

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, preset: str = DEFAULT_PRESET
    ) -> "Settings":
        """Build settings from a preset, overridden by environment variables."""
        env = os.environ if environ is None else environ
        try:
            defaults = PRESETS[preset]
        except KeyError:
            raise ConfigError(
                f"unknown preset {preset!r} (expected one of: {', '.join(PRESETS)})"
            ) from None

        analyzer_args = defaults["analyzer_args"]
        if env.get("ANALYZER_ARGS"):
            analyzer_args = tuple(shlex.split(env["ANALYZER_ARGS"]))
        scratch = env.get("SIMCACHE_SCRATCH_DIR")

        return cls(
            packs_dir=Path(env.get("PACKS_DIR", defaults["packs_dir"])),
            baseline_dir=Path(env.get("BASELINE_DIR", defaults["baseline_dir"])),
            analyzer_bin=env.get(defaults["analyzer_env"], defaults["analyzer_bin"]),
            analyzer_args=tuple(analyzer_args),
            artifact_suffix=env.get("ARTIFACT_SUFFIX", defaults["artifact_suffix"]),
            materialize_mode=env.get("MATERIALIZE_MODE", defaults["materialize_mode"]),
            zstd_level=_env_int(env, "ZSTD_LEVEL", DEFAULT_ZSTD_LEVEL),
            zstd_threads=_env_int(env, "ZSTD_THREADS", DEFAULT_ZSTD_THREADS),
            strict=env.get("SIMCACHE_STRICT", "0") == "1",
            scratch_dir=Path(scratch) if scratch else None,
        )

    def replace(self, **changes) -> "Settings":
        """Return a copy with the non-None values of ``changes`` applied."""
        updates = {key: value for key, value in changes.items() if value is not None}
        return _dc_replace(self, **updates)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
