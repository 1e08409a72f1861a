from __future__ import annotations

import logging
from pathlib import Path

import pytest

from config import Settings
from tests._fixtures.charts import FakeAnalyzer

_ENV_VARS = (
    "PACKS_DIR",
    "BASELINE_DIR",
    "HARNESS_BIN",
    "RSSP_BIN",
    "ANALYZER_ARGS",
    "ARTIFACT_SUFFIX",
    "MATERIALIZE_MODE",
    "ZSTD_LEVEL",
    "ZSTD_THREADS",
    "SIMCACHE_STRICT",
    "SIMCACHE_SCRATCH_DIR",
)


@pytest.fixture
def make_analyzer(tmp_path: Path):
    """Return a factory for fake analyzer executables under tmp_path/bin."""

    def factory(mode: str = "ok") -> FakeAnalyzer:
        return FakeAnalyzer(tmp_path / "bin", mode)

    return factory


@pytest.fixture
def packs(tmp_path: Path) -> Path:
    root = tmp_path / "packs"
    root.mkdir()
    return root


@pytest.fixture
def baseline(tmp_path: Path) -> Path:
    return tmp_path / "baseline"


@pytest.fixture
def scratch(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def settings(packs: Path, baseline: Path, scratch: Path) -> Settings:
    return Settings(
        packs_dir=packs,
        baseline_dir=baseline,
        analyzer_bin="unused",
        zstd_level=3,
        zstd_threads=1,
        scratch_dir=scratch,
    )


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_simcache_logger():
    """main() detaches the simcache logger from root; reattach it for caplog."""
    yield
    logger = logging.getLogger("simcache")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
