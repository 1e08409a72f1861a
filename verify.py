"""
Baseline coverage check.
For every compressed chart under the packs dir, confirm that its baseline
artifact exists and decompresses cleanly. The artifact content itself is not
interpreted.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import cache
from errors import DecompressionError
from log import get_logger
from sources import discover, relative_name

logger = get_logger("verify")

OK = "ok"
MISSING = "missing"
CORRUPT = "corrupt"
UNREADABLE = "unreadable"


@dataclass
class CheckResult:
    name: str
    path: Path
    status: str
    digest: Optional[str] = None
    slot: Optional[Path] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == OK


def select_charts(packs_dir: Path, name_filter: Optional[str] = None, exact: bool = False):
    """Compressed charts sorted by relative name, optionally filtered."""
    refs = [ref for ref in discover(packs_dir) if ref.compressed]
    named = sorted(((relative_name(ref, packs_dir), ref) for ref in refs), key=lambda t: t[0])
    if name_filter is None:
        return named
    if exact:
        return [(name, ref) for name, ref in named if name == name_filter]
    return [(name, ref) for name, ref in named if name_filter in name]


def check_baselines(
    packs_dir: Path,
    baseline_dir: Path,
    suffix: str,
    name_filter: Optional[str] = None,
    exact: bool = False,
) -> List[CheckResult]:
    baseline_root = cache.resolve_baseline_dir(baseline_dir)
    results: List[CheckResult] = []

    for name, ref in select_charts(packs_dir, name_filter, exact):
        try:
            digest = cache.identity(ref)
        except (OSError, DecompressionError) as e:
            results.append(CheckResult(name, ref.path, UNREADABLE, detail=str(e)))
            continue

        slot = cache.slot_for(baseline_root, digest, suffix)
        result = CheckResult(name, ref.path, OK, digest=digest, slot=slot)
        if not cache.slot_exists(slot):
            result.status = MISSING
            result.detail = f"Expected baseline: {slot}"
        else:
            try:
                cache.read_artifact(slot)
            except (OSError, DecompressionError) as e:
                result.status = CORRUPT
                result.detail = str(e)
        results.append(result)
    return results


def report(results: List[CheckResult]) -> int:
    """Log per-chart lines and a summary; returns the process exit code."""
    logger.info("running %d checks", len(results))
    for result in results:
        logger.info("test %s ... %s", result.name, "ok" if result.ok else "FAILED")

    failures = [result for result in results if not result.ok]
    for failure in failures:
        logger.warning(
            "---- %s ----\n%s\nFile: %s\nHash: %s\n%s",
            failure.name,
            failure.status.upper(),
            failure.path,
            failure.digest or "-",
            failure.detail,
        )

    passed = len(results) - len(failures)
    if failures:
        logger.info("test result: FAILED. %d passed; %d failed", passed, len(failures))
        return 1
    logger.info("test result: ok. %d passed; 0 failed", passed)
    return 0


__all__ = ["CheckResult", "check_baselines", "report", "select_charts"]
