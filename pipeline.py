"""
Baseline generation pipeline.

Per chart:

    hash -> slot -> skip? -> plain form -> analyzer | zstd -> slot -> release

Items are processed one at a time. A failing item is logged and counted;
only PreconditionError stops the run.
"""
from pathlib import Path
from typing import Iterable, Optional

import cache
import codec
from analyzer import AnalyzerRunner, resolve_analyzer
from config import Settings
from errors import AnalyzerError, CompressionError, DecompressionError, PreconditionError
from log import get_logger
from materialize import Materializer, PlainFile
from models import InputRef, ItemOutcome, ItemState, RunReport
from sources import discover

logger = get_logger("pipeline")


class BaselinePipeline:
    """Generates missing baseline artifacts for every chart under a packs dir."""

    def __init__(
        self,
        settings: Settings,
        runner: AnalyzerRunner,
        *,
        force: bool = False,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.force = force

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        force: bool = False,
        search_dirs: Optional[Iterable[Path]] = None,
    ) -> "BaselinePipeline":
        """Resolve the analyzer and build a pipeline; raises PreconditionError."""
        executable = resolve_analyzer(
            settings.analyzer_bin, list(search_dirs) if search_dirs is not None else None
        )
        runner = AnalyzerRunner(executable, settings.analyzer_args)
        return cls(settings, runner, force=force)

    # ── batch ──────────────────────────────────────────────────────────────────

    def check_preconditions(self) -> None:
        packs = self.settings.packs_dir
        if not packs.is_dir():
            raise PreconditionError(f"PACKS_DIR not found or not a directory: {packs}")

    def run(self, refs: Optional[Iterable[InputRef]] = None) -> RunReport:
        """Process every discovered chart (or ``refs``) and return the outcomes."""
        self.check_preconditions()
        if refs is None:
            refs = list(discover(self.settings.packs_dir))

        report = RunReport()
        with Materializer(self.settings.materialize_mode, self.settings.scratch_dir) as materializer:
            for ref in refs:
                report.add(self.process(ref, materializer))

        logger.info("done: %s", report.summary())
        return report

    # ── one item ───────────────────────────────────────────────────────────────

    def process(self, ref: InputRef, materializer: Materializer) -> ItemOutcome:
        try:
            digest = cache.identity(ref)
        except (OSError, DecompressionError) as e:
            logger.warning("failed to hash: %s (%s)", ref, e)
            return ItemOutcome(ref, ItemState.FAILED, error=str(e))
        logger.debug("md5 : %s %s", digest, ref)

        slot = cache.slot_for(self.settings.baseline_dir, digest, self.settings.artifact_suffix)
        outcome = ItemOutcome(ref, ItemState.FAILED, digest=digest, slot=slot)

        if cache.slot_exists(slot) and not self.force:
            logger.info("skip: %s", slot)
            outcome.state = ItemState.SKIPPED
            return outcome

        plain: Optional[PlainFile] = None
        try:
            cache.ensure_parent(slot)
            plain = materializer.ensure_plain(ref, digest)
            logger.info("gen : %s", slot)
            logger.info("      from: %s", ref)
            self.generate(plain.path, slot)
            outcome.state = ItemState.STORED
        except DecompressionError as e:
            logger.warning("failed to decompress: %s (%s)", ref, e.reason)
            outcome.error = str(e)
        except (AnalyzerError, CompressionError) as e:
            logger.warning("harness failed for: %s (%s)", ref, e)
            outcome.error = str(e)
        except OSError as e:
            logger.warning("i/o error for: %s (%s)", ref, e)
            outcome.error = str(e)
        finally:
            if plain is not None:
                materializer.release(plain)
        return outcome

    def generate(self, plain_path: Path, slot: Path) -> None:
        """Run the analyzer on ``plain_path`` and store its compressed output at ``slot``."""
        with cache.staged_write(slot) as partial:
            with self.runner.run(plain_path) as stdout:
                codec.compress_stream(
                    stdout,
                    partial,
                    level=self.settings.zstd_level,
                    threads=self.settings.zstd_threads,
                )


def run_baseline(settings: Settings, *, force: bool = False) -> RunReport:
    """Convenience wrapper used by the CLI."""
    pipeline = BaselinePipeline.from_settings(settings, force=force)
    return pipeline.run()


__all__ = ["BaselinePipeline", "run_baseline"]
