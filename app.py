"""
simcache: content-addressed baseline cache for simfile analysis.

    simcache [--force] gen       analyze every chart missing from the baseline
    simcache cleanup             prune packs to simfiles and compress them
    simcache check [FILTER]      confirm every .zst chart has a baseline
"""
import argparse
import signal
import sys
from pathlib import Path

from config import DEFAULT_PRESET, MATERIALIZE_MODES, PRESETS, Settings
from errors import PreconditionError
from log import configure_logging, get_logger
from packs import clean_packs
from pipeline import run_baseline
from verify import check_baselines, report, select_charts

logger = get_logger("app")


# ── Parser ─────────────────────────────────────────────────────────────────────

def _add_flag(parser, *names, suppress_default=False, help_text=None):
    kwargs = {"action": "store_true", "help": help_text}
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument(*names, **kwargs)


def _add_location_options(parser):
    parser.add_argument("--preset", choices=sorted(PRESETS), default=DEFAULT_PRESET,
                        help="Default locations and analyzer flavour (default: %(default)s).")
    parser.add_argument("--packs-dir", type=Path, help="Root of the chart packs (env PACKS_DIR).")
    parser.add_argument("--baseline-dir", type=Path, help="Cache root (env BASELINE_DIR).")
    parser.add_argument("--suffix", dest="artifact_suffix",
                        help="Artifact suffix, e.g. json.zst (env ARTIFACT_SUFFIX).")


def _add_zstd_options(parser):
    parser.add_argument("--level", dest="zstd_level", type=int,
                        help="zstd compression level (env ZSTD_LEVEL, default 10).")
    parser.add_argument("--threads", dest="zstd_threads", type=int,
                        help="zstd worker threads, 0 = all cores (env ZSTD_THREADS).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simcache",
        description="Generate and maintain a content-addressed baseline cache for simfiles.",
    )
    _add_flag(parser, "-v", "--verbose", help_text="Log digests and analyzer stderr.")
    parser.add_argument("--log-file", type=Path, help="Also write the log to this file.")
    _add_flag(parser, "--force", help_text="Regenerate artifacts even if their slot exists.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("gen", help="Generate missing baseline artifacts.")
    _add_flag(gen, "-v", "--verbose", suppress_default=True, help_text="Log digests and analyzer stderr.")
    _add_flag(gen, "--force", suppress_default=True,
              help_text="Regenerate artifacts even if their slot exists.")
    _add_flag(gen, "--strict", help_text="Exit 1 if any chart failed (env SIMCACHE_STRICT=1).")
    _add_location_options(gen)
    gen.add_argument("--analyzer", dest="analyzer_bin",
                     help="Analyzer executable (env HARNESS_BIN / RSSP_BIN).")
    gen.add_argument("--mode", dest="materialize_mode", choices=MATERIALIZE_MODES,
                     help="Where decompressed charts are placed (env MATERIALIZE_MODE).")
    _add_zstd_options(gen)

    cleanup = subparsers.add_parser("cleanup", help="Prune non-simfiles and compress loose charts.")
    _add_flag(cleanup, "-v", "--verbose", suppress_default=True, help_text="Verbose logging.")
    _add_flag(cleanup, "--dry-run", help_text="Only print what would be deleted or compressed.")
    cleanup.add_argument("--packs-dir", type=Path, help="Root of the chart packs (env PACKS_DIR).")
    _add_zstd_options(cleanup)

    check = subparsers.add_parser("check", help="Check that every .zst chart has a baseline.")
    _add_flag(check, "-v", "--verbose", suppress_default=True, help_text="Verbose logging.")
    check.add_argument("filter", nargs="?", help="Only check charts whose name contains FILTER.")
    _add_flag(check, "--exact", help_text="Match FILTER against the whole name.")
    _add_flag(check, "--list", help_text="List the selected charts and exit.")
    _add_location_options(check)

    return parser


# ── Commands ───────────────────────────────────────────────────────────────────

def _settings(args) -> Settings:
    settings = Settings.from_env(preset=getattr(args, "preset", DEFAULT_PRESET))
    return settings.replace(
        packs_dir=getattr(args, "packs_dir", None),
        baseline_dir=getattr(args, "baseline_dir", None),
        artifact_suffix=getattr(args, "artifact_suffix", None),
        analyzer_bin=getattr(args, "analyzer_bin", None),
        materialize_mode=getattr(args, "materialize_mode", None),
        zstd_level=getattr(args, "zstd_level", None),
        zstd_threads=getattr(args, "zstd_threads", None),
    )


def cmd_gen(args) -> int:
    settings = _settings(args)
    result = run_baseline(settings, force=bool(args.force))
    return result.exit_code(strict=bool(args.strict) or settings.strict)


def cmd_cleanup(args) -> int:
    settings = _settings(args)
    result = clean_packs(
        settings.packs_dir,
        level=settings.zstd_level,
        threads=settings.zstd_threads,
        dry_run=bool(args.dry_run),
    )
    logger.info(
        "done: %d deleted, %d compressed, %d skipped, %d failed",
        len(result.deleted), len(result.compressed), len(result.skipped), len(result.failed),
    )
    return 0


def cmd_check(args) -> int:
    settings = _settings(args)
    if not settings.packs_dir.is_dir():
        raise PreconditionError(f"PACKS_DIR not found or not a directory: {settings.packs_dir}")
    if args.list:
        for name, _ref in select_charts(settings.packs_dir, args.filter, args.exact):
            print(name)
        return 0
    results = check_baselines(
        settings.packs_dir,
        settings.baseline_dir,
        settings.artifact_suffix,
        name_filter=args.filter,
        exact=bool(args.exact),
    )
    return report(results)


COMMANDS = {"gen": cmd_gen, "cleanup": cmd_cleanup, "check": cmd_check}


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    # SIGTERM takes the same unwinding path as Ctrl-C so transient files go away
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        return COMMANDS[args.command](args)
    except PreconditionError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130
    finally:
        signal.signal(signal.SIGTERM, previous)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
