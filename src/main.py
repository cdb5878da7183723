# src/main.py — v1
"""CLI entry point: run, file and stats commands.

Usage:
    batchrefiner run [-s START] [-e END] [-b BATCH] [--by-index]
    batchrefiner file <file_id>
    batchrefiner stats [log_dir]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from batchrefiner.config.settings import ConfigurationError, Settings
from batchrefiner.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = Settings()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    verbose = args.verbose or settings.verbose
    _setup_logging(verbose, settings)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except ConfigurationError as exc:
        logger.error("Batch refinement failed: %s", exc)
        return 1
    except Exception as exc:
        logger.error("Batch refinement failed: %s", exc, exc_info=verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser; unset options resolve against Settings at run time."""
    parser = argparse.ArgumentParser(
        prog="batchrefiner",
        description=f"batchrefiner v{__version__} - refine granted registry files in batches",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Refine a window of file ids")
    p_run.add_argument(
        "-s", "--start", type=int, default=None,
        help="Start file ID (default: MAX_FILE_ID)",
    )
    p_run.add_argument(
        "-e", "--end", type=int, default=1,
        help="End file ID (default: 1)",
    )
    p_run.add_argument(
        "-b", "--batch", type=int, default=None,
        help="Batch size (default: BATCH_SIZE)",
    )
    p_run.add_argument(
        "--by-index", action="store_true",
        help="Treat start/end as registry indexes and resolve them to file ids",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- file ---
    p_file = subparsers.add_parser("file", help="Refine a single file")
    p_file.add_argument("file_id", type=int, help="File ID")
    p_file.set_defaults(func=_cmd_file)

    # --- stats ---
    p_stats = subparsers.add_parser("stats", help="Show the last completed run")
    p_stats.add_argument(
        "log_dir", type=Path, nargs="?", default=None,
        help="Log directory (default: LOG_DIR)",
    )
    p_stats.set_defaults(func=_cmd_stats)

    return parser


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute a windowed batch run."""
    from batchrefiner.api.facade import run_refinement

    start = settings.max_file_id if args.start is None else args.start
    batch = settings.batch_size if args.batch is None else args.batch
    if batch <= 0:
        logger.error("Batch size must be positive, got %d", batch)
        return 1
    if start < args.end:
        logger.error("Start ID %d is below end ID %d", start, args.end)
        return 1

    stats = await run_refinement(
        start_id=start,
        end_id=args.end,
        batch_size=batch,
        settings=settings,
        by_index=args.by_index,
    )

    print("\nBatch complete:")
    print(f"  Total files:      {stats.total}")
    print(f"  Already refined:  {stats.already_refined}")
    print(f"  Processed:        {stats.processed}")
    print(f"  Success:          {stats.success}")
    print(f"  Failed:           {stats.failed}")
    return 0


async def _cmd_file(args: argparse.Namespace, settings: Settings) -> int:
    """Process a single file id."""
    from batchrefiner.api.facade import process_file

    outcome = await process_file(args.file_id, settings=settings)
    print(f"File {args.file_id}: {outcome.value}")
    return 0


async def _cmd_stats(args: argparse.Namespace, settings: Settings) -> int:
    """Print the most recent COMPLETE record."""
    from batchrefiner.tracking.stats_aggregator import last_complete_record

    log_dir: Path = args.log_dir or settings.log_dir
    if not log_dir.is_dir():
        logger.error("Not a directory: %s", log_dir)
        return 1

    record = last_complete_record(log_dir)
    if record is None:
        print(f"No completed run recorded in {log_dir}")
        return 1
    print(record)
    return 0


def _setup_logging(verbose: bool, settings: Settings) -> None:
    """Configure console output and the console.log transcript."""
    from batchrefiner.logging.logger import setup_logging

    setup_logging(
        verbose=verbose,
        log_dir=settings.log_dir,
        max_log_size=settings.max_log_size,
    )


if __name__ == "__main__":
    sys.exit(main())
