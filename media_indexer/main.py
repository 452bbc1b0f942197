import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import config
from .config import ScanConfig
from .core import MediaIndexerApp
from .exceptions import IndexUnavailableError
from .progress import ConsoleProgress, JsonLinesPrinter, ProgressChannel, ProgressReporter
from .reporting import ReportGenerator

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_SCAN_ERRORS = 2


def setup_logging(verbose: bool, log_file: Optional[Path] = None):
    """Sets up logging to stderr and, optionally, a log file."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # stdout is reserved for scan output
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers,
        force=True,
    )


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="media-indexer",
        description="Media Indexer: incremental scanner for large media libraries",
    )
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("scan", help="Scan one or more directories")
    s.add_argument("-r", "--root", dest="roots", type=Path, action="append", required=True,
                   help="Directory to scan (repeatable)")
    s.add_argument("-t", "--threads", type=int, default=0, help="Worker threads (0 = auto)")
    s.add_argument("-b", "--batch-size", type=int, default=config.DEFAULT_BATCH_SIZE,
                   help="Files per worker batch and per insert chunk")
    s.add_argument("-d", "--db", type=Path, default=Path(config.DEFAULT_DB_NAME),
                   help=f"Index database path (default: {config.DEFAULT_DB_NAME})")
    s.add_argument("-i", "--incremental", action="store_true",
                   help="Compare against the index and report only changes")

    fmt = s.add_mutually_exclusive_group()
    fmt.add_argument("--json", dest="fmt", action="store_const", const="json",
                     help="Pretty JSON grouped by directory")
    fmt.add_argument("--ndjson", dest="fmt", action="store_const", const="ndjson",
                     help="One JSON line per file")
    fmt.add_argument("--compact", dest="fmt", action="store_const", const="compact",
                     help="One JSON line per directory with abbreviated keys")
    s.set_defaults(fmt="text")

    s.add_argument("-o", "--output", type=Path, default=None, help="Write results to a file instead of stdout")
    s.add_argument("--no-hash", action="store_true", help="Skip content hashing")
    s.add_argument("--no-recursive", action="store_true", help="Only scan the roots' direct children")
    s.add_argument("--max-depth", type=int, default=config.DEFAULT_MAX_DEPTH, help="Maximum directory depth")
    s.add_argument("--ext", nargs="+", default=None, metavar="EXT",
                   help="Only index these extensions (default: all media types)")
    s.add_argument("--ignore-dir", nargs="+", default=[], metavar="NAME",
                   help="Additional directory names to skip")

    progress = s.add_mutually_exclusive_group()
    progress.add_argument("-p", "--progress", action="store_true", help="Emit JSON progress events on stderr")
    progress.add_argument("--console", action="store_true", help="Show a progress bar on stderr")

    s.add_argument("--require-db", action="store_true",
                   help="Fail instead of running an ephemeral scan when the index cannot be opened")
    s.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    s.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")

    return p.parse_args(argv)


def build_config(args) -> ScanConfig:
    extensions = args.ext if args.ext is not None else config.MEDIA_EXTS
    return ScanConfig(
        roots=tuple(args.roots),
        extensions=extensions,
        ignore_dirs=config.DEFAULT_IGNORE_DIRS | frozenset(args.ignore_dir),
        compute_hash=not args.no_hash,
        num_threads=args.threads,
        batch_size=args.batch_size,
        recursive=not args.no_recursive,
        max_depth=args.max_depth,
        db_path=args.db,
    )


def run_scan(args) -> int:
    scan_config = build_config(args)

    logging.info("=== Media Indexer scan started ===")
    logging.info(f"Roots: {', '.join(str(r) for r in scan_config.roots)}")
    logging.info(f"Threads: {args.threads or 'auto'}, batch size: {scan_config.batch_size}")
    logging.info(f"Incremental: {args.incremental}, recursive: {scan_config.recursive}, "
                 f"max depth: {scan_config.max_depth}")

    # Progress consumer runs on its own thread
    consumer = None
    reporter = ProgressReporter.disabled()
    if args.progress or args.console:
        channel = ProgressChannel()
        reporter = ProgressReporter(interval_ms=scan_config.progress_interval_ms, channel=channel)
        consumer = JsonLinesPrinter(channel) if args.progress else ConsoleProgress(channel)
        consumer.start()

    app = MediaIndexerApp(args.db, require_index=args.require_db)
    try:
        result = app.scan(scan_config, incremental=args.incremental, reporter=reporter)
    except IndexUnavailableError as e:
        logging.error(f"Index database required but unavailable: {e}")
        return EXIT_FATAL
    finally:
        if consumer is not None:
            reporter.channel.close()
            consumer.join()

    report = ReportGenerator(result)
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                report.write(f, args.fmt)
        except OSError as e:
            logging.error(f"Cannot write output file {args.output}: {e}")
            return EXIT_FATAL
        logging.info(f"Results saved to: {args.output}")
    else:
        report.write(sys.stdout, args.fmt)

    if not result.is_success():
        logging.warning(f"Scan completed with {result.error_count} error(s)")
        return EXIT_SCAN_ERRORS
    return EXIT_OK


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    try:
        if args.command == "scan":
            return run_scan(args)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        return EXIT_FATAL
    except Exception:
        logging.exception("Fatal error during scan.")
        return EXIT_FATAL
    return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
