"""CLI entrypoint for the PDF -> JPEG conversion service.

Usage:
    python -m pdf2images --once
    python -m pdf2images --source-dir "D:/OneDrive/Drawings" --once
    python -m pdf2images --interval-hours 2 --run-timeout-hours 4
    python -m pdf2images --once --batch-size 5 --detailed-logging
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CANCELLED = 130


def _setup_logging(
    *,
    verbose: bool,
    detailed_logging: bool,
    log_file: Optional[Path],
) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    root_level = logging.DEBUG if verbose else logging.INFO
    root_logger.setLevel(logging.DEBUG if log_file is not None else root_level)

    console_fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    detailed_fmt = (
        "%(asctime)s | %(levelname)-8s | %(name)s | "
        "%(threadName)s | %(filename)s:%(lineno)d | %(message)s"
    )
    formatter = logging.Formatter(
        detailed_fmt if detailed_logging else console_fmt,
        "%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(root_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=10,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(detailed_fmt, "%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)

    logging.getLogger("PIL").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments. Unset options fall back to settings."""
    parser = argparse.ArgumentParser(
        description="Convert PDFs under a folder tree to JPEG pages, archive the sources and mail a summary"
    )
    parser.add_argument(
        "--source-dir",
        type=Path,
        default=None,
        help="Input root scanned for *.pdf (default: PDF2IMAGES_SOURCE_PATH)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit instead of running as a service",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Files per batch (default: 10)",
    )
    parser.add_argument(
        "--file-timeout",
        type=float,
        default=None,
        help="Per-file timeout in seconds (default: 300)",
    )
    parser.add_argument(
        "--batch-pause",
        type=float,
        default=None,
        help="Pause between batches in seconds (default: 10)",
    )
    parser.add_argument(
        "--interval-hours",
        type=float,
        default=None,
        help="Hours between service runs (default: 2)",
    )
    parser.add_argument(
        "--run-timeout-hours",
        type=float,
        default=None,
        help="Upper bound on one run in hours (default: 4)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file with settings",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Rotating log file (default: logs/pdf2images.log)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--detailed-logging",
        action="store_true",
        help="Enable detailed console logging (thread, file/line)",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable the per-batch progress bar",
    )
    return parser.parse_args(argv)


def _pick(cli_value, setting):
    return setting if cli_value is None else cli_value


def _install_signal_handlers(stop_event: threading.Event) -> dict:
    """Route SIGINT/SIGTERM to *stop_event*; returns the previous handlers."""

    def _handle(signum, _frame):
        log.warning("Received signal %s, stopping after the current step", signum)
        stop_event.set()

    previous: dict = {}
    if threading.current_thread() is not threading.main_thread():
        return previous
    for signame in ("SIGINT", "SIGTERM"):
        signum = getattr(signal, signame, None)
        if signum is not None:
            previous[signum] = signal.signal(signum, _handle)
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def build_reporter(settings):
    from .reporting import RunReporter, SmtpMailer

    return RunReporter(
        SmtpMailer(settings.smtp),
        summary_on_total_failure=settings.summary_on_total_failure,
    )


def run(args: argparse.Namespace, reporter, settings) -> int:
    """Wire the components and run once or as a service."""
    from .batch import BatchOrchestrator
    from .conversion import PdfConverter
    from .errors import ConfigurationError

    source = _pick(args.source_dir, settings.source_path)
    if source is None:
        raise ConfigurationError(
            "Please set PDF2IMAGES_SOURCE_PATH or pass --source-dir"
        )
    source = Path(source)
    if not source.is_dir():
        raise ConfigurationError(f"Source directory does not exist: {source}")

    orchestrator = BatchOrchestrator(
        source,
        PdfConverter(),
        reporter,
        batch_size=_pick(args.batch_size, settings.batch_size),
        file_timeout_s=_pick(args.file_timeout, settings.file_timeout_s),
        batch_pause_s=_pick(args.batch_pause, settings.batch_pause_s),
        show_progress=not args.no_progress,
    )
    run_timeout_s = _pick(args.run_timeout_hours, settings.run_timeout_hours) * 3600
    interval_s = _pick(args.interval_hours, settings.interval_hours) * 3600

    stop_event = threading.Event()
    previous_handlers = _install_signal_handlers(stop_event)
    try:
        return _dispatch(args, orchestrator, stop_event, interval_s, run_timeout_s, reporter)
    finally:
        _restore_signal_handlers(previous_handlers)


def _dispatch(args, orchestrator, stop_event, interval_s, run_timeout_s, reporter) -> int:
    from .cancellation import CancellationToken
    from .errors import OperationCancelled, RunTimeoutError
    from .scheduler import ServiceLoop

    log.info(
        "Runtime: source=%s batch_size=%s file_timeout=%ss run_timeout=%.1fh",
        orchestrator.root,
        orchestrator.batch_size,
        orchestrator.file_timeout_s,
        run_timeout_s / 3600,
    )

    if args.once:
        token = CancellationToken(stop_event, run_timeout_s, timeout_error=RunTimeoutError)
        try:
            orchestrator.run(token)
        except OperationCancelled:
            log.warning("Run cancelled")
            return EXIT_CANCELLED
        except RunTimeoutError:
            log.warning("Run abandoned after %.1fh timeout", run_timeout_s / 3600)
        return EXIT_OK

    loop = ServiceLoop(
        orchestrator.run,
        stop_event=stop_event,
        interval_s=interval_s,
        run_timeout_s=run_timeout_s,
        reporter=reporter,
    )
    loop.serve_forever()
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Supervisory boundary: nothing escapes without a log line and a mail attempt."""
    from .settings import get_settings

    args = parse_args(argv)
    reporter = None
    try:
        settings = get_settings(args.env_file)
        _setup_logging(
            verbose=args.verbose,
            detailed_logging=args.detailed_logging,
            log_file=args.log_file or settings.log_file,
        )
        reporter = build_reporter(settings)
        return run(args, reporter, settings)
    except Exception as exc:
        log.critical("Unhandled error, exiting: %s", exc, exc_info=True)
        if reporter is not None:
            reporter.notify_fatal(exc, "Application Error")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
