"""Batch orchestration over every candidate PDF under the input root."""

from __future__ import annotations

import gc
import logging
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .cancellation import CancellationToken
from .conversion import PdfConverter
from .errors import ArchiveError, FileTimeoutError, RunAborted
from .models import RunSummary, WorkItem
from .reporting import RunReporter
from .sources import discover_work_items
from .utils import (
    DEFAULT_BATCH_PAUSE_S,
    DEFAULT_BATCH_SIZE,
    DEFAULT_FILE_TIMEOUT_S,
    GC_EVERY_N_FILES,
    batched,
    ensure_reserved_dirs,
)

log = logging.getLogger(__name__)


class BatchOrchestrator:
    """Runs one pass: enumerate, convert batch by batch, report once.

    Files are processed strictly one after another. Per-file failures and
    timeouts are recorded and reported and the batch continues; a stop
    request, the run timeout or an archive failure ends the run. The
    summary is attempted exactly once, however the run ends.
    """

    def __init__(
        self,
        root: Path,
        converter: PdfConverter,
        reporter: RunReporter,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        file_timeout_s: Optional[float] = DEFAULT_FILE_TIMEOUT_S,
        batch_pause_s: float = DEFAULT_BATCH_PAUSE_S,
        gc_every: int = GC_EVERY_N_FILES,
        show_progress: bool = True,
    ) -> None:
        self.root = Path(root)
        self.converter = converter
        self.reporter = reporter
        self.batch_size = max(1, batch_size)
        self.file_timeout_s = file_timeout_s
        self.batch_pause_s = batch_pause_s
        self.gc_every = gc_every
        self.show_progress = show_progress

    def run(self, token: Optional[CancellationToken] = None) -> RunSummary:
        token = token or CancellationToken.none()
        summary = RunSummary(root=self.root)
        log.info("Starting PDF conversion task under %s", self.root)

        try:
            items = discover_work_items(self.root)
            for item in items:
                summary.add_item(item)
            log.info("Found %s PDF files to process", len(items))

            batches = batched(items, self.batch_size)
            processed = 0
            for batch_no, batch in enumerate(batches, start=1):
                token.check()
                log.info(
                    "Processing batch %s of %s (%s files)",
                    batch_no,
                    len(batches),
                    len(batch),
                )
                for item in tqdm(
                    batch,
                    desc=f"Batch {batch_no}/{len(batches)}",
                    unit="pdf",
                    disable=not self.show_progress,
                ):
                    token.check()
                    self.process_item(item, summary, token)
                    processed += 1
                    if self.gc_every and processed % self.gc_every == 0:
                        gc.collect()

                if batch_no < len(batches):
                    token.pause(self.batch_pause_s)
        except RunAborted as exc:
            summary.aborted = f"{type(exc).__name__}: {exc}"
            log.warning("PDF processing was aborted: %s", exc)
            raise
        except Exception:
            log.exception("Unexpected error during PDF batch processing")
            raise
        finally:
            summary.finish()
            self._log_summary(summary)
            # Always try to report, even if processing was interrupted.
            self.reporter.send_summary(summary)

        return summary

    def process_item(
        self,
        item: WorkItem,
        summary: RunSummary,
        token: CancellationToken,
    ) -> None:
        """Convert one file and fold the outcome into *summary*."""
        file_token = token.derive(self.file_timeout_s, FileTimeoutError)
        try:
            ensure_reserved_dirs(item.directory)
            result = self.converter.convert(item, file_token)
        except RunAborted:
            log.warning("Processing of %s was aborted", item.path)
            raise
        except FileTimeoutError as exc:
            self._fail(item, summary, exc, f"Processing of {item.path} timed out after {self._timeout_text()}")
        except ArchiveError as exc:
            self._fail(item, summary, exc, f"Error processing file {item.path}: {exc}")
            raise
        except Exception as exc:
            self._fail(item, summary, exc, f"Error processing file {item.path}: {exc}")
        else:
            summary.record_success(item, result.pages_converted)
            log.info(
                "Converted %s: %s pages in %ss",
                item.path.name,
                result.pages_converted,
                result.conversion_time_s,
            )

    def _fail(
        self,
        item: WorkItem,
        summary: RunSummary,
        error: BaseException,
        message: str,
    ) -> None:
        log.error(message, exc_info=not isinstance(error, FileTimeoutError))
        summary.record_failure(item, message)
        self.reporter.notify_error(item.path, error)

    def _timeout_text(self) -> str:
        seconds = self.file_timeout_s or 0
        if seconds >= 60 and seconds % 60 == 0:
            minutes = int(seconds // 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''}"
        return f"{seconds:g} seconds"

    @staticmethod
    def _log_summary(summary: RunSummary) -> None:
        log.info("=" * 60)
        log.info("RUN COMPLETE" if not summary.aborted else "RUN ABORTED")
        log.info(f"  PDFs discovered: {summary.total_count}")
        log.info(f"  Succeeded:       {summary.success_count}")
        log.info(f"  Failed:          {summary.failed_count}")
        log.info(f"  Pages converted: {summary.total_pages}")
        log.info(f"  Total runtime:   {summary.duration_s:.1f}s")
        if summary.error_messages:
            log.warning("Failed files:")
            for message in summary.error_messages:
                log.warning(f"  - {message[:200]}")
