"""Single-file conversion: materialize, validate, render every page, archive."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import NoReturn, Optional

from .cancellation import CancellationToken
from .errors import FileQuarantinedError, PageRenderError, PdfFormatError
from .models import ConversionResult, WorkItem
from .rendering import PageRenderer, PyMuPDFRenderer, RenderOptions, is_format_error
from .retry import RetryPolicy, call_with_retry, fixed_delay
from .sources import Materializer
from .storage import move_to_archive, move_to_quarantine
from .validation import is_valid_pdf

log = logging.getLogger(__name__)

MAX_READ_ATTEMPTS = 3
MAX_PAGE_ATTEMPTS = 2
PAUSE_EVERY_N_PAGES = 5


class PdfConverter:
    """Converts one PDF into ``<name>-<n>.jpeg`` images next to it.

    ``convert`` returns a ConversionResult on success. Terminal failures
    are raised: FileQuarantinedError after the file was moved to
    ``.broken``, ArchiveError if the converted file could not be archived,
    FileTimeoutError / RunAborted from the token, anything else as-is.
    """

    def __init__(
        self,
        renderer: Optional[PageRenderer] = None,
        materializer: Optional[Materializer] = None,
        *,
        options: Optional[RenderOptions] = None,
        read_retry_delay_s: float = 1.0,
        format_retry_delay_s: float = 2.0,
        page_retry_delay_s: float = 0.5,
        page_pause_s: float = 0.1,
        remove_partial_images: bool = True,
    ) -> None:
        self.renderer = renderer or PyMuPDFRenderer()
        self.materializer = materializer or Materializer()
        self.options = options or RenderOptions()
        self.read_retry_delay_s = read_retry_delay_s
        self.format_retry_delay_s = format_retry_delay_s
        self.page_retry_delay_s = page_retry_delay_s
        self.page_pause_s = page_pause_s
        self.remove_partial_images = remove_partial_images

    # ------------------------------------------------------------------
    # Retry policies
    # ------------------------------------------------------------------

    def _read_policy(self, item: WorkItem, token: CancellationToken) -> RetryPolicy:
        def delay(attempt: int, exc: BaseException) -> float:
            base = self.format_retry_delay_s if is_format_error(exc) else self.read_retry_delay_s
            return base * attempt

        def before_retry(exc: BaseException) -> None:
            if is_format_error(exc):
                self.materializer.ensure_available(item.path, token)

        return RetryPolicy(
            max_attempts=MAX_READ_ATTEMPTS,
            delay=delay,
            retry_on=lambda exc: isinstance(exc, OSError) or is_format_error(exc),
            before_retry=before_retry,
        )

    def _page_policy(self, item: WorkItem, token: CancellationToken) -> RetryPolicy:
        def before_retry(exc: BaseException) -> None:
            if is_format_error(exc):
                self.materializer.ensure_available(item.path, token)

        return RetryPolicy(
            max_attempts=MAX_PAGE_ATTEMPTS,
            delay=fixed_delay(self.page_retry_delay_s),
            before_retry=before_retry,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _read_page_count_once(self, path: Path) -> int:
        if not is_valid_pdf(path):
            raise PdfFormatError(f"File is not a valid PDF format: {path}")
        return self.renderer.page_count(path)

    def read_page_count(self, item: WorkItem, token: CancellationToken) -> int:
        """Page count with retries; quarantines the file on persistent format errors."""
        try:
            page_count = call_with_retry(
                self._read_page_count_once,
                self._read_policy(item, token),
                token,
                item.path,
                label=f"Reading page count of {item.path.name}",
            )
        except Exception as exc:
            if not is_format_error(exc):
                raise
            self._quarantine(
                item,
                f"Invalid PDF format after {MAX_READ_ATTEMPTS} attempts: {exc}",
                cause=exc,
            )
        if page_count <= 0:
            self._quarantine(item, f"Zero page count after {MAX_READ_ATTEMPTS} attempts")
        return page_count

    def render_page(self, item: WorkItem, page_index: int, token: CancellationToken) -> Path:
        output_path = item.image_path(page_index + 1)
        try:
            return call_with_retry(
                self.renderer.render_page,
                self._page_policy(item, token),
                token,
                item.path,
                page_index,
                output_path,
                self.options,
                label=f"Rendering page {page_index + 1} of {item.path.name}",
            )
        except Exception as exc:
            if is_format_error(exc):
                raise PdfFormatError(
                    f"PDF format error during page processing: {exc}"
                ) from exc
            if isinstance(exc, (OSError, RuntimeError, ValueError)):
                raise PageRenderError(
                    f"Failed to process page {page_index + 1} after retries: {exc}"
                ) from exc
            raise

    def _quarantine(
        self,
        item: WorkItem,
        reason: str,
        *,
        cause: Optional[BaseException] = None,
        images: Optional[list[Path]] = None,
    ) -> NoReturn:
        if images and self.remove_partial_images:
            for image in images:
                image.unlink(missing_ok=True)
            log.info("Removed %s partial image(s) for %s", len(images), item.path.name)
        destination = move_to_quarantine(item.path, reason)
        if destination is None:
            raise PdfFormatError(f"{reason} (quarantine move failed)") from cause
        raise FileQuarantinedError(reason, destination) from cause

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def convert(self, item: WorkItem, token: CancellationToken) -> ConversionResult:
        t0 = time.perf_counter()
        log.info("Started processing: %s", item.path)

        self.materializer.ensure_available(item.path, token)
        page_count = self.read_page_count(item, token)

        images: list[Path] = []
        for page_index in range(page_count):
            token.check()
            try:
                images.append(self.render_page(item, page_index, token))
            except PdfFormatError as exc:
                partial = [*images, item.image_path(page_index + 1)]
                self._quarantine(item, str(exc), cause=exc.__cause__, images=partial)

            if page_index % PAUSE_EVERY_N_PAGES == 0 and page_index > 0:
                token.pause(self.page_pause_s)

        log.info("Successfully processed %s, total %s pages", item.path, page_count)
        archived = move_to_archive(item.path)

        return ConversionResult(
            item=item,
            pages_converted=page_count,
            archived_path=archived,
            images=images,
            conversion_time_s=round(time.perf_counter() - t0, 2),
        )
