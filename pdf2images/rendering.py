"""Page counting and page-to-JPEG rendering on top of PyMuPDF."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import fitz  # PyMuPDF
from PIL import Image

from .errors import PdfFormatError

log = logging.getLogger(__name__)

FORMAT_ERROR_MARKERS = ("not in pdf format", "corrupted", "broken", "format error")


@dataclass(frozen=True)
class RenderOptions:
    """Fixed rendering settings applied to every page.

    With ``height`` set the page is scaled to that many pixels; the width
    follows the page aspect ratio when ``keep_aspect_ratio`` is on, else it
    is rendered at ``dpi``. ``dpi`` is always stored in the JPEG header.
    """

    dpi: int = 150
    height: int | None = 1200
    with_annotations: bool = True
    with_form_fill: bool = True
    keep_aspect_ratio: bool = True
    jpeg_quality: int = 90


class PageRenderer(Protocol):
    def page_count(self, pdf_path: Path) -> int: ...

    def render_page(
        self,
        pdf_path: Path,
        page_index: int,
        output_path: Path,
        options: RenderOptions,
    ) -> Path: ...


def is_format_error(exc: BaseException) -> bool:
    """True when *exc* says the file is not (or not yet) a readable PDF."""
    if isinstance(exc, (PdfFormatError, fitz.FileDataError, fitz.EmptyFileError)):
        return True
    if isinstance(exc, OSError):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in FORMAT_ERROR_MARKERS)


def _scale(page: fitz.Page, options: RenderOptions) -> tuple[float, float]:
    dpi_zoom = max(options.dpi, 1) / 72.0
    if not options.height or page.rect.height <= 0:
        return dpi_zoom, dpi_zoom
    zoom_y = options.height / page.rect.height
    zoom_x = zoom_y if options.keep_aspect_ratio else dpi_zoom
    return zoom_x, zoom_y


class PyMuPDFRenderer:
    """Default renderer. Each call opens the document and releases it on return."""

    def page_count(self, pdf_path: Path) -> int:
        with fitz.open(str(pdf_path), filetype="pdf") as doc:
            if not doc.is_pdf:
                raise PdfFormatError(f"File not in PDF format: {pdf_path}")
            return doc.page_count

    def render_page(
        self,
        pdf_path: Path,
        page_index: int,
        output_path: Path,
        options: RenderOptions,
    ) -> Path:
        with fitz.open(str(pdf_path), filetype="pdf") as doc:
            page = doc.load_page(page_index)
            zoom_x, zoom_y = _scale(page, options)
            # Form fields are widget annotations; MuPDF draws both or neither.
            draw_annots = options.with_annotations or options.with_form_fill
            pix = page.get_pixmap(
                matrix=fitz.Matrix(zoom_x, zoom_y),
                colorspace=fitz.csRGB,
                alpha=False,
                annots=draw_annots,
            )
            with Image.frombytes("RGB", (pix.width, pix.height), pix.samples) as image:
                image.save(
                    output_path,
                    "JPEG",
                    quality=options.jpeg_quality,
                    dpi=(options.dpi, options.dpi),
                )
            del pix
        log.debug("Rendered %s page %s -> %s", pdf_path.name, page_index + 1, output_path.name)
        return output_path
