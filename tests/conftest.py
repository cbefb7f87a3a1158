"""Shared fixtures for the conversion service test suite.

Real PDFs are generated on the fly with PyMuPDF; the scripted renderer and
the recording mailer let retry, quarantine and reporting paths run
without delays or a mail relay.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Callable

import fitz
import pytest

from pdf2images import CancellationToken, Materializer, PdfConverter, RunReporter

# ---------------------------------------------------------------------------
# Configure verbose logging for test debugging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
    force=True,
)
log = logging.getLogger("conftest")


def write_pdf(path: Path, pages: int = 1) -> Path:
    """Write a small real PDF with *pages* numbered pages."""
    path.parent.mkdir(parents=True, exist_ok=True)
    doc = fitz.open()
    for number in range(1, pages + 1):
        page = doc.new_page(width=595, height=842)
        page.insert_text((72, 72), f"Page {number}", fontsize=24)
    doc.save(str(path))
    doc.close()
    return path


def write_fake_pdf(path: Path, content: bytes = b"%PDF-1.7\nfake body") -> Path:
    """A file that passes the header check; the scripted renderer never parses it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingToken(CancellationToken):
    """Token whose sleeps are recorded instead of waited."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.sleeps: list[float] = []

    def sleep(self, seconds: float) -> None:
        self.check()
        self.sleeps.append(seconds)


class ScriptedRenderer:
    """Page renderer driven by per-file scripts.

    ``page_counts`` maps file names to page counts (default 1).
    ``count_errors`` / ``render_errors`` map a file name (or
    ``(name, page_index)``) to a list of exceptions raised by successive
    calls before the call succeeds.
    """

    def __init__(
        self,
        page_counts: dict[str, int] | None = None,
        count_errors: dict[str, list[BaseException]] | None = None,
        render_errors: dict[tuple[str, int], list[BaseException]] | None = None,
        on_render: Callable[[Path, int], None] | None = None,
    ) -> None:
        self.page_counts = page_counts or {}
        self.count_errors = {k: list(v) for k, v in (count_errors or {}).items()}
        self.render_errors = {k: list(v) for k, v in (render_errors or {}).items()}
        self.on_render = on_render
        self.count_calls: list[str] = []
        self.render_calls: list[tuple[str, int]] = []

    def page_count(self, pdf_path: Path) -> int:
        self.count_calls.append(pdf_path.name)
        errors = self.count_errors.get(pdf_path.name)
        if errors:
            raise errors.pop(0)
        return self.page_counts.get(pdf_path.name, 1)

    def render_page(self, pdf_path, page_index, output_path, options):
        self.render_calls.append((pdf_path.name, page_index))
        if self.on_render is not None:
            self.on_render(pdf_path, page_index)
        errors = self.render_errors.get((pdf_path.name, page_index))
        if errors:
            raise errors.pop(0)
        output_path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
        return output_path


class CountingMaterializer(Materializer):
    def __init__(self) -> None:
        super().__init__(base_delay_s=0, settle_delay_s=0)
        self.calls: list[Path] = []

    def ensure_available(self, path, token) -> bool:
        self.calls.append(path)
        return True


class RecordingMailer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def send(self, subject: str, html_body: str) -> None:
        if self.fail:
            raise ConnectionRefusedError("relay unavailable")
        self.sent.append((subject, html_body))

    @property
    def subjects(self) -> list[str]:
        return [subject for subject, _ in self.sent]


def make_converter(renderer=None, materializer=None, **kwargs) -> PdfConverter:
    return PdfConverter(
        renderer,
        materializer or CountingMaterializer(),
        read_retry_delay_s=0,
        format_retry_delay_s=0,
        page_retry_delay_s=0,
        page_pause_s=0,
        **kwargs,
    )


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def reporter(mailer) -> RunReporter:
    return RunReporter(mailer)


@pytest.fixture
def input_root(tmp_path: Path) -> Path:
    root = tmp_path / "onedrive"
    root.mkdir()
    return root
