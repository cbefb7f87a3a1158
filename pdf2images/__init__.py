"""PDF -> JPEG batch conversion service for cloud-synced folder trees.

Public API -- all symbols that tests and external code import live here.
Internally the code is split across focused submodules; this file
re-exports the stable public surface so ``from pdf2images import X`` works.
"""

from .batch import BatchOrchestrator
from .cancellation import CancellationToken
from .conversion import PdfConverter
from .errors import (
    ArchiveError,
    ConfigurationError,
    FileQuarantinedError,
    FileTimeoutError,
    OperationCancelled,
    PageRenderError,
    Pdf2ImagesError,
    PdfFormatError,
    RunAborted,
    RunTimeoutError,
)
from .models import (
    ConversionResult,
    DirectoryStats,
    QuarantineRecord,
    RunSummary,
    WorkItem,
)
from .rendering import PageRenderer, PyMuPDFRenderer, RenderOptions, is_format_error
from .reporting import (
    RunReporter,
    SmtpMailer,
    render_error_html,
    render_fatal_html,
    render_summary_html,
)
from .retry import RetryPolicy, call_with_retry, fixed_delay, linear_backoff
from .scheduler import ServiceLoop
from .settings import Settings, SmtpSettings, get_settings, load_settings
from .sources import Materializer, discover_pdfs, discover_work_items, is_excluded, is_placeholder
from .storage import move_to_archive, move_to_quarantine, unique_destination
from .utils import (
    ARCHIVE_DIR_NAME,
    QUARANTINE_DIR_NAME,
    RESERVED_DIR_NAME,
    TEMPLATE_MARKER,
    ensure_reserved_dirs,
    relative_dir,
)
from .validation import PDF_MAGIC, is_valid_pdf

__all__ = [
    # Models
    "WorkItem",
    "DirectoryStats",
    "RunSummary",
    "QuarantineRecord",
    "ConversionResult",
    # Errors
    "Pdf2ImagesError",
    "ConfigurationError",
    "PdfFormatError",
    "FileQuarantinedError",
    "PageRenderError",
    "ArchiveError",
    "FileTimeoutError",
    "RunAborted",
    "OperationCancelled",
    "RunTimeoutError",
    # Constants
    "ARCHIVE_DIR_NAME",
    "RESERVED_DIR_NAME",
    "QUARANTINE_DIR_NAME",
    "TEMPLATE_MARKER",
    "PDF_MAGIC",
    # Utils
    "ensure_reserved_dirs",
    "relative_dir",
    "CancellationToken",
    "RetryPolicy",
    "call_with_retry",
    "linear_backoff",
    "fixed_delay",
    # Sources
    "discover_pdfs",
    "discover_work_items",
    "is_excluded",
    "is_placeholder",
    "Materializer",
    # Validation / rendering / storage
    "is_valid_pdf",
    "RenderOptions",
    "PageRenderer",
    "PyMuPDFRenderer",
    "is_format_error",
    "unique_destination",
    "move_to_archive",
    "move_to_quarantine",
    # Conversion and orchestration
    "PdfConverter",
    "BatchOrchestrator",
    "ServiceLoop",
    # Reporting
    "RunReporter",
    "SmtpMailer",
    "render_summary_html",
    "render_error_html",
    "render_fatal_html",
    # Settings
    "Settings",
    "SmtpSettings",
    "get_settings",
    "load_settings",
]
