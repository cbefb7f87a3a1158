"""Exception taxonomy for the conversion service."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class Pdf2ImagesError(Exception):
    """Base class for all service errors."""


class ConfigurationError(Pdf2ImagesError):
    """Missing or invalid settings."""


class PdfFormatError(Pdf2ImagesError, ValueError):
    """The file is not (yet) a readable PDF."""


class FileQuarantinedError(Pdf2ImagesError):
    """The file was moved to the quarantine folder."""

    def __init__(self, reason: str, destination: Optional[Path] = None) -> None:
        super().__init__(f"File moved to .broken directory. {reason}")
        self.reason = reason
        self.destination = destination


class PageRenderError(Pdf2ImagesError):
    """A page could not be rendered after its retry."""


class ArchiveError(Pdf2ImagesError):
    """A converted file could not be moved into the archive folder."""


class FileTimeoutError(Pdf2ImagesError):
    """The per-file deadline expired."""


class RunAborted(Pdf2ImagesError):
    """The whole run must stop."""


class OperationCancelled(RunAborted):
    """An external stop was requested."""


class RunTimeoutError(RunAborted):
    """The run-level deadline expired."""
