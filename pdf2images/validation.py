"""Cheap PDF header check used before any rendering call."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


def is_valid_pdf(path: Path) -> bool:
    """Return True when *path* exists and starts with ``%PDF-``.

    Never raises: unreadable files count as invalid.
    """
    try:
        with open(path, "rb") as fh:
            header = fh.read(len(PDF_MAGIC))
    except FileNotFoundError:
        return False
    except OSError as exc:
        log.warning("Error validating PDF file format: %s. Error: %s", path, exc)
        return False
    return header == PDF_MAGIC
