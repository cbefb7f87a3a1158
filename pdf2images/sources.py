"""PDF discovery under the input root and cloud-sync file materialization."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from .cancellation import CancellationToken
from .models import WorkItem
from .retry import RetryPolicy, call_with_retry, linear_backoff
from .utils import ARCHIVE_DIR_NAME, QUARANTINE_DIR_NAME, RESERVED_DIR_NAME, TEMPLATE_MARKER

log = logging.getLogger(__name__)

# Windows attributes set on OneDrive / Files On-Demand placeholders.
FILE_ATTRIBUTE_RECALL_ON_OPEN = 0x00040000
FILE_ATTRIBUTE_RECALL_ON_DATA_ACCESS = 0x00400000
PLACEHOLDER_ATTRIBUTES = (
    stat.FILE_ATTRIBUTE_REPARSE_POINT
    | stat.FILE_ATTRIBUTE_OFFLINE
    | FILE_ATTRIBUTE_RECALL_ON_OPEN
    | FILE_ATTRIBUTE_RECALL_ON_DATA_ACCESS
)
# macOS File Provider "dataless" flag.
SF_DATALESS = 0x40000000
# Filesystems with inline data (ext4 inline_data, btrfs) keep small files in
# the inode and report zero blocks for them.
INLINE_DATA_MAX_BYTES = 4096

EXCLUDED_DIR_NAMES = frozenset({ARCHIVE_DIR_NAME, RESERVED_DIR_NAME, QUARANTINE_DIR_NAME})


# ---------------------------------------------------------------------------
# Local filesystem
# ---------------------------------------------------------------------------


def is_excluded(pdf_path: Path, root: Path) -> bool:
    """True for files inside reserved folders or any ``Z1-template`` directory."""
    try:
        parts = pdf_path.parent.relative_to(root).parts
    except ValueError:
        parts = pdf_path.parent.parts
    if pdf_path.parent.name in EXCLUDED_DIR_NAMES:
        return True
    return any(part in EXCLUDED_DIR_NAMES or TEMPLATE_MARKER in part for part in parts)


def discover_pdfs(folder: Path) -> list[Path]:
    """Recursively find candidate PDFs under *folder*, sorted by path."""
    if not folder.exists():
        return []
    found = (
        path
        for path in folder.rglob("*")
        if path.suffix.lower() == ".pdf" and path.is_file()
    )
    return sorted(path for path in found if not is_excluded(path, folder))


def discover_work_items(folder: Path) -> list[WorkItem]:
    return [WorkItem.from_path(path) for path in discover_pdfs(folder)]


# ---------------------------------------------------------------------------
# Cloud-sync placeholders
# ---------------------------------------------------------------------------


def is_placeholder(path: Path) -> bool:
    """Detect an online-only file whose bytes are not stored locally."""
    st = os.stat(path)
    attributes = getattr(st, "st_file_attributes", None)
    if attributes is not None:
        return bool(attributes & PLACEHOLDER_ATTRIBUTES)
    if getattr(st, "st_flags", 0) & SF_DATALESS:
        return True
    blocks = getattr(st, "st_blocks", None)
    return blocks == 0 and st.st_size > INLINE_DATA_MAX_BYTES


class Materializer:
    """Makes sure a file's content is downloaded before it is read.

    Failure is never fatal: the downstream read surfaces the real error.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 3,
        base_delay_s: float = 1.0,
        settle_delay_s: float = 2.0,
        probe_bytes: int = 4096,
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.settle_delay_s = settle_delay_s
        self.probe_bytes = probe_bytes

    def ensure_available(self, path: Path, token: CancellationToken) -> bool:
        """Return True when *path* is locally resident afterwards."""
        try:
            if not is_placeholder(path):
                return True
        except FileNotFoundError:
            log.error("File not found while checking cloud placeholder: %s", path)
            return False
        except OSError as exc:
            log.warning("Could not inspect %s for placeholder state: %s", path, exc)
            return False

        log.info("Cloud placeholder detected, triggering download: %s", path.name)
        policy = RetryPolicy(
            max_attempts=self.max_attempts,
            delay=linear_backoff(self.base_delay_s),
            retry_on=lambda exc: isinstance(exc, OSError),
        )
        try:
            resident = call_with_retry(
                self._hydrate, policy, token, path, token, label=f"Download of {path.name}"
            )
        except OSError as exc:
            log.warning(
                "Could not trigger download after %s attempts: %s (%s)",
                self.max_attempts,
                path.name,
                exc,
            )
            return False

        if resident:
            log.info("Cloud file downloaded: %s", path.name)
        else:
            log.debug("Download triggered but %s is still a placeholder", path.name)
        return resident

    def _hydrate(self, path: Path, token: CancellationToken) -> bool:
        # Requesting the properties first is enough for some providers.
        path.stat()
        if not is_placeholder(path):
            return True

        with open(path, "rb") as fh:
            fh.read(self.probe_bytes)

        token.sleep(self.settle_delay_s)
        return not is_placeholder(path)
