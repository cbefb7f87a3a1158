"""Moving source files into the archive and quarantine folders."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .errors import ArchiveError
from .models import QuarantineRecord
from .utils import ARCHIVE_DIR_NAME, BROKEN_FILES_LOG, QUARANTINE_DIR_NAME

log = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 999


def unique_destination(
    directory: Path,
    file_name: str,
    *,
    now: Callable[[], datetime] = datetime.now,
    taken: Callable[[Path], bool] = Path.exists,
) -> Path:
    """Pick a free name in *directory* for *file_name*.

    Collisions become ``<stem>_<yyyyMMdd_HHmmss>_<nnn><ext>``; after 999
    tries the name falls back to a millisecond timestamp. ``taken`` decides
    whether a candidate collides.
    """
    candidate = directory / file_name
    stem, suffix = Path(file_name).stem, Path(file_name).suffix
    attempt = 1
    while taken(candidate):
        if attempt > MAX_NAME_ATTEMPTS:
            log.error(
                "Unable to create unique filename after %s attempts: %s",
                MAX_NAME_ATTEMPTS,
                file_name,
            )
            stamp = now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
            return directory / f"{stem}_{stamp}{suffix}"
        stamp = now().strftime("%Y%m%d_%H%M%S")
        candidate = directory / f"{stem}_{stamp}_{attempt:03d}{suffix}"
        attempt += 1
    return candidate


def move_to_archive(pdf_path: Path) -> Path:
    """Move a converted PDF into ``<dir>/.pdf``; raises ArchiveError on failure."""
    archive_dir = pdf_path.parent / ARCHIVE_DIR_NAME
    try:
        archive_dir.mkdir(parents=True, exist_ok=True)
        destination = unique_destination(archive_dir, pdf_path.name)
        shutil.move(str(pdf_path), str(destination))
    except OSError as exc:
        log.error("Failed to move processed file to archive directory: %s", pdf_path)
        raise ArchiveError(f"Could not archive {pdf_path}: {exc}") from exc
    log.info("Archived processed PDF file: %s", destination.name)
    return destination


def reason_file_for(destination: Path) -> Path:
    return destination.parent / f"{destination.stem}_reason.txt"


def _quarantine_slot_taken(candidate: Path) -> bool:
    return candidate.exists() or reason_file_for(candidate).exists()


def write_reason_file(destination: Path, record: QuarantineRecord) -> Path:
    reason_path = reason_file_for(destination)
    with open(reason_path, "x", encoding="utf-8") as fh:
        fh.write(record.to_text())
    return reason_path


def move_to_quarantine(pdf_path: Path, reason: str) -> Optional[Path]:
    """Move a broken PDF into ``<dir>/.broken`` with a sidecar reason note.

    Returns the new path, or None when the move failed; in that case a line
    is appended to ``broken_files_log.txt`` in the source directory.
    """
    quarantine_dir = pdf_path.parent / QUARANTINE_DIR_NAME
    try:
        quarantine_dir.mkdir(parents=True, exist_ok=True)
        destination = unique_destination(
            quarantine_dir, pdf_path.name, taken=_quarantine_slot_taken
        )
        shutil.move(str(pdf_path), str(destination))
    except OSError as exc:
        log.error("Failed to move broken file to .broken directory: %s (%s)", pdf_path, exc)
        _append_broken_log(pdf_path, reason, exc)
        return None

    log.warning(
        "Moved broken PDF file to .broken directory: %s. Reason: %s",
        destination.name,
        reason,
    )
    try:
        write_reason_file(destination, QuarantineRecord(pdf_path.name, reason))
    except OSError as exc:
        log.error("Could not write reason file for %s: %s", destination, exc)
    return destination


def _append_broken_log(pdf_path: Path, reason: str, error: BaseException) -> None:
    log_path = pdf_path.parent / BROKEN_FILES_LOG
    entry = (
        f"{datetime.now():%Y-%m-%d %H:%M:%S} - Failed to move: {pdf_path} "
        f"- Reason: {reason} - Error: {error}\n"
    )
    try:
        with open(log_path, "a", encoding="utf-8") as fh:
            fh.write(entry)
    except OSError:
        log.error("Could not log broken file information to %s for: %s", log_path, pdf_path)
