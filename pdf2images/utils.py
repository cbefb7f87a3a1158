"""Cross-cutting helpers: constants and path utilities."""

from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ARCHIVE_DIR_NAME = ".pdf"
RESERVED_DIR_NAME = ".archive"
QUARANTINE_DIR_NAME = ".broken"
TEMPLATE_MARKER = "Z1-template"
BROKEN_FILES_LOG = "broken_files_log.txt"

DEFAULT_BATCH_SIZE = 10
DEFAULT_FILE_TIMEOUT_S = 5 * 60
DEFAULT_BATCH_PAUSE_S = 10.0
DEFAULT_INTERVAL_HOURS = 2.0
DEFAULT_RUN_TIMEOUT_HOURS = 4.0
GC_EVERY_N_FILES = 5

ROOT_LABEL = "[Root]"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def ensure_reserved_dirs(directory: Path) -> tuple[Path, Path, Path]:
    """Create and return (archive_dir, reserved_dir, quarantine_dir) in *directory*."""
    archive_dir = directory / ARCHIVE_DIR_NAME
    reserved_dir = directory / RESERVED_DIR_NAME
    quarantine_dir = directory / QUARANTINE_DIR_NAME
    for path in (archive_dir, reserved_dir, quarantine_dir):
        path.mkdir(parents=True, exist_ok=True)
    return archive_dir, reserved_dir, quarantine_dir


def relative_dir(root: Path, directory: Path) -> str:
    """Directory label relative to the input root, ``[Root]`` for the root itself."""
    try:
        relative = directory.relative_to(root)
    except ValueError:
        return str(directory)
    text = relative.as_posix()
    return ROOT_LABEL if text in ("", ".") else text


def batched(items: list, size: int) -> list[list]:
    """Split *items* into consecutive chunks of at most *size*."""
    size = max(1, size)
    return [items[i : i + size] for i in range(0, len(items), size)]
