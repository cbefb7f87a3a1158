"""Shared data models for the conversion run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

IMAGE_EXTENSION = ".jpeg"


@dataclass(frozen=True)
class WorkItem:
    """A candidate PDF found during enumeration."""

    path: Path
    directory: Path
    base_name: str

    @classmethod
    def from_path(cls, path: Path) -> "WorkItem":
        path = Path(path)
        return cls(path=path, directory=path.parent, base_name=path.stem)

    def image_path(self, page_number: int) -> Path:
        """Output image for a 1-based page number, next to the source file."""
        return self.directory / f"{self.base_name}-{page_number}{IMAGE_EXTENSION}"


@dataclass
class DirectoryStats:
    """Per-directory counters, updated as files complete."""

    total_files: int = 0
    success_files: int = 0
    failed_files: int = 0
    total_pages: int = 0

    def add_file(self) -> None:
        self.total_files += 1

    def record_success(self, pages: int) -> None:
        self.success_files += 1
        self.total_pages += pages

    def record_failure(self) -> None:
        self.failed_files += 1

    @property
    def pending_files(self) -> int:
        return self.total_files - self.success_files - self.failed_files


@dataclass
class RunSummary:
    """Aggregate result of one run, handed to the reporter once."""

    root: Path
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    total_count: int = 0
    success_count: int = 0
    failed_count: int = 0
    total_pages: int = 0
    error_messages: list[str] = field(default_factory=list)
    per_directory: dict[Path, DirectoryStats] = field(default_factory=dict)
    aborted: Optional[str] = None

    def stats_for(self, directory: Path) -> DirectoryStats:
        stats = self.per_directory.get(directory)
        if stats is None:
            stats = self.per_directory[directory] = DirectoryStats()
        return stats

    def add_item(self, item: WorkItem) -> None:
        self.total_count += 1
        self.stats_for(item.directory).add_file()

    def record_success(self, item: WorkItem, pages: int) -> None:
        self.success_count += 1
        self.total_pages += pages
        self.stats_for(item.directory).record_success(pages)

    def record_failure(self, item: WorkItem, message: str) -> None:
        self.failed_count += 1
        self.error_messages.append(message)
        self.stats_for(item.directory).record_failure()

    def finish(self) -> None:
        self.end_time = datetime.now()

    @property
    def duration_s(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()


@dataclass(frozen=True)
class QuarantineRecord:
    """Sidecar note written next to a quarantined file."""

    original_name: str
    reason: str
    moved_at: datetime = field(default_factory=datetime.now)

    def to_text(self) -> str:
        return (
            f"Moved on: {self.moved_at:%Y-%m-%d %H:%M:%S}\n"
            f"Original file: {self.original_name}\n"
            f"Reason: {self.reason}"
        )


@dataclass
class ConversionResult:
    """Outcome of a successful single-file conversion."""

    item: WorkItem
    pages_converted: int
    archived_path: Path
    images: list[Path] = field(default_factory=list)
    conversion_time_s: float = 0.0
