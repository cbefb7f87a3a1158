"""Environment configuration for the conversion service.

``.env`` loading happens here only. Callers use ``get_settings()`` and
never read ``os.environ`` directly, which keeps the values typed and
easy to override in tests (``get_settings.cache_clear()``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from .utils import (
    DEFAULT_BATCH_PAUSE_S,
    DEFAULT_BATCH_SIZE,
    DEFAULT_FILE_TIMEOUT_S,
    DEFAULT_INTERVAL_HOURS,
    DEFAULT_RUN_TIMEOUT_HOURS,
)

DEFAULT_LOG_FILE = Path("logs") / "pdf2images.log"


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _coerce_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_list(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.replace(";", ",").split(",") if item.strip())


@dataclass(frozen=True)
class SmtpSettings:
    host: str = "smtp.example.com"
    port: int = 25
    username: Optional[str] = None
    password: Optional[str] = None
    recipients: tuple[str, ...] = ()
    sender_address: Optional[str] = None

    @property
    def sender(self) -> str:
        return self.sender_address or self.username or "noreply@localhost"


@dataclass(frozen=True)
class Settings:
    source_path: Optional[Path] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    file_timeout_s: float = DEFAULT_FILE_TIMEOUT_S
    batch_pause_s: float = DEFAULT_BATCH_PAUSE_S
    interval_hours: float = DEFAULT_INTERVAL_HOURS
    run_timeout_hours: float = DEFAULT_RUN_TIMEOUT_HOURS
    log_file: Optional[Path] = DEFAULT_LOG_FILE
    summary_on_total_failure: bool = False
    smtp: SmtpSettings = field(default_factory=SmtpSettings)


def _load_smtp() -> SmtpSettings:
    return SmtpSettings(
        host=os.getenv("SMTP_HOST") or "smtp.example.com",
        port=_coerce_int(os.getenv("SMTP_PORT"), 25),
        username=os.getenv("SMTP_USERNAME") or None,
        password=os.getenv("SMTP_PASSWORD") or None,
        recipients=_split_list(os.getenv("SMTP_RECIPIENTS")),
        sender_address=os.getenv("SMTP_SENDER") or None,
    )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Read settings from the environment after loading *env_file* (or ``.env``)."""
    load_dotenv(env_file or find_dotenv(usecwd=True), override=False)

    source = os.getenv("PDF2IMAGES_SOURCE_PATH")
    log_file = os.getenv("PDF2IMAGES_LOG_FILE")
    return Settings(
        source_path=Path(source).expanduser() if source else None,
        batch_size=max(1, _coerce_int(os.getenv("PDF2IMAGES_BATCH_SIZE"), DEFAULT_BATCH_SIZE)),
        file_timeout_s=_coerce_float(
            os.getenv("PDF2IMAGES_FILE_TIMEOUT_SECONDS"), DEFAULT_FILE_TIMEOUT_S
        ),
        batch_pause_s=_coerce_float(
            os.getenv("PDF2IMAGES_BATCH_PAUSE_SECONDS"), DEFAULT_BATCH_PAUSE_S
        ),
        interval_hours=_coerce_float(
            os.getenv("PDF2IMAGES_INTERVAL_HOURS"), DEFAULT_INTERVAL_HOURS
        ),
        run_timeout_hours=_coerce_float(
            os.getenv("PDF2IMAGES_RUN_TIMEOUT_HOURS"), DEFAULT_RUN_TIMEOUT_HOURS
        ),
        log_file=Path(log_file) if log_file else DEFAULT_LOG_FILE,
        summary_on_total_failure=_coerce_bool(os.getenv("PDF2IMAGES_SUMMARY_ON_TOTAL_FAILURE")),
        smtp=_load_smtp(),
    )


@lru_cache(maxsize=4)
def get_settings(env_file: Optional[Path] = None) -> Settings:
    """Settings snapshot for *env_file*, loaded once per path."""
    return load_settings(env_file)
