"""Tests for environment and .env configuration loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pdf2images import Settings, get_settings, load_settings
from pdf2images.settings import DEFAULT_LOG_FILE


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path):
    env = {
        key: value
        for key, value in os.environ.items()
        if not key.startswith(("PDF2IMAGES_", "SMTP_"))
    }
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_defaults_without_environment():
    settings = load_settings()

    assert settings == Settings()
    assert settings.source_path is None
    assert settings.batch_size == 10
    assert settings.file_timeout_s == 300
    assert settings.batch_pause_s == 10.0
    assert settings.interval_hours == 2.0
    assert settings.run_timeout_hours == 4.0
    assert settings.log_file == DEFAULT_LOG_FILE
    assert settings.smtp.recipients == ()


def test_environment_values_are_typed(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("PDF2IMAGES_SOURCE_PATH", str(tmp_path))
    monkeypatch.setenv("PDF2IMAGES_BATCH_SIZE", "4")
    monkeypatch.setenv("PDF2IMAGES_FILE_TIMEOUT_SECONDS", "90")
    monkeypatch.setenv("PDF2IMAGES_BATCH_PAUSE_SECONDS", "2.5")
    monkeypatch.setenv("PDF2IMAGES_INTERVAL_HOURS", "0.5")
    monkeypatch.setenv("PDF2IMAGES_SUMMARY_ON_TOTAL_FAILURE", "yes")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_RECIPIENTS", "a@corp; b@corp ,c@corp")

    settings = load_settings()

    assert settings.source_path == tmp_path
    assert settings.batch_size == 4
    assert settings.file_timeout_s == 90.0
    assert settings.batch_pause_s == 2.5
    assert settings.interval_hours == 0.5
    assert settings.summary_on_total_failure is True
    assert settings.smtp.port == 587
    assert settings.smtp.recipients == ("a@corp", "b@corp", "c@corp")


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("PDF2IMAGES_BATCH_SIZE", "lots")
    monkeypatch.setenv("PDF2IMAGES_RUN_TIMEOUT_HOURS", "")
    monkeypatch.setenv("SMTP_PORT", "smtp")

    settings = load_settings()

    assert settings.batch_size == 10
    assert settings.run_timeout_hours == 4.0
    assert settings.smtp.port == 25


def test_batch_size_is_at_least_one(monkeypatch):
    monkeypatch.setenv("PDF2IMAGES_BATCH_SIZE", "0")
    assert load_settings().batch_size == 1


def test_env_file_is_loaded(tmp_path: Path):
    env_file = tmp_path / "service.env"
    env_file.write_text(
        "PDF2IMAGES_SOURCE_PATH=/srv/drawings\n"
        "SMTP_HOST=relay.corp\n"
        "SMTP_USERNAME=svc@corp\n",
        encoding="utf-8",
    )

    settings = load_settings(env_file)

    assert settings.source_path == Path("/srv/drawings")
    assert settings.smtp.host == "relay.corp"
    assert settings.smtp.sender == "svc@corp"


def test_process_environment_wins_over_env_file(monkeypatch, tmp_path: Path):
    (tmp_path / ".env").write_text("PDF2IMAGES_BATCH_SIZE=3\n", encoding="utf-8")
    monkeypatch.setenv("PDF2IMAGES_BATCH_SIZE", "7")

    assert load_settings().batch_size == 7


def test_dotenv_in_working_directory_is_found(tmp_path: Path):
    (tmp_path / ".env").write_text("PDF2IMAGES_BATCH_SIZE=3\n", encoding="utf-8")

    assert load_settings().batch_size == 3


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("PDF2IMAGES_BATCH_SIZE", "9")

    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().batch_size == 9


def test_get_settings_caches_per_env_file(tmp_path: Path):
    first = tmp_path / "first.env"
    first.write_text("PDF2IMAGES_BATCH_SIZE=2\n", encoding="utf-8")

    settings = get_settings(first)

    assert settings.batch_size == 2
    assert get_settings(first) is settings
