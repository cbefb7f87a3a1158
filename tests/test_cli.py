"""Tests for argument parsing and the ``--once`` entrypoint."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from pdf2images import RunReporter, cli, get_settings, sources
from pdf2images.cli import EXIT_CANCELLED, EXIT_FATAL, EXIT_OK, main, parse_args

from conftest import RecordingMailer, write_pdf


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def service_env(monkeypatch, tmp_path: Path) -> RecordingMailer:
    env = {
        key: value
        for key, value in os.environ.items()
        if not key.startswith(("PDF2IMAGES_", "SMTP_"))
    }
    monkeypatch.setattr(os, "environ", env)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sources, "is_placeholder", lambda path: False)

    mailer = RecordingMailer()
    monkeypatch.setattr(cli, "build_reporter", lambda settings: RunReporter(mailer))
    get_settings.cache_clear()
    yield mailer
    get_settings.cache_clear()


# ===========================================================================
# Argument parsing
# ===========================================================================


class TestParseArgs:
    def test_everything_defaults_to_settings(self):
        args = parse_args([])

        assert args.source_dir is None
        assert args.batch_size is None
        assert args.file_timeout is None
        assert args.interval_hours is None
        assert args.once is False
        assert args.no_progress is False

    def test_flags(self, tmp_path: Path):
        args = parse_args(
            [
                "--source-dir", str(tmp_path),
                "--once",
                "--batch-size", "5",
                "--file-timeout", "120",
                "--batch-pause", "0",
                "--run-timeout-hours", "1.5",
                "--log-file", str(tmp_path / "x.log"),
                "-v",
                "--detailed-logging",
            ]
        )

        assert args.source_dir == tmp_path
        assert args.once
        assert args.batch_size == 5
        assert args.file_timeout == 120.0
        assert args.batch_pause == 0.0
        assert args.run_timeout_hours == 1.5
        assert args.log_file == tmp_path / "x.log"
        assert args.verbose and args.detailed_logging


def test_setup_logging_adds_rotating_file(tmp_path: Path):
    log_file = tmp_path / "logs" / "service.log"

    cli._setup_logging(verbose=False, detailed_logging=False, log_file=log_file)
    logging.getLogger("pdf2images.test").info("hello file")

    [rotating] = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
    assert rotating.maxBytes == 10 * 1024 * 1024
    assert rotating.backupCount == 10
    rotating.flush()
    assert "hello file" in log_file.read_text(encoding="utf-8")


# ===========================================================================
# Entrypoint
# ===========================================================================


def _once_args(source: Path, tmp_path: Path, *extra: str) -> list[str]:
    return [
        "--once",
        "--source-dir", str(source),
        "--batch-pause", "0",
        "--log-file", str(tmp_path / "logs" / "run.log"),
        "--no-progress",
        *extra,
    ]


def test_once_converts_and_reports(service_env: RecordingMailer, tmp_path: Path):
    source = tmp_path / "drawings"
    write_pdf(source / "site" / "plan.pdf", pages=2)

    assert main(_once_args(source, tmp_path)) == EXIT_OK

    assert (source / "site" / "plan-1.jpeg").exists()
    assert (source / "site" / "plan-2.jpeg").exists()
    assert (source / "site" / ".pdf" / "plan.pdf").exists()
    assert service_env.subjects == [
        "PDF Conversion Completed - Success:1 Failure:0 Total Pages:2"
    ]
    assert (tmp_path / "logs" / "run.log").exists()


def test_source_from_environment(service_env, monkeypatch, tmp_path: Path):
    source = tmp_path / "from-env"
    write_pdf(source / "a.pdf")
    monkeypatch.setenv("PDF2IMAGES_SOURCE_PATH", str(source))

    args = [a for a in _once_args(source, tmp_path) if a not in ("--source-dir", str(source))]

    assert main(args) == EXIT_OK
    assert (source / ".pdf" / "a.pdf").exists()


def test_missing_source_is_fatal_and_mailed(service_env: RecordingMailer, tmp_path: Path):
    code = main(_once_args(tmp_path / "missing", tmp_path))

    assert code == EXIT_FATAL
    assert service_env.subjects == ["PDF2Images Service Critical Error: Application Error"]


def test_unset_source_is_fatal(service_env: RecordingMailer, tmp_path: Path):
    args = ["--once", "--log-file", str(tmp_path / "run.log")]

    assert main(args) == EXIT_FATAL
    assert len(service_env.sent) == 1


def test_cancelled_once_run_exits_130(service_env, monkeypatch, tmp_path: Path):
    from pdf2images import BatchOrchestrator, OperationCancelled

    source = tmp_path / "drawings"
    source.mkdir()

    def cancelled_run(self, token=None):
        raise OperationCancelled("stop requested")

    monkeypatch.setattr(BatchOrchestrator, "run", cancelled_run)

    assert main(_once_args(source, tmp_path)) == EXIT_CANCELLED


def test_run_timeout_in_once_mode_is_not_fatal(service_env, monkeypatch, tmp_path: Path):
    from pdf2images import BatchOrchestrator, RunTimeoutError

    source = tmp_path / "drawings"
    source.mkdir()

    def timed_out_run(self, token=None):
        raise RunTimeoutError("4h")

    monkeypatch.setattr(BatchOrchestrator, "run", timed_out_run)

    assert main(_once_args(source, tmp_path)) == EXIT_OK
    assert service_env.sent == []


def test_env_file_flag_feeds_cached_settings(service_env, tmp_path: Path):
    source = tmp_path / "from-file"
    write_pdf(source / "a.pdf")
    env_file = tmp_path / "service.env"
    env_file.write_text(f"PDF2IMAGES_SOURCE_PATH={source}\n", encoding="utf-8")
    args = ["--once", "--env-file", str(env_file), "--batch-pause", "0",
            "--log-file", str(tmp_path / "run.log"), "--no-progress"]

    assert main(args) == EXIT_OK

    assert (source / ".pdf" / "a.pdf").exists()
    assert get_settings(env_file).source_path == source
    assert get_settings.cache_info().hits >= 1
