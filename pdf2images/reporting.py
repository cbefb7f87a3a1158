"""Run reporting: HTML summary, per-file error and fatal-error emails."""

from __future__ import annotations

import html
import logging
import smtplib
import traceback
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Optional, Protocol

from .models import RunSummary
from .settings import SmtpSettings
from .utils import relative_dir

log = logging.getLogger(__name__)

CELL = "padding: 10px; border: 1px solid #ddd;"
HEAD = f"{CELL} text-align: left;"
HEADER_ROW = "background-color: #f2f2f2;"
TABLE = "border-collapse: collapse; width: 100%;"
WRAPPER = "font-family: Arial, sans-serif; padding: 15px;"
MONO = "font-family: monospace; white-space: pre-wrap;"

TIME_FMT = "%Y-%m-%d %H:%M:%S"


class Mailer(Protocol):
    def send(self, subject: str, html_body: str) -> None: ...


class SmtpMailer:
    """Sends HTML mail through the configured relay."""

    def __init__(self, settings: SmtpSettings, *, timeout: float = 30.0) -> None:
        self.settings = settings
        self.timeout = timeout

    def _build_message(self, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.settings.sender
        message["To"] = ", ".join(self.settings.recipients)
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def send(self, subject: str, html_body: str) -> None:
        s = self.settings
        if not s.recipients:
            raise ValueError("No mail recipients configured (SMTP_RECIPIENTS)")
        message = self._build_message(subject, html_body)
        if s.port == 465:
            client: smtplib.SMTP = smtplib.SMTP_SSL(s.host, s.port, timeout=self.timeout)
        else:
            client = smtplib.SMTP(s.host, s.port, timeout=self.timeout)
        with client:
            if s.port == 587:
                client.starttls()
            if s.username:
                client.login(s.username, s.password or "")
            client.send_message(message)
        log.debug("Mail sent to %s: %s", ", ".join(s.recipients), subject)


# ---------------------------------------------------------------------------
# HTML bodies
# ---------------------------------------------------------------------------


def _row(label: str, value: object, style: str = "") -> str:
    value_style = f"{CELL} {style}".rstrip()
    return (
        f"<tr><td style='{CELL}'>{html.escape(label)}</td>"
        f"<td style='{value_style}'>{html.escape(str(value))}</td></tr>"
    )


def _header(*labels: str) -> str:
    cells = "".join(f"<th style='{HEAD}'>{html.escape(label)}</th>" for label in labels)
    return f"<tr style='{HEADER_ROW}'>{cells}</tr>"


def _failure_style(count: int) -> str:
    return f"color: {'red' if count > 0 else 'inherit'};"


def format_duration(seconds: float) -> str:
    total = int(seconds)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours} hr {minutes} min {secs} sec"


def _traceback_text(error: BaseException) -> str:
    return "".join(traceback.format_tb(error.__traceback__)) or "(no traceback)"


def render_summary_html(summary: RunSummary) -> str:
    end_time = summary.end_time or datetime.now()
    parts = [
        "<h2>PDF to Image Conversion Summary</h2>",
        f"<div style='{WRAPPER}'>",
        "<h3>Overall Summary</h3>",
        f"<table style='{TABLE} margin-bottom: 20px;'>",
        _header("Item", "Value"),
        _row("Processing Start Time", f"{summary.start_time:{TIME_FMT}}"),
        _row("Processing End Time", f"{end_time:{TIME_FMT}}"),
        _row("Processing Duration", format_duration(summary.duration_s)),
        _row("Total PDF Files", summary.total_count),
        _row("Successfully Processed Files", summary.success_count),
        _row("Failed Files", summary.failed_count, _failure_style(summary.failed_count)),
        _row("Total Converted Pages", summary.total_pages),
    ]
    if summary.aborted:
        parts.append(_row("Run Interrupted", summary.aborted, "color: red;"))
    parts += [
        "</table>",
        "<h3>Directory Summary</h3>",
        f"<table style='{TABLE}'>",
        _header("Directory", "Total Files", "Successful", "Failed", "Pages Converted"),
    ]

    rows = sorted(
        ((relative_dir(summary.root, directory), stats) for directory, stats in summary.per_directory.items()),
        key=lambda row: row[0],
    )
    for label, stats in rows:
        parts.append(
            "<tr>"
            f"<td style='{CELL}'>{html.escape(label)}</td>"
            f"<td style='{CELL}'>{stats.total_files}</td>"
            f"<td style='{CELL}'>{stats.success_files}</td>"
            f"<td style='{CELL} {_failure_style(stats.failed_files)}'>{stats.failed_files}</td>"
            f"<td style='{CELL}'>{stats.total_pages}</td>"
            "</tr>"
        )
    parts.append("</table>")

    if summary.error_messages:
        parts.append("<h3 style='color: red; margin-top: 20px;'>List of Errors:</h3>")
        parts.append("<ul style='color: #555;'>")
        parts.extend(f"<li>{html.escape(message)}</li>" for message in summary.error_messages)
        parts.append("</ul>")

    parts.append("</div>")
    return "\n".join(parts)


def summary_subject(summary: RunSummary) -> str:
    return (
        f"PDF Conversion Completed - Success:{summary.success_count} "
        f"Failure:{summary.failed_count} Total Pages:{summary.total_pages}"
    )


def render_error_html(pdf_path: Path, error: BaseException, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return "\n".join(
        [
            "<h2 style='color: red;'>PDF Conversion Error Notification</h2>",
            f"<div style='{WRAPPER}'>",
            f"<table style='{TABLE}'>",
            _header("Item", "Detail"),
            _row("Error Time", f"{when:{TIME_FMT}}"),
            _row("PDF File Path", pdf_path),
            _row("Error Type", type(error).__name__),
            _row("Error Message", error),
            _row("Stack Trace", _traceback_text(error), MONO),
            "</table>",
            "</div>",
        ]
    )


def _cause_chain_html(error: BaseException) -> str:
    parts: list[str] = []
    seen = {id(error)}
    inner = error.__cause__ or error.__context__
    while inner is not None and id(inner) not in seen:
        seen.add(id(inner))
        parts += [
            f"<table style='{TABLE} margin-top: 10px;'>",
            _row("Inner Exception Type", f"{type(inner).__module__}.{type(inner).__qualname__}"),
            _row("Message", inner),
            _row("Stack Trace", _traceback_text(inner), MONO),
            "</table>",
        ]
        inner = inner.__cause__ or inner.__context__
    return "\n".join(parts) if parts else "<p>No inner exception</p>"


def render_fatal_html(error: BaseException, kind: str, when: Optional[datetime] = None) -> str:
    when = when or datetime.now()
    return "\n".join(
        [
            "<h2 style='color: #cc0000;'>Critical Error in PDF2Images Service</h2>",
            f"<div style='{WRAPPER}'>",
            f"<table style='{TABLE}'>",
            _header("Error Details", "Value"),
            _row("Error Time", f"{when:{TIME_FMT}}"),
            _row("Error Type", kind),
            _row("Exception Type", f"{type(error).__module__}.{type(error).__qualname__}"),
            _row("Message", error),
            _row("Stack Trace", _traceback_text(error), MONO),
            "</table>",
            "<h3 style='margin-top: 20px;'>Inner Exception Details</h3>",
            _cause_chain_html(error),
            "</div>",
        ]
    )


# ---------------------------------------------------------------------------
# Reporter
# ---------------------------------------------------------------------------


class RunReporter:
    """Sends run summaries and failure notifications; never raises."""

    def __init__(self, mailer: Mailer, *, summary_on_total_failure: bool = False) -> None:
        self.mailer = mailer
        self.summary_on_total_failure = summary_on_total_failure

    def should_send_summary(self, summary: RunSummary) -> bool:
        if summary.success_count > 0:
            return True
        return self.summary_on_total_failure and summary.failed_count > 0

    def send_summary(self, summary: RunSummary) -> bool:
        """Send the completion summary; False when skipped or sending failed."""
        if not self.should_send_summary(summary):
            log.info("No PDFs were successfully converted. Skipping summary email.")
            return False
        try:
            self.mailer.send(summary_subject(summary), render_summary_html(summary))
        except Exception:
            log.exception("Failed to send completion summary email")
            return False
        log.info("Summary email sent")
        return True

    def notify_error(self, pdf_path: Path, error: BaseException) -> bool:
        try:
            self.mailer.send(f"PDF Conversion Error - {pdf_path.name}", render_error_html(pdf_path, error))
        except Exception:
            log.exception("Failed to send error notification email for %s", pdf_path.name)
            return False
        log.info("Sent error notification email - %s", pdf_path.name)
        return True

    def notify_fatal(self, error: BaseException, kind: str) -> bool:
        try:
            self.mailer.send(
                f"PDF2Images Service Critical Error: {kind}",
                render_fatal_html(error, kind),
            )
        except Exception:
            log.exception("Failed to send critical error email (%s)", kind)
            return False
        return True
