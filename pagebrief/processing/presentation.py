"""Render helpers for observers: status messages and result formatting.

Formatting is applied when a record is displayed, never while results are
accumulated, so stored partial and final results stay exactly as produced.
"""

import re
from typing import Optional

from pydantic import BaseModel

from pagebrief.jobs.models import JobKind, JobPhase, JobRecord, SummaryType

_LEADING_BULLET_RE = re.compile(r"^\*\s?")
_INNER_BULLET_RE = re.compile(r"\s\*\s")

_NOUNS = {
    JobKind.SUMMARIZE: "summary",
    JobKind.DETECT_LANGUAGE: "language detection",
    JobKind.TRANSLATE: "translation",
}

_EMPTY_TEXT = {
    JobKind.SUMMARIZE: 'No summary generated yet. Click "Summarize" to begin.',
    JobKind.DETECT_LANGUAGE: "No language detected yet.",
    JobKind.TRANSLATE: "No translation yet.",
}


class JobView(BaseModel):
    kind: JobKind
    phase: JobPhase
    status_message: str
    is_error: bool
    is_busy: bool
    progress_percent: int
    text: str


def format_key_points(text: str) -> str:
    """Turn ``* point`` markers into bullet lines. Idempotent."""
    text = _LEADING_BULLET_RE.sub("• ", text)
    return _INNER_BULLET_RE.sub("\n\n• ", text)


def status_message(record: JobRecord) -> str:
    label = _NOUNS[record.kind]
    if record.phase == JobPhase.IDLE:
        return ""
    if record.phase == JobPhase.INITIALIZING:
        return "Initializing..."
    if record.phase == JobPhase.DOWNLOADING_MODEL:
        return f"Downloading model: {record.progress_percent}%"
    if record.phase == JobPhase.RUNNING:
        return f"Generating {label}..."
    if record.phase == JobPhase.SUCCEEDED:
        return f"{label.capitalize()} generated successfully!"
    return f"An error occurred: {record.error_message or 'unknown error'}"


def display_text(record: JobRecord, summary_type: Optional[str] = None) -> str:
    """Text to show for ``record``: the final result, else the partial one."""
    text = record.final_result if record.phase == JobPhase.SUCCEEDED else record.partial_result
    if not text:
        if record.phase == JobPhase.FAILED:
            return f"Failed to generate {_NOUNS[record.kind]}. Please try again."
        return _EMPTY_TEXT[record.kind]
    echo_type = (record.input_echo or {}).get("type", summary_type)
    if record.kind == JobKind.SUMMARIZE and echo_type == SummaryType.KEY_POINTS.value:
        return format_key_points(text)
    return text


def render_job_view(record: JobRecord, summary_type: Optional[str] = None) -> JobView:
    return JobView(
        kind=record.kind,
        phase=record.phase,
        status_message=status_message(record),
        is_error=record.phase == JobPhase.FAILED,
        is_busy=record.in_flight,
        progress_percent=record.progress_percent,
        text=display_text(record, summary_type),
    )
