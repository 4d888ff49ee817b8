"""Page text extraction for summarization requests.

Priority order for the text of a page:
1. the user's selection, when it is not blank
2. the main article content (trafilatura)
3. every visible text node of the page
"""

import logging
import re
from typing import Optional

import trafilatura

from pagebrief.jobs.errors import InsufficientInputError

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

MIN_INPUT_CHARS = 100


def normalize_whitespace(text: Optional[str]) -> str:
    """Collapse runs of whitespace (including newlines) to one space and trim."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_page_text(html: Optional[str], selection: Optional[str] = None) -> str:
    """Return normalized text for a page, preferring a non-blank selection."""
    selected = normalize_whitespace(selection)
    if selected:
        return selected
    if not html or not html.strip():
        return ""

    try:
        text = trafilatura.extract(html, include_tables=True, include_comments=False, favor_recall=True)
    except Exception as exc:  # noqa: BLE001
        logger.warning("trafilatura.extract failed: %s", exc)
        text = None

    if not text:
        text = trafilatura.html2txt(html)
    return normalize_whitespace(text)


def require_usable_text(text: Optional[str], min_chars: int = MIN_INPUT_CHARS) -> str:
    """Return ``text`` normalized, or raise InsufficientInputError if it is too short."""
    cleaned = normalize_whitespace(text)
    if len(cleaned) < min_chars:
        raise InsufficientInputError(len(cleaned), min_chars)
    return cleaned
