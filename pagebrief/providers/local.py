"""In-process providers that need no model download or remote service.

- ``LocalSummarizer``: extractive summaries scored by word frequency
- ``LocalLanguageDetector``: script ranges plus stopword profiles
- ``LocalTranslator``: always unavailable (no local translation model)
"""

import asyncio
import re
from collections import Counter
from typing import Any, AsyncIterator, Dict, List

from pagebrief.jobs.errors import ProviderError, ProviderErrorKind
from pagebrief.jobs.models import SummarizeParams, SummaryLength, SummaryType
from pagebrief.providers.base import (
    Availability,
    Capability,
    CapabilityProvider,
    DownloadProgressCallback,
    InvokeResult,
)

_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_WORD_RE = re.compile(r"[^\W\d_]+", re.UNICODE)

# Sentences kept per (type, length); headline uses word counts instead
SENTENCE_COUNTS = {
    SummaryType.TLDR: {SummaryLength.SHORT: 1, SummaryLength.MEDIUM: 3, SummaryLength.LONG: 5},
    SummaryType.TEASER: {SummaryLength.SHORT: 1, SummaryLength.MEDIUM: 2, SummaryLength.LONG: 4},
    SummaryType.KEY_POINTS: {SummaryLength.SHORT: 3, SummaryLength.MEDIUM: 5, SummaryLength.LONG: 7},
}
HEADLINE_WORDS = {SummaryLength.SHORT: 12, SummaryLength.MEDIUM: 17, SummaryLength.LONG: 22}


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(text.strip()) if s.strip()]


def score_sentences(sentences: List[str]) -> List[float]:
    """Mean corpus frequency of each sentence's content words (longer than 3 letters)."""
    tokenized = [
        [w for w in _WORD_RE.findall(s.lower()) if len(w) > 3]
        for s in sentences
    ]
    freq = Counter(w for words in tokenized for w in words)
    scores = []
    for words in tokenized:
        scores.append(sum(freq[w] for w in words) / len(words) if words else 0.0)
    return scores


def extractive_summary(
    text: str,
    summary_type: SummaryType = SummaryType.TLDR,
    length: SummaryLength = SummaryLength.SHORT,
) -> List[str]:
    """Return the summary as ordered chunks; joining them gives the full text."""
    sentences = split_sentences(text)
    if not sentences:
        return []

    if summary_type == SummaryType.HEADLINE:
        words = sentences[0].split()[:HEADLINE_WORDS[length]]
        return [" ".join(words).rstrip(".,;:!?")]

    count = SENTENCE_COUNTS[summary_type][length]
    if summary_type == SummaryType.TEASER:
        picked = sentences[:count]
    else:
        scores = score_sentences(sentences)
        ranked = sorted(range(len(sentences)), key=lambda i: (-scores[i], i))[:count]
        picked = [sentences[i] for i in sorted(ranked)]

    if summary_type == SummaryType.KEY_POINTS:
        return [("* " if i == 0 else "\n* ") + s for i, s in enumerate(picked)]
    return [(s if i == 0 else " " + s) for i, s in enumerate(picked)]


class LocalSummarizer(CapabilityProvider):
    capability = Capability.SUMMARIZER
    streaming = True

    async def _availability(self) -> Availability:
        return Availability.AVAILABLE

    async def _create(self, config: Dict[str, Any], on_download_progress: DownloadProgressCallback) -> Any:
        return SummarizeParams.model_validate(
            {k: config[k] for k in ("type", "length") if k in config}
        )

    async def _invoke(self, handle: SummarizeParams, text: str) -> InvokeResult:
        return self._stream(extractive_summary(text, handle.type, handle.length))

    async def _stream(self, chunks: List[str]) -> AsyncIterator[str]:
        for chunk in chunks:
            await asyncio.sleep(0)
            yield chunk


_SCRIPTS = {
    "latin": re.compile(r"[A-Za-zÀ-ɏ]"),
    "cyrillic": re.compile(r"[Ѐ-ӿ]"),
    "greek": re.compile(r"[Ͱ-Ͽ]"),
    "arabic": re.compile(r"[؀-ۿ]"),
    "hebrew": re.compile(r"[֐-׿]"),
    "kana": re.compile(r"[぀-ヿ]"),
    "han": re.compile(r"[一-鿿]"),
    "hangul": re.compile(r"[가-힯]"),
}
_SCRIPT_LANGUAGE = {
    "greek": "el",
    "arabic": "ar",
    "hebrew": "he",
    "kana": "ja",
    "hangul": "ko",
}
_SR_CYRILLIC_RE = re.compile(r"[ђћџљњјЂЋЏЉЊЈ]")
_UK_MARKERS_RE = re.compile(r"[іїєґІЇЄҐ]")

_STOPWORDS = {
    "en": {"the", "and", "of", "to", "is", "in", "that", "it", "for", "was", "with", "on", "are", "this"},
    "fr": {"le", "la", "les", "et", "des", "est", "une", "dans", "que", "pour", "pas", "du", "au", "sur"},
    "de": {"der", "die", "und", "das", "ist", "nicht", "ein", "zu", "den", "mit", "sich", "auf", "auch", "eine"},
    "es": {"el", "los", "y", "que", "en", "es", "una", "por", "las", "del", "con", "para", "se", "lo"},
    "it": {"il", "che", "di", "e", "non", "per", "una", "sono", "della", "gli", "del", "con", "nel", "anche"},
    "pt": {"o", "que", "não", "uma", "os", "do", "da", "em", "para", "com", "as", "mais", "foi", "seu"},
    "nl": {"het", "een", "en", "van", "is", "niet", "dat", "op", "te", "zijn", "met", "voor", "ook", "maar"},
}


def detect_language(text: str) -> str:
    """Detect the dominant language of ``text``.

    Returns a BCP-47 primary tag, or ``""`` when nothing can be determined.
    """
    sample = text[:5000]
    counts = Counter({name: len(pattern.findall(sample)) for name, pattern in _SCRIPTS.items()})
    script, hits = counts.most_common(1)[0]
    if hits == 0:
        return ""

    if script == "cyrillic":
        if _SR_CYRILLIC_RE.search(sample):
            return "sr"
        if _UK_MARKERS_RE.search(sample):
            return "uk"
        return "ru"
    if script == "han":
        return "ja" if counts["kana"] else "zh"
    if script == "latin":
        words = Counter(_WORD_RE.findall(sample.lower()))
        scores = {
            lang: sum(words[w] for w in stopwords)
            for lang, stopwords in _STOPWORDS.items()
        }
        best = max(scores, key=lambda lang: scores[lang])
        return best if scores[best] > 0 else ""
    return _SCRIPT_LANGUAGE[script]


class LocalLanguageDetector(CapabilityProvider):
    capability = Capability.LANGUAGE_DETECTOR

    async def _availability(self) -> Availability:
        return Availability.AVAILABLE

    async def _create(self, config: Dict[str, Any], on_download_progress: DownloadProgressCallback) -> Any:
        return None

    async def _invoke(self, handle: Any, text: str) -> InvokeResult:
        return detect_language(text)


class LocalTranslator(CapabilityProvider):
    """Placeholder for hosts without a translation model."""

    capability = Capability.TRANSLATOR

    async def _availability(self) -> Availability:
        return Availability.UNAVAILABLE

    async def _create(self, config: Dict[str, Any], on_download_progress: DownloadProgressCallback) -> Any:
        raise ProviderError(
            ProviderErrorKind.CAPABILITY_UNAVAILABLE,
            "Translation is not available in local provider mode",
        )

    async def _invoke(self, handle: Any, text: str) -> InvokeResult:
        raise ProviderError(
            ProviderErrorKind.CAPABILITY_UNAVAILABLE,
            "Translation is not available in local provider mode",
        )
