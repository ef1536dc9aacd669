"""Deterministic built-in tasks.

These run locally on text found in the input bag (``text`` or ``html``) and
make no external calls. When the inputs carry only HTML, downstream tasks
reuse the ``extract_text`` prior result instead of stripping it again.
"""

from __future__ import annotations

import html as html_lib
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from task_pipeline.tasks.base import BaseTask, TaskResult
from task_pipeline.tasks.schemas import (
    ClassifyPriorityResult,
    EntitiesResult,
    ExtractTextResult,
    KeywordsResult,
    SummaryResult,
)

_TAG_RE = re.compile(r"<(script|style)\b.*?</\1>|<[^>]+>", flags=re.IGNORECASE | re.DOTALL)
_WORD_RE = re.compile(r"[A-Za-zÀ-ÿ][A-Za-zÀ-ÿ'-]+")

_STOPWORDS = frozenset(
    {
        "a", "about", "after", "all", "also", "an", "and", "any", "are", "as", "at",
        "be", "been", "but", "by", "can", "for", "from", "had", "has", "have", "he",
        "her", "his", "if", "in", "into", "is", "it", "its", "not", "of", "on", "or",
        "our", "she", "so", "than", "that", "the", "their", "them", "then", "there",
        "these", "they", "this", "to", "was", "we", "were", "what", "when", "which",
        "who", "will", "with", "would", "you", "your",
    }
)


class TextTask(BaseTask):
    """Shared text lookup for the built-in text tasks."""

    def supports(self, inputs: dict[str, Any], context: dict[str, Any]) -> bool:
        return _non_empty(inputs.get("text")) or _non_empty(inputs.get("html"))

    def metadata(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "agent": "deterministic",
            "platform": "local",
            "model": None,
        }

    @staticmethod
    def source_text(inputs: dict[str, Any], prior_results: dict[str, Any]) -> str:
        text = inputs.get("text")
        if _non_empty(text):
            return str(text)
        extracted = prior_results.get(ExtractTextTask.name)
        if isinstance(extracted, dict) and _non_empty(extracted.get("text")):
            return str(extracted["text"])
        raw_html = inputs.get("html")
        if _non_empty(raw_html):
            return strip_html(str(raw_html))
        raise ValueError("no text available in inputs or prior results")


class ExtractTextTask(TextTask):
    name = "extract_text"
    description = "Normalize text/html input into plain text for downstream tasks."

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        raw_html = inputs.get("html")
        if _non_empty(inputs.get("text")):
            text = _normalize_whitespace(str(inputs["text"]))
        else:
            text = strip_html(str(raw_html or ""))
        result = ExtractTextResult(
            text=text,
            char_count=len(text),
            raw_response=str(raw_html) if _non_empty(raw_html) else None,
        )
        return result.model_dump(mode="json")


class SummarizeTask(TextTask):
    name = "summarize"
    description = "Leading-words summary of the available text."

    def __init__(self, max_words: int = 60) -> None:
        if max_words < 1:
            raise ValueError("max_words must be >= 1")
        self.max_words = max_words

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        words = self.source_text(inputs, prior_results).split()
        summary = " ".join(words[: self.max_words]).strip()
        return SummaryResult(summary=summary, word_count=len(words)).model_dump(mode="json")


class ExtractEntitiesTask(TextTask):
    name = "extract_entities"
    description = "Capitalized names found in the text."

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        text = self.source_text(inputs, prior_results)
        matches = re.findall(r"\b[A-Z][a-zA-Z0-9_-]*\b", text)
        return EntitiesResult(entities=_dedupe(matches)).model_dump(mode="json")


class KeywordsTask(TextTask):
    name = "keywords"
    description = "Most frequent non-stopword terms, lower-cased."

    def __init__(self, limit: int = 10) -> None:
        self.limit = limit

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        text = self.source_text(inputs, prior_results)
        tokens = [
            token.lower().strip("'-")
            for token in _WORD_RE.findall(text)
            if token.lower() not in _STOPWORDS
        ]
        counts = Counter(token for token in tokens if len(token) > 2)
        # Ties keep first-seen order; Counter.most_common is stable.
        keywords = [token for token, _ in counts.most_common(self.limit)]
        return KeywordsResult(keywords=keywords).model_dump(mode="json")


PRIORITY_LEVELS: tuple[str, ...] = ("critical", "high", "medium")

DEFAULT_PRIORITY_TERMS: dict[str, tuple[str, ...]] = {
    "critical": ("sev1", "p0", "outage", "production down", "security incident", "breach"),
    "high": ("urgent", "asap", "high priority", "deadline", "blocking"),
    "medium": ("important", "soon", "moderate", "follow up"),
}


class ClassifyPriorityTask(TextTask):
    """Highest level whose terms occur in the text wins; reasons keep text order.

    ``terms`` maps ``critical`` / ``high`` / ``medium`` to phrases matched
    case-insensitively on word boundaries. Levels left out never match.
    """

    name = "classify_priority"
    description = "Urgency classification from a configurable term table."

    def __init__(self, terms: Mapping[str, Iterable[str]] | None = None) -> None:
        table = DEFAULT_PRIORITY_TERMS if terms is None else terms
        unknown = sorted(set(table) - set(PRIORITY_LEVELS))
        if unknown:
            raise ValueError(f"Unknown priority level(s): {', '.join(unknown)}")
        self.terms: dict[str, tuple[str, ...]] = {
            level: tuple(
                term.strip().lower() for term in table.get(level, ()) if term.strip()
            )
            for level in PRIORITY_LEVELS
        }

    def metadata(self) -> dict[str, Any]:
        meta = super().metadata()
        meta["terms"] = {level: list(terms) for level, terms in self.terms.items()}
        return meta

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> TaskResult:
        text = self.source_text(inputs, prior_results).lower()
        for level in PRIORITY_LEVELS:
            hits = _find_terms(text, self.terms[level])
            if hits:
                return ClassifyPriorityResult(priority=level, reasons=hits).model_dump(mode="json")
        result = ClassifyPriorityResult(priority="low", reasons=["no priority terms matched"])
        return result.model_dump(mode="json")


BUILTIN_TASKS: tuple[type[TextTask], ...] = (
    ExtractTextTask,
    SummarizeTask,
    ExtractEntitiesTask,
    KeywordsTask,
    ClassifyPriorityTask,
)


def strip_html(raw: str) -> str:
    text = _TAG_RE.sub(" ", raw)
    return _normalize_whitespace(html_lib.unescape(text))


def _normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _non_empty(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        normalized = value.strip()
        key = normalized.lower()
        if not normalized or key in seen:
            continue
        seen.add(key)
        ordered.append(normalized)
    return ordered


def _find_terms(text: str, terms: Iterable[str]) -> list[str]:
    positions: dict[str, int] = {}
    for term in terms:
        match = re.search(rf"(?<!\w){re.escape(term)}(?!\w)", text)
        if match is not None and term not in positions:
            positions[term] = match.start()
    return sorted(positions, key=positions.__getitem__)
