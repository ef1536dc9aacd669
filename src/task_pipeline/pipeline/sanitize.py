"""Trim prior results before they are handed to a downstream task."""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from task_pipeline.config.settings import Settings

DEFAULT_STRIP_FIELDS: tuple[str, ...] = ("raw_response", "blocks")
DEFAULT_TEXT_FIELDS: tuple[str, ...] = ("text",)
DEFAULT_MAX_TEXT_CHARS = 8_000
TRUNCATION_MARKER = "\n[… truncated]"


def sanitize_prior_results(
    prior: Mapping[str, Any],
    *,
    strip_fields: Iterable[str] = DEFAULT_STRIP_FIELDS,
    text_fields: Iterable[str] = DEFAULT_TEXT_FIELDS,
    max_text_chars: int = DEFAULT_MAX_TEXT_CHARS,
    marker: str = TRUNCATION_MARKER,
) -> dict[str, Any]:
    """Drop bulk payload fields and clamp long text fields.

    Returns a deep copy; the caller's mapping (usually the store's own data)
    is left untouched.
    """

    stripped = tuple(strip_fields)
    clamped = tuple(text_fields)
    sanitized: dict[str, Any] = {}
    for task_name, result in prior.items():
        if not isinstance(result, Mapping):
            sanitized[task_name] = copy.deepcopy(result)
            continue
        entry = {
            key: copy.deepcopy(value) for key, value in result.items() if key not in stripped
        }
        for key in clamped:
            value = entry.get(key)
            if isinstance(value, str) and len(value) > max_text_chars:
                entry[key] = value[:max_text_chars] + marker
        sanitized[task_name] = entry
    return sanitized


@dataclass(frozen=True)
class Sanitizer:
    strip_fields: tuple[str, ...] = DEFAULT_STRIP_FIELDS
    text_fields: tuple[str, ...] = DEFAULT_TEXT_FIELDS
    max_text_chars: int = DEFAULT_MAX_TEXT_CHARS
    marker: str = TRUNCATION_MARKER

    def __call__(self, prior: Mapping[str, Any]) -> dict[str, Any]:
        return sanitize_prior_results(
            prior,
            strip_fields=self.strip_fields,
            text_fields=self.text_fields,
            max_text_chars=self.max_text_chars,
            marker=self.marker,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Sanitizer:
        return cls(
            strip_fields=tuple(settings.strip_fields),
            max_text_chars=int(settings.max_text_chars),
        )
