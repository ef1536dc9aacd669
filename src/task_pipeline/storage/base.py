"""Storage interface for per-subject pipeline results."""

from __future__ import annotations

import hashlib
from typing import Any, Protocol

NO_SUBJECT_KEY = "no-subject"


class ResultStore(Protocol):
    def get_subject(self) -> str | None: ...

    def get_inputs(self) -> dict[str, Any]: ...

    def get_prior(self, task_name: str) -> dict[str, Any] | None: ...

    def get_all_prior(self) -> dict[str, dict[str, Any]]: ...

    def save_result(self, task_name: str, result: dict[str, Any]) -> None: ...

    def is_locked(self) -> bool: ...


def subject_key(subject: str | None) -> str:
    """Content-addressed key: the same subject always maps to the same record."""
    raw = subject if subject is not None else NO_SUBJECT_KEY
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()
