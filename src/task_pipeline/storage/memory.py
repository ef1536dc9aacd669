"""In-memory result store for tests and one-shot runs."""

from __future__ import annotations

from typing import Any


class InMemoryResultStore:
    """Process-local results; nothing survives the store instance."""

    def __init__(self, subject: str | None = None, inputs: dict[str, Any] | None = None) -> None:
        self._subject = subject
        self._inputs: dict[str, Any] = dict(inputs or {})
        self._results: dict[str, dict[str, Any]] = {}

    def get_subject(self) -> str | None:
        return self._subject

    def get_inputs(self) -> dict[str, Any]:
        return dict(self._inputs)

    def get_prior(self, task_name: str) -> dict[str, Any] | None:
        return self._results.get(task_name)

    def get_all_prior(self) -> dict[str, dict[str, Any]]:
        return dict(self._results)

    def save_result(self, task_name: str, result: dict[str, Any]) -> None:
        self._results[task_name] = result

    def is_locked(self) -> bool:
        return False
