"""Shared stub handlers and stores for unit tests."""

from __future__ import annotations

from typing import Any

from task_pipeline.storage.memory import InMemoryResultStore
from task_pipeline.tasks.registry import TaskRegistry, TaskRegistryBuilder


class RecordingTask:
    """Call-counting handler stub."""

    def __init__(
        self,
        name: str,
        *,
        supported: bool = True,
        result: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.supported = supported
        self.result = result
        self.error = error
        self.supports_calls: list[tuple[dict[str, Any], dict[str, Any]]] = []
        self.run_calls: list[tuple[dict[str, Any], dict[str, Any], dict[str, Any]]] = []

    def supports(self, inputs: dict[str, Any], context: dict[str, Any]) -> bool:
        self.supports_calls.append((dict(inputs), dict(context)))
        return self.supported

    def run(
        self,
        inputs: dict[str, Any],
        prior_results: dict[str, Any],
        context: dict[str, Any],
    ) -> dict[str, Any]:
        self.run_calls.append((dict(inputs), prior_results, dict(context)))
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        return {"task": self.name, "ok": True}

    def metadata(self) -> dict[str, Any]:
        return {"description": f"stub {self.name}"}


class LockedStore(InMemoryResultStore):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.save_calls = 0

    def save_result(self, task_name: str, result: dict[str, Any]) -> None:
        self.save_calls += 1
        super().save_result(task_name, result)

    def is_locked(self) -> bool:
        return True


class LocksAfterFirstSaveStore(InMemoryResultStore):
    """Simulates another worker claiming the subject mid-run."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._locked = False

    def save_result(self, task_name: str, result: dict[str, Any]) -> None:
        super().save_result(task_name, result)
        self._locked = True

    def is_locked(self) -> bool:
        return self._locked


def build_registry(*handlers: Any) -> TaskRegistry:
    builder = TaskRegistryBuilder()
    for handler in handlers:
        builder.register(handler)
    return builder.build()
