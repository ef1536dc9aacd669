"""Sequential task runner: support-check, execute, persist, notify."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from task_pipeline.pipeline.sanitize import Sanitizer
from task_pipeline.storage.base import ResultStore
from task_pipeline.tasks.base import (
    REASON_NO_HANDLER,
    REASON_NOT_SUPPORTED,
    TaskResult,
    TaskStatus,
    failed_result,
    skipped_result,
)
from task_pipeline.tasks.registry import TaskRegistry

_module_logger = logging.getLogger(__name__)

BeforeTaskHook = Callable[[str, dict[str, Any], dict[str, Any]], None]
AfterTaskHook = Callable[[str, TaskResult, TaskStatus], None]

DEFAULT_SUBJECT_KEY = "image_url"


@dataclass(frozen=True)
class StepOutcome:
    """Result of one ``run_next`` call.

    ``task_name`` is None when no progress was made (locked store or empty
    queue); ``remaining`` is then the queue exactly as given.
    """

    task_name: str | None
    status: TaskStatus | None
    result: TaskResult | None
    remaining: tuple[str, ...]

    @property
    def progressed(self) -> bool:
        return self.task_name is not None


class PipelineRunner:
    """Run queued tasks one at a time against a result store.

    Handler failures are recorded as ``{"failed": True, "error": ...}`` and
    never raised. Storage errors and hook errors propagate to the caller.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        *,
        logger: logging.Logger | None = None,
        subject_key: str = DEFAULT_SUBJECT_KEY,
        sanitizer: Callable[[dict[str, Any]], dict[str, Any]] | None = None,
    ) -> None:
        self.registry = registry
        self.logger = logger or _module_logger
        self.subject_key = subject_key
        self.sanitizer = sanitizer or Sanitizer()
        self._before_task: BeforeTaskHook | None = None
        self._after_task: AfterTaskHook | None = None

    def on_before_task(self, hook: BeforeTaskHook | None) -> PipelineRunner:
        self._before_task = hook
        return self

    def on_after_task(self, hook: AfterTaskHook | None) -> PipelineRunner:
        self._after_task = hook
        return self

    def run_next(self, store: ResultStore, queue: Sequence[str]) -> StepOutcome:
        remaining = tuple(queue)
        if store.is_locked():
            self.logger.info(
                "pipeline_runner event=locked subject=%s", _preview(store.get_subject())
            )
            return StepOutcome(task_name=None, status=None, result=None, remaining=remaining)
        if not remaining:
            return StepOutcome(task_name=None, status=None, result=None, remaining=remaining)

        task_name, remaining = remaining[0], remaining[1:]
        context = dict(store.get_inputs())
        inputs = self._assemble_inputs(store)
        prior_results = self.sanitizer(store.get_all_prior())

        handler = self.registry.get(task_name)
        if handler is None:
            self.logger.warning("pipeline_runner event=no_handler task=%s", task_name)
            return self._record(
                store, task_name, skipped_result(REASON_NO_HANDLER), "no_handler", remaining
            )

        if not handler.supports(inputs, context):
            self.logger.info(
                "pipeline_runner event=skipped task=%s reason=not supported", task_name
            )
            return self._record(
                store, task_name, skipped_result(REASON_NOT_SUPPORTED), "skipped", remaining
            )

        if self._before_task is not None:
            self._before_task(task_name, inputs, prior_results)

        self.logger.info(
            "pipeline_runner event=start task=%s prior=%s",
            task_name,
            ",".join(prior_results) or "-",
        )
        try:
            result = _as_result(handler.run(inputs, prior_results, context))
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or type(exc).__name__
            self.logger.error("pipeline_runner event=failed task=%s error=%s", task_name, message)
            return self._record(store, task_name, failed_result(message), "failed", remaining)

        self.logger.info("pipeline_runner event=done task=%s", task_name)
        return self._record(store, task_name, result, "done", remaining)

    def run_all(self, store: ResultStore, queue: Sequence[str]) -> list[StepOutcome]:
        """Drain ``queue``; stop early when the store locks or a step makes no progress."""
        outcomes: list[StepOutcome] = []
        remaining = tuple(queue)
        while remaining:
            outcome = self.run_next(store, remaining)
            if not outcome.progressed:
                break
            outcomes.append(outcome)
            remaining = outcome.remaining
        return outcomes

    def _assemble_inputs(self, store: ResultStore) -> dict[str, Any]:
        inputs = dict(store.get_inputs())
        subject = store.get_subject()
        # Single-purpose tasks only look for the subject under one conventional key.
        if subject is not None and self.subject_key not in inputs:
            inputs[self.subject_key] = subject
        return inputs

    def _record(
        self,
        store: ResultStore,
        task_name: str,
        result: TaskResult,
        status: TaskStatus,
        remaining: tuple[str, ...],
    ) -> StepOutcome:
        store.save_result(task_name, result)
        if self._after_task is not None:
            self._after_task(task_name, result, status)
        return StepOutcome(task_name=task_name, status=status, result=result, remaining=remaining)


def _as_result(raw: Any) -> TaskResult:
    if isinstance(raw, BaseModel):
        return raw.model_dump(mode="json")
    if not isinstance(raw, dict):
        raise TypeError(f"Task returned {type(raw).__name__}, expected a mapping")
    # Durable stores write JSON; reject anything they could not persist.
    try:
        json.dumps(raw)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"Task returned a result that is not JSON-serializable: {exc}") from exc
    return raw


def _preview(value: str | None, limit: int = 80) -> str:
    if value is None:
        return "-"
    compact = " ".join(value.split())
    return compact if len(compact) <= limit else compact[:limit] + "..."
