"""Caller-side queue helpers: selector parsing and resume filtering."""

from __future__ import annotations

from collections.abc import Iterable

from task_pipeline.errors import UnknownTaskError
from task_pipeline.storage.base import ResultStore
from task_pipeline.tasks.registry import TaskRegistry

ALL_TASKS = "all"


def resolve_queue(selector: str | Iterable[str] | None, registry: TaskRegistry) -> list[str]:
    """Turn ``"all"`` or ``"a,b,c"`` into an ordered, de-duplicated task queue.

    Only the compiled name map is consulted; no handler is instantiated.
    """
    registered = list(registry.task_names())
    if selector is None:
        return registered
    if isinstance(selector, str):
        if selector.strip().lower() in {"", ALL_TASKS}:
            return registered
        names = selector.split(",")
    else:
        names = list(selector)

    queue: list[str] = []
    for raw_name in names:
        name = raw_name.strip()
        if not name or name in queue:
            continue
        if not registry.has(name):
            raise UnknownTaskError(name, registered)
        queue.append(name)
    return queue


def pending_tasks(queue: Iterable[str], store: ResultStore) -> list[str]:
    """Names in ``queue`` with no recorded result yet, in queue order."""
    prior = store.get_all_prior()
    return [name for name in queue if name not in prior]


def completed_tasks(queue: Iterable[str], store: ResultStore) -> list[str]:
    prior = store.get_all_prior()
    return [name for name in queue if name in prior]
