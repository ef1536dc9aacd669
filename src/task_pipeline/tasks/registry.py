"""Explicit task registration and lazy handler resolution."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from task_pipeline.errors import DuplicateTaskError
from task_pipeline.tasks.base import TaskHandler
from task_pipeline.tasks.builtin import BUILTIN_TASKS

HandlerFactory = Callable[[], TaskHandler]


@dataclass(frozen=True)
class TaskEntry:
    name: str
    factory: HandlerFactory
    identifier: str


class TaskRegistry:
    """Read-only map of task name to handler.

    The name map is fixed at construction. Handlers are instantiated on first
    ``get`` and cached for the registry's lifetime; ``has`` and ``task_names``
    never instantiate anything.
    """

    def __init__(self, entries: Mapping[str, TaskEntry] | None = None) -> None:
        self._entries: Mapping[str, TaskEntry] = MappingProxyType(dict(entries or {}))
        self._resolved: dict[str, TaskHandler] = {}

    def has(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> TaskHandler | None:
        entry = self._entries.get(name)
        if entry is None:
            return None
        handler = self._resolved.get(name)
        if handler is None:
            handler = entry.factory()
            self._resolved[name] = handler
        return handler

    def all(self) -> dict[str, TaskHandler]:
        resolved: dict[str, TaskHandler] = {}
        for name in self._entries:
            handler = self.get(name)
            if handler is not None:
                resolved[name] = handler
        return resolved

    def task_names(self) -> Mapping[str, str]:
        return MappingProxyType({name: entry.identifier for name, entry in self._entries.items()})

    def metadata(self) -> dict[str, dict[str, Any]]:
        return {name: dict(handler.metadata()) for name, handler in self.all().items()}

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class TaskRegistryBuilder:
    """Collects registrations at startup and freezes them into a ``TaskRegistry``."""

    def __init__(self) -> None:
        self._entries: dict[str, TaskEntry] = {}

    def register(self, target: Any, *, name: str | None = None) -> TaskRegistryBuilder:
        """Register a handler class, a handler instance, or a zero-argument factory.

        Classes and instances provide their name through the ``name`` class
        attribute; plain factories must pass ``name=`` explicitly.
        """
        task_name = name if name is not None else _declared_name(target)
        if not isinstance(task_name, str) or not task_name.strip():
            raise ValueError(f"Cannot determine task name for {target!r}; pass name=...")
        if task_name in self._entries:
            raise DuplicateTaskError(f"Task already registered: {task_name}")

        if isinstance(target, type) or not isinstance(target, TaskHandler):
            if not callable(target):
                raise TypeError(f"Expected a task handler or factory, got {target!r}")
            factory: HandlerFactory = target
        else:
            instance = target
            factory = lambda: instance  # noqa: E731

        self._entries[task_name] = TaskEntry(
            name=task_name,
            factory=factory,
            identifier=_identifier(target),
        )
        return self

    def build(self) -> TaskRegistry:
        return TaskRegistry(self._entries)


def _declared_name(target: Any) -> str | None:
    if not (isinstance(target, type) or isinstance(target, TaskHandler)):
        return None
    # A property on the class reads back as a descriptor, not a str.
    declared = getattr(target, "name", None)
    if isinstance(declared, str):
        return declared
    return None


def _identifier(target: Any) -> str:
    is_instance = not isinstance(target, type) and isinstance(target, TaskHandler)
    owner = type(target) if is_instance else target
    module = getattr(owner, "__module__", None) or "<unknown>"
    qualname = getattr(owner, "__qualname__", None) or repr(owner)
    return f"{module}.{qualname}"


def build_default_registry() -> TaskRegistry:
    builder = TaskRegistryBuilder()
    for task_cls in BUILTIN_TASKS:
        builder.register(task_cls)
    return builder.build()
