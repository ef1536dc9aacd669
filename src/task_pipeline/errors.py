"""Exception types raised by registry, queue, and storage layers."""

from __future__ import annotations


class TaskPipelineError(Exception):
    """Base class for pipeline errors."""


class DuplicateTaskError(TaskPipelineError, ValueError):
    """A task name was registered twice."""


class UnknownTaskError(TaskPipelineError, KeyError):
    """A queue selector names a task that is not registered."""

    def __init__(self, name: str, registered: list[str]) -> None:
        self.name = name
        self.registered = registered
        super().__init__(name)

    def __str__(self) -> str:
        known = ", ".join(self.registered) or "(none)"
        return f'Unknown task "{self.name}". Registered: {known}'


class ResultStoreError(TaskPipelineError, RuntimeError):
    """A result store cannot read or write its durable state."""
