"""Task handler contract, registry, and built-in tasks."""

from task_pipeline.tasks.base import (
    BaseTask,
    TaskHandler,
    TaskResult,
    TaskStatus,
    failed_result,
    is_sentinel,
    skipped_result,
)
from task_pipeline.tasks.registry import (
    TaskEntry,
    TaskRegistry,
    TaskRegistryBuilder,
    build_default_registry,
)

__all__ = [
    "BaseTask",
    "TaskEntry",
    "TaskHandler",
    "TaskRegistry",
    "TaskRegistryBuilder",
    "TaskResult",
    "TaskStatus",
    "build_default_registry",
    "failed_result",
    "is_sentinel",
    "skipped_result",
]
