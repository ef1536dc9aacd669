"""Task-pipeline orchestrator: run named tasks against a subject and keep resumable results."""

import logging

from task_pipeline.pipeline import PipelineRunner, StepOutcome
from task_pipeline.storage import InMemoryResultStore, JsonFileResultStore, ResultStore
from task_pipeline.tasks import (
    BaseTask,
    TaskHandler,
    TaskRegistry,
    TaskRegistryBuilder,
    build_default_registry,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BaseTask",
    "InMemoryResultStore",
    "JsonFileResultStore",
    "PipelineRunner",
    "ResultStore",
    "StepOutcome",
    "TaskHandler",
    "TaskRegistry",
    "TaskRegistryBuilder",
    "build_default_registry",
]
