"""Pipeline execution: runner, sanitization, and queue helpers."""

from task_pipeline.pipeline.queue import completed_tasks, pending_tasks, resolve_queue
from task_pipeline.pipeline.runner import PipelineRunner, StepOutcome
from task_pipeline.pipeline.sanitize import Sanitizer, sanitize_prior_results

__all__ = [
    "PipelineRunner",
    "Sanitizer",
    "StepOutcome",
    "completed_tasks",
    "pending_tasks",
    "resolve_queue",
    "sanitize_prior_results",
]
