"""Pick a result store backend by name."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from task_pipeline.config.settings import Settings, get_settings
from task_pipeline.storage.base import ResultStore
from task_pipeline.storage.json_file import JsonFileResultStore
from task_pipeline.storage.memory import InMemoryResultStore
from task_pipeline.storage.postgres import PostgresResultStore

STORE_BACKENDS = ("memory", "json", "postgres")


def build_store(
    backend: str | None,
    subject: str | None,
    *,
    inputs: dict[str, Any] | None = None,
    store_dir: str | Path | None = None,
    settings: Settings | None = None,
) -> ResultStore:
    resolved_settings = settings or get_settings()
    normalized = (backend or resolved_settings.store_backend).lower().strip()

    if normalized == "memory":
        return InMemoryResultStore(subject, inputs=inputs)
    if normalized == "json":
        directory = store_dir if store_dir is not None else resolved_settings.store_dir
        return JsonFileResultStore(subject, directory, inputs=inputs)
    if normalized == "postgres":
        return PostgresResultStore(
            subject,
            resolved_settings.resolved_database_url(),
            inputs=inputs,
        )
    raise ValueError(
        f"Unknown store backend: {backend} (expected one of {', '.join(STORE_BACKENDS)})"
    )
