"""Result store backends and models."""

from task_pipeline.storage.base import ResultStore, subject_key
from task_pipeline.storage.factory import STORE_BACKENDS, build_store
from task_pipeline.storage.json_file import JsonFileResultStore
from task_pipeline.storage.memory import InMemoryResultStore
from task_pipeline.storage.models import StoredResults
from task_pipeline.storage.postgres import PostgresResultStore

__all__ = [
    "InMemoryResultStore",
    "JsonFileResultStore",
    "PostgresResultStore",
    "ResultStore",
    "STORE_BACKENDS",
    "StoredResults",
    "build_store",
    "subject_key",
]
