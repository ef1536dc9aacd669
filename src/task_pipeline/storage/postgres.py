"""PostgreSQL-backed result store with a cooperative lock column."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from task_pipeline.errors import ResultStoreError
from task_pipeline.storage.base import subject_key

logger = logging.getLogger(__name__)


class PostgresResultStore:
    """Persist one subject's results as a JSONB row in ``pipeline_results``.

    ``locked_by`` is owned by whatever coordinates workers; the runner only
    reads it through ``is_locked``.
    """

    def __init__(
        self,
        subject: str | None,
        database_url: str,
        inputs: dict[str, Any] | None = None,
        *,
        auto_migrate: bool = True,
    ) -> None:
        if not database_url:
            raise ResultStoreError("TASK_PIPELINE_DATABASE_URL is required for the postgres store")
        self.database_url = database_url
        self._subject = subject
        self._inputs: dict[str, Any] = dict(inputs or {})
        self._key = subject_key(subject)
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()
        if auto_migrate:
            self.migrate()
        self._results = self._load()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pipeline_results (
                    subject_key TEXT PRIMARY KEY,
                    subject TEXT,
                    results_json JSONB NOT NULL DEFAULT '{}'::jsonb,
                    locked_by TEXT,
                    locked_at TIMESTAMPTZ,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_pipeline_results_updated_at
                ON pipeline_results(updated_at DESC)
                """)
            conn.commit()

    @property
    def subject_key(self) -> str:
        return self._key

    def get_subject(self) -> str | None:
        return self._subject

    def get_inputs(self) -> dict[str, Any]:
        return dict(self._inputs)

    def get_prior(self, task_name: str) -> dict[str, Any] | None:
        return self._results.get(task_name)

    def get_all_prior(self) -> dict[str, dict[str, Any]]:
        return dict(self._results)

    def save_result(self, task_name: str, result: dict[str, Any]) -> None:
        updated = {**self._results, task_name: result}
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO pipeline_results (
                    subject_key,
                    subject,
                    results_json,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (subject_key) DO UPDATE
                SET subject = EXCLUDED.subject,
                    results_json = EXCLUDED.results_json,
                    updated_at = EXCLUDED.updated_at
                """,
                (self._key, self._subject, self._json_wrapper(updated), now, now),
            )
            conn.commit()
        self._results = updated

    def is_locked(self) -> bool:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT locked_by FROM pipeline_results WHERE subject_key = %s",
                (self._key,),
            ).fetchone()
        return bool(row and row.get("locked_by"))

    def lock(self, owner: str) -> bool:
        """Claim the subject for ``owner``; False when another worker holds it."""
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO pipeline_results (
                    subject_key,
                    subject,
                    results_json,
                    created_at,
                    updated_at
                ) VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (subject_key) DO NOTHING
                """,
                (self._key, self._subject, self._json_wrapper(self._results), now, now),
            )
            row = conn.execute(
                """
                UPDATE pipeline_results
                SET locked_by = %s,
                    locked_at = %s
                WHERE subject_key = %s AND locked_by IS NULL
                RETURNING subject_key
                """,
                (owner, now, self._key),
            ).fetchone()
            conn.commit()
        acquired = row is not None
        logger.info(
            "result_store event=lock subject_key=%s owner=%s acquired=%s",
            self._key,
            owner,
            acquired,
        )
        return acquired

    def unlock(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                UPDATE pipeline_results
                SET locked_by = NULL,
                    locked_at = NULL
                WHERE subject_key = %s
                """,
                (self._key,),
            )
            conn.commit()

    def _load(self) -> dict[str, dict[str, Any]]:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT subject, results_json FROM pipeline_results WHERE subject_key = %s",
                (self._key,),
            ).fetchone()
        if row is None:
            return {}
        return self._parse_results(row.get("results_json"))

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise ResultStoreError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "task-pipeline[postgres]"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_results(raw: Any) -> dict[str, dict[str, Any]]:
        if raw is None:
            return {}
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(parsed, dict):
            raise ResultStoreError("pipeline_results.results_json is not an object")
        return {str(name): value for name, value in parsed.items() if isinstance(value, dict)}
