"""JSON file-backed result store.

One file per subject under ``store_dir``, named by the SHA-1 of the subject so
reruns against the same subject resume from earlier results. Every save
atomically replaces the complete snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from task_pipeline.errors import ResultStoreError
from task_pipeline.storage.base import subject_key
from task_pipeline.storage.models import StoredResults

logger = logging.getLogger(__name__)


class JsonFileResultStore:
    """Persist results for one subject to ``<store_dir>/<sha1>.json``."""

    def __init__(
        self,
        subject: str | None,
        store_dir: str | Path,
        inputs: dict[str, Any] | None = None,
    ) -> None:
        self._subject = subject
        self._inputs: dict[str, Any] = dict(inputs or {})
        self.store_dir = Path(store_dir)
        self._file_path = self.store_dir / f"{subject_key(subject)}.json"
        self._data = self._load()

    @property
    def file_path(self) -> Path:
        return self._file_path

    def get_subject(self) -> str | None:
        return self._subject

    def get_inputs(self) -> dict[str, Any]:
        return dict(self._inputs)

    def get_prior(self, task_name: str) -> dict[str, Any] | None:
        return self._data.results.get(task_name)

    def get_all_prior(self) -> dict[str, dict[str, Any]]:
        return dict(self._data.results)

    def save_result(self, task_name: str, result: dict[str, Any]) -> None:
        updated = StoredResults(
            subject=self._subject,
            results={**self._data.results, task_name: result},
        )
        self._persist(updated)
        self._data = updated

    def is_locked(self) -> bool:
        return False

    def _load(self) -> StoredResults:
        if not self._file_path.is_file():
            return StoredResults(subject=self._subject)
        raw = self._file_path.read_text(encoding="utf-8")
        try:
            return StoredResults.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise ResultStoreError(f"Unreadable result file {self._file_path}: {exc}") from exc

    def _persist(self, data: StoredResults) -> None:
        try:
            payload = json.dumps(data.model_dump(mode="json"), indent=4, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ResultStoreError(
                f"Results for {self._file_path} are not serializable: {exc}"
            ) from exc

        # Readers only ever see a complete snapshot: write a temp file, then rename.
        temp_path: Path | None = None
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.store_dir,
                prefix=f".{self._file_path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._file_path)
        except OSError as exc:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise ResultStoreError(f"Could not write result file {self._file_path}: {exc}") from exc

        logger.debug(
            "result_store event=persisted path=%s tasks=%d",
            self._file_path,
            len(data.results),
        )
