"""Persisted result layout shared by durable store backends."""

from typing import Any

from pydantic import BaseModel, Field


class StoredResults(BaseModel):
    """Complete snapshot of one subject's results."""

    subject: str | None = None
    results: dict[str, dict[str, Any]] = Field(default_factory=dict)
