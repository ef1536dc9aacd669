"""Strict Pydantic schemas for built-in task results."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class ExtractTextResult(StrictModel):
    text: str
    char_count: int = Field(ge=0)
    # Verbatim upstream payload; kept for persistence, stripped before reuse.
    raw_response: str | None = None


class SummaryResult(StrictModel):
    summary: str
    word_count: int = Field(ge=0)


class EntitiesResult(StrictModel):
    entities: list[str]


class KeywordsResult(StrictModel):
    keywords: list[str]


PriorityValue = Literal["low", "medium", "high", "critical"]


class ClassifyPriorityResult(StrictModel):
    priority: PriorityValue
    reasons: list[str] = Field(default_factory=list)
