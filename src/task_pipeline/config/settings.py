"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]

StoreBackend = Literal["memory", "json", "postgres"]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "task-pipeline"
    app_env: str = "dev"
    log_level: str = "INFO"
    store_backend: StoreBackend = "memory"
    store_dir: Path = Path("var/ai-results")
    database_url: str = ""
    subject_key: str = Field(default="image_url", min_length=1)
    max_text_chars: int = Field(default=8000, ge=1)
    strip_fields: list[str] = Field(default_factory=lambda: ["raw_response", "blocks"])

    model_config = SettingsConfigDict(
        env_prefix="TASK_PIPELINE_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
