"""Configuration loading."""

from task_pipeline.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
