"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    framepatch_env: str = "development"
    framepatch_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Undo/redo
    history_limit: int = 100
    coalesce_window_seconds: float = 2.0

    # Clipboard
    clipboard_freshness_seconds: float = 30.0
    duplicate_offset_x: float = 10.0
    duplicate_offset_y: float = 10.0

    # Drop resolver (world units, never scaled by zoom)
    min_indicator_length: float = 4.0
    hysteresis_distance: float = 8.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def duplicate_offset(self) -> tuple[float, float]:
        return (self.duplicate_offset_x, self.duplicate_offset_y)


settings = Settings()


def get_settings() -> Settings:
    return settings
