from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    log_level: str = "info"

    # Layout advisor keys (optional; the deterministic engine never needs them)
    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    advisor_provider: str = "openai"

    gemini_text_model: str = "gemini-2.0-flash"
    openai_text_model: str = "gpt-4.1-mini"

    # Engine
    offload_enabled: bool = True
    collision_gutter: int = 10
    reference_width: int = 1080
    preset_ratio_tolerance: float = 0.1

    # Validator thresholds
    min_font_size: int = 12
    min_element_size: int = 10

    # Persistence
    project_max_age_days: int = 30


settings = Settings()
