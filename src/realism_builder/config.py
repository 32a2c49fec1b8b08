from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    gemini_api_key: str | None = None

    # Models
    gemini_chat_model: str = "gemini-3-flash-preview"
    gemini_image_model: str = "gemini-3-pro-image-preview"

    # Generation
    image_size: str = "2K"

    # Upstream calls
    max_retries: int = 2
    retry_base_delay_s: float = 2.0
    request_timeout_s: float = 120.0

    # Labelling
    label_jpeg_quality: int = 92

    log_level: str = "INFO"


settings = Settings()
