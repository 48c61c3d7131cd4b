"""App configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database (single key-value table)
    database_url: str = "sqlite+aiosqlite:///./geogenesis.db"
    storage_key: str = "geogenesis_trees_v1"

    # Photo storage
    photo_storage_path: str = "./photos"
    max_upload_bytes: int = 10 * 1024 * 1024

    # Verification (Gemini)
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    verification_timeout_s: float = 30.0

    # Check-in cadence
    check_in_cadence_days: int = 30
    bypass_cadence_gate: bool = False  # accelerated testing only

    # CORS
    cors_origins: list[str] = ["*"]

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_prefix": "GEOGENESIS_", "env_file": ".env"}


settings = Settings()
