from pathlib import Path

from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = {
        "env_file": "../.env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Completion API
    anthropic_api_key: str = ""
    completion_model: str = "claude-sonnet-4-5-20250929"
    completion_max_tokens: int = 1000
    completion_timeout_seconds: float = 30.0

    # Catalog
    catalog_dir: str = str(PACKAGE_DIR / "data")
    default_language: str = "fr"

    # Persistence (empty = in-memory blobs)
    storage_dir: str = ""

    # Suggestion response cache
    warm_cache_on_startup: bool = False

    # Chat sessions idle longer than this are dropped from memory
    session_idle_ttl_seconds: float = 3600.0

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
