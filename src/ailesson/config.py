"""Runtime settings loaded from the environment or a .env file."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings; every field can be overridden with an AILESSON_* variable."""

    model_config = SettingsConfigDict(
        env_prefix="AILESSON_",
        env_file=".env",
        extra="ignore",
    )

    db_path: str = Field(
        default=str(Path.home() / ".ailesson" / "ailesson.db"),
        description="SQLite database file",
    )
    log_level: str = "INFO"

    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "meta-llama/llama-3.3-70b-instruct"

    groq_api_key: str = ""
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.3-70b-versatile"

    request_timeout: float = Field(default=60.0, description="Per-request timeout (seconds)")
    max_retries: int = Field(default=3, ge=1, description="Attempts per provider, first try included")
    backoff_base: float = Field(default=1.0, ge=0, description="Initial retry delay (seconds)")
    backoff_max: float = Field(default=8.0, ge=0, description="Upper bound for retry delay (seconds)")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
