"""Application configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    log_level: str = "INFO"
    log_format: str = "console"
    max_upload_size: int = 20971520  # 20MB

    # Snapshot persistence: one JSON file per key under data_dir
    data_dir: str = "./data"
    records_snapshot_key: str = "cbd_entregas_data"
    occurrences_snapshot_key: str = "cbd_entregas_occurrences"

    # Optional JSON file {"in_house": [...], "contracted": [...]} replacing the
    # built-in driver roster.
    roster_path: str = ""

    # Dashboard
    history_page_size: int = 12
    trend_months: int = 6

    # Photo extraction (OpenAI-compatible vision endpoint)
    openai_api_key: str = ""
    openai_base_url: str | None = None
    vision_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 4000

    def resolved_openai_api_key(self) -> str | None:
        """
        API key for the photo extractor, or ``None`` when photo import is off.

        A local vision endpoint (Ollama, LM Studio) runs keyless, yet the SDK
        refuses an empty key, so a placeholder is handed over instead.
        """
        key = (self.openai_api_key or "").strip()
        if key and key != "sk-your-key-here":
            return key
        if self._is_local_base_url():
            return "local-dev"
        return None

    def _is_local_base_url(self) -> bool:
        if not self.openai_base_url:
            return False
        try:
            host = (urlparse(self.openai_base_url).hostname or "").lower()
        except ValueError:
            return False
        return host in {"localhost", "127.0.0.1", "::1"} or host.endswith(".local")

    def normalized_log_format(self) -> str:
        fmt = (self.log_format or "").strip().lower()
        return fmt if fmt in {"console", "json"} else "console"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
