from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    app_name: str = "Enggist"
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./enggist.db"

    # Shared secret expected in "Authorization: Bearer <secret>" on trigger endpoints
    ingest_secret: str = ""

    # LLM config (any OpenAI-compatible chat completions endpoint)
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai"
    llm_api_key: Optional[str] = None
    llm_model: str = "gemini-3-flash-preview"
    llm_timeout_seconds: float = 60.0

    # Feed fetching
    feed_timeout_seconds: float = 10.0
    feed_max_items: int = 50
    feed_user_agent: str = "Enggist/1.0 (RSS Reader)"

    # Summarization batch job
    summarize_limit: int = 15
    summarize_batch_size: int = 3
    summarize_retry_delay_seconds: float = 1.0
    summarize_max_content_chars: int = 8000

    # Daily cron triggers; they call this app's own endpoints over HTTP
    scheduler_enabled: bool = False
    app_url: str = "http://127.0.0.1:8000"
    ingest_cron_hour: int = 1
    summarize_cron_hour: int = 2
    summarize_trigger_timeout_seconds: float = 600.0
    summarization_disabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
