import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    generation_enabled: bool = Field(True, alias="CAREERAI_GENERATION_ENABLED")
    generation_model: str = Field("gpt-5-mini", alias="CAREERAI_GENERATION_MODEL")
    generation_reasoning: Literal["minimal", "low", "medium", "high"] = Field(
        "low",
        alias="CAREERAI_GENERATION_REASONING",
    )
    recommendation_count: int = Field(5, alias="CAREERAI_RECOMMENDATION_COUNT")
    database_url: Optional[str] = Field(None, alias="CAREERAI_DATABASE_URL")
    database_pool_size: int = Field(10, alias="CAREERAI_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="CAREERAI_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="CAREERAI_DATABASE_ECHO")
    local_cache_dir: Optional[str] = Field(None, alias="CAREERAI_LOCAL_CACHE_DIR")
    chat_history_limit: int = Field(50, alias="CAREERAI_CHAT_HISTORY_LIMIT")
    remote_retry_attempts: int = Field(2, alias="CAREERAI_REMOTE_RETRY_ATTEMPTS")
    remote_retry_backoff_seconds: float = Field(0.5, alias="CAREERAI_REMOTE_RETRY_BACKOFF_SECONDS")
    remote_timeout_seconds: float = Field(15.0, alias="CAREERAI_REMOTE_TIMEOUT_SECONDS")
    draft_autosave_seconds: float = Field(2.0, alias="CAREERAI_DRAFT_AUTOSAVE_SECONDS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()  # type: ignore[arg-type]
        if settings.openai_api_key and not os.getenv("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        return settings
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
