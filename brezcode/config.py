# brezcode/config.py
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    # ── Database
    DATABASE_URL: str = "sqlite:///./brezcode.db"  # override in .env (postgresql+psycopg2://...)
    FORCE_IN_MEMORY_STORE: bool = Field(False, env="FORCE_IN_MEMORY_STORE")

    # Generation providers (both optional; the canned fallback always answers)
    ANTHROPIC_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    PRIMARY_MODEL: str = Field("claude-sonnet-4-20250514", env="PRIMARY_MODEL")
    BACKUP_MODEL: str = Field("gpt-4o", env="BACKUP_MODEL")

    # Token budgets / temperature
    LLM_TEMPERATURE: float = Field(0.7, env="LLM_TEMPERATURE")
    PRIMARY_MAX_TOKENS: int = Field(500, env="PRIMARY_MAX_TOKENS")
    BACKUP_MAX_TOKENS: int = Field(2000, env="BACKUP_MAX_TOKENS")
    QUESTION_MAX_TOKENS: int = Field(1000, env="QUESTION_MAX_TOKENS")
    IMPROVE_MAX_TOKENS: int = Field(600, env="IMPROVE_MAX_TOKENS")
    IMPROVE_TEMPERATURE: float = Field(0.6, env="IMPROVE_TEMPERATURE")
    LLM_TIMEOUT_SECONDS: float = Field(60.0, env="LLM_TIMEOUT_SECONDS")

    # Session housekeeping
    CLEANUP_ABANDONED_HOURS: int = Field(2, env="CLEANUP_ABANDONED_HOURS")
    CLEANUP_INTERVAL_MINUTES: int = Field(0, env="CLEANUP_INTERVAL_MINUTES")  # 0 = startup sweep only

    ENV: str = Field("development", env="ENV")

    # Debug logging
    BREZCODE_DEBUG: bool = Field(False, env="BREZCODE_DEBUG")


    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # ignore unexpected keys instead of erroring
    )

settings = Settings()
