"""Configuration management for the Reporting Studio NLQ engine."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Reporting Studio NLQ"
    debug: bool = False
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # LLM Configuration
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field(default="gpt-4o-mini", validation_alias="NLQ_LLM_MODEL")
    llm_timeout: float = 30.0  # seconds, applied by the SDK client

    # NLQ generation
    nlq_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    nlq_max_tokens: int = Field(default=500, ge=16, le=8192)
    default_dialect: str = "postgresql"
    precheck_questions: bool = True

    # Engine rules (table-name mappings, deny-list, tenant policy)
    rules_file: Optional[str] = Field(default=None, validation_alias="NLQ_RULES_FILE")

    # Query Execution
    database_url: str = Field(default="sqlite:///reportstudio.db", validation_alias="DATABASE_URL")
    max_result_rows: int = 1000


# Global settings instance
settings = Settings()
