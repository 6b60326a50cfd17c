from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Rules QA"
    app_version: str = "0.1.0"

    search_backend: str = "elasticsearch"
    elasticsearch_host: Optional[str] = None
    elasticsearch_api_key: Optional[str] = None
    search_timeout_seconds: float = 10.0
    search_max_retries: int = 2
    rules_index: str = "waterpolo-rules"
    definitions_index: str = "waterpolo-definitions"
    corpus_rules_path: Optional[str] = None
    corpus_definitions_path: Optional[str] = None

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    generation_temperature: float = 0.2
    generation_max_output_tokens: int = 2048
    generation_timeout_seconds: float = 30.0
    generation_max_retries: int = 1

    ask_default_max_context: int = 10
    search_default_max_results: int = 5
    context_max_chars: int = 12000
    fallback_top_n: int = 3
    highlight_pre_tag: str = "<mark>"
    highlight_post_tag: str = "</mark>"
    query_expansions_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("QUERY_EXPANSIONS_PATH", "EXPANSIONS_PATH"),
    )

    metrics_enabled: bool = True
    log_format: str = "json"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_max_field_chars: int = 2000
    correlation_id_header: str = "X-Correlation-ID"
    frontend_allowed_origins: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
