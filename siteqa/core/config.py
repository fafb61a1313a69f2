from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "siteqa-link-checker"
    environment: str = "dev"
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]
    n8n_webhook_url: str | None = None
    webhook_timeout_seconds: float = 60.0
    link_check_concurrency: int = 5
    navigation_timeout_ms: int = 180_000
    page_settle_ms: int = 2_000
    external_link_timeout_seconds: float = 5.0
    internal_link_timeout_seconds: float = 10.0
    link_max_redirects: int = 5
    google_doc_timeout_seconds: float = 30.0
    max_image_dimension: int = 7_500
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 5
    otel_enabled: bool = True
    otel_service_name: str = "siteqa-link-checker"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="SITEQA_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
