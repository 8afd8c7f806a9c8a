from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "skillboard-api"
    environment: str = "dev"
    log_level: str = "INFO"
    api_key_header: str = "X-API-Key"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    listing_recent_page_size: int = 50
    listing_match_page_size: int = 10
    listing_max_page_size: int = 100
    recommendations_page_size: int = 10
    skill_search_limit: int = 20
    job_default_active_days: int = 30
    job_max_active_days: int = 365
    maintenance_api_key_hash: str | None = None
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    auth_timeout_seconds: float = 5.0
    otel_enabled: bool = True
    otel_service_name: str = "skillboard-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="SB_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
