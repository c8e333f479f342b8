"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Slotwise Scheduler"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://slotwise@localhost:5432/slotwise"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "slotwise"
    opik_workspace: str | None = None
    scheduler_enabled: bool = False
    scheduler_timezone: str = "UTC"
    # Weekly generation runs ahead of the coming week (default Sunday 18:00).
    weekly_job_day: int = 6
    weekly_job_hour: int = 18
    weekly_job_minute: int = 0
    jobs_run_on_startup: bool = False
    default_day_start_hour: int = 6
    default_day_end_hour: int = 22
    default_country: str = "UK"
    optimizer_provider: str = "heuristic"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o"
    optimizer_timeout_seconds: float = 20.0


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
