from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./health_diary.db"
    port: int = 5001

    # Session tokens
    secret_key: str = "change-me"
    token_expire_hours: int = 24

    # Chat-completion provider (any OpenAI-compatible endpoint)
    ai_api_key: str = ""
    ai_base_url: str = ""  # empty -> default OpenAI endpoint
    ai_model: str = "gpt-4o-mini"
    ai_max_tokens: int = 1500
    ai_temperature: float = 0.7
    ai_min_interval_seconds: float = 1.0
    ai_max_concurrent: int = 1

    cors_origin: str = "http://localhost:5173"

    # File storage
    upload_dir: str = "uploads"
    max_upload_bytes: int = 10 * 1024 * 1024
    report_font_path: str = ""  # TTF with Cyrillic glyphs, falls back to matplotlib's DejaVu Sans

    # NOAA SWPC feeds
    kp_daily_url: str = "https://services.swpc.noaa.gov/text/daily-geomagnetic-indices.txt"
    kp_forecast_url: str = "https://services.swpc.noaa.gov/text/27-day-outlook.txt"
    kp_refresh_enabled: bool = True
    kp_refresh_hour: int = 3
    scheduler_timezone: str = "UTC"


@lru_cache
def get_settings() -> Settings:
    return Settings()
