"""FastAPI application settings."""

from pydantic_settings import BaseSettings

from backend.etl.config import DATABASE_URL, DEFAULT_FORECAST_DAYS, TOP_SESSIONS_LIMIT


class Settings(BaseSettings):
    database_url: str = DATABASE_URL
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    api_prefix: str = "/api/v1"
    top_sessions_limit: int = TOP_SESSIONS_LIMIT
    default_forecast_days: int = DEFAULT_FORECAST_DAYS
    max_forecast_days: int = 365

    class Config:
        env_file = ".env"


settings = Settings()
