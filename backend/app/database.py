"""Database connection and pipeline wiring for FastAPI."""

from fastapi import Depends
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from backend.app.config import settings
from backend.etl.config import AnalyticsConfig
from backend.etl.pipeline import AnalyticsPipeline

engine: Engine = create_engine(settings.database_url)


def get_engine() -> Engine:
    """Dependency for routes that need DB access."""
    return engine


def get_pipeline(engine: Engine = Depends(get_engine)) -> AnalyticsPipeline:
    config = AnalyticsConfig(
        database_url=settings.database_url,
        top_sessions_limit=settings.top_sessions_limit,
    )
    return AnalyticsPipeline(config, db_engine=engine)
