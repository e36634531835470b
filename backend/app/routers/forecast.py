"""Forecast endpoints: historical + predicted daily revenue."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from backend.app.config import settings
from backend.app.database import get_pipeline
from backend.app.schemas import (
    ForecastAccuracy, ForecastPoint, RevenueForecastResponse, RevenueForecastSummary, Seasonality,
)
from backend.etl.periods import parse_period
from backend.etl.pipeline import AnalyticsPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/revenue-forecast", response_model=RevenueForecastResponse)
def get_revenue_forecast(
    account_id: str = Query(..., min_length=1),
    period: str | None = None,
    days: int = Query(settings.default_forecast_days, ge=1, le=settings.max_forecast_days),
    pipeline: AnalyticsPipeline = Depends(get_pipeline),
):
    period = parse_period(period)

    try:
        report = pipeline.revenue_forecast_report(account_id, period, days)
    except SQLAlchemyError:
        logger.exception("Get revenue forecast events error")
        raise HTTPException(status_code=500, detail="Failed to fetch revenue forecast data")

    model = report.model
    return RevenueForecastResponse(
        summary=RevenueForecastSummary(
            total_historical_revenue=round(report.total_historical_revenue, 2),
            avg_daily_revenue=round(report.avg_daily_revenue, 2),
            total_forecast_revenue=round(report.total_forecast_revenue, 2),
            avg_forecast_revenue=round(report.avg_forecast_revenue, 2),
            forecast_7_revenue=round(report.window_revenue.get(7, 0.0), 2),
            forecast_30_revenue=round(report.window_revenue.get(30, 0.0), 2),
            forecast_90_revenue=round(report.window_revenue.get(90, 0.0), 2),
            trend=model.trend,
            avg_growth=model.avg_growth,
        ),
        historical=[ForecastPoint(date=p.date, revenue=round(p.revenue, 2)) for p in report.historical],
        forecast=[
            ForecastPoint(
                date=f.date,
                forecast=round(f.forecast, 2),
                lower_bound=round(f.lower_bound, 2),
                upper_bound=round(f.upper_bound, 2),
                confidence=round(f.confidence, 4),
            )
            for f in model.forecasts
        ],
        seasonality=Seasonality(**asdict(model.seasonality)),
        accuracy=ForecastAccuracy(**asdict(report.accuracy)) if report.accuracy else None,
        fallback=report.used_fallback,
        period=report.period,
        forecast_days=report.forecast_days,
    )
