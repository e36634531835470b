"""Abandonment endpoints: risk scores for open checkout sessions."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from backend.app.database import get_pipeline
from backend.app.schemas import (
    AbandonmentPredictionResponse, AbandonmentSummary, RiskBucket, SessionPrediction,
)
from backend.etl.periods import parse_period
from backend.etl.pipeline import AnalyticsPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/abandonment-prediction", response_model=AbandonmentPredictionResponse)
def get_abandonment_prediction(
    account_id: str = Query(..., min_length=1),
    period: str | None = None,
    pipeline: AnalyticsPipeline = Depends(get_pipeline),
):
    period = parse_period(period)

    try:
        report = pipeline.abandonment_report(account_id, period)
    except SQLAlchemyError:
        logger.exception("Get abandonment prediction events error")
        raise HTTPException(status_code=500, detail="Failed to fetch abandonment prediction data")

    return AbandonmentPredictionResponse(
        summary=AbandonmentSummary(
            total_sessions=report.total_sessions,
            high_risk_sessions=report.high_risk_sessions,
            avg_risk_score=report.avg_risk_score,
            typical_checkout_duration=report.typical_checkout_duration,
            avg_checkout_time=report.avg_checkout_time,
            risk_distribution=report.risk_distribution,
            abandonment_by_risk={
                level: RiskBucket(**asdict(bucket))
                for level, bucket in report.abandonment_by_risk.items()
            },
        ),
        predictions=[SessionPrediction(**asdict(p)) for p in report.predictions],
        period=report.period,
    )
