"""Friction endpoints: per-session friction scores and conversion impact."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from backend.app.database import get_pipeline
from backend.app.schemas import (
    FrictionBreakdown, FrictionScoreResponse, FrictionSummary, FrictionTrendPoint,
    SessionFrictionScore,
)
from backend.etl.periods import parse_period
from backend.etl.pipeline import AnalyticsPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/friction-score", response_model=FrictionScoreResponse)
def get_friction_score(
    account_id: str = Query(..., min_length=1),
    period: str | None = None,
    pipeline: AnalyticsPipeline = Depends(get_pipeline),
):
    period = parse_period(period)

    try:
        report = pipeline.friction_report(account_id, period)
    except SQLAlchemyError:
        logger.exception("Get friction score events error")
        raise HTTPException(status_code=500, detail="Failed to fetch friction score data")

    summary = report.summary
    return FrictionScoreResponse(
        summary=FrictionSummary(
            total_sessions=report.total_sessions,
            avg_friction_score=summary.avg_score,
            friction_distribution=summary.distribution,
            friction_breakdown=FrictionBreakdown(**asdict(summary.avg_breakdown)),
            high_friction_conversion_rate=report.high_friction_conversion_rate,
            low_friction_conversion_rate=report.low_friction_conversion_rate,
            correlation=report.correlation,
        ),
        friction_scores=[SessionFrictionScore(**asdict(s)) for s in report.sessions],
        friction_trend=[FrictionTrendPoint(**asdict(t)) for t in report.trend],
        period=report.period,
    )
