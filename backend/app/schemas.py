"""Pydantic response models. These define the exact JSON shape
the dashboard receives. Frontend TypeScript types mirror these."""

from pydantic import BaseModel


# ── Friction ───────────────────────────────────────────────────

class FrictionFactors(BaseModel):
    total_duration: float
    error_count: int
    back_navigations: int
    fields_filled: int
    total_fields: int
    steps_completed: int
    total_steps: int
    has_returned: bool


class FrictionBreakdown(BaseModel):
    time_score: float
    error_score: float
    navigation_score: float
    completion_score: float


class FrictionScore(BaseModel):
    score: float
    level: str
    factors: FrictionFactors
    breakdown: FrictionBreakdown


class SessionFrictionScore(BaseModel):
    session_id: str
    score: FrictionScore
    conversion: bool


class FrictionTrendPoint(BaseModel):
    date: str
    avg_friction: float
    conversion_rate: float


class FrictionSummary(BaseModel):
    total_sessions: int
    avg_friction_score: float
    friction_distribution: dict[str, int]
    friction_breakdown: FrictionBreakdown
    high_friction_conversion_rate: float
    low_friction_conversion_rate: float
    correlation: float


class FrictionScoreResponse(BaseModel):
    summary: FrictionSummary
    friction_scores: list[SessionFrictionScore]
    friction_trend: list[FrictionTrendPoint]
    period: str


# ── Abandonment ────────────────────────────────────────────────

class AbandonmentRiskFactors(BaseModel):
    time_exceeded: float
    error_count: int
    current_step: str
    step_duration: float
    total_duration: float
    has_returned: bool
    step_progress: float
    device_type: str | None = None
    location: str | None = None


class AbandonmentPrediction(BaseModel):
    risk_score: float
    risk_level: str
    factors: AbandonmentRiskFactors
    recommendations: list[str]


class SessionPrediction(BaseModel):
    session_id: str
    prediction: AbandonmentPrediction
    is_active: bool
    is_abandoned: bool
    is_completed: bool


class RiskBucket(BaseModel):
    total: int
    abandoned: int
    rate: float


class AbandonmentSummary(BaseModel):
    total_sessions: int
    high_risk_sessions: int
    avg_risk_score: float
    typical_checkout_duration: float
    avg_checkout_time: float
    risk_distribution: dict[str, int]
    abandonment_by_risk: dict[str, RiskBucket]


class AbandonmentPredictionResponse(BaseModel):
    summary: AbandonmentSummary
    predictions: list[SessionPrediction]
    period: str


# ── Revenue forecast ───────────────────────────────────────────

class ForecastPoint(BaseModel):
    date: str
    revenue: float | None = None
    forecast: float | None = None
    lower_bound: float | None = None
    upper_bound: float | None = None
    confidence: float | None = None


class Seasonality(BaseModel):
    weekly: dict[int, float]
    monthly: dict[int, float]


class ForecastAccuracy(BaseModel):
    mae: float
    mape: float
    rmse: float


class RevenueForecastSummary(BaseModel):
    total_historical_revenue: float
    avg_daily_revenue: float
    total_forecast_revenue: float
    avg_forecast_revenue: float
    forecast_7_revenue: float
    forecast_30_revenue: float
    forecast_90_revenue: float
    trend: str
    avg_growth: float


class RevenueForecastResponse(BaseModel):
    summary: RevenueForecastSummary
    historical: list[ForecastPoint]
    forecast: list[ForecastPoint]
    seasonality: Seasonality
    accuracy: ForecastAccuracy | None = None
    fallback: bool
    period: str
    forecast_days: int
