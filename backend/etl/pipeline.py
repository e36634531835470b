"""Pipeline: Extract → Clean → Transform → Score for one account.

Each report method reads the account's events for a period, builds the
model inputs, runs the scoring/forecast functions and aggregates the
results into a report the API serves as-is.

Usage:
    python -m backend.etl.pipeline
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd
from sqlalchemy.engine import Engine

from backend.analysis.abandonment import (
    AbandonmentPrediction, get_typical_checkout_duration, predict_abandonment,
)
from backend.analysis.forecasting import (
    DATE_FORMAT, ForecastAccuracy, ForecastDataPoint, ForecastModel, ForecastResult,
    MIN_HISTORY_POINTS, calculate_forecast_accuracy, generate_forecast,
)
from backend.analysis.friction import (
    LEVELS, FrictionScore, FrictionSummary, calculate_average_friction, calculate_friction_score,
)
from backend.etl.config import (
    AnalyticsConfig, DEFAULT_ACCOUNT_ID, DEFAULT_FORECAST_DAYS, FORECAST_SUMMARY_WINDOWS,
    REVENUE_EVENT_TYPES, SESSION_EVENT_TYPES,
)
from backend.etl.clean import EventCleaner
from backend.etl.extract import EventExtractor
from backend.etl.periods import Period, extend_back, get_date_range
from backend.etl.transform import SessionTransformer

logger = logging.getLogger(__name__)

FALLBACK_LOWER_FACTOR = 0.5
FALLBACK_UPPER_FACTOR = 1.5
FALLBACK_CONFIDENCE = 0.5
HISTORY_CHART_DAYS = 30


# ── Report types ───────────────────────────────────────────────

@dataclass
class ScoredSession:
    session_id: str
    score: FrictionScore
    conversion: bool


@dataclass
class FrictionTrendPoint:
    date: str
    avg_friction: float
    conversion_rate: float


@dataclass
class FrictionReport:
    period: str
    total_sessions: int = 0
    summary: FrictionSummary = field(default_factory=FrictionSummary)
    high_friction_conversion_rate: float = 0.0
    low_friction_conversion_rate: float = 0.0
    correlation: float = 0.0
    sessions: list[ScoredSession] = field(default_factory=list)
    trend: list[FrictionTrendPoint] = field(default_factory=list)


@dataclass
class SessionPrediction:
    session_id: str
    prediction: AbandonmentPrediction
    is_active: bool
    is_abandoned: bool
    is_completed: bool = False     # completed sessions are never predicted; kept for the response shape


@dataclass
class RiskBucket:
    total: int = 0
    abandoned: int = 0
    rate: float = 0.0


@dataclass
class AbandonmentReport:
    period: str
    total_sessions: int = 0
    high_risk_sessions: int = 0
    avg_risk_score: float = 0.0
    avg_checkout_time: float = 0.0
    typical_checkout_duration: float = 0.0
    risk_distribution: dict[str, int] = field(default_factory=dict)
    abandonment_by_risk: dict[str, RiskBucket] = field(default_factory=dict)
    predictions: list[SessionPrediction] = field(default_factory=list)


@dataclass
class RevenueForecastReport:
    period: str
    forecast_days: int
    total_historical_revenue: float = 0.0
    avg_daily_revenue: float = 0.0
    total_forecast_revenue: float = 0.0
    avg_forecast_revenue: float = 0.0
    window_revenue: dict[int, float] = field(default_factory=dict)
    model: ForecastModel = field(default_factory=ForecastModel)
    historical: list[ForecastDataPoint] = field(default_factory=list)
    accuracy: ForecastAccuracy | None = None
    used_fallback: bool = False


class AnalyticsPipeline:
    """Runs the checkout analytics reports for an account."""

    def __init__(self, config: AnalyticsConfig | None = None, db_engine: Engine | None = None):
        self._config = config or AnalyticsConfig()
        self._extractor = EventExtractor(self._config, db_engine)
        self._cleaner = EventCleaner(self._config)
        self._transformer = SessionTransformer(self._config)

    # ── Friction ───────────────────────────────────────────────

    def friction_report(self, account_id: str, period: Period, now: datetime | None = None) -> FrictionReport:
        """Score every session in the period and relate friction to conversion."""
        events = self._load_events(account_id, SESSION_EVENT_TYPES, period, now)
        friction_sessions = self._transformer.build_friction_sessions(events)

        scored = [
            ScoredSession(session_id=s.session_id, score=calculate_friction_score(s.factors),
                          conversion=s.converted)
            for s in friction_sessions
        ]
        summary = calculate_average_friction([s.score for s in scored])

        threshold = self._config.high_friction_threshold
        high = [s for s in scored if s.score.score >= threshold]
        low = [s for s in scored if s.score.score < threshold]
        high_rate = _conversion_rate(high)
        low_rate = _conversion_rate(low)

        # Daily trend keyed on session start date
        trend: list[FrictionTrendPoint] = []
        if scored:
            frame = pd.DataFrame({
                "date": [s.started_at.strftime(DATE_FORMAT) for s in friction_sessions],
                "score": [s.score.score for s in scored],
                "converted": [s.conversion for s in scored],
            })
            daily = frame.groupby("date").agg(avg_friction=("score", "mean"),
                                              conversion_rate=("converted", "mean"))
            trend = [
                FrictionTrendPoint(date=str(date), avg_friction=float(row.avg_friction),
                                   conversion_rate=float(row.conversion_rate) * 100)
                for date, row in daily.sort_index().iterrows()
            ]

        top = sorted(scored, key=lambda s: s.score.score, reverse=True)[: self._config.top_sessions_limit]

        return FrictionReport(
            period=period,
            total_sessions=len(scored),
            summary=summary,
            high_friction_conversion_rate=high_rate,
            low_friction_conversion_rate=low_rate,
            correlation=low_rate - high_rate,
            sessions=top,
            trend=trend,
        )

    # ── Abandonment ────────────────────────────────────────────

    def abandonment_report(self, account_id: str, period: Period, now: datetime | None = None) -> AbandonmentReport:
        """Predict abandonment risk for every session that has not converted."""
        events = self._load_events(account_id, SESSION_EVENT_TYPES, period, now)

        avg_checkout_time = self._transformer.average_checkout_time(events)
        typical = get_typical_checkout_duration(avg_checkout_time)

        predictions = [
            SessionPrediction(
                session_id=s.session_id,
                prediction=predict_abandonment(s.factors),
                is_active=s.is_active,
                is_abandoned=s.is_abandoned,
            )
            for s in self._transformer.build_abandonment_sessions(events, typical)
        ]

        distribution = {level: 0 for level in LEVELS}
        by_risk = {level: RiskBucket() for level in LEVELS}
        for p in predictions:
            level = p.prediction.risk_level
            distribution[level] += 1
            by_risk[level].total += 1
            if p.is_abandoned:
                by_risk[level].abandoned += 1
        for bucket in by_risk.values():
            bucket.rate = bucket.abandoned / bucket.total * 100 if bucket.total else 0.0

        avg_risk = (
            sum(p.prediction.risk_score for p in predictions) / len(predictions)
            if predictions else 0.0
        )
        top = sorted(predictions, key=lambda p: p.prediction.risk_score, reverse=True)

        return AbandonmentReport(
            period=period,
            total_sessions=len(predictions),
            high_risk_sessions=distribution["high"] + distribution["critical"],
            avg_risk_score=avg_risk,
            avg_checkout_time=avg_checkout_time,
            typical_checkout_duration=typical,
            risk_distribution=distribution,
            abandonment_by_risk=by_risk,
            predictions=top[: self._config.top_sessions_limit],
        )

    # ── Revenue forecast ───────────────────────────────────────

    def revenue_forecast_report(
        self,
        account_id: str,
        period: Period,
        days: int = DEFAULT_FORECAST_DAYS,
        now: datetime | None = None,
    ) -> RevenueForecastReport:
        """Forecast daily revenue from the period plus a lookback window."""
        events = self._load_events(account_id, REVENUE_EVENT_TYPES, period, now,
                                   lookback_days=self._config.forecast_lookback_days)
        historical = self._transformer.build_daily_revenue(events)
        logger.info("Revenue forecast: %d historical days for account %s", len(historical), account_id)

        model = generate_forecast(historical, days)
        total_historical = sum(p.revenue for p in historical)
        avg_daily = total_historical / len(historical) if historical else 0.0

        used_fallback = False
        if not model.forecasts and historical:
            logger.warning("Revenue forecast: only %d days of history (need %d), using flat fallback",
                           len(historical), MIN_HISTORY_POINTS)
            model = flat_forecast(historical, days, avg_daily)
            used_fallback = True

        model = ForecastModel(
            forecasts=model.forecasts,
            trend=model.trend,
            avg_growth=average_daily_change(historical, default=model.avg_growth),
            seasonality=model.seasonality,
        )

        total_forecast = sum(f.forecast for f in model.forecasts)
        windows = {
            window: sum(f.forecast for f in model.forecasts[:window])
            for window in FORECAST_SUMMARY_WINDOWS
        }

        return RevenueForecastReport(
            period=period,
            forecast_days=days,
            total_historical_revenue=total_historical,
            avg_daily_revenue=avg_daily,
            total_forecast_revenue=total_forecast,
            avg_forecast_revenue=total_forecast / len(model.forecasts) if model.forecasts else 0.0,
            window_revenue=windows,
            model=model,
            historical=historical[-HISTORY_CHART_DAYS:],
            accuracy=backtest_accuracy(historical, self._config.backtest_holdout_days),
            used_fallback=used_fallback,
        )

    # ── Private helpers ────────────────────────────────────────

    def _load_events(
        self,
        account_id: str,
        event_types: list[str],
        period: Period,
        now: datetime | None,
        lookback_days: int = 0,
    ) -> pd.DataFrame:
        date_range = get_date_range(period, now)
        if lookback_days:
            date_range = extend_back(date_range, lookback_days)
        raw = self._extractor.extract_events(account_id, event_types, date_range.start, date_range.end)
        return self._cleaner.clean_events(raw)


def _conversion_rate(sessions: list[ScoredSession]) -> float:
    if not sessions:
        return 0.0
    return sum(1 for s in sessions if s.conversion) / len(sessions) * 100


def flat_forecast(historical: list[ForecastDataPoint], days: int, level: float) -> ForecastModel:
    """Constant forecast at ``level`` for histories too short to model."""
    last_date = pd.Timestamp(historical[-1].date)
    forecasts = [
        ForecastResult(
            date=(last_date + pd.Timedelta(days=i)).strftime(DATE_FORMAT),
            forecast=level,
            lower_bound=max(0.0, level * FALLBACK_LOWER_FACTOR),
            upper_bound=level * FALLBACK_UPPER_FACTOR,
            confidence=FALLBACK_CONFIDENCE,
        )
        for i in range(1, days + 1)
    ]
    return ForecastModel(forecasts=forecasts, trend="stable", avg_growth=0.0)


def average_daily_change(historical: list[ForecastDataPoint], default: float = 0.0) -> float:
    """Mean revenue change per calendar day between consecutive points."""
    if len(historical) < 2:
        return default

    frame = pd.DataFrame({
        "date": pd.to_datetime([p.date for p in historical]),
        "revenue": [p.revenue for p in historical],
    })
    day_gaps = frame["date"].diff().dt.days.iloc[1:].clip(lower=1)
    revenue_diffs = frame["revenue"].diff().iloc[1:]
    return float((revenue_diffs / day_gaps).mean())


def backtest_accuracy(historical: list[ForecastDataPoint], holdout: int) -> ForecastAccuracy | None:
    """Re-forecast the last ``holdout`` points from the rest and score them.

    None when the remaining history is too short to fit the model.
    """
    if holdout <= 0 or len(historical) - holdout < MIN_HISTORY_POINTS:
        return None

    train, actuals = historical[:-holdout], historical[-holdout:]
    horizon = (pd.Timestamp(actuals[-1].date) - pd.Timestamp(train[-1].date)).days
    backtest = generate_forecast(train, horizon)
    return calculate_forecast_accuracy(backtest.forecasts, actuals)


# ── CLI entry point ────────────────────────────────────────────

def main():
    """Print all three reports for ACCOUNT_ID over the last month."""
    print("=" * 60)
    print("Checkout Analytics Reports")
    print("=" * 60)

    if not DEFAULT_ACCOUNT_ID:
        raise ValueError("Set ACCOUNT_ID in the environment or .env to choose an account")

    pipeline = AnalyticsPipeline()

    print("\n[1/3] Friction...")
    friction = pipeline.friction_report(DEFAULT_ACCOUNT_ID, "month")
    print(f"  Sessions: {friction.total_sessions:,}")
    print(f"  Avg friction: {friction.summary.avg_score:.1f}")
    print(f"  Distribution: {friction.summary.distribution}")
    print(f"  Conversion high/low friction: {friction.high_friction_conversion_rate:.1f}% / "
          f"{friction.low_friction_conversion_rate:.1f}%")

    print("\n[2/3] Abandonment risk...")
    abandonment = pipeline.abandonment_report(DEFAULT_ACCOUNT_ID, "month")
    print(f"  Open sessions: {abandonment.total_sessions:,} "
          f"({abandonment.high_risk_sessions:,} high risk)")
    print(f"  Avg risk: {abandonment.avg_risk_score:.1f}")
    print(f"  Typical checkout: {abandonment.typical_checkout_duration:.0f}s")

    print("\n[3/3] Revenue forecast...")
    forecast = pipeline.revenue_forecast_report(DEFAULT_ACCOUNT_ID, "month")
    print(f"  History: {len(forecast.historical)} days, avg {forecast.avg_daily_revenue:,.2f}/day")
    print(f"  Trend: {forecast.model.trend} ({forecast.model.avg_growth:+,.2f}/day)")
    for window, revenue in forecast.window_revenue.items():
        print(f"  Next {window} days: {revenue:,.2f}")
    if forecast.accuracy:
        print(f"  Backtest MAPE: {forecast.accuracy.mape:.1f}%")

    print("\n✅ Reports complete.")


if __name__ == "__main__":
    main()
