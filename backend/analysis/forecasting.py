"""Revenue Forecasting: daily revenue projection with seasonality.

Model = EMA baseline + linear trend, scaled by weekly and monthly seasonal
multipliers, with a 95% band that widens with the horizon.

Key principle: the historical series MUST be in chronological order.
Nothing here sorts it. The regression index and the EMA both depend on
position, so the caller is responsible for ordering.

Usage:
    python -m backend.analysis.forecasting
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Literal

import pandas as pd
import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from sklearn.metrics import (
    mean_absolute_error, mean_absolute_percentage_error, mean_squared_error,
)

from backend.analysis.stats import (
    exponential_moving_average, linear_regression, std_dev,
)
from backend.etl.config import DAILY_REVENUE_PATH, DEFAULT_FORECAST_DAYS, REPORTS_DIR

logger = logging.getLogger(__name__)

TrendDirection = Literal["increasing", "decreasing", "stable"]

# ── Model constants ───────────────────────────────────────────

MIN_HISTORY_POINTS = 7            # Below this the model is not fitted
EMA_ALPHA = 0.3
Z_SCORE_95 = 1.96
TREND_THRESHOLD = 0.01            # Fraction of last revenue that counts as a trend

CONFIDENCE_START = 0.9
CONFIDENCE_DECAY = 0.4
CONFIDENCE_FLOOR = 0.3

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class ForecastDataPoint:
    date: str                      # YYYY-MM-DD
    revenue: float


@dataclass(frozen=True)
class ForecastResult:
    date: str
    forecast: float
    lower_bound: float
    upper_bound: float
    confidence: float


@dataclass(frozen=True)
class Seasonality:
    """Multipliers relative to the series mean (1.0 = average).

    weekly is keyed 0=Sunday .. 6=Saturday, monthly 0=January .. 11=December.
    Buckets without observations are absent.
    """
    weekly: dict[int, float] = field(default_factory=dict)
    monthly: dict[int, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ForecastModel:
    forecasts: list[ForecastResult] = field(default_factory=list)
    trend: TrendDirection = "stable"
    avg_growth: float = 0.0
    seasonality: Seasonality = field(default_factory=Seasonality)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ForecastAccuracy:
    mae: float = 0.0
    mape: float = 0.0
    rmse: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def weekday_index(day: pd.Timestamp) -> int:
    """Day of week with Sunday as 0 (pandas uses Monday as 0)."""
    return (day.dayofweek + 1) % 7


def is_chronological(data: Sequence[ForecastDataPoint]) -> bool:
    dates = pd.to_datetime([p.date for p in data])
    return bool(dates.is_monotonic_increasing)


def calculate_seasonality(data: Sequence[ForecastDataPoint]) -> Seasonality:
    """Average revenue per weekday and per month, divided by the overall mean."""
    if not data:
        return Seasonality()

    df = pd.DataFrame({
        "date": pd.to_datetime([p.date for p in data]),
        "revenue": [float(p.revenue) for p in data],
    })

    avg_revenue = df["revenue"].mean()
    if avg_revenue == 0:
        # All-zero history carries no seasonal signal
        return Seasonality()

    weekday = (df["date"].dt.dayofweek + 1) % 7
    month = df["date"].dt.month - 1

    weekly = df.groupby(weekday)["revenue"].mean() / avg_revenue
    monthly = df.groupby(month)["revenue"].mean() / avg_revenue

    return Seasonality(
        weekly={int(k): float(v) for k, v in weekly.items()},
        monthly={int(k): float(v) for k, v in monthly.items()},
    )


def classify_trend(slope: float, last_revenue: float) -> TrendDirection:
    threshold = last_revenue * TREND_THRESHOLD
    if slope > threshold:
        return "increasing"
    if slope < -threshold:
        return "decreasing"
    return "stable"


def generate_forecast(
    historical_data: Sequence[ForecastDataPoint],
    days: int = DEFAULT_FORECAST_DAYS,
) -> ForecastModel:
    """Project daily revenue ``days`` ahead of the last historical date.

    Args:
        historical_data: Daily points in chronological order.
        days: Horizon in days.

    Returns:
        ForecastModel. With fewer than MIN_HISTORY_POINTS points an empty,
        stable model is returned instead of raising.
    """
    if len(historical_data) < MIN_HISTORY_POINTS:
        return ForecastModel()

    if not is_chronological(historical_data):
        logger.warning("Forecast input is not in chronological order; trend and EMA assume it is")

    revenues = [float(p.revenue) for p in historical_data]
    n = len(revenues)

    trend = linear_regression(revenues)
    seasonality = calculate_seasonality(historical_data)
    ema = exponential_moving_average(revenues, EMA_ALPHA)
    sigma = std_dev(revenues)

    last_date = pd.Timestamp(historical_data[-1].date).normalize()
    forecasts: list[ForecastResult] = []

    for i in range(1, days + 1):
        forecast_date = last_date + pd.Timedelta(days=i)

        base_forecast = ema + trend.slope * i

        # Absent and zero multipliers both project at the base level
        weekly = seasonality.weekly.get(weekday_index(forecast_date)) or 1.0
        monthly = seasonality.monthly.get(forecast_date.month - 1) or 1.0
        forecast = base_forecast * (weekly + monthly) / 2

        interval = Z_SCORE_95 * sigma * math.sqrt(1 + i / n)
        confidence = max(CONFIDENCE_FLOOR, CONFIDENCE_START - (i / days) * CONFIDENCE_DECAY)

        forecasts.append(ForecastResult(
            date=forecast_date.strftime(DATE_FORMAT),
            forecast=float(forecast),
            lower_bound=float(max(0.0, forecast - interval)),
            upper_bound=float(forecast + interval),
            confidence=float(confidence),
        ))

    return ForecastModel(
        forecasts=forecasts,
        trend=classify_trend(trend.slope, revenues[-1]),
        avg_growth=trend.slope,
        seasonality=seasonality,
    )


def calculate_forecast_accuracy(
    forecasts: Sequence[ForecastResult],
    actuals: Sequence[ForecastDataPoint],
) -> ForecastAccuracy:
    """Compare forecasts to realised revenue on matching dates.

    MAPE skips days whose actual revenue is zero. No matched dates gives
    an all-zero result.
    """
    by_date: dict[str, float] = {}
    for actual in actuals:
        by_date.setdefault(actual.date, float(actual.revenue))

    matched = [(f.forecast, by_date[f.date]) for f in forecasts if f.date in by_date]
    if not matched:
        return ForecastAccuracy()

    predicted = np.array([m[0] for m in matched], dtype=float)
    observed = np.array([m[1] for m in matched], dtype=float)

    mae = mean_absolute_error(observed, predicted)
    rmse = np.sqrt(mean_squared_error(observed, predicted))

    nonzero = observed > 0
    mape = (
        mean_absolute_percentage_error(observed[nonzero], predicted[nonzero]) * 100
        if nonzero.any() else 0.0
    )

    return ForecastAccuracy(mae=float(mae), mape=float(mape), rmse=float(rmse))


# ── File input & visualization ────────────────────────────────

def load_daily_revenue(path: Path) -> list[ForecastDataPoint]:
    """Read a ``date,revenue`` CSV export into forecast points.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the date or revenue column is missing.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Daily revenue file not found: {path}\n"
            f"Expected a CSV with columns: date, revenue"
        )

    df = pd.read_csv(path)
    missing = {"date", "revenue"} - set(df.columns)
    if missing:
        raise ValueError(f"Missing expected columns: {missing}")

    df["date"] = pd.to_datetime(df["date"]).dt.strftime(DATE_FORMAT)
    df["revenue"] = pd.to_numeric(df["revenue"], errors="coerce").fillna(0.0).clip(lower=0.0)

    return [ForecastDataPoint(date=row.date, revenue=float(row.revenue))
            for row in df.itertuples(index=False)]


def plot_forecast(
    historical: Sequence[ForecastDataPoint],
    model: ForecastModel,
    output_dir: Path,
) -> Path:
    """Plot historical revenue + forecast with confidence band."""
    fig, ax = plt.subplots(figsize=(14, 7))

    ax.plot(pd.to_datetime([p.date for p in historical]), [p.revenue for p in historical],
            color="#2c3e50", linewidth=2, label="Historical", marker="o", markersize=3)

    if model.forecasts:
        forecast_dates = pd.to_datetime([f.date for f in model.forecasts])
        ax.plot(forecast_dates, [f.forecast for f in model.forecasts],
                color="#e74c3c", linewidth=2, label="Forecast", marker="s", markersize=3)
        ax.fill_between(
            forecast_dates,
            [f.lower_bound for f in model.forecasts],
            [f.upper_bound for f in model.forecasts],
            alpha=0.2, color="#e74c3c", label="95% Confidence Interval",
        )

    ax.set_xlabel("Date")
    ax.set_ylabel("Revenue")
    ax.set_title(f"Daily Revenue: Historical + {len(model.forecasts)}-Day Forecast ({model.trend})")
    ax.legend(loc="upper left")

    plt.tight_layout()
    output_path = Path(output_dir) / "forecast.png"
    fig.savefig(output_path)
    plt.close(fig)
    return output_path


# ── CLI Entry Point ───────────────────────────────────────────

def main():
    print("=" * 60)
    print("Checkout Analytics Revenue Forecast")
    print("=" * 60)

    output_dir = REPORTS_DIR / "forecast"
    output_dir.mkdir(parents=True, exist_ok=True)

    print("\n[1/3] Loading daily revenue...")
    historical = load_daily_revenue(DAILY_REVENUE_PATH)
    print(f"  {len(historical)} days loaded")

    print(f"\n[2/3] Generating {DEFAULT_FORECAST_DAYS}-day forecast...")
    model = generate_forecast(historical, DEFAULT_FORECAST_DAYS)
    if not model.forecasts:
        print(f"  Not enough history (need {MIN_HISTORY_POINTS} days)")
        return model

    print(f"  Trend: {model.trend} ({model.avg_growth:+,.2f}/day)")
    for f in model.forecasts[:7]:
        print(f"  {f.date}: {f.forecast:,.2f} "
              f"({f.lower_bound:,.2f} – {f.upper_bound:,.2f}, conf {f.confidence:.2f})")
    total = sum(f.forecast for f in model.forecasts)
    print(f"\nTotal forecasted revenue (next {DEFAULT_FORECAST_DAYS} days): {total:,.2f}")

    print("\n[3/3] Saving outputs...")
    pd.DataFrame([asdict(f) for f in model.forecasts]).to_csv(output_dir / "forecast.csv", index=False)
    plot_forecast(historical, model, output_dir)

    print(f"\n✅ Forecasting complete. Reports saved to {output_dir}/")
    return model


if __name__ == "__main__":
    main()
