"""Statistics helpers shared by the analytics models.

Small, pure primitives: mean, population standard deviation, least squares
trend over a 0-based index, and exponential moving average. No I/O, no state.
"""

from collections.abc import Sequence
from dataclasses import asdict, dataclass

import numpy as np
import pandas as pd


DEFAULT_EMA_ALPHA = 0.3


@dataclass(frozen=True)
class TrendFit:
    """Least squares line fitted against the day index."""
    slope: float
    intercept: float
    r_squared: float

    def to_dict(self) -> dict:
        return asdict(self)


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by N, not N - 1)."""
    if len(values) == 0:
        return 0.0
    return float(np.std(values, ddof=0))


def linear_regression(values: Sequence[float]) -> TrendFit:
    """Fit ``value = slope * index + intercept`` by ordinary least squares.

    The x axis is the position in the series (0, 1, 2, ...), not the
    calendar date, so gaps between dates are ignored.

    Args:
        values: Observations in chronological order.

    Returns:
        TrendFit. Fewer than two points yields a flat zero fit.
    """
    n = len(values)
    if n < 2:
        return TrendFit(slope=0.0, intercept=0.0, r_squared=0.0)

    y = np.asarray(values, dtype=float)
    x = np.arange(n, dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_x2 = (x * x).sum()

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    predicted = slope * x + intercept
    ss_res = ((y - predicted) ** 2).sum()
    ss_tot = ((y - sum_y / n) ** 2).sum()
    r_squared = 1 - ss_res / ss_tot if ss_tot > 0 else 0.0

    return TrendFit(slope=float(slope), intercept=float(intercept), r_squared=float(r_squared))


def exponential_moving_average(values: Sequence[float], alpha: float = DEFAULT_EMA_ALPHA) -> float:
    """Final value of the recursive EMA seeded with the first observation."""
    if len(values) == 0:
        return 0.0
    # adjust=False gives the recursive form: ema[i] = a*x[i] + (1-a)*ema[i-1]
    series = pd.Series(values, dtype=float)
    return float(series.ewm(alpha=alpha, adjust=False).mean().iloc[-1])
