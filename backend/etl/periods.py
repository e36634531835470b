"""Reporting periods: named windows ending now."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

import pandas as pd

Period = Literal["today", "week", "month", "year"]

VALID_PERIODS: tuple[Period, ...] = ("today", "week", "month", "year")
DEFAULT_PERIOD: Period = "week"


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime


def parse_period(value: str | None) -> Period:
    """Return ``value`` if it names a known period, else the default."""
    if value in VALID_PERIODS:
        return value
    return DEFAULT_PERIOD


def get_date_range(period: str, now: datetime | None = None) -> DateRange:
    """Window for ``period`` ending at ``now`` (UTC). Unknown periods use a week."""
    end = pd.Timestamp(now or datetime.now(timezone.utc))
    if end.tzinfo is None:
        end = end.tz_localize("UTC")

    if period == "today":
        start = end.normalize()
    elif period == "month":
        start = end - pd.DateOffset(months=1)
    elif period == "year":
        start = end - pd.DateOffset(years=1)
    else:
        start = end - pd.Timedelta(days=7)

    return DateRange(start=start.to_pydatetime(), end=end.to_pydatetime())


def extend_back(date_range: DateRange, days: int) -> DateRange:
    return DateRange(start=date_range.start - timedelta(days=days), end=date_range.end)
