"""Transformer: reduces cleaned checkout events into model inputs.

Each build_* method replays one account's events session by session and
emits the feature records the analysis modules consume (friction factors,
abandonment risk factors) or the daily revenue series for the forecaster.

Input must come from EventCleaner: chronological, UTC timestamps, dict
metadata. The analysis modules never see raw events.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd

from backend.analysis.abandonment import AbandonmentRiskFactors
from backend.analysis.forecasting import DATE_FORMAT, ForecastDataPoint
from backend.analysis.friction import FrictionFactors
from backend.etl.config import (
    AnalyticsConfig, CHECKOUT_COMPLETE_EVENTS, CHECKOUT_START_EVENTS, DEFAULT_STEP,
    ERROR_OCCURRED, FIELDS_PER_COMPLETED_STEP, FIELDS_PER_VISITED_STEP,
    REVENUE_METADATA_KEYS, STEP_ABANDONED, STEP_COMPLETED, STEP_VIEWED,
)


@dataclass(frozen=True)
class FrictionSession:
    session_id: str
    factors: FrictionFactors
    converted: bool
    started_at: datetime


@dataclass(frozen=True)
class AbandonmentSession:
    session_id: str
    factors: AbandonmentRiskFactors
    is_active: bool
    is_abandoned: bool


@dataclass
class _SessionState:
    """Mutable accumulator used while replaying one session's events."""
    start_time: datetime
    last_activity: datetime
    current_step: str = DEFAULT_STEP
    errors: int = 0
    back_navigations: int = 0
    checkout_starts: int = 0
    fields_filled: float = 0
    total_fields: float = 0
    steps_visited: set[str] = field(default_factory=set)
    steps_viewed: set[str] = field(default_factory=set)
    steps_completed: set[str] = field(default_factory=set)
    step_start_time: dict[str, datetime] = field(default_factory=dict)
    completed: bool = False
    abandoned: bool = False

    @property
    def total_duration(self) -> float:
        return (self.last_activity - self.start_time).total_seconds()


def _as_number(value) -> float:
    """Lenient numeric read of a metadata value; anything unusable is 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def extract_revenue(metadata: dict | None) -> float:
    """Order revenue from event metadata.

    The first key of REVENUE_METADATA_KEYS holding a non-null value wins,
    even if that value turns out not to be numeric. Missing, non-numeric
    and negative values read as 0.
    """
    metadata = metadata or {}
    raw = next((metadata[k] for k in REVENUE_METADATA_KEYS if metadata.get(k) is not None), None)
    if raw is None:
        return 0.0
    revenue = _as_number(raw)
    return revenue if revenue > 0 else 0.0


class SessionTransformer:
    """Builds per-session feature records and daily revenue series."""

    def __init__(self, config: AnalyticsConfig):
        self._config = config

    def build_friction_sessions(self, events: pd.DataFrame) -> list[FrictionSession]:
        """One FrictionFactors record per session.

        Back navigation = viewing a step that was already completed.
        Returned = more than one checkout start in the session.
        Field counts come from metadata; without them they are estimated
        from completed/visited steps.
        """
        sessions: list[FrictionSession] = []

        for session_id, state in self._replay(events).items():
            fields_filled = state.fields_filled or len(state.steps_completed) * FIELDS_PER_COMPLETED_STEP
            total_fields = state.total_fields or len(state.steps_visited) * FIELDS_PER_VISITED_STEP

            factors = FrictionFactors(
                total_duration=state.total_duration,
                error_count=state.errors,
                back_navigations=state.back_navigations,
                fields_filled=int(fields_filled),
                total_fields=int(total_fields),
                steps_completed=len(state.steps_completed),
                total_steps=len(self._config.checkout_steps),
                has_returned=state.checkout_starts > 1,
            )
            sessions.append(FrictionSession(
                session_id=session_id,
                factors=factors,
                converted=state.completed,
                started_at=state.start_time,
            ))

        return sessions

    def average_checkout_time(self, events: pd.DataFrame) -> float:
        """Mean seconds from checkout start to completion over finished sessions."""
        started: dict[str, datetime] = {}
        durations: list[float] = []

        for event in events.itertuples(index=False):
            if event.event_type in CHECKOUT_START_EVENTS:
                started[event.session_id] = event.timestamp
            elif event.event_type in CHECKOUT_COMPLETE_EVENTS and event.session_id in started:
                duration = (event.timestamp - started[event.session_id]).total_seconds()
                if duration > 0:
                    durations.append(duration)

        if not durations:
            return self._config.default_avg_checkout_seconds
        return sum(durations) / len(durations)

    def build_abandonment_sessions(
        self,
        events: pd.DataFrame,
        typical_duration: float,
    ) -> list[AbandonmentSession]:
        """Risk factors for every session that has not completed checkout.

        Args:
            events: Cleaned events.
            typical_duration: Seconds a normal checkout takes, from
                get_typical_checkout_duration().
        """
        steps = self._config.checkout_steps
        sessions: list[AbandonmentSession] = []

        for session_id, state in self._replay(events).items():
            if state.completed:
                continue

            total_duration = state.total_duration
            step_started = state.step_start_time.get(state.current_step)
            step_duration = (
                (state.last_activity - step_started).total_seconds()
                if step_started is not None else total_duration
            )
            step_index = steps.index(state.current_step) if state.current_step in steps else -1

            factors = AbandonmentRiskFactors(
                time_exceeded=total_duration / typical_duration if typical_duration > 0 else 0.0,
                error_count=state.errors,
                current_step=state.current_step,
                step_duration=step_duration,
                total_duration=total_duration,
                has_returned=len(state.steps_viewed) > 1 and DEFAULT_STEP in state.steps_viewed,
                step_progress=(step_index + 1) / len(steps) if steps else 0.5,
            )
            sessions.append(AbandonmentSession(
                session_id=session_id,
                factors=factors,
                is_active=not state.abandoned,
                is_abandoned=state.abandoned,
            ))

        return sessions

    def build_daily_revenue(self, events: pd.DataFrame) -> list[ForecastDataPoint]:
        """Sum completed-order revenue per UTC day, oldest first.

        Days without positive revenue are omitted rather than zero-filled.
        """
        orders = events[events["event_type"].isin(CHECKOUT_COMPLETE_EVENTS)]
        if orders.empty:
            return []

        frame = pd.DataFrame({
            "date": orders["timestamp"].dt.strftime(DATE_FORMAT),
            "revenue": orders["metadata"].map(extract_revenue),
        })
        frame = frame[frame["revenue"] > 0]

        daily = frame.groupby("date")["revenue"].sum().sort_index()
        return [ForecastDataPoint(date=str(date), revenue=float(revenue))
                for date, revenue in daily.items()]

    # ── Private helpers ────────────────────────────────────────────

    def _replay(self, events: pd.DataFrame) -> dict[str, _SessionState]:
        """Fold events into per-session state, in event order."""
        sessions: dict[str, _SessionState] = {}

        for event in events.itertuples(index=False):
            ts = event.timestamp
            state = sessions.get(event.session_id)
            if state is None:
                state = _SessionState(start_time=ts, last_activity=ts)
                sessions[event.session_id] = state

            if ts > state.last_activity:
                state.last_activity = ts

            step = event.step
            if event.event_type in CHECKOUT_START_EVENTS:
                state.start_time = ts
                state.checkout_starts += 1
            elif event.event_type == STEP_VIEWED and step:
                if step in state.steps_completed:
                    state.back_navigations += 1
                state.steps_visited.add(step)
                state.steps_viewed.add(step)
                state.current_step = step
                state.step_start_time[step] = ts
            elif event.event_type == STEP_COMPLETED and step:
                state.steps_completed.add(step)
                state.steps_visited.add(step)
            elif event.event_type == ERROR_OCCURRED:
                state.errors += 1
            elif event.event_type in CHECKOUT_COMPLETE_EVENTS:
                state.completed = True
            elif event.event_type == STEP_ABANDONED:
                state.abandoned = True

            metadata = event.metadata or {}
            if "fieldsFilled" in metadata:
                state.fields_filled = max(state.fields_filled, _as_number(metadata["fieldsFilled"]))
            if "totalFields" in metadata:
                state.total_fields = max(state.total_fields, _as_number(metadata["totalFields"]))

        return sessions
