import itertools
import json
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest
from sqlalchemy import create_engine

from backend.etl.clean import EventCleaner
from backend.etl.config import AnalyticsConfig, EVENTS_TABLE

_ids = itertools.count(1)

T0 = datetime(2024, 2, 28, 10, 0, 0, tzinfo=timezone.utc)


def event(session_id, event_type, at, step=None, metadata=None, account_id="acct-1", event_id=None):
    """One raw event row as stored in analytics_events."""
    return {
        "id": event_id or f"evt-{next(_ids)}",
        "account_id": account_id,
        "session_id": session_id,
        "event_type": event_type,
        "step": step,
        "metadata": metadata,
        "timestamp": at.isoformat(),
    }


def seconds(n):
    return T0 + timedelta(seconds=n)


def seed_events(engine, rows):
    frame = pd.DataFrame([
        {**row, "metadata": json.dumps(row["metadata"]) if row["metadata"] is not None else None}
        for row in rows
    ])
    frame.to_sql(EVENTS_TABLE, engine, if_exists="append", index=False)


@pytest.fixture
def config():
    return AnalyticsConfig(database_url="sqlite://")


@pytest.fixture
def clean(config):
    """Run raw rows through the cleaner, as the pipeline does."""
    cleaner = EventCleaner(config)

    def _clean(rows):
        return cleaner.clean_events(pd.DataFrame(rows))

    return _clean


@pytest.fixture
def events_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'events.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def checkout_rows():
    """Three sessions: converted with friction, returned twice, abandoned on shipping."""
    return [
        # s1: converts after one error and one back navigation
        event("s1", "checkout_start", seconds(0)),
        event("s1", "step_viewed", seconds(10), step="cart"),
        event("s1", "step_completed", seconds(20), step="cart"),
        event("s1", "step_viewed", seconds(30), step="profile"),
        event("s1", "error_occurred", seconds(40), step="profile"),
        event("s1", "step_viewed", seconds(50), step="cart"),
        event("s1", "step_completed", seconds(60), step="profile"),
        event("s1", "order_confirmed", seconds(120), metadata={"revenue": 80}),
        # s2: leaves and starts checkout again, still open
        event("s2", "checkout_start", seconds(200)),
        event("s2", "step_viewed", seconds(205), step="cart",
              metadata={"fieldsFilled": 2, "totalFields": 8}),
        event("s2", "checkout_start", seconds(300)),
        event("s2", "step_viewed", seconds(330), step="profile", metadata={"fieldsFilled": "3"}),
        # s3: abandoned on shipping
        event("s3", "checkout_started", seconds(400)),
        event("s3", "step_viewed", seconds(410), step="shipping"),
        event("s3", "step_abandoned", seconds(700), step="shipping"),
    ]


@pytest.fixture
def make_event():
    return event


@pytest.fixture
def at():
    return seconds


@pytest.fixture
def seed():
    return seed_events
