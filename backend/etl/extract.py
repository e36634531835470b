"""Extractor: reads raw checkout events from the event store or an export.

Single responsibility: no cleaning, no session building. Just read.
If the event source changes, only this module needs to change.
"""

import logging
from datetime import datetime
from pathlib import Path

import pandas as pd
from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Engine

from backend.etl.config import AnalyticsConfig, EVENT_COLUMNS, EXPORT_COLUMN_ALIASES, REQUIRED_EVENT_COLUMNS

logger = logging.getLogger(__name__)


class EventExtractor:
    """Reads raw analytics events and returns them as a DataFrame."""

    def __init__(self, config: AnalyticsConfig, db_engine: Engine | None = None):
        self._config = config
        self._engine = db_engine or create_engine(config.database_url)

    @property
    def engine(self) -> Engine:
        return self._engine

    def extract_events(
        self,
        account_id: str,
        event_types: list[str],
        start: datetime,
        end: datetime,
    ) -> pd.DataFrame:
        """Query one account's events of the given types inside [start, end].

        Args:
            account_id: Tenant whose events are read.
            event_types: Event type names to include.
            start: Inclusive lower bound (timezone-aware).
            end: Inclusive upper bound (timezone-aware).

        Returns:
            DataFrame with EVENT_COLUMNS, ordered by timestamp.
        """
        sql = text(f"""
            SELECT id, account_id, session_id, event_type, step, metadata, timestamp
            FROM {self._config.events_table}
            WHERE account_id = :account_id
              AND event_type IN :event_types
              AND timestamp >= :start
              AND timestamp <= :end
            ORDER BY timestamp
        """).bindparams(bindparam("event_types", expanding=True))

        params = {
            "account_id": account_id,
            "event_types": list(event_types),
            "start": start.isoformat(),
            "end": end.isoformat(),
        }

        with self._engine.connect() as conn:
            df = pd.read_sql(sql, conn, params=params)

        logger.info("Extracted %d events for account %s (%s → %s)",
                    len(df), account_id, params["start"], params["end"])

        self._validate_columns(df)
        return df

    def extract_csv(self, path: str | Path) -> pd.DataFrame:
        """Read an exported events CSV.

        Raises:
            FileNotFoundError: If the export file doesn't exist.
            ValueError: If required columns are missing.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(
                f"Events export not found: {path}\n"
                f"Expected columns: {', '.join(EVENT_COLUMNS)}"
            )

        df = pd.read_csv(path)
        df = df.rename(columns=EXPORT_COLUMN_ALIASES)
        logger.info("Read %d events from %s", len(df), path.name)

        self._validate_columns(df)
        return df

    def _validate_columns(self, df: pd.DataFrame) -> None:
        """Verify the columns session building depends on are present.

        Raises:
            ValueError: If expected columns are missing.
        """
        missing = REQUIRED_EVENT_COLUMNS - set(df.columns)
        if missing:
            raise ValueError(
                f"Missing expected columns: {missing}\n"
                f"Found columns: {set(df.columns)}"
            )
