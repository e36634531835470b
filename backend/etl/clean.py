"""Cleaner: event quality operations in a defined, auditable sequence.

Session building assumes one row per event, parsed UTC timestamps, dict
metadata and chronological order. Every step that drops rows is recorded
in the cleaning report so counts can be traced.
"""

import json
import logging

import pandas as pd

from backend.etl.config import AnalyticsConfig, EVENT_COLUMNS, EXPORT_COLUMN_ALIASES

logger = logging.getLogger(__name__)


class EventCleaner:
    """Normalizes raw event rows for the session transformer."""

    def __init__(self, config: AnalyticsConfig):
        self._config = config
        self._report: dict = {}

    def clean_events(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply all cleaning steps in order. Returns cleaned DataFrame.

        Args:
            df: Raw events from EventExtractor.

        Returns:
            DataFrame with EVENT_COLUMNS, timestamp as UTC datetime,
            metadata as dict, sorted by timestamp (stable).
        """
        self._report = {"steps": []}
        initial_rows = len(df)

        # ── Step 1: Standardize columns ───────────────────────────
        df = df.rename(columns=EXPORT_COLUMN_ALIASES).copy()
        for col in EVENT_COLUMNS:
            if col not in df.columns:
                df[col] = None

        # ── Step 2: Drop rows missing identity fields ─────────────
        before = len(df)
        df = df.dropna(subset=["session_id", "event_type", "timestamp"])
        self._log_step("drop_missing_fields", before, len(df), "No session, type or timestamp")

        # ── Step 3: Parse timestamps to UTC ───────────────────────
        before = len(df)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce", format="ISO8601")
        df = df[df["timestamp"].notna()].copy()
        self._log_step("drop_bad_timestamps", before, len(df), "Unparseable timestamp")

        # ── Step 4: Normalize text fields ─────────────────────────
        df["session_id"] = df["session_id"].astype(str).str.strip()
        df["event_type"] = df["event_type"].astype(str).str.strip().str.lower()
        df["step"] = df["step"].map(self._normalize_step)

        # ── Step 5: Decode metadata ───────────────────────────────
        df["metadata"] = df["metadata"].map(self._decode_metadata)

        # ── Step 6: Drop duplicate events ─────────────────────────
        before = len(df)
        duplicated = df["id"].notna() & df.duplicated(subset=["id"])
        df = df[~duplicated]
        self._log_step("drop_duplicate_ids", before, len(df), "Same event id delivered twice")

        # ── Step 7: Chronological order ───────────────────────────
        # Stable sort keeps delivery order for events sharing a timestamp
        df = df.sort_values("timestamp", kind="mergesort").reset_index(drop=True)

        self._report["initial_rows"] = initial_rows
        self._report["final_rows"] = len(df)
        self._report["sessions"] = int(df["session_id"].nunique())

        logger.info("Cleaning complete: %d → %d events across %d sessions",
                    initial_rows, len(df), self._report["sessions"])
        return df[EVENT_COLUMNS]

    def get_cleaning_report(self) -> dict:
        """Return detailed cleaning statistics. Call after clean_events()."""
        return self._report

    # ── Private helpers ────────────────────────────────────────────

    @staticmethod
    def _normalize_step(value) -> str | None:
        if value is None or (isinstance(value, float) and pd.isna(value)):
            return None
        step = str(value).strip().lower()
        return step or None

    @staticmethod
    def _decode_metadata(value) -> dict:
        """JSON text (SQLite, CSV) or dict (Postgres jsonb) → dict."""
        if isinstance(value, dict):
            return value
        if isinstance(value, str) and value.strip():
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                logger.warning("Discarding undecodable event metadata: %.80s", value)
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return {}

    def _log_step(self, step_name: str, before: int, after: int, reason: str) -> None:
        """Record a cleaning step for the report."""
        removed = before - after
        self._report["steps"].append({
            "step": step_name,
            "rows_before": before,
            "rows_after": after,
            "rows_removed": removed,
            "reason": reason,
        })
        if removed:
            logger.info("%s: removed %d rows (%s)", step_name, removed, reason)
