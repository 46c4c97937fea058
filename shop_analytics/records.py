"""
Repair-order records and coercion helpers for the repository boundary.

The repository layer (spreadsheet or relational) hands over either a list of
RepairOrderRecord values or a DataFrame whose headers follow
config.RECORD_COLUMN_MAP. Everything downstream only reads records.
"""

import logging
from dataclasses import dataclass
from typing import Any

import pandas as pd

from .config import RECORD_COLUMN_MAP, RECORD_COST_FIELDS, RECORD_DATE_FIELDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepairOrderRecord:
    """One repair order as supplied by the repository layer."""

    ro_number: str
    shop_name: str = ""
    date_made: pd.Timestamp | None = None
    date_dropped_off: pd.Timestamp | None = None
    current_status: str = ""
    current_status_date: pd.Timestamp | None = None
    estimated_cost: float | None = None
    final_cost: float | None = None


def normalise_date(val: Any) -> pd.Timestamp | None:
    """Convert a date-like value to a naive pd.Timestamp.

    Accepts Timestamps, datetimes, ISO strings and Excel serial numbers
    (1899-12-30 epoch). Timezone-aware values are converted to UTC and made
    naive. Returns None for missing or unparseable values.
    """
    if val is None:
        return None
    if isinstance(val, float) and pd.isna(val):
        return None
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        try:
            return pd.Timestamp("1899-12-30") + pd.Timedelta(days=int(val))
        except (ValueError, OverflowError):
            logger.warning("Could not convert serial number %s to date", val)
            return None
    try:
        ts = pd.Timestamp(val)
    except (ValueError, TypeError, OverflowError):
        logger.warning("Could not parse date value: %s", val)
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def safe_float(val: Any) -> float | None:
    """Coerce a value to float, returning None for non-numeric values."""
    if val is None:
        return None
    if isinstance(val, str):
        # Currency strings like "$1,250.00"
        val = val.strip().replace("$", "").replace(",", "")
        if not val:
            return None
        try:
            return float(val)
        except ValueError:
            return None
    try:
        result = float(val)
    except (ValueError, TypeError):
        return None
    if pd.isna(result):
        return None
    return result


def _clean_text(val: Any) -> str:
    if val is None or (isinstance(val, float) and pd.isna(val)):
        return ""
    return str(val).strip()


def records_from_frame(df: pd.DataFrame) -> list[RepairOrderRecord]:
    """Convert a repository DataFrame into RepairOrderRecord values.

    Parameters
    ----------
    df : DataFrame with either the repository headers from
         config.RECORD_COLUMN_MAP ("RO #", "Shop Name", ...) or the
         record field names directly.

    Returns
    -------
    List of records in row order. Rows without an RO number are dropped.
    """
    if df.empty:
        return []

    frame = df.rename(columns=RECORD_COLUMN_MAP)
    records = []
    skipped = 0

    for _, row in frame.iterrows():
        ro_number = _clean_text(row.get("ro_number"))
        if not ro_number:
            skipped += 1
            continue

        dates = {field: normalise_date(row.get(field)) for field in RECORD_DATE_FIELDS}
        costs = {field: safe_float(row.get(field)) for field in RECORD_COST_FIELDS}

        records.append(RepairOrderRecord(
            ro_number=ro_number,
            shop_name=_clean_text(row.get("shop_name")),
            current_status=_clean_text(row.get("current_status")),
            **dates,
            **costs,
        ))

    if skipped:
        logger.warning("Skipped %d rows without an RO number", skipped)
    logger.info("Converted %d repository rows to repair-order records", len(records))
    return records
