"""
Movement Reports

Per-day summaries of a product's movement history, built with polars.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

import polars as pl
import structlog

from stockledger.database.models import MovementDirection, StockMovement

logger = structlog.get_logger(__name__)

HISTORY_SCHEMA = {
    "reference_number": pl.Utf8,
    "created_at": pl.Datetime("us"),
    "direction": pl.Utf8,
    "unit_type": pl.Utf8,
    "quantity": pl.Int64,
    "quantity_pcs": pl.Int64,
}


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def history_frame(movements: Iterable[StockMovement]) -> pl.DataFrame:
    """Movement history as a DataFrame, one row per movement."""
    rows = [
        {
            "reference_number": m.reference_number,
            "created_at": _naive_utc(m.created_at),
            "direction": MovementDirection(m.direction).value,
            "unit_type": m.unit_type.value if hasattr(m.unit_type, "value") else str(m.unit_type),
            "quantity": m.quantity,
            "quantity_pcs": m.quantity_pcs,
        }
        for m in movements
    ]
    return pl.DataFrame(rows, schema=HISTORY_SCHEMA)


def daily_summary(df: pl.DataFrame) -> pl.DataFrame:
    """
    Aggregate a history frame by UTC day.

    Columns: day, inbound_pcs, outbound_pcs, net_pcs, movements.
    """
    inbound = pl.col("direction") == MovementDirection.INBOUND.value
    return (
        df.with_columns(pl.col("created_at").dt.date().alias("day"))
        .group_by("day")
        .agg(
            pl.when(inbound).then(pl.col("quantity_pcs")).otherwise(0).sum().alias("inbound_pcs"),
            pl.when(~inbound).then(pl.col("quantity_pcs")).otherwise(0).sum().alias("outbound_pcs"),
            pl.len().alias("movements"),
        )
        .with_columns((pl.col("inbound_pcs") - pl.col("outbound_pcs")).alias("net_pcs"))
        .select(["day", "inbound_pcs", "outbound_pcs", "net_pcs", "movements"])
        .sort("day")
    )


def summarize_movements(movements: Iterable[StockMovement]) -> List[Dict[str, Any]]:
    """Per-day inbound/outbound piece totals, oldest day first."""
    summary = daily_summary(history_frame(movements))
    logger.debug("Movement summary built", days=summary.height)
    return summary.to_dicts()
