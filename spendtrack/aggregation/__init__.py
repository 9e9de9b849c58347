"""
Aggregation Package

Pure summaries over fetched ledger data. Nothing here touches storage
or raises on missing input; empty input gives zero results.
"""

from spendtrack.aggregation.grouping import (
    group_by_card,
    group_by_week,
    week_label,
    week_start,
)
from spendtrack.aggregation.totals import (
    installments_summary,
    monthly_total,
    spending,
    target_progress,
    today_total,
    weekly_total,
)

__all__ = [
    "group_by_card",
    "group_by_week",
    "installments_summary",
    "monthly_total",
    "spending",
    "target_progress",
    "today_total",
    "week_label",
    "week_start",
    "weekly_total",
]
