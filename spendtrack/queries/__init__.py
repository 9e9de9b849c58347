"""Dashboard query package."""

from spendtrack.queries.dashboard import DashboardQueries

__all__ = ["DashboardQueries"]
