"""Read-side queries package."""

from cashflow.queries.cache import SnapshotCache
from cashflow.queries.dashboard import DashboardQueries

__all__ = ["DashboardQueries", "SnapshotCache"]
