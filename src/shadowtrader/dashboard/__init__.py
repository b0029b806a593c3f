"""Dashboard JSON API."""

from shadowtrader.dashboard.server import DashboardServer, DashboardState

__all__ = ["DashboardServer", "DashboardState"]
