"""
Analytics: cached certificate and verification rollups for dashboards.
"""

from backend_certanchor.analytics.stats import StatsAggregator, StatsQuery, StatsSnapshot

__all__ = ["StatsAggregator", "StatsQuery", "StatsSnapshot"]
