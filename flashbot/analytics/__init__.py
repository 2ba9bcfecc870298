"""Statistics aggregation"""

from flashbot.analytics.stats_aggregator import StatsAggregator

__all__ = ["StatsAggregator"]
