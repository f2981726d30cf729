"""
Audited query history and the statistics derived from it.
"""

from .auditor import QueryAuditor
from .aggregator import HistoryAggregator

__all__ = ["QueryAuditor", "HistoryAggregator"]
