"""
SDK for Credit Usage Tracker.

Provides usage-log sources the tracker reconciles against.
"""

from .usage_log import LedgerUsageLog, UsageLogClient, parse_usage_log

__all__ = ["LedgerUsageLog", "UsageLogClient", "parse_usage_log"]
