"""
Core modules for Credit Usage Tracker.

This package contains legacy state migration, daily usage bucketing,
and the chart series builder.
"""
