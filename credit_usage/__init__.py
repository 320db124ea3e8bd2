"""
Credit Usage Tracker.

Derives per-day credit usage from a cumulative consumed-credits counter and
prepares it for charting.
"""

__version__ = "0.1.0"
