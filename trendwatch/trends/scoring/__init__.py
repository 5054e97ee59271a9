"""
Pure scoring functions for trend detection.

Nothing in this package touches the database; every function takes its
thresholds from an explicit TrendConfig.
"""
