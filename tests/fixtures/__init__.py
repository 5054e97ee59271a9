"""
Test fixtures for Trendwatch.
"""

from .trend_factory import (
    NOW,
    add_evidence,
    add_hourly_evidence,
    make_action,
    make_event,
    make_mention,
)

__all__ = [
    "NOW",
    "add_evidence",
    "add_hourly_evidence",
    "make_action",
    "make_event",
    "make_mention",
]
