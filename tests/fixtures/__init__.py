"""Test fixtures for Shadowtrader tests.

This package provides:
- Factories for positions, activity records, quotes and order results
- FakeScheduler, a scheduler driven by a fake clock
"""

from .factories import (
    FakeScheduler,
    make_activity,
    make_order_result,
    make_position,
    make_quote,
)

__all__ = [
    "FakeScheduler",
    "make_activity",
    "make_order_result",
    "make_position",
    "make_quote",
]
