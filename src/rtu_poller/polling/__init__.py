"""
Polling Package
===============

Cyclic register polling over one serial session.

Components:
- scheduler.py: Poll loop, per-register outcomes, failure counter
- statistics.py: Bounded tick history for reporting
"""

from .scheduler import (
    OutcomeStatus,
    PollScheduler,
    PollState,
    PollTick,
    RegisterOutcome,
)
from .statistics import PollStatistics

__all__ = [
    "OutcomeStatus",
    "PollScheduler",
    "PollState",
    "PollTick",
    "PollStatistics",
    "RegisterOutcome",
]
