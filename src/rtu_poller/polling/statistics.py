"""
Poll Statistics
===============

Bounded history of poll ticks for end-of-session reporting.

Tick durations live in a fixed-size deque, so a poller left running for
weeks keeps constant memory. Counters cover the whole session.

Author: Guilherme F. G. Santos
Date: October 2026
License: MIT
"""

import numpy as np
from collections import Counter, deque
from typing import Deque, Dict


class PollStatistics:
    """
    Running statistics over the most recent poll ticks.

    Tick durations are kept in a fixed-size window; tick and failure
    counters cover the whole session.
    """

    def __init__(self, window: int = 100):
        if window <= 0:
            raise ValueError(f"Statistics window must be positive, got {window}")

        self.window = window
        self.durations: Deque[float] = deque(maxlen=window)
        self.tick_count = 0
        self.failed_ticks = 0
        self.max_consecutive_failures = 0
        self.register_failures: Counter = Counter()

    def record(self, tick, consecutive_failures: int = 0):
        """Add one completed tick."""
        self.tick_count += 1
        self.durations.append(tick.duration)

        if not tick.success:
            self.failed_ticks += 1

        self.max_consecutive_failures = max(
            self.max_consecutive_failures, consecutive_failures
        )

        for outcome in tick.outcomes:
            if not outcome.ok:
                self.register_failures[outcome.register.name] += 1

    def summary(self) -> Dict[str, float]:
        """Tick duration statistics in milliseconds plus failure counts."""
        if not self.durations:
            return {
                "ticks": 0,
                "failed_ticks": 0,
                "mean_ms": 0.0,
                "std_ms": 0.0,
                "min_ms": 0.0,
                "max_ms": 0.0,
                "max_consecutive_failures": 0,
            }

        values = np.array(self.durations, dtype=float) * 1000.0

        return {
            "ticks": self.tick_count,
            "failed_ticks": self.failed_ticks,
            "mean_ms": float(np.mean(values)),
            "std_ms": float(np.std(values)),
            "min_ms": float(np.min(values)),
            "max_ms": float(np.max(values)),
            "max_consecutive_failures": self.max_consecutive_failures,
        }

    def format_summary(self) -> str:
        s = self.summary()
        text = (
            f"{s['ticks']} ticks, {s['failed_ticks']} with errors, "
            f"tick time {s['mean_ms']:.1f} ± {s['std_ms']:.1f} ms "
            f"(min {s['min_ms']:.1f}, max {s['max_ms']:.1f}), "
            f"longest error run {s['max_consecutive_failures']}"
        )
        if self.register_failures:
            worst = ", ".join(
                f"{name}={count}" for name, count in self.register_failures.most_common(5)
            )
            text += f"; failing registers: {worst}"
        return text
