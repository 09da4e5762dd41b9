"""
Operation timing with bounded history.

A PerformanceMonitor is created explicitly and handed to whoever records
into it (the request logging middleware, the status sweep). Each operation
key keeps at most ``history_size`` samples.
"""

import logging
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator

logger = logging.getLogger(__name__)


class PerformanceMonitor:

    def __init__(self, history_size: int = 100, slow_threshold_ms: float = 1000.0):
        if history_size <= 0:
            raise ValueError("history_size must be positive")
        self.history_size = history_size
        self.slow_threshold_ms = slow_threshold_ms
        self._samples: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=self.history_size))

    @contextmanager
    def timer(self, operation: str) -> Iterator[None]:
        """Time the enclosed block and record it under ``operation``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(operation, (time.perf_counter() - start) * 1000)

    def record(self, operation: str, duration_ms: float):
        self._samples[operation].append(duration_ms)

        if duration_ms > self.slow_threshold_ms:
            logger.warning(f"Degraded performance for {operation}: {duration_ms:.2f}ms")

    def average(self, operation: str) -> float:
        samples = self._samples.get(operation)
        if not samples:
            return 0.0
        return sum(samples) / len(samples)

    def samples(self, operation: str):
        return list(self._samples.get(operation, ()))

    def metrics(self) -> Dict[str, Dict[str, float]]:
        return {
            operation: {
                "average_ms": round(self.average(operation), 3),
                "max_ms": round(max(samples), 3),
                "count": len(samples),
            }
            for operation, samples in self._samples.items()
            if samples
        }

    def reset(self):
        self._samples.clear()
