from __future__ import annotations
import time
from collections import deque
from contextlib import contextmanager

from .logging import get_logger

_profiler = None


def get_profiler():
    global _profiler
    if _profiler is None:
        _profiler = Profiler()
    return _profiler


class Profiler:
    """Per-section wall-clock timings, smoothed with an exponential moving average."""

    def __init__(self, ema_alpha=0.1, maxlen=120):
        self._samples = {}
        self._ema = {}
        self.ema_alpha = ema_alpha
        self.maxlen = maxlen
        self.logger = get_logger("Profiler")

    @contextmanager
    def record(self, name: str):
        start_t = time.perf_counter()
        try:
            yield
        finally:
            self.add_sample(name, time.perf_counter() - start_t)

    def add_sample(self, name: str, seconds: float):
        self._samples.setdefault(name, deque(maxlen=self.maxlen)).append(seconds)
        prev = self._ema.get(name)
        if prev is None:
            self._ema[name] = seconds
        else:
            self._ema[name] = self.ema_alpha * seconds + (1.0 - self.ema_alpha) * prev

    def get_timings(self):
        return self._ema.copy()

    def worst(self, name: str) -> float:
        samples = self._samples.get(name)
        return max(samples) if samples else 0.0

    def reset(self):
        self._samples.clear()
        self._ema.clear()

    def log_stats(self):
        stats = [f"{k}: {v*1000:.2f}ms" for k, v in sorted(self._ema.items())]
        if stats:
            self.logger.info(" | ".join(stats))
