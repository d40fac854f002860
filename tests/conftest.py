import numpy as np
import pytest

from shadowdots.config import AppConfig


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float):
        self.t += dt


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def small_cfg():
    # tiny canvas so per-dot drawing stays fast
    return AppConfig(width=64, height=48, density=0)


@pytest.fixture
def person_mask():
    """A 36x64 mask with a filled rectangle 'person' in the middle."""
    m = np.zeros((36, 64), dtype=np.uint8)
    m[8:30, 24:40] = 1
    return m
