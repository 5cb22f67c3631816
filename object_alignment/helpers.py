# helpers.py
"""Small utility classes that don’t fit elsewhere."""
from typing import Tuple

import numpy as np


class ExponentialSmoother:
    """
    Single-pole exponential smoother for a tracked center point.
    No velocity state: a missed frame is never extrapolated.
    """

    def __init__(self, alpha: float = 0.2):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha
        self.state = np.zeros(2, dtype=float)
        self.initialized = False

    def update(self, x: float, y: float) -> Tuple[float, float]:
        meas = np.array([x, y], dtype=float)
        if not self.initialized:
            # First sample passes through untouched
            self.state = meas
            self.initialized = True
        else:
            self.state = self.alpha * meas + (1.0 - self.alpha) * self.state
        return float(self.state[0]), float(self.state[1])

    def reset(self) -> None:
        self.initialized = False
