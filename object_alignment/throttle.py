# throttle.py
"""Counter gate: forward only every N-th frame to the detector."""
from __future__ import annotations

from typing import Any, Callable, Optional, Union

Divisor = Union[int, Callable[[], int]]


class FrameThrottle:
    """
    ``divisor`` may be a plain int or a zero-arg callable; a callable is read
    on every frame so a changed setting applies to the very next one.
    """

    def __init__(self, divisor: Divisor = 1):
        self.divisor = divisor
        self.counter = 0

    def current_divisor(self) -> int:
        value = self.divisor() if callable(self.divisor) else self.divisor
        return max(1, int(value))

    def should_process(self) -> bool:
        self.counter += 1
        return self.counter % self.current_divisor() == 0

    def gate(self, frame: Any, release: Optional[Callable[[Any], None]] = None) -> bool:
        """
        True → caller processes (and later releases) the frame.
        False → the frame has already been released here.
        """
        if self.should_process():
            return True
        if release is not None:
            release(frame)
        return False
