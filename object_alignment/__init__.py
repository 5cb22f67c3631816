# object_alignment/__init__.py
"""Object lock-on and alignment feedback – re-export high-level API."""
from .common import (                            # noqa: F401
    AlignmentReport, DetectedObject, FrameDetections, FrameOutput,
    ObserveStatus, SessionEvent, SessionState,
)
from .config import (                            # noqa: F401
    DetectorConfig, LinkConfig, ThrottleConfig, TrackingConfig,
)
from .geometry import Rect, scale_box, scale_factors  # noqa: F401
from .helpers import ExponentialSmoother         # noqa: F401
from .processor import AlignmentProcessor        # noqa: F401
from .selector import select_by_point, select_nearest_center  # noqa: F401
from .throttle import FrameThrottle              # noqa: F401
from .tracker import TrackingSession             # noqa: F401
