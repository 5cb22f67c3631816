# common.py
"""Objects that are shared across multiple modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Hashable, Optional, Tuple

from object_alignment.geometry import Point, Rect


@dataclass(frozen=True)
class DetectedObject:
    """
    One physical object seen in the current frame.

    ``identity`` comes from the detector and may be ``None`` or may change
    between frames for the same object.  ``box`` is in detector-space.
    """
    identity: Optional[Hashable]
    box: Rect
    label: Optional[str] = None


@dataclass(frozen=True)
class FrameDetections:
    """Everything the detector found in one processed frame."""
    objects: Tuple[DetectedObject, ...]
    source_width: int
    source_height: int

    @property
    def is_usable(self) -> bool:
        return self.source_width > 0 and self.source_height > 0


class SessionState(Enum):
    IDLE = auto()
    LOCKED = auto()


class SessionEvent(Enum):
    LOCKED = auto()
    STOPPED = auto()
    TARGET_LOST = auto()
    TARGET_REACQUIRED = auto()


class ObserveStatus(Enum):
    NOT_TRACKING = auto()   # session is idle
    SKIPPED = auto()        # malformed frame, nothing changed
    TRACKING = auto()
    LOST = auto()


@dataclass(frozen=True)
class AlignmentReport:
    """
    A single-frame snapshot of session output.
    Rectangles and deviation are in *display* space.
    """
    status: ObserveStatus
    anchor_rect: Optional[Rect] = None
    tracked_rect: Optional[Rect] = None
    smoothed_center: Optional[Point] = None
    deviation: Optional[Tuple[float, float]] = None
    aligned: bool = False
    track_id: Optional[Hashable] = None
    label: Optional[str] = None

    @property
    def lost(self) -> bool:
        return self.status is ObserveStatus.LOST


@dataclass(frozen=True)
class CandidateView:
    """A detection scaled for drawing while nothing is locked."""
    rect: Rect
    label: Optional[str]
    identity: Optional[Hashable]


@dataclass
class FrameOutput:
    """What the processor hands to its consumer for one processed frame."""
    detections: FrameDetections
    report: AlignmentReport
    candidates: Tuple[CandidateView, ...] = field(default_factory=tuple)
