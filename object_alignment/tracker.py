# tracker.py
"""Lock-on session: anchor, tracked identity, smoothing and alignment state."""
from __future__ import annotations

from typing import Callable, Hashable, Optional, Tuple

from object_alignment.common import (
    AlignmentReport,
    DetectedObject,
    FrameDetections,
    ObserveStatus,
    SessionEvent,
    SessionState,
)
from object_alignment.config import TrackingConfig
from object_alignment.geometry import Rect, scale_box, scale_factors
from object_alignment.helpers import ExponentialSmoother

EventCallback = Callable[[SessionEvent, "TrackingSession"], None]


class TrackingSession:
    """
    Idle ⇄ Locked state machine.

    The anchor is kept in detector-space and rescaled on every frame, so a
    viewport change between frames does not shift the reference.  A frame in
    which the tracked identity is missing reports LOST but keeps the lock; the
    same identity showing up again resumes with the filter state intact.

    Calls must arrive in frame order from a single thread of control.
    """

    def __init__(
        self,
        cfg: Optional[TrackingConfig] = None,
        on_event: Optional[EventCallback] = None,
    ):
        self.cfg = cfg if cfg is not None else TrackingConfig()
        self.on_event = on_event

        self.state = SessionState.IDLE
        self.tracked_identity: Optional[Hashable] = None
        self.anchor: Optional[Rect] = None
        self.filter: Optional[ExponentialSmoother] = None
        self.last_deviation: Optional[Tuple[float, float]] = None
        self.aligned = False
        self.lost = False

    @property
    def is_locked(self) -> bool:
        return self.state is SessionState.LOCKED

    # ------------------------------------------------------------------ #
    #   T R A N S I T I O N S
    # ------------------------------------------------------------------ #
    def lock(self, obj: Optional[DetectedObject], anchor_box: Optional[Rect] = None) -> bool:
        """
        Lock onto ``obj``.  Returns False (and changes nothing) when there is
        no object.  Locking while already locked replaces the previous lock.
        """
        if obj is None:
            return False

        self.state = SessionState.LOCKED
        self.tracked_identity = obj.identity
        self.anchor = anchor_box if anchor_box is not None else obj.box
        # Fresh filter per lock episode
        self.filter = ExponentialSmoother(self.cfg.smoothing_alpha)
        self.last_deviation = None
        self.aligned = False
        self.lost = False

        print(f"[Session] Locked on id={obj.identity} label={obj.label!r}")
        self._emit(SessionEvent.LOCKED)
        return True

    def stop(self) -> None:
        was_locked = self.is_locked
        self.state = SessionState.IDLE
        self.tracked_identity = None
        self.anchor = None
        self.filter = None
        self.last_deviation = None
        self.aligned = False
        self.lost = False
        if was_locked:
            print("[Session] Stopped")
            self._emit(SessionEvent.STOPPED)

    # ------------------------------------------------------------------ #
    #   P E R - F R A M E
    # ------------------------------------------------------------------ #
    def find_tracked(self, detections: FrameDetections) -> Optional[DetectedObject]:
        if self.tracked_identity is None:
            return None
        for obj in detections.objects:
            if obj.identity == self.tracked_identity:
                return obj
        return None

    def observe(
        self,
        detections: FrameDetections,
        output_width: float,
        output_height: float,
    ) -> AlignmentReport:
        if not self.is_locked:
            return AlignmentReport(ObserveStatus.NOT_TRACKING)

        factors = scale_factors(
            output_width, output_height,
            detections.source_width, detections.source_height,
        )
        if factors is None:
            return AlignmentReport(ObserveStatus.SKIPPED, track_id=self.tracked_identity)
        sx, sy = factors
        anchor_rect = scale_box(self.anchor, sx, sy)

        obj = self.find_tracked(detections)
        if obj is None:
            if not self.lost:
                self.lost = True
                print(f"[Session] Target lost (id={self.tracked_identity})")
                self._emit(SessionEvent.TARGET_LOST)
            return AlignmentReport(
                ObserveStatus.LOST,
                anchor_rect=anchor_rect,
                track_id=self.tracked_identity,
            )

        if self.lost:
            self.lost = False
            print(f"[Session] Target reacquired (id={self.tracked_identity})")
            self._emit(SessionEvent.TARGET_REACQUIRED)

        tracked_rect = scale_box(obj.box, sx, sy)
        cx, cy = self.filter.update(*tracked_rect.center)
        ax, ay = anchor_rect.center
        dx, dy = cx - ax, cy - ay

        thr = self.cfg.align_threshold_px
        self.aligned = abs(dx) < thr and abs(dy) < thr
        self.last_deviation = (dx, dy)

        return AlignmentReport(
            ObserveStatus.TRACKING,
            anchor_rect=anchor_rect,
            tracked_rect=tracked_rect,
            smoothed_center=(cx, cy),
            deviation=(dx, dy),
            aligned=self.aligned,
            track_id=obj.identity,
            label=obj.label,
        )

    def _emit(self, event: SessionEvent) -> None:
        if self.on_event is not None:
            self.on_event(event, self)
