# processor.py
"""Frame source → throttle → detector → session → serial link glue.

The frame source pushes frames with :meth:`AlignmentProcessor.submit` and
gets each processed result back through ``on_output``.  Every frame is
released exactly once: immediately when the throttle skips it, after
detection otherwise.  Taps and stop requests may come from a UI thread; a
lock keeps them from interleaving with a frame in flight.  Serial writes and
link reopens happen outside that lock.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, Protocol, Tuple

import serial

from object_alignment.common import (
    AlignmentReport,
    FrameDetections,
    FrameOutput,
    ObserveStatus,
)
from object_alignment.config import LinkConfig, ThrottleConfig, TrackingConfig
from object_alignment.geometry import Point, scale_factors
from object_alignment.live_tuning import RuntimeParamWatcher, apply_params
from object_alignment.selector import (
    candidate_views,
    select_by_point,
    select_nearest_center,
)
from object_alignment.serial_link import AlignmentLink, LinkError
from object_alignment.throttle import FrameThrottle
from object_alignment.tracker import EventCallback, TrackingSession


class Detector(Protocol):
    def detect(self, frame: Any, timestamp_ms: int) -> FrameDetections: ...

    def close(self) -> None: ...


class AlignmentProcessor:
    """The main high-level orchestrator."""

    def __init__(
        self,
        detector: Detector,
        tracking_cfg: Optional[TrackingConfig] = None,
        throttle_cfg: Optional[ThrottleConfig] = None,
        link_cfg: Optional[LinkConfig] = None,
        *,
        link: Optional[AlignmentLink] = None,
        param_watcher: Optional[RuntimeParamWatcher] = None,
        on_output: Optional[Callable[[FrameOutput], None]] = None,
        on_event: Optional[EventCallback] = None,
        clock: Callable[[], float] = time.time,
    ):
        # Config blobs --------------------------------------------------
        self.tracking_cfg = tracking_cfg or TrackingConfig()
        self.throttle_cfg = throttle_cfg or ThrottleConfig()
        self.link_cfg = link_cfg or LinkConfig()

        # Core pipeline objects ----------------------------------------
        self.detector = detector
        self.session = TrackingSession(self.tracking_cfg, on_event=on_event)
        self.throttle = FrameThrottle(lambda: self.throttle_cfg.divisor)
        self.on_output = on_output
        self._lock = threading.RLock()
        self._clock = clock

        self.viewport: Tuple[float, float] = (0.0, 0.0)
        self.last_detections: Optional[FrameDetections] = None

        # Serial link --------------------------------------------------
        self.link = link
        self.link_ok = link is not None and link.is_open()
        self.last_link_cmd = 0.0
        self.last_link_error = 0.0

        # Stats ----------------------------------------------------------
        self.total_frames = 0
        self.processed_frames = 0

        # Live-tuning ---------------------------------------------------
        self.param_watcher = param_watcher
        if param_watcher is not None:
            self._apply_runtime_params()

    # ------------------------------------------------------------------ #
    #   L I V E   T U N I N G
    # ------------------------------------------------------------------ #
    def _apply_runtime_params(self) -> None:
        applied = apply_params(
            self.param_watcher.params,
            self.tracking_cfg,
            self.throttle_cfg,
            self.link_cfg,
        )
        if applied:
            print(f"[Runtime] Applied: {', '.join(applied)}")

    # ------------------------------------------------------------------ #
    #   U I   I N P U T S
    # ------------------------------------------------------------------ #
    def set_viewport(self, width: float, height: float) -> None:
        with self._lock:
            self.viewport = (float(width), float(height))

    def select_at(self, point: Point) -> bool:
        """Tap-to-select on the latest detections. Only while idle."""
        with self._lock:
            if self.session.is_locked or self.last_detections is None:
                return False
            factors = scale_factors(
                *self.viewport,
                self.last_detections.source_width,
                self.last_detections.source_height,
            )
            if factors is None:
                return False
            obj = select_by_point(self.last_detections, point, *factors)
            return self.session.lock(obj)

    def select_center(self) -> bool:
        """Lock onto whatever is closest to the frame center. Only while idle."""
        with self._lock:
            if self.session.is_locked or self.last_detections is None:
                return False
            return self.session.lock(select_nearest_center(self.last_detections))

    def stop(self) -> None:
        with self._lock:
            self.session.stop()

    # ------------------------------------------------------------------ #
    #   S E R I A L   O U T P U T
    # ------------------------------------------------------------------ #
    def _forward(self, report: AlignmentReport) -> bool:
        """Send the deviation if the link is up and the rate cap allows it."""
        if self.link is None or report.deviation is None:
            return False
        now = self._clock()

        if not self.link_ok:
            if now - self.last_link_error < self.link_cfg.error_cooldown_s:
                return False
            try:
                self.link.open()
                self.link_ok = self.link.is_open()
            except (LinkError, serial.SerialException) as exc:
                print(f"[Link] Reopen failed: {exc}")
                self.last_link_error = now
                return False
            if not self.link_ok:
                self.last_link_error = now
                return False

        rate = self.link_cfg.max_cmd_rate_hz
        if rate > 0 and now - self.last_link_cmd < 1.0 / rate:
            return False
        try:
            self.link.send_deviation(*report.deviation)
        except (LinkError, serial.SerialException) as exc:
            print(f"[Link] Send error: {exc}")
            self.link_ok = False
            self.last_link_error = now
            return False
        self.last_link_cmd = now
        return True

    # ------------------------------------------------------------------ #
    #   P E R - F R A M E
    # ------------------------------------------------------------------ #
    def submit(
        self,
        frame: Any,
        timestamp_ms: int,
        release: Optional[Callable[[Any], None]] = None,
    ) -> Optional[FrameOutput]:
        """Returns the output for a processed frame, None for a skipped one."""
        self.total_frames += 1
        if self.param_watcher is not None and self.param_watcher.maybe_reload():
            self._apply_runtime_params()

        if not self.throttle.gate(frame, release):
            return None

        try:
            try:
                detections = self.detector.detect(frame, timestamp_ms)
            except Exception as exc:  # noqa: BLE001
                print(f"[Processor] Detector error: {exc}")
                return None
            output = self._handle_detections(detections)
        finally:
            if release is not None:
                release(frame)

        # Outside the lock: a link reopen may block for a while
        if output.report.status is ObserveStatus.TRACKING:
            self._forward(output.report)

        if self.on_output is not None:
            self.on_output(output)
        return output

    def _handle_detections(self, detections: FrameDetections) -> FrameOutput:
        with self._lock:
            self.processed_frames += 1
            self.last_detections = detections

            if not self.session.is_locked:
                factors = scale_factors(
                    *self.viewport, detections.source_width, detections.source_height
                )
                if factors is None:
                    return FrameOutput(detections, AlignmentReport(ObserveStatus.SKIPPED))
                return FrameOutput(
                    detections,
                    AlignmentReport(ObserveStatus.NOT_TRACKING),
                    candidate_views(detections, *factors),
                )

            return FrameOutput(detections, self.session.observe(detections, *self.viewport))

    def close(self) -> None:
        print(f"[Processor] Closing. Frames seen={self.total_frames}, processed={self.processed_frames}")
        self.session.stop()
        self.detector.close()
        if self.link is not None and self.link.is_open():
            self.link.close()
