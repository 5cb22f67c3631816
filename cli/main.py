# main.py
"""
Entry-point for the object alignment system.

Click an object in the window to lock onto it; the gray box marks where it
was at lock time and the deviation from that spot is shown (and sent over
serial when a port is configured).

Keys
----
``c``  lock onto the object nearest the frame center
``s``  stop tracking / pick a new target
``+``  process fewer frames (raise the divisor)
``-``  process more frames
``q``  quit

Live-tuning
-----------
Edit ``runtime_params.json`` while running; see
``object_alignment/live_tuning.py`` for the recognised keys.
"""
from __future__ import annotations

import time
from typing import Optional

import cv2
import numpy as np

from object_alignment.common import FrameOutput, SessionEvent
from object_alignment.config import (
    DetectorConfig,
    LinkConfig,
    ThrottleConfig,
    TrackingConfig,
)
from object_alignment.detector import MediaPipeObjectDetector
from object_alignment.live_tuning import RuntimeParamWatcher
from object_alignment.processor import AlignmentProcessor
from object_alignment.serial_link import AlignmentLink

WINDOW = "Object Alignment"
CAMERA_INDEX = 0

YELLOW = (0, 255, 255)
GREEN = (0, 255, 0)
RED = (0, 0, 255)
GRAY = (160, 160, 160)


def _pt(p) -> tuple:
    return int(p[0]), int(p[1])


def draw_overlay(img: np.ndarray, out: Optional[FrameOutput], divisor: int) -> None:
    cv2.putText(img, f"1/{divisor}", (10, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.6, GREEN, 2)
    if out is None:
        return

    for cand in out.candidates:
        r = cand.rect
        cv2.rectangle(img, _pt((r.left, r.top)), _pt((r.right, r.bottom)), YELLOW, 2)
        cv2.circle(img, _pt(r.center), 4, YELLOW, -1)
        cv2.putText(img, cand.label or "object", _pt((r.left, r.top - 8)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, YELLOW, 1)

    rpt = out.report
    if rpt.anchor_rect is not None:
        a = rpt.anchor_rect
        cv2.rectangle(img, _pt((a.left, a.top)), _pt((a.right, a.bottom)), GRAY, 1)
    if rpt.lost:
        h, w = img.shape[:2]
        cv2.putText(img, "TARGET LOST", (w // 2 - 90, h // 2), cv2.FONT_HERSHEY_SIMPLEX, 0.9, RED, 2)
    elif rpt.smoothed_center is not None and rpt.tracked_rect is not None:
        color = GREEN if rpt.aligned else RED
        cx, cy = rpt.smoothed_center
        hw, hh = rpt.tracked_rect.width / 2.0, rpt.tracked_rect.height / 2.0
        cv2.rectangle(img, _pt((cx - hw, cy - hh)), _pt((cx + hw, cy + hh)), color, 3)
        if not rpt.aligned:
            cv2.line(img, _pt(rpt.anchor_rect.center), _pt((cx, cy)), color, 2)
        dx, dy = rpt.deviation
        text = "ALIGNED" if rpt.aligned else f"X:{int(dx)} Y:{int(dy)}"
        cv2.putText(img, text, _pt((cx - hw, cy + hh + 25)), cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2)


def main() -> None:
    print("Initializing Object Alignment System…")
    print("Hint: edit 'runtime_params.json' at any time to tweak parameters.\n")

    # -------------------- Config blobs --------------------
    trk_cfg = TrackingConfig()
    thr_cfg = ThrottleConfig(divisor=2)
    det_cfg = DetectorConfig(rotation_deg=90)
    link_cfg = LinkConfig(port=None)  # e.g. "/dev/ttyUSB0"

    print(f"Tracking: alpha={trk_cfg.smoothing_alpha}, threshold={trk_cfg.align_threshold_px}px")
    print(f"Detector: model={det_cfg.model_path}, rotation={det_cfg.rotation_deg}°")
    print(f"Link: {link_cfg.port or 'DISABLED'}")

    link = None
    if link_cfg.port:
        link = AlignmentLink(link_cfg.port, baudrate=link_cfg.baudrate, timeout=link_cfg.timeout)
        try:
            link.open()
        except Exception as exc:  # noqa: BLE001
            print(f"[Link] Init error: {exc}")

    def _on_event(event: SessionEvent, _session) -> None:
        print(f"[UI] {event.name}")

    processor = AlignmentProcessor(
        MediaPipeObjectDetector(det_cfg),
        trk_cfg,
        thr_cfg,
        link_cfg,
        link=link,
        param_watcher=RuntimeParamWatcher(),
        on_event=_on_event,
    )

    cap = cv2.VideoCapture(CAMERA_INDEX)
    if not cap.isOpened():
        print(f"[Camera] Could not open device {CAMERA_INDEX}")
        processor.close()
        return

    cv2.namedWindow(WINDOW, cv2.WINDOW_AUTOSIZE)
    cv2.setMouseCallback(
        WINDOW,
        lambda ev, x, y, *_: processor.select_at((x, y)) if ev == cv2.EVENT_LBUTTONDOWN else None,
    )

    last_out: Optional[FrameOutput] = None
    t0 = time.time()
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                time.sleep(0.05)
                continue

            display = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
            processor.set_viewport(display.shape[1], display.shape[0])
            out = processor.submit(frame, int((time.time() - t0) * 1000))
            if out is not None:
                last_out = out

            draw_overlay(display, last_out, thr_cfg.divisor)
            cv2.imshow(WINDOW, display)

            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            elif key == ord("c"):
                processor.select_center()
            elif key == ord("s"):
                processor.stop()
            elif key == ord("+"):
                thr_cfg.divisor += 1
            elif key == ord("-"):
                thr_cfg.divisor = max(1, thr_cfg.divisor - 1)
    except KeyboardInterrupt:
        print("\n[Processor] Stopped by user.")
    finally:
        cap.release()
        processor.close()
        cv2.destroyAllWindows()
    print("Main program finished.")


if __name__ == "__main__":
    main()
