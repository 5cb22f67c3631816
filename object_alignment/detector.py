# detector.py
"""MediaPipe object-detection adapter."""
from __future__ import annotations

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks.python import BaseOptions, vision

from object_alignment.common import DetectedObject, FrameDetections
from object_alignment.config import DetectorConfig
from object_alignment.geometry import Rect
from object_alignment.identity import IdentityAssigner

_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class MediaPipeObjectDetector:
    """
    Runs the detector on the upright (rotated) image.  Boxes are reported in
    that upright space while ``source_width/height`` keep the capture size,
    the same convention a phone camera pipeline uses.
    """

    def __init__(self, config: DetectorConfig):
        if config.rotation_deg not in _ROTATIONS:
            raise ValueError(f"rotation_deg must be one of {sorted(_ROTATIONS)}")
        self.config = config
        options = vision.ObjectDetectorOptions(
            base_options=BaseOptions(model_asset_path=config.model_path),
            running_mode=vision.RunningMode.VIDEO,
            max_results=config.max_results,
            score_threshold=config.score_threshold,
        )
        self.detector = vision.ObjectDetector.create_from_options(options)
        self.identities = IdentityAssigner(config.iou_match_threshold)
        self._last_ts_ms = -1
        print(f"[Detector] Loaded {config.model_path}")

    def detect(self, frame_bgr: np.ndarray, timestamp_ms: int) -> FrameDetections:
        src_h, src_w = frame_bgr.shape[:2]
        code = _ROTATIONS[self.config.rotation_deg]
        upright = cv2.rotate(frame_bgr, code) if code is not None else frame_bgr
        rgb = cv2.cvtColor(upright, cv2.COLOR_BGR2RGB)

        # VIDEO mode insists on strictly increasing timestamps
        ts = max(int(timestamp_ms), self._last_ts_ms + 1)
        self._last_ts_ms = ts
        result = self.detector.detect_for_video(
            mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb), ts
        )

        boxes = []
        labels = []
        for det in result.detections:
            bb = det.bounding_box
            boxes.append(Rect(
                float(bb.origin_x),
                float(bb.origin_y),
                float(bb.origin_x + bb.width),
                float(bb.origin_y + bb.height),
            ))
            labels.append(det.categories[0].category_name if det.categories else None)

        ids = self.identities.assign(boxes)
        objects = tuple(
            DetectedObject(identity=i, box=b, label=l)
            for i, b, l in zip(ids, boxes, labels)
        )
        return FrameDetections(objects, src_w, src_h)

    def close(self) -> None:
        self.detector.close()
