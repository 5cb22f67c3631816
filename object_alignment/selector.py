# selector.py
"""Pick one detection: by tap point, or nearest to the frame center."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np

from object_alignment.common import CandidateView, DetectedObject, FrameDetections
from object_alignment.geometry import Point, Rect, scale_box


def _nearest(
    objects: Sequence[DetectedObject],
    boxes: Sequence[Rect],
    target: Point,
) -> Optional[DetectedObject]:
    if not objects:
        return None
    centers = np.array([b.center for b in boxes], dtype=float)
    d2 = ((centers - np.asarray(target, dtype=float)) ** 2).sum(axis=1)
    # argmin returns the first minimum → ties resolve in detector order
    return objects[int(np.argmin(d2))]


def select_by_point(
    detections: FrameDetections,
    point: Point,
    scale_x: float,
    scale_y: float,
) -> Optional[DetectedObject]:
    """
    Tap-to-select.  Only objects whose *scaled* box contains ``point`` are
    eligible; among those the one with the closest center wins.
    """
    if not detections.is_usable:
        return None
    hits = []
    boxes = []
    for obj in detections.objects:
        scaled = scale_box(obj.box, scale_x, scale_y)
        if scaled.contains(point):
            hits.append(obj)
            boxes.append(scaled)
    return _nearest(hits, boxes, point)


def select_nearest_center(detections: FrameDetections) -> Optional[DetectedObject]:
    """Auto-select the object closest to the detector-space frame center."""
    if not detections.is_usable:
        return None
    center = (detections.source_width / 2.0, detections.source_height / 2.0)
    objects = list(detections.objects)
    return _nearest(objects, [o.box for o in objects], center)


def candidate_views(
    detections: FrameDetections,
    scale_x: float,
    scale_y: float,
) -> Tuple[CandidateView, ...]:
    return tuple(
        CandidateView(scale_box(o.box, scale_x, scale_y), o.label, o.identity)
        for o in detections.objects
    )
