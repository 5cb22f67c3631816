# identity.py
"""Sticky integer identities for detectors that do not track across frames."""
from __future__ import annotations

from typing import List, Optional, Sequence

import numpy as np

from object_alignment.geometry import Rect


def iou_matrix(a: Sequence[Rect], b: Sequence[Rect]) -> np.ndarray:
    """Pairwise intersection-over-union, shape (len(a), len(b))."""
    if not a or not b:
        return np.zeros((len(a), len(b)))
    A = np.array([(r.left, r.top, r.right, r.bottom) for r in a], dtype=float)
    B = np.array([(r.left, r.top, r.right, r.bottom) for r in b], dtype=float)

    ix1 = np.maximum(A[:, None, 0], B[None, :, 0])
    iy1 = np.maximum(A[:, None, 1], B[None, :, 1])
    ix2 = np.minimum(A[:, None, 2], B[None, :, 2])
    iy2 = np.minimum(A[:, None, 3], B[None, :, 3])
    inter = np.clip(ix2 - ix1, 0, None) * np.clip(iy2 - iy1, 0, None)

    area_a = np.clip(A[:, 2] - A[:, 0], 0, None) * np.clip(A[:, 3] - A[:, 1], 0, None)
    area_b = np.clip(B[:, 2] - B[:, 0], 0, None) * np.clip(B[:, 3] - B[:, 1], 0, None)
    union = area_a[:, None] + area_b[None, :] - inter
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(union > 0, inter / union, 0.0)
    return out


class IdentityAssigner:
    """
    Greedy IoU hand-over from the previous frame.  Boxes that overlap a
    previous box by at least ``iou_threshold`` inherit its id; everything else
    gets a new one.  Only the previous frame is remembered, so an object
    missing for a frame comes back with a new id.
    """

    def __init__(self, iou_threshold: float = 0.3):
        self.iou_threshold = iou_threshold
        self._next = 1
        self._prev_boxes: List[Rect] = []
        self._prev_ids: List[int] = []

    def _new_id(self) -> int:
        nid = self._next
        self._next += 1
        return nid

    def assign(self, boxes: Sequence[Rect]) -> List[int]:
        ious = iou_matrix(self._prev_boxes, boxes)
        ids: List[Optional[int]] = [None] * len(boxes)
        used_prev = set()

        if ious.size:
            # Best overlaps first
            order = np.argsort(-ious, axis=None, kind="stable")
            for flat in order:
                p, c = (int(v) for v in np.unravel_index(flat, ious.shape))
                if ious[p, c] < self.iou_threshold:
                    break
                if p in used_prev or ids[c] is not None:
                    continue
                ids[c] = self._prev_ids[p]
                used_prev.add(p)

        result = [i if i is not None else self._new_id() for i in ids]
        self._prev_boxes = list(boxes)
        self._prev_ids = result
        return result

    def reset(self) -> None:
        self._prev_boxes = []
        self._prev_ids = []
