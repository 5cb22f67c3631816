# config.py
"""Typed configuration blobs for the whole system."""
from dataclasses import dataclass
from typing import Optional


@dataclass
class TrackingConfig:
    # Empirical values; both can be live-tuned
    smoothing_alpha: float = 0.2
    align_threshold_px: float = 40.0  # display-space, absolute


@dataclass
class ThrottleConfig:
    divisor: int = 1  # process every N-th frame


@dataclass
class DetectorConfig:
    model_path: str = "efficientdet_lite0.tflite"
    max_results: int = 5
    score_threshold: float = 0.4
    rotation_deg: int = 0             # 0, 90, 180 or 270
    iou_match_threshold: float = 0.3  # identity hand-over between frames


@dataclass
class LinkConfig:
    port: Optional[str] = None
    baudrate: int = 9600
    timeout: float = 2.0
    max_cmd_rate_hz: float = 20.0
    error_cooldown_s: float = 15.0
