# live_tuning.py
"""Hot-reload tunables from a JSON file while the pipeline runs.

Recognised keys
---------------
``frame_divisor``       process every N-th frame (next frame)
``align_threshold_px``  alignment box half-size (next frame)
``smoothing_alpha``     filter weight (next lock episode)
``max_cmd_rate_hz``     serial command cap (next command)
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple

from object_alignment.config import LinkConfig, ThrottleConfig, TrackingConfig


class RuntimeParamWatcher:
    """Watch a JSON file and hot-reload its contents when it changes."""

    def __init__(self, path: str | Path = "runtime_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)
        self.params: Dict[str, Any] = {}

        print(f"[Runtime] Watching: {self.path}")
        self._load(initial=True)

    def _load(self, *, initial: bool = False) -> None:
        try:
            stat = self.path.stat()
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            if initial:
                print(f"[Runtime] {self.path} not found – live-tuning disabled.")
            else:
                print(f"[Runtime] {self.path} was deleted – keeping old params.")
            return
        except OSError as exc:
            print(f"[Runtime] Failed to read {self.path}: {exc}")
            return
        except UnicodeDecodeError as exc:
            # Remember the stamp so an undecodable file is not re-read every frame
            self._stamp = (stat.st_mtime, stat.st_size)
            print(f"[Runtime] Failed to decode {self.path}: {exc}")
            return

        # Remember the stamp even for a broken file so it is not re-parsed every frame
        self._stamp = (stat.st_mtime, stat.st_size)
        try:
            params = json.loads(text)
        except json.JSONDecodeError as exc:
            print(f"[Runtime] JSON error in {self.path}: {exc}")
            return
        if not isinstance(params, dict):
            print(f"[Runtime] {self.path} must hold a JSON object – ignored.")
            return

        self.params = params
        if not initial:
            print(f"[Runtime] Reloaded parameters from {self.path}")

    def maybe_reload(self) -> bool:
        """
        If the watched file changed since the last call reload it and
        return **True**, else return **False**.
        """
        try:
            stat = self.path.stat()
        except OSError:
            return False

        mtime, fsize = self._stamp
        # Coarse filesystem timestamps: any size change or a >=1 s step counts.
        if stat.st_size != fsize or stat.st_mtime - mtime >= 1.0:
            self._load()
            return True
        return False

    def get(self, key: str, default: Any | None = None) -> Any:
        return self.params.get(key, default)


def apply_params(
    params: Dict[str, Any],
    tracking_cfg: TrackingConfig,
    throttle_cfg: ThrottleConfig,
    link_cfg: LinkConfig,
) -> List[str]:
    """Push recognised, valid values into the config blobs. Returns keys applied."""
    applied: List[str] = []

    def _num(key: str):
        value = params.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            if key in params:
                print(f"[Runtime] Ignoring non-numeric {key}={value!r}")
            return None
        return value

    divisor = _num("frame_divisor")
    if divisor is not None and divisor >= 1:
        throttle_cfg.divisor = int(divisor)
        applied.append("frame_divisor")

    threshold = _num("align_threshold_px")
    if threshold is not None and threshold > 0:
        tracking_cfg.align_threshold_px = float(threshold)
        applied.append("align_threshold_px")

    alpha = _num("smoothing_alpha")
    if alpha is not None and 0.0 < alpha <= 1.0:
        tracking_cfg.smoothing_alpha = float(alpha)
        applied.append("smoothing_alpha")

    rate = _num("max_cmd_rate_hz")
    if rate is not None and rate > 0:
        link_cfg.max_cmd_rate_hz = float(rate)
        applied.append("max_cmd_rate_hz")

    return applied
