# serial_link.py
"""Serial link that carries alignment corrections to the actuator board."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import serial


class LinkError(RuntimeError):
    """Raised when the serial link is unusable."""


@dataclass(slots=True)
class _SerialCfg:
    port: str
    baudrate: int = 9600
    timeout: float = 2.0


def format_pair(a: float, b: float) -> bytes:
    return f"x:{a:.2f},y:{b:.2f}\n".encode("ascii")


class AlignmentLink:
    """Line-oriented ASCII writer: one ``x:<a>,y:<b>`` line per command."""

    def __init__(
        self,
        port: str | Path,
        baudrate: int = 9600,
        timeout: float = 2.0,
        write_timeout: float | None = 0.5,
    ):
        self._cfg = _SerialCfg(str(port), baudrate, timeout)
        self._write_timeout = write_timeout
        self._ser: Optional[serial.Serial] = None
        self._lock = threading.Lock()

    # ---------------- Serial plumbing ----------------
    def open(self) -> None:
        if self._ser and self._ser.is_open:
            return
        self._ser = serial.Serial(
            port=self._cfg.port,
            baudrate=self._cfg.baudrate,
            timeout=self._cfg.timeout,
            write_timeout=self._write_timeout,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
        )
        time.sleep(0.2)
        if self._ser.is_open:
            self._ser.reset_input_buffer()
        print(f"[Link] Opened {self._cfg.port} @ {self._cfg.baudrate} baud")

    def close(self) -> None:
        if self._ser and self._ser.is_open:
            self._ser.close()
            print("[Link] Port closed")
        self._ser = None

    def is_open(self) -> bool:
        return bool(self._ser and self._ser.is_open)

    # ------------------ Public API -------------------
    def send_deviation(self, dx: float, dy: float) -> None:
        self._write(format_pair(dx, dy))

    def send_orientation(self, pitch: float, roll: float) -> None:
        self._write(format_pair(pitch, roll))

    def read_line(self) -> Optional[str]:
        """One line from the board, or None on timeout."""
        if not self.is_open():
            raise LinkError("Serial port is not open")
        with self._lock:
            raw = self._ser.readline()
        if not raw:
            return None
        return raw.decode(errors="replace").strip()

    # ----------------- Internal core -----------------
    def _write(self, payload: bytes) -> None:
        if not self.is_open():
            raise LinkError("Serial port is not open")
        with self._lock:
            try:
                self._ser.write(payload)
                self._ser.flush()
            except serial.SerialTimeoutException as exc:
                raise LinkError(f"Write timed out on {self._cfg.port}") from exc

    # ---------------- Context / repr ---------------
    def __enter__(self) -> "AlignmentLink":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open() else "closed"
        return f"<AlignmentLink port={self._cfg.port!r} ({state})>"
