import json
import os
import threading

import pytest

from object_alignment.common import ObserveStatus, SessionEvent
from object_alignment.config import LinkConfig, ThrottleConfig
from object_alignment.live_tuning import RuntimeParamWatcher
from object_alignment.processor import AlignmentProcessor
from object_alignment.serial_link import LinkError

from tests.factories import VIEW, frame, obj


class FakeDetector:
    def __init__(self, *results):
        self.results = list(results)
        self.calls = []
        self.closed = False

    def detect(self, frame_img, timestamp_ms):
        self.calls.append((frame_img, timestamp_ms))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


class FakeLink:
    def __init__(self, fail=False):
        self.sent = []
        self.opened = True
        self.fail = fail

    def is_open(self):
        return self.opened

    def open(self):
        self.opened = True

    def close(self):
        self.opened = False

    def send_deviation(self, dx, dy):
        if self.fail:
            raise LinkError("boom")
        self.sent.append((dx, dy))


class Clock:
    def __init__(self, t=100.0):
        self.t = t

    def __call__(self):
        return self.t


TARGET = obj(42, 40, 40, 60, 60, label="cup")


def _processor(*results, **kw):
    p = AlignmentProcessor(FakeDetector(*results), **kw)
    p.set_viewport(*VIEW)
    return p


def test_idle_frame_yields_candidates():
    outputs = []
    p = _processor(frame(TARGET, obj(7, 0, 0, 10, 10)), on_output=outputs.append)
    out = p.submit("f1", 0)
    assert out is outputs[0]
    assert out.report.status is ObserveStatus.NOT_TRACKING
    assert [c.identity for c in out.candidates] == [42, 7]
    assert out.candidates[0].label == "cup"


def test_skipped_frames_are_released_immediately():
    released = []
    det = FakeDetector(frame(TARGET), frame(TARGET))
    p = AlignmentProcessor(det, throttle_cfg=ThrottleConfig(divisor=3))
    p.set_viewport(*VIEW)
    results = [p.submit(n, n, released.append) for n in range(1, 7)]
    assert [r is not None for r in results] == [False, False, True, False, False, True]
    assert released == [1, 2, 3, 4, 5, 6]
    assert [c[0] for c in det.calls] == [3, 6]


def test_divisor_change_applies_on_next_frame():
    cfg = ThrottleConfig(divisor=10)
    p = AlignmentProcessor(FakeDetector(frame()), throttle_cfg=cfg)
    assert p.submit("a", 0) is None
    cfg.divisor = 1
    assert p.submit("b", 1) is not None


def test_tap_locks_and_tracks(events):
    p = _processor(
        frame(TARGET, obj(7, 0, 0, 10, 10)),
        frame(obj(42, 50, 40, 70, 60)),
        frame(obj(7, 0, 0, 10, 10)),
        on_event=events,
    )
    p.submit("f1", 0)
    assert p.select_at((5, 5)) is True
    assert p.session.tracked_identity == 7
    p.stop()
    assert p.select_at((50, 50)) is True
    assert p.session.tracked_identity == 42

    out = p.submit("f2", 1)
    assert out.report.status is ObserveStatus.TRACKING
    assert out.report.deviation == (10.0, 0.0)
    assert out.candidates == ()

    out = p.submit("f3", 2)
    assert out.report.lost
    assert p.session.is_locked
    assert events == [
        SessionEvent.LOCKED, SessionEvent.STOPPED, SessionEvent.LOCKED, SessionEvent.TARGET_LOST,
    ]


def test_tap_outside_any_box_keeps_idle():
    p = _processor(frame(TARGET))
    p.submit("f1", 0)
    assert p.select_at((150, 90)) is False
    assert not p.session.is_locked


def test_tap_before_any_frame_or_while_locked():
    p = _processor(frame(TARGET))
    assert p.select_at((50, 50)) is False
    p.submit("f1", 0)
    assert p.select_at((50, 50)) is True
    assert p.select_at((50, 50)) is False
    assert p.select_center() is False


def test_select_center():
    p = _processor(frame(obj(1, 0, 0, 10, 10), obj(2, 45, 95, 55, 105)))
    p.submit("f1", 0)
    assert p.select_center() is True
    assert p.session.tracked_identity == 2


def test_malformed_frame_skipped_while_idle():
    p = _processor(frame(TARGET, w=0))
    out = p.submit("f1", 0)
    assert out.report.status is ObserveStatus.SKIPPED
    assert out.candidates == ()


def test_detector_error_still_releases_frame():
    released = []
    p = _processor(RuntimeError("model crashed"), frame(TARGET))
    assert p.submit("f1", 0, released.append) is None
    assert released == ["f1"]
    assert p.submit("f2", 1) is not None


def test_deviation_forwarded_with_rate_cap():
    clock = Clock()
    link = FakeLink()
    p = _processor(
        frame(TARGET),
        frame(obj(42, 50, 40, 70, 60)),
        frame(obj(42, 50, 40, 70, 60)),
        frame(obj(42, 50, 40, 70, 60)),
        link=link,
        link_cfg=LinkConfig(max_cmd_rate_hz=10.0),
        clock=clock,
    )
    p.submit("f0", 0)
    p.select_at((50, 50))
    p.submit("f1", 1)
    clock.t += 0.05
    p.submit("f2", 2)          # inside the 100 ms window
    clock.t += 0.1
    p.submit("f3", 3)
    assert len(link.sent) == 2
    assert link.sent[0] == (10.0, 0.0)


def test_nothing_forwarded_while_lost_or_idle():
    link = FakeLink()
    p = _processor(frame(TARGET), frame(), link=link, clock=Clock())
    p.submit("f0", 0)
    p.select_at((50, 50))
    p.submit("f1", 1)
    assert link.sent == []


def test_link_failure_backs_off_until_cooldown():
    clock = Clock()
    link = FakeLink(fail=True)
    frames = [frame(TARGET)] + [frame(obj(42, 50, 40, 70, 60))] * 3
    p = _processor(*frames, link=link, link_cfg=LinkConfig(error_cooldown_s=15.0), clock=clock)
    p.submit("f0", 0)
    p.select_at((50, 50))
    p.submit("f1", 1)
    assert p.link_ok is False

    link.fail = False
    clock.t += 1.0
    p.submit("f2", 2)
    assert link.sent == []

    clock.t += 20.0
    p.submit("f3", 3)
    assert p.link_ok is True
    assert len(link.sent) == 1


def test_close_releases_everything():
    link = FakeLink()
    p = _processor(frame(TARGET), link=link)
    p.submit("f0", 0)
    p.select_at((50, 50))
    p.close()
    assert p.detector.closed
    assert not link.opened
    assert not p.session.is_locked


@pytest.mark.parametrize("divisor", [1, 2])
def test_stats_count_frames(divisor):
    p = _processor(*[frame()] * 4, throttle_cfg=ThrottleConfig(divisor=divisor))
    for n in range(4):
        p.submit(n, n)
    assert p.total_frames == 4
    assert p.processed_frames == 4 // divisor


def test_frame_before_viewport_is_skipped_and_not_forwarded():
    link = FakeLink()
    p = AlignmentProcessor(
        FakeDetector(frame(obj(1, 0, 0, 10, 10)), *[frame(obj(1, 90, 190, 100, 200))] * 2),
        link=link,
        clock=Clock(),
    )
    out = p.submit("f0", 0)
    assert out.report.status is ObserveStatus.SKIPPED
    assert out.candidates == ()
    assert p.select_at((5, 5)) is False
    assert p.select_center() is True

    out = p.submit("f1", 1)
    assert out.report.status is ObserveStatus.SKIPPED
    assert out.report.deviation is None
    assert not out.report.aligned
    assert link.sent == []
    assert not p.session.filter.initialized

    p.set_viewport(*VIEW)
    out = p.submit("f2", 2)
    assert out.report.status is ObserveStatus.TRACKING
    # first real sample passes through: (95, 195) - (5, 5)
    assert out.report.deviation == (90.0, 190.0)
    assert not out.report.aligned


def test_bad_runtime_params_do_not_break_submit(tmp_path):
    path = tmp_path / "runtime_params.json"
    path.write_text(json.dumps({"frame_divisor": 1}))
    p = _processor(frame(TARGET), param_watcher=RuntimeParamWatcher(path))
    path.write_bytes(b'{"frame_divisor": 2, "x": "\xff\xfe"}')
    st = path.stat()
    os.utime(path, (st.st_atime, st.st_mtime + 5))
    assert p.submit("f", 0) is not None
    assert p.throttle_cfg.divisor == 1


def test_link_reopen_runs_outside_processor_lock():
    clock = Clock()
    lock_free = []

    class SlowLink(FakeLink):
        def open(self):
            t = threading.Thread(target=lambda: lock_free.append(self._try_lock()))
            t.start()
            t.join()
            super().open()

        def _try_lock(self):
            got = p._lock.acquire(blocking=False)
            if got:
                p._lock.release()
            return got

    link = SlowLink(fail=True)
    frames = [frame(TARGET)] + [frame(obj(42, 50, 40, 70, 60))] * 2
    p = _processor(*frames, link=link, link_cfg=LinkConfig(error_cooldown_s=1.0), clock=clock)
    p.submit("f0", 0)
    p.select_at((50, 50))
    p.submit("f1", 1)
    link.fail = False
    clock.t += 5.0
    p.submit("f2", 2)
    assert lock_free == [True]
    assert len(link.sent) == 1
