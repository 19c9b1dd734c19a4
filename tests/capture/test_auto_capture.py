"""
Tests for the auto-capture watch loop.

The presence check and the final scan are stubbed so the tests exercise
only the streak counting, state transitions, cancellation and camera
release.
"""

import threading
import time

import numpy as np
import pytest

from src.capture.auto_capture import (
    STATUS_CAPTURING,
    STATUS_MOVE_CLOSER,
    STATUS_POSITION_CARD,
    STATUS_WAITING,
    AutoCaptureLoop,
    AutoCaptureState,
)
from src.capture.camera_session import CameraSession, DeviceError
from src.common.config_loader import AutoCaptureConfig
from src.common.types import CropResult, DetectionResult, Frame


class FakeCapture:
    def __init__(self, opened=True, deliver=True):
        self.opened = opened
        self.deliver = deliver
        self.released = False
        self.reads = 0

    def isOpened(self):
        return self.opened

    def read(self):
        self.reads += 1
        if not self.deliver:
            return False, None
        return True, np.full((48, 64, 3), 100, dtype=np.uint8)

    def release(self):
        self.released = True


class StubSelector:
    """check_presence returns scripted results, then repeats the last."""

    def __init__(self, results):
        self.results = list(results)
        self.calls = 0
        self._lock = threading.Lock()

    def check_presence(self, frame):
        with self._lock:
            self.calls += 1
            if len(self.results) > 1:
                return self.results.pop(0)
            return self.results[0]


class StubScanner:
    def __init__(self):
        self.calls = 0
        self.cancel_events = []

    def scan(self, frame_source, cancel_event=None):
        self.calls += 1
        self.cancel_events.append(cancel_event)
        frame_source.capture_frame()
        return CropResult(success=True, sharpness=10.0, quad_detected=True)


def present(confidence=0.9):
    return DetectionResult(detected=True, confidence=confidence, area=1000.0)


def absent(confidence=0.0):
    return DetectionResult(detected=False, confidence=confidence, area=0.0)


def make_loop(selector, capture=None, scanner=None, statuses=None, **config):
    capture = capture if capture is not None else FakeCapture()
    camera = CameraSession(0, device_factory=lambda index: capture)
    settings = {"interval_ms": 1, "consecutive_frame_threshold": 3}
    settings.update(config)
    loop = AutoCaptureLoop(
        camera,
        selector,
        scanner if scanner is not None else StubScanner(),
        AutoCaptureConfig(**settings),
        on_status=statuses.append if statuses is not None else None,
    )
    return loop, capture


@pytest.fixture
def frame():
    return Frame(data=np.full((48, 64, 3), 100, dtype=np.uint8))


class TestTick:
    """Streak counting for individual presence results."""

    def test_streak_counts_up_to_threshold(self, frame):
        loop, _ = make_loop(StubSelector([present()]))

        assert not loop.tick(frame)
        assert not loop.tick(frame)
        assert loop.tick(frame)
        assert loop.streak == 3
        assert loop.progress == 100

    def test_miss_resets_streak(self, frame):
        loop, _ = make_loop(StubSelector([present(), present(), absent(), present()]))

        loop.tick(frame)
        loop.tick(frame)
        loop.tick(frame)
        assert loop.streak == 0

        loop.tick(frame)
        assert loop.streak == 1

    def test_confidence_must_exceed_threshold(self, frame):
        loop, _ = make_loop(StubSelector([present(confidence=0.6)]))

        loop.tick(frame)

        assert loop.streak == 0

    def test_status_messages(self, frame):
        statuses = []
        loop, _ = make_loop(
            StubSelector([present(), absent(confidence=0.45), absent(confidence=0.1)]),
            statuses=statuses,
        )

        loop.tick(frame)
        loop.tick(frame)
        loop.tick(frame)

        assert statuses == [
            "Card detected! Hold steady... 33%",
            STATUS_MOVE_CLOSER,
            STATUS_POSITION_CARD,
        ]


class TestAutoCaptureLoop:
    """Threaded lifecycle of the loop."""

    def test_captures_once_after_steady_streak(self):
        statuses = []
        scanner = StubScanner()
        selector = StubSelector([present()])
        loop, capture = make_loop(selector, scanner=scanner, statuses=statuses)

        loop.start()
        assert loop.wait(timeout=5)

        assert loop.state is AutoCaptureState.DONE
        assert loop.result.success
        assert scanner.calls == 1
        assert selector.calls == 3
        assert capture.released
        assert statuses[0] == STATUS_WAITING
        assert STATUS_CAPTURING in statuses

    def test_cancel_stops_detection_and_releases_camera(self):
        selector = StubSelector([absent()])
        scanner = StubScanner()
        loop, capture = make_loop(selector, scanner=scanner)

        loop.start()
        time.sleep(0.05)
        loop.cancel()

        assert loop.wait(timeout=5)
        calls_after_cancel = selector.calls
        time.sleep(0.05)

        assert loop.state is AutoCaptureState.CANCELLED
        assert loop.streak == 0
        assert selector.calls == calls_after_cancel
        assert scanner.calls == 0
        assert capture.released

    def test_cancel_wakes_long_interval_immediately(self):
        loop, capture = make_loop(StubSelector([absent()]), interval_ms=60000)

        loop.start()
        started = time.monotonic()
        loop.cancel(timeout=5)

        assert loop.wait(timeout=5)
        assert time.monotonic() - started < 5
        assert capture.released

    def test_missing_frames_leave_streak_untouched(self):
        selector = StubSelector([present()])
        loop, capture = make_loop(selector, capture=FakeCapture(deliver=False))

        loop.start()
        time.sleep(0.05)
        loop.cancel()

        assert capture.reads > 0
        assert selector.calls == 0
        assert loop.streak == 0

    def test_start_fails_when_camera_unavailable(self):
        loop, _ = make_loop(StubSelector([present()]), capture=FakeCapture(opened=False))

        with pytest.raises(DeviceError):
            loop.start()

        assert loop.state is AutoCaptureState.IDLE

    def test_cannot_start_twice(self):
        loop, _ = make_loop(StubSelector([absent()]))

        loop.start()
        try:
            with pytest.raises(RuntimeError, match="already started"):
                loop.start()
        finally:
            loop.cancel()

    def test_scanner_receives_cancel_event(self):
        scanner = StubScanner()
        loop, _ = make_loop(StubSelector([present()]), scanner=scanner)

        loop.start()
        assert loop.wait(timeout=5)

        assert isinstance(scanner.cancel_events[0], threading.Event)

    def test_cancel_while_opening_camera(self):
        holder = {}

        def cancelling_factory(index):
            holder["loop"].cancel()
            return FakeCapture()

        camera = CameraSession(0, device_factory=cancelling_factory)
        selector = StubSelector([present()])
        loop = AutoCaptureLoop(
            camera, selector, StubScanner(), AutoCaptureConfig(interval_ms=1)
        )
        holder["loop"] = loop

        loop.start()

        assert loop.wait(timeout=5)
        assert loop.state is AutoCaptureState.CANCELLED
        assert not camera.is_active
        assert selector.calls == 0

    def test_scanner_error_moves_to_failed(self):
        class BrokenScanner(StubScanner):
            def scan(self, frame_source, cancel_event=None):
                raise ValueError("crop pipeline exploded")

        loop, capture = make_loop(StubSelector([present()]), scanner=BrokenScanner())

        loop.start()
        assert loop.wait(timeout=5)

        assert loop.state is AutoCaptureState.FAILED
        assert isinstance(loop.error, ValueError)
        assert loop.result is None
        assert capture.released

    def test_camera_loss_during_scan_moves_to_failed(self):
        class UnpluggedScanner(StubScanner):
            def scan(self, frame_source, cancel_event=None):
                raise DeviceError("Unable to capture image from camera.")

        loop, capture = make_loop(StubSelector([present()]), scanner=UnpluggedScanner())

        loop.start()
        assert loop.wait(timeout=5)

        assert loop.state is AutoCaptureState.FAILED
        assert isinstance(loop.error, DeviceError)
        assert capture.released
