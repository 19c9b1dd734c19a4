"""
Auto-capture: watch the camera until a card is held steady, then scan.

State machine:

    IDLE -> WATCHING -> CAPTURING -> DONE
               |            |
               +------------+----> CANCELLED / FAILED

While WATCHING, one frame is checked for card presence every
``interval_ms``. A confident detection extends the streak; anything else
resets it. When the streak reaches ``consecutive_frame_threshold`` the loop
runs a single multi-attempt scan and finishes.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol

from src.capture.camera_session import CameraSession, DeviceError
from src.capture.frame_source import FrameSource
from src.card_detection.selector import QuadSelector
from src.common.config_loader import AutoCaptureConfig
from src.common.types import CropResult, Frame

logger = logging.getLogger(__name__)

STATUS_WAITING = "Waiting for camera..."
STATUS_CAPTURING = "Capturing..."
STATUS_MOVE_CLOSER = "Move card closer to frame..."
STATUS_POSITION_CARD = "Position ID card within the frame"

# Below the presence threshold but clearly something card-like in view
NEAR_MISS_CONFIDENCE = 0.3


class AutoCaptureState(Enum):
    """Lifecycle of one auto-capture run."""

    IDLE = "idle"
    WATCHING = "watching"
    CAPTURING = "capturing"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CardScanner(Protocol):
    def scan(
        self, frame_source: FrameSource, cancel_event: Optional[threading.Event] = None
    ) -> CropResult:
        ...


def hold_steady_message(progress: int) -> str:
    return f"Card detected! Hold steady... {progress}%"


class AutoCaptureLoop:
    """
    Presence-gated capture running on a background thread.

    Args:
        camera: Session owning the device. Acquired by ``start`` and
            released on every exit path of the worker.
        selector: Provides ``check_presence``.
        scanner: Runs the final multi-attempt scan (``MultiAttemptSelector``).
        config: Interval, streak length and confidence threshold.
        on_status: Optional callback receiving operator-facing status text.

    Example:
        >>> loop = AutoCaptureLoop(CameraSession(0), QuadSelector(), scanner)
        >>> loop.start()
        >>> loop.wait(timeout=30)
        >>> loop.result.success
        True
    """

    def __init__(
        self,
        camera: CameraSession,
        selector: QuadSelector,
        scanner: CardScanner,
        config: Optional[AutoCaptureConfig] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.camera = camera
        self.selector = selector
        self.scanner = scanner
        self.config = config if config is not None else AutoCaptureConfig()
        self.on_status = on_status

        self._lock = threading.Lock()
        self._state = AutoCaptureState.IDLE
        self._streak = 0
        self._cancel_event = threading.Event()
        self._finished = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.result: Optional[CropResult] = None
        self.error: Optional[BaseException] = None
        self.status: Optional[str] = None

    @property
    def state(self) -> AutoCaptureState:
        with self._lock:
            return self._state

    @property
    def streak(self) -> int:
        with self._lock:
            return self._streak

    @property
    def progress(self) -> int:
        """Streak progress as a percentage, capped at 100."""
        threshold = self.config.consecutive_frame_threshold
        return min(100, int(round(self.streak / threshold * 100)))

    def start(self) -> None:
        """
        Acquire the camera and start watching on a daemon thread.

        Raises:
            RuntimeError: If the loop was already started.
            DeviceError: If the camera cannot be opened.
        """
        with self._lock:
            if self._state is not AutoCaptureState.IDLE:
                raise RuntimeError(f"Auto-capture already started ({self._state.value})")

        self._publish(STATUS_WAITING)
        self.camera.acquire()

        with self._lock:
            cancelled = (
                self._state is not AutoCaptureState.IDLE or self._cancel_event.is_set()
            )
            if not cancelled:
                self._state = AutoCaptureState.WATCHING
        if cancelled:
            logger.info("Auto-capture cancelled while opening the camera")
            self.camera.release()
            self._finished.set()
            return

        self._thread = threading.Thread(target=self.run, daemon=True, name="auto-capture")
        self._thread.start()
        logger.info("Auto-capture started")

    def run(self) -> None:
        """Worker body: watch, capture once, release the camera."""
        try:
            if not self._watch():
                return

            self._set_state(AutoCaptureState.CAPTURING)
            self._publish(STATUS_CAPTURING)
            result = self.scanner.scan(self.camera, cancel_event=self._cancel_event)
            self.result = result

            with self._lock:
                if self._state is AutoCaptureState.CAPTURING:
                    self._state = AutoCaptureState.DONE
            logger.info(f"Auto-capture finished: success={result.success}")
        except DeviceError as e:
            logger.error(f"Auto-capture camera failure: {e}")
            self.error = e
            self._set_state(AutoCaptureState.FAILED)
        except Exception as e:
            logger.error(f"Auto-capture failed: {e}", exc_info=True)
            self.error = e
            self._set_state(AutoCaptureState.FAILED)
        finally:
            self.camera.release()
            self._finished.set()

    def tick(self, frame: Frame) -> bool:
        """
        Process one watch frame.

        Returns:
            True when the streak has reached the capture threshold.
        """
        presence = self.selector.check_presence(frame)
        threshold = self.config.consecutive_frame_threshold

        if presence.detected and presence.confidence > self.config.confidence_threshold:
            with self._lock:
                self._streak += 1
                streak = self._streak
            self._publish(hold_steady_message(self.progress))
            logger.debug(
                f"Presence OK ({presence.confidence:.2f}), streak {streak}/{threshold}"
            )
            return streak >= threshold

        with self._lock:
            self._streak = 0
        if presence.confidence > NEAR_MISS_CONFIDENCE:
            self._publish(STATUS_MOVE_CLOSER)
        else:
            self._publish(STATUS_POSITION_CARD)
        return False

    def cancel(self, timeout: Optional[float] = 2.0) -> None:
        """
        Stop the loop. No further presence checks are issued.

        Safe to call from any thread, before or after the loop finished.
        """
        self._cancel_event.set()
        with self._lock:
            self._streak = 0
            if self._state in (
                AutoCaptureState.IDLE,
                AutoCaptureState.WATCHING,
                AutoCaptureState.CAPTURING,
            ):
                self._state = AutoCaptureState.CANCELLED

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Auto-capture worker did not stop within timeout")
        logger.info("Auto-capture cancelled")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the worker exits. Returns False on timeout."""
        return self._finished.wait(timeout)

    def _watch(self) -> bool:
        """Sample frames until the streak completes. False when cancelled."""
        interval_s = self.config.interval_ms / 1000.0

        while not self._cancel_event.wait(interval_s):
            frame = self.camera.capture_frame()
            if frame is None:
                continue
            if self._cancel_event.is_set():
                return False
            if self.tick(frame):
                return not self._cancel_event.is_set()
        return False

    def _set_state(self, state: AutoCaptureState) -> None:
        with self._lock:
            if self._state is AutoCaptureState.CANCELLED:
                return
            self._state = state

    def _publish(self, message: str) -> None:
        self.status = message
        if self.on_status is not None:
            self.on_status(message)
