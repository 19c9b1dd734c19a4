"""
Exclusive ownership of one camera device.

The session holds at most one open device handle. Every ``acquire`` and
``release`` bumps a generation counter; an asynchronous open that finishes
after the generation has moved on releases its own handle instead of
installing it, so a late open can never leak a live stream.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future
from typing import Any, Callable, Optional

import cv2

from src.common.types import CAMERA_UNAVAILABLE_MESSAGE, Frame

logger = logging.getLogger(__name__)


class DeviceError(RuntimeError):
    """Camera unavailable, permission denied, busy, or not delivering frames."""


def open_video_capture(device_index: int) -> Any:
    """Default device factory: an OpenCV capture for ``device_index``."""
    return cv2.VideoCapture(device_index)


class CameraSession:
    """
    Owns one camera handle behind a generation token.

    The device factory must return an object with ``isOpened()``,
    ``read() -> (ok, image)`` and ``release()`` (the ``cv2.VideoCapture``
    interface).

    Example:
        >>> with CameraSession(0) as camera:
        ...     frame = camera.capture_frame()
    """

    def __init__(
        self,
        device_index: int = 0,
        device_factory: Optional[Callable[[int], Any]] = None,
    ):
        self.device_index = device_index
        self._factory = device_factory if device_factory is not None else open_video_capture
        self._lock = threading.Lock()
        self._handle: Optional[Any] = None
        self._generation = 0
        self._frame_index = 0

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._handle is not None

    def acquire(self) -> bool:
        """
        Open the device, releasing any handle held from a previous acquire.

        Returns:
            True when the handle was installed, False when a concurrent
            ``release`` or ``acquire`` made this open stale.

        Raises:
            DeviceError: If the device cannot be opened.
        """
        token = self._begin_generation()
        return self._open_for_generation(token)

    def acquire_async(self, executor: Executor) -> Future:
        """
        Open the device on a worker thread.

        If ``release`` or another ``acquire`` happens before the open
        completes, the new handle is released and never installed.

        Returns:
            Future resolving to True when the handle was installed, False
            when it was discarded as stale. Raises DeviceError on failure.
        """
        token = self._begin_generation()
        return executor.submit(self._open_for_generation, token)

    def release(self) -> None:
        """Release the device. Safe to call when nothing is held."""
        self._begin_generation()

    def capture_frame(self) -> Optional[Frame]:
        """
        Read one frame from the device.

        Returns:
            Frame with index and timestamp, or None when the read failed.

        Raises:
            DeviceError: If no device is held.
        """
        with self._lock:
            handle = self._handle
        if handle is None:
            raise DeviceError("Camera is not active")

        ok, image = handle.read()
        if not ok or image is None:
            logger.warning(f"Camera {self.device_index}: dropped frame")
            return None

        with self._lock:
            index = self._frame_index
            self._frame_index += 1
        return Frame(data=image, index=index, timestamp_s=time.monotonic())

    def _begin_generation(self) -> int:
        with self._lock:
            self._generation += 1
            token = self._generation
            previous, self._handle = self._handle, None

        if previous is not None:
            previous.release()
            logger.info(f"Camera {self.device_index} released")
        return token

    def _open(self) -> Any:
        handle = self._factory(self.device_index)
        if handle is None or not handle.isOpened():
            if handle is not None:
                handle.release()
            logger.error(f"Camera {self.device_index} could not be opened")
            raise DeviceError(CAMERA_UNAVAILABLE_MESSAGE)
        return handle

    def _open_for_generation(self, token: int) -> bool:
        handle = self._open()

        with self._lock:
            if token == self._generation:
                self._handle = handle
                self._frame_index = 0
                installed = True
            else:
                installed = False

        if not installed:
            logger.info(
                f"Camera {self.device_index}: discarding stale open "
                f"(generation {token})"
            )
            handle.release()
        else:
            logger.info(f"Camera {self.device_index} acquired")
        return installed

    def __enter__(self) -> "CameraSession":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
