"""
Multi-attempt scan: capture several frames, crop each, keep the sharpest.

A single frame is often caught mid-motion. Capturing a short burst and
keeping the sharpest successful crop makes the hand-held scan far more
reliable without asking the operator to retry.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from src.capture.camera_session import DeviceError
from src.capture.frame_source import FrameSource
from src.common.config_loader import ScanConfig
from src.common.types import (
    CaptureAttempt,
    CropResult,
    RejectionReason,
)
from src.pipeline.card_cropper import CardCropper
from src.sharpness.sharpness_assessor import meets_threshold

logger = logging.getLogger(__name__)

NO_FRAME_REASON = "Unable to capture image from camera."
SCAN_TOO_BLURRY_REASON = (
    "Image too blurry. Please hold the ID steady and move it closer, then try again."
)
CANCELLED_REASON = "Scan cancelled"


class MultiAttemptSelector:
    """
    Runs a burst of capture attempts and returns the best crop.

    Args:
        cropper: Single-frame crop pipeline.
        config: Attempt count, delay and the scan-level sharpness gate.
        sleep: Sleep function used between attempts when no cancellation
            event is given. Injectable for tests.

    Example:
        >>> scanner = MultiAttemptSelector(CardCropper(), config.scan)
        >>> with CameraSession(0) as camera:
        ...     result = scanner.scan(camera)
        >>> result.success
        True
    """

    def __init__(
        self,
        cropper: Optional[CardCropper] = None,
        config: Optional[ScanConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cropper = cropper if cropper is not None else CardCropper()
        self.config = config if config is not None else ScanConfig()
        self._sleep = sleep

    def scan(
        self,
        frame_source: FrameSource,
        attempts: Optional[int] = None,
        inter_attempt_delay_ms: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CropResult:
        """
        Capture up to ``attempts`` frames and return the best crop.

        Args:
            frame_source: Anything with ``capture_frame() -> Frame | None``.
            attempts: Number of captures. Defaults to the config value.
            inter_attempt_delay_ms: Pause between captures (not after the
                last). Defaults to the config value.
            cancel_event: Checked before every capture; also used to wait
                between captures so a cancel wakes the scan immediately.

        Returns:
            Final CropResult after the scan-level sharpness gate. A failed
            scan returns the raw frame of the chosen attempt.

        Raises:
            ValueError: If ``attempts`` is less than 1.
            DeviceError: If the source did not deliver a single frame.
        """
        if attempts is None:
            attempts = self.config.number_of_attempts
        if inter_attempt_delay_ms is None:
            inter_attempt_delay_ms = self.config.inter_attempt_delay_ms
        if attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {attempts}")

        delay_s = inter_attempt_delay_ms / 1000.0
        captured: List[CaptureAttempt] = []
        cancelled = False

        # A cancel during the settle wait is picked up by the first loop check
        self._wait(self.config.pre_scan_delay_ms / 1000.0, cancel_event)

        for i in range(attempts):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

            frame = frame_source.capture_frame()
            if frame is None:
                logger.warning(f"Attempt {i + 1}/{attempts}: no frame delivered")
            else:
                crop = self.cropper.crop(frame)
                captured.append(CaptureAttempt(frame=frame, crop=crop, attempt_index=i))
                logger.info(
                    f"Attempt {i + 1}/{attempts}: success={crop.success} "
                    f"sharpness={crop.sharpness}"
                )

            if i < attempts - 1 and self._wait(delay_s, cancel_event):
                cancelled = True
                break

        if not captured:
            if cancelled:
                logger.info("Scan cancelled before any frame was captured")
                return CropResult(
                    success=False,
                    reason=CANCELLED_REASON,
                    rejection=RejectionReason.CANCELLED,
                )
            raise DeviceError(NO_FRAME_REASON)

        best = self.select_best(captured)
        logger.info(
            f"Best attempt: #{best.attempt_index + 1} of {len(captured)} "
            f"(success={best.crop.success}, sharpness={best.crop.sharpness})"
        )
        return self._finalize(best)

    def scan_async(
        self,
        frame_source: FrameSource,
        executor: Optional[ThreadPoolExecutor] = None,
        **kwargs,
    ) -> Future:
        """
        Run ``scan`` on a worker thread.

        Args:
            frame_source: Passed through to ``scan``.
            executor: Executor to submit to. When omitted, a single-worker
                executor is created and shut down once the scan finishes.
            **kwargs: Forwarded to ``scan``.

        Returns:
            Future resolving to the CropResult (or raising DeviceError).
        """
        if executor is not None:
            return executor.submit(self.scan, frame_source, **kwargs)

        own_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="card-scan")
        future = own_executor.submit(self.scan, frame_source, **kwargs)
        own_executor.shutdown(wait=False)
        return future

    @staticmethod
    def select_best(attempts: Sequence[CaptureAttempt]) -> CaptureAttempt:
        """
        Choose the attempt to keep.

        Starts from the first attempt. A later attempt replaces the current
        best only when it succeeded with a sharpness score and the best did
        not succeed, has no score, or has a strictly lower one.

        Raises:
            ValueError: If ``attempts`` is empty.
        """
        if not attempts:
            raise ValueError("No capture attempts to select from")

        best = attempts[0]
        for attempt in attempts[1:]:
            if not attempt.is_usable:
                continue
            if (
                not best.crop.success
                or best.crop.sharpness is None
                or best.crop.sharpness < attempt.crop.sharpness
            ):
                best = attempt
        return best

    def _finalize(self, best: CaptureAttempt) -> CropResult:
        crop = best.crop
        if not crop.success:
            return CropResult(
                success=False,
                image=best.frame.data.copy(),
                sharpness=crop.sharpness,
                reason=crop.reason,
                rejection=crop.rejection,
                quad_detected=crop.quad_detected,
            )

        if crop.sharpness is None or not meets_threshold(
            crop.sharpness, self.config.min_sharpness
        ):
            logger.warning(
                f"Scan REJECTED: best sharpness {crop.sharpness} "
                f"< {self.config.min_sharpness:.2f}"
            )
            return CropResult(
                success=False,
                image=best.frame.data.copy(),
                sharpness=crop.sharpness,
                reason=SCAN_TOO_BLURRY_REASON,
                rejection=RejectionReason.TOO_BLURRY,
                quad_detected=crop.quad_detected,
            )

        return crop

    def _wait(self, delay_s: float, cancel_event: Optional[threading.Event]) -> bool:
        """Pause between attempts. Returns True when cancelled."""
        if cancel_event is not None:
            return cancel_event.wait(delay_s)
        if delay_s > 0:
            self._sleep(delay_s)
        return False
