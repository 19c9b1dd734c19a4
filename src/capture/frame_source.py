"""
Frame sources for the scanner.

Anything with a ``capture_frame()`` method returning a Frame (or None when a
read was dropped) can feed the multi-attempt scanner: a live
``CameraSession`` or a ``StillImageSource`` wrapping a file or array.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Protocol, Union

import cv2
import numpy as np

from src.common.types import Frame

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """Supplies one frame per call, or None when no frame is available."""

    def capture_frame(self) -> Optional[Frame]:
        ...


class StillImageSource:
    """
    Frame source that returns the same still image on every call.

    Example:
        >>> source = StillImageSource.from_file("id_card.jpg")
        >>> frame = source.capture_frame()
        >>> frame.index
        0
    """

    def __init__(self, image: np.ndarray):
        self._frame = Frame(data=image)
        self._count = 0

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StillImageSource":
        """
        Load a still image from disk.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If OpenCV cannot decode the file.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Image not found: {path}")

        image = cv2.imread(str(path))
        if image is None:
            raise ValueError(f"Failed to read image: {path}")

        logger.info(f"Loaded still image {path.name} ({image.shape[1]}x{image.shape[0]})")
        return cls(image)

    def capture_frame(self) -> Optional[Frame]:
        frame = Frame(
            data=self._frame.data,
            index=self._count,
            timestamp_s=time.monotonic(),
        )
        self._count += 1
        return frame
