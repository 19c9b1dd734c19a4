"""
Common type definitions for the ID-card capture pipeline.

This module provides the core data structures shared by every stage:
camera frames, bounding boxes, quadrilateral card candidates, and the
result containers handed between detection, rectification, and the
multi-attempt scanner.

Frames and boxes are Pydantic models (validated on construction); the
per-stage results are plain dataclasses, matching how each stage builds
and returns them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import cv2
import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator


class Frame(BaseModel):
    """
    Immutable pixel buffer for one capture instant.

    The wrapped array is stored as a read-only view, so pipeline stages can
    read it freely but any attempt to write into it raises. The caller's own
    array is not modified.

    Attributes:
        data: Image data. Shape (H, W) for grayscale, (H, W, 3) for BGR,
            (H, W, 4) for BGRA. Dtype uint8.
        index: Optional sequence number assigned by the frame source.
        timestamp_s: Optional capture time in seconds.

    Example:
        >>> image = cv2.imread("id_card.jpg")
        >>> frame = Frame(data=image)
        >>> print(frame.width, frame.height)  # 1280 720
    """

    data: np.ndarray = Field(..., description="Image data as numpy array")
    index: Optional[int] = None
    timestamp_s: Optional[float] = None

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate the array and return a read-only view of it.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        view = v.view()
        view.flags.writeable = False
        return view

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def area(self) -> int:
        """Get image area in pixels."""
        return self.width * self.height

    @property
    def channels(self) -> int:
        """Get number of channels (1 for grayscale, 3 for BGR, 4 for BGRA)."""
        if len(self.data.shape) == 2:
            return 1
        return int(self.data.shape[2])

    def to_numpy(self) -> np.ndarray:
        """Get the underlying (read-only) numpy array."""
        return self.data

    def to_gray(self) -> np.ndarray:
        """Return a new single-channel grayscale copy of the frame."""
        return to_grayscale(self.data)

    def __repr__(self) -> str:
        return f"Frame(shape={self.shape}, index={self.index})"


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert a grayscale, BGR, or BGRA image to a single-channel image.

    Always returns a new array, never a view of the input.
    """
    if image.ndim == 2:
        return image.copy()
    channels = image.shape[2]
    if channels == 1:
        return image[:, :, 0].copy()
    if channels == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class BBox(BaseModel):
    """
    Axis-aligned bounding box [x_min, y_min, x_max, y_max].

    Used for candidate bounding rectangles and the centred fallback crop.

    Example:
        >>> bbox = BBox(x_min=100, y_min=50, x_max=500, y_max=300)
        >>> print(bbox.width, bbox.height)  # 400, 250
    """

    x_min: int = Field(..., description="Minimum X-coordinate (left edge)")
    y_min: int = Field(..., description="Minimum Y-coordinate (top edge)")
    x_max: int = Field(..., description="Maximum X-coordinate (right edge)")
    y_max: int = Field(..., description="Maximum Y-coordinate (bottom edge)")

    @field_validator("x_min", "y_min", "x_max", "y_max", mode="before")
    @classmethod
    def _convert_to_int(cls, v: Union[int, float]) -> int:
        """Convert coordinate to int, rounding if float."""
        if isinstance(v, (int, float, np.integer, np.floating)):
            return int(round(float(v)))
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @model_validator(mode="after")
    def _validate_bbox(self) -> "BBox":
        """
        Validate bbox coordinates after initialization.

        Raises:
            ValueError: If coordinates are invalid.
        """
        if self.x_min >= self.x_max:
            raise ValueError(
                f"Invalid bbox: x_min ({self.x_min}) must be < x_max ({self.x_max})"
            )
        if self.y_min >= self.y_max:
            raise ValueError(
                f"Invalid bbox: y_min ({self.y_min}) must be < y_max ({self.y_max})"
            )

        if self.x_min < 0 or self.y_min < 0:
            raise ValueError(
                f"Invalid bbox: coordinates must be non-negative, "
                f"got x_min={self.x_min}, y_min={self.y_min}"
            )

        return self

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "BBox":
        """Create BBox from OpenCV-style (x, y, width, height)."""
        return cls(x_min=x, y_min=y, x_max=x + w, y_max=y + h)

    def to_tuple(self) -> Tuple[int, int, int, int]:
        """Convert BBox to tuple (x_min, y_min, x_max, y_max)."""
        return (self.x_min, self.y_min, self.x_max, self.y_max)

    @property
    def width(self) -> int:
        """Get bounding box width (x_max - x_min)."""
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        """Get bounding box height (y_max - y_min)."""
        return self.y_max - self.y_min

    @property
    def area(self) -> int:
        """Get bounding box area (width * height)."""
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        """Get centre point (cx, cy) of the bounding box."""
        return (
            self.x_min + self.width / 2.0,
            self.y_min + self.height / 2.0,
        )

    def clip_to_image(self, image_width: int, image_height: int) -> "BBox":
        """
        Clip bbox to image boundaries.

        Args:
            image_width: Image width in pixels.
            image_height: Image height in pixels.

        Returns:
            New BBox clipped to image boundaries.
        """
        x_min = max(0, min(self.x_min, image_width - 1))
        y_min = max(0, min(self.y_min, image_height - 1))
        x_max = max(x_min + 1, min(self.x_max, image_width))
        y_max = max(y_min + 1, min(self.y_max, image_height))

        return BBox(x_min=x_min, y_min=y_min, x_max=x_max, y_max=y_max)

    def __repr__(self) -> str:
        return (
            f"BBox(x_min={self.x_min}, y_min={self.y_min}, "
            f"x_max={self.x_max}, y_max={self.y_max}, "
            f"width={self.width}, height={self.height})"
        )


@dataclass(frozen=True)
class QuadCandidate:
    """
    A card-shaped quadrilateral found in a (possibly downscaled) frame.

    Attributes:
        points: 4 corner points with shape (4, 2) in working-space
            coordinates. Order is whatever the contour approximation produced.
        area: Contour area of the quadrilateral in working-space pixels.
        bbox: Axis-aligned bounding rectangle in working space.
        scale_factor: Working-space size divided by original-frame size.
            1.0 when detection ran at full resolution.
    """

    points: np.ndarray
    area: float
    bbox: BBox
    scale_factor: float = 1.0

    @property
    def aspect_ratio(self) -> float:
        """Long side over short side of the bounding rectangle (always >= 1)."""
        w, h = self.bbox.width, self.bbox.height
        return w / h if w > h else h / w

    def to_source_points(self) -> np.ndarray:
        """
        Map the corner points back into original-frame coordinates.

        Raises:
            ValueError: If the scale factor is not positive.
        """
        if self.scale_factor <= 0:
            raise ValueError(f"Scale factor must be positive, got {self.scale_factor}")
        return np.asarray(self.points, dtype=np.float32) / np.float32(self.scale_factor)


class RejectionReason(Enum):
    """Why a crop or scan did not produce a usable canonical image."""

    NONE = "None"
    NO_CARD_DETECTED = "No Card Detected"
    TOO_BLURRY = "Too Blurry"
    PROCESSING_ERROR = "Processing Error"
    CANCELLED = "Cancelled"

    @property
    def user_message(self) -> str:
        """Human-readable hint for the operator."""
        return _USER_MESSAGES[self]


_USER_MESSAGES = {
    RejectionReason.NONE: "Card captured",
    RejectionReason.NO_CARD_DETECTED: (
        "No card detected. Reposition the ID inside the frame and try again."
    ),
    RejectionReason.TOO_BLURRY: (
        "Image too blurry. Hold the ID steady and move it closer, then try again."
    ),
    RejectionReason.PROCESSING_ERROR: (
        "Image processing failed. The original image will be used."
    ),
    RejectionReason.CANCELLED: "Scan cancelled",
}

CAMERA_UNAVAILABLE_MESSAGE = (
    "Camera unavailable. Check camera permissions and the connection."
)


@dataclass
class DetectionResult:
    """
    Lightweight card-presence signal used to gate auto-capture.

    Attributes:
        detected: True when a card-shaped quad was found and confidence > 0.5.
        confidence: Confidence score in [0.0, 1.0] derived from area coverage.
        area: Contour area of the largest candidate (working-space pixels).
        area_ratio: Candidate area divided by working-frame area.
        reason: Explanation when nothing was detected.
    """

    detected: bool
    confidence: float
    area: float
    area_ratio: float = 0.0
    reason: Optional[str] = None


@dataclass
class CropResult:
    """
    Output of the crop pipeline for one frame, or of a whole scan.

    Attributes:
        success: True when ``image`` is a sharp canonical crop.
        image: Canonical crop on success; otherwise the original frame
            (so callers always have something to hand to OCR). None only
            when a scan was cancelled before any frame was captured.
        sharpness: Sharpness score of the crop, when one was computed.
        reason: Human-readable explanation on failure.
        rejection: Machine-readable failure category.
        quad_detected: True when a card quadrilateral drove the crop
            (False for the centred fallback rectangle).
    """

    success: bool
    image: Optional[np.ndarray] = None
    sharpness: Optional[float] = None
    reason: Optional[str] = None
    rejection: RejectionReason = RejectionReason.NONE
    quad_detected: bool = False

    def is_pass(self) -> bool:
        """Check if the crop succeeded."""
        return self.success

    def get_user_message(self) -> str:
        """Get the operator-facing message for this result."""
        if self.success:
            return RejectionReason.NONE.user_message
        return self.rejection.user_message


@dataclass
class CaptureAttempt:
    """One raw frame paired with the crop result computed from it."""

    frame: Frame
    crop: CropResult
    attempt_index: int = 0

    @property
    def is_usable(self) -> bool:
        """True when the crop succeeded and carries a sharpness score."""
        return self.crop.success and self.crop.sharpness is not None

