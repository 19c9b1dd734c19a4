"""
Image Rectification Utilities

Provides point canonicalization, perspective warping, and the centred
fallback crop. Geometry is found on a downscaled working copy, then
re-applied here against the full-resolution frame so OCR gets every source
pixel.
"""

import logging
import math
from typing import Optional, Union

import cv2
import numpy as np

from src.common.config_loader import RectificationConfig
from src.common.types import BBox, Frame, QuadCandidate

logger = logging.getLogger(__name__)


def order_points(pts: Union[np.ndarray, list]) -> np.ndarray:
    """
    Order 4 points as Top-Left, Top-Right, Bottom-Right, Bottom-Left.

    The algorithm uses coordinate sums and differences, so the result does
    not depend on the order the points are given in:
    - Top-Left: smallest sum (x + y)
    - Bottom-Right: largest sum (x + y)
    - Top-Right: largest difference (x - y)
    - Bottom-Left: smallest difference (x - y)

    Args:
        pts: Array of 4 points with shape (4, 2) or list of [x, y] coordinates.

    Returns:
        Ordered float32 array of shape (4, 2): [TL, TR, BR, BL].

    Raises:
        ValueError: If input does not contain exactly 4 points, or the
            ordered points do not form a convex quadrilateral.

    Example:
        >>> pts = np.array([[300, 150], [100, 200], [320, 400], [80, 380]])
        >>> ordered = order_points(pts)
        >>> # ordered[0] is Top-Left, ordered[1] is Top-Right, etc.
    """
    pts = np.array(pts, dtype=np.float32)

    if pts.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )

    rect = np.zeros((4, 2), dtype=np.float32)

    s = pts.sum(axis=1)  # x + y
    diff = pts[:, 0] - pts[:, 1]  # x - y

    rect[0] = pts[np.argmin(s)]
    rect[2] = pts[np.argmax(s)]
    rect[1] = pts[np.argmax(diff)]
    rect[3] = pts[np.argmin(diff)]

    logger.debug(
        f"Ordered points: TL={rect[0]}, TR={rect[1]}, BR={rect[2]}, BL={rect[3]}"
    )

    if len(np.unique(rect, axis=0)) != 4:
        raise ValueError(
            "Ordered points are degenerate: two corners resolved to the same point. "
            "The quadrilateral is likely rotated close to 45 degrees."
        )

    if not _is_convex_quadrilateral(rect):
        raise ValueError(
            "Ordered points do not form a convex quadrilateral. "
            "The contour may be self-intersecting or concave."
        )

    return rect


def _is_convex_quadrilateral(rect: np.ndarray) -> bool:
    """
    Check if 4 ordered points form a convex quadrilateral.

    All 2D cross products of consecutive edges (TL→TR→BR→BL→TL) must share
    the same sign.
    """
    cross_products = []

    for i in range(4):
        p1 = rect[i]
        p2 = rect[(i + 1) % 4]
        p3 = rect[(i + 2) % 4]

        v1 = p2 - p1
        v2 = p3 - p2

        cross = v1[0] * v2[1] - v1[1] * v2[0]
        cross_products.append(cross)

    # Allow small numerical errors near zero
    signs = [cp > 1e-6 for cp in cross_products]
    is_convex = all(signs) or not any(signs)

    if not is_convex:
        logger.warning(
            f"Non-convex quadrilateral detected. Cross products: {cross_products}"
        )

    return is_convex


def fallback_rect(
    image_width: int,
    image_height: int,
    width_ratio: float = 0.7,
    height_ratio: float = 0.5,
) -> BBox:
    """
    Centred crop rectangle used when no card quadrilateral was found.

    Args:
        image_width: Frame width in pixels.
        image_height: Frame height in pixels.
        width_ratio: Fraction of the frame width to keep.
        height_ratio: Fraction of the frame height to keep.

    Returns:
        BBox clipped to the frame.
    """
    w = max(1, int(round(image_width * width_ratio)))
    h = max(1, int(round(image_height * height_ratio)))
    x = int(round((image_width - w) / 2))
    y = int(round((image_height - h) / 2))
    return BBox.from_xywh(x, y, w, h).clip_to_image(image_width, image_height)


def warp_to_rectangle(
    image: np.ndarray, corners: Union[np.ndarray, list], width: int, height: int
) -> np.ndarray:
    """
    Warp a quadrilateral region to a width x height rectangle.

    Args:
        image: Source image. Not modified.
        corners: 4 corner points in source coordinates, any order.
        width: Output width in pixels.
        height: Output height in pixels.

    Returns:
        Rectified image of shape (height, width[, C]).

    Raises:
        ValueError: If the corners are not a valid quadrilateral.
    """
    rect = order_points(corners)

    dst = np.array(
        [
            [0, 0],  # Top-Left
            [width - 1, 0],  # Top-Right
            [width - 1, height - 1],  # Bottom-Right
            [0, height - 1],  # Bottom-Left
        ],
        dtype=np.float32,
    )

    M = cv2.getPerspectiveTransform(rect, dst)

    # Corners sit on the card edge; replicate rather than pad with black
    return cv2.warpPerspective(
        image,
        M,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_REPLICATE,
    )


def crop_and_resize(image: np.ndarray, bbox: BBox, width: int, height: int) -> np.ndarray:
    """
    Straight crop of ``bbox`` (clamped to the image) resized to width x height.
    """
    img_h, img_w = image.shape[:2]
    b = bbox.clip_to_image(img_w, img_h)
    roi = image[b.y_min : b.y_max, b.x_min : b.x_max]
    return cv2.resize(roi, (width, height), interpolation=cv2.INTER_AREA)


class PerspectiveRectifier:
    """
    Produces the canonical, fixed-size card image.

    With a quad, the quad is mapped back to full resolution with the given
    scale factor and warped through a homography. Without one, the centred
    fallback rectangle is cropped and resized. Either way the output is
    exactly ``canonical_output_size``.

    Example:
        >>> rectifier = PerspectiveRectifier()
        >>> card = rectifier.rectify(frame, quad, quad.scale_factor)
        >>> card.shape
        (600, 1000, 3)
    """

    def __init__(self, config: Optional[RectificationConfig] = None):
        self.config = config if config is not None else RectificationConfig()

    @property
    def output_size(self) -> tuple:
        """Canonical (width, height)."""
        size = self.config.canonical_output_size
        return size.width, size.height

    def rectify(
        self,
        original: Frame,
        quad: Optional[QuadCandidate] = None,
        scale_factor: float = 1.0,
    ) -> np.ndarray:
        """
        Rectify the card region of ``original`` into the canonical rectangle.

        Args:
            original: Full-resolution frame. Never modified.
            quad: Selected candidate in working-space coordinates, or None to
                use the centred fallback crop.
            scale_factor: Working-space size over original size, the same
                uniform factor the detector applied. Must match the quad's.

        Returns:
            New image of shape (height, width[, C]).

        Raises:
            ValueError: On a non-positive or mismatched scale factor, or
                degenerate quad geometry.
        """
        width, height = self.output_size

        if quad is None:
            bbox = fallback_rect(
                original.width,
                original.height,
                self.config.fallback_width_ratio,
                self.config.fallback_height_ratio,
            )
            logger.info(f"No quad, cropping fallback region {bbox.to_tuple()}")
            return crop_and_resize(original.data, bbox, width, height)

        if scale_factor <= 0:
            raise ValueError(f"Scale factor must be positive, got {scale_factor}")
        if not math.isclose(scale_factor, quad.scale_factor, rel_tol=1e-6):
            raise ValueError(
                f"Scale factor {scale_factor} does not match the factor the quad "
                f"was detected at ({quad.scale_factor})"
            )

        source_points = quad.to_source_points()
        rectified = warp_to_rectangle(original.data, source_points, width, height)

        logger.info(
            f"Rectified quad from {original.width}x{original.height} frame "
            f"to {width}x{height}"
        )
        return rectified
