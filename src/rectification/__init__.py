"""
Perspective rectification of detected ID cards.

Maps a card quadrilateral found on a downscaled copy back onto the
full-resolution frame and warps it into a fixed-size canonical image,
or falls back to a centred crop when no card was found.
"""

from src.rectification.image_rectification import (
    PerspectiveRectifier,
    crop_and_resize,
    fallback_rect,
    order_points,
    warp_to_rectangle,
)

__all__ = [
    "PerspectiveRectifier",
    "crop_and_resize",
    "fallback_rect",
    "order_points",
    "warp_to_rectangle",
]
