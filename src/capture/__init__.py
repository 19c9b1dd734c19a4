"""
Camera capture: frame sources, device ownership and the auto-capture loop.
"""

from src.capture.auto_capture import AutoCaptureLoop, AutoCaptureState
from src.capture.camera_session import CameraSession, DeviceError
from src.capture.frame_source import FrameSource, StillImageSource

__all__ = [
    "AutoCaptureLoop",
    "AutoCaptureState",
    "CameraSession",
    "DeviceError",
    "FrameSource",
    "StillImageSource",
]
