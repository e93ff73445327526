"""Camera module for view configuration and primary ray generation.

Components:
    camera: Camera configuration, derived geometry and device ray generation

Pixel coordinates run left to right (i) and top to bottom (j). Every ray is
jittered within its pixel and carries a random time for motion blur.
"""

from .camera import Camera, CameraGeometry, get_ray, setup_camera

__all__ = [
    "Camera",
    "CameraGeometry",
    "get_ray",
    "setup_camera",
]
