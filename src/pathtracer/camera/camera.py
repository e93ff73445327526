"""Thin-lens camera model for primary ray generation.

This module implements the positionable camera used by the renderer. The
camera supports:
- Look-at positioning (look_from, look_at, vup)
- Vertical field of view specification
- Arbitrary aspect ratios
- Defocus blur (depth of field) through a thin-lens aperture disk
- Motion blur, by giving every ray a uniformly random time in [0, 1)

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from look_at toward look_from (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The image plane sits at ``focus_dist`` in front of the camera. Pixel (0, 0)
is the top-left pixel, and pixel rows advance downward.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.camera.camera import Camera, setup_camera, get_ray
    >>> camera = Camera(image_width=200, vfov=20.0, look_from=(13.0, 2.0, 3.0),
    ...                 look_at=(0.0, 0.0, 0.0), defocus_angle=0.6)
    >>> geometry = setup_camera(camera)
    >>> geometry.image_height
    112
    >>> # Use get_ray(i, j) within a Taichi kernel
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, make_ray, random_in_unit_disk, sample_square
from pathtracer.geometry.aabb import Vec3, as_vec3

# Type alias for 3D vectors
vec3 = tm.vec3


# =============================================================================
# Camera Configuration
# =============================================================================


@dataclass
class Camera:
    """Camera and sampling configuration.

    Attributes:
        image_width: Output width in pixels.
        aspect_ratio: Width divided by height of the output image.
        samples_per_pixel: Number of paths traced per pixel.
        max_depth: Maximum number of path segments (0 renders black).
        vfov: Vertical field of view in degrees.
        look_from: Camera position.
        look_at: Point the camera looks at.
        vup: Camera-relative up direction.
        defocus_angle: Aperture cone angle in degrees (0 disables defocus blur).
        focus_dist: Distance from the camera to the plane of perfect focus.
    """

    image_width: int = 400
    aspect_ratio: float = 16.0 / 9.0
    samples_per_pixel: int = 100
    max_depth: int = 10
    vfov: float = 90.0
    look_from: Vec3 = (0.0, 0.0, 0.0)
    look_at: Vec3 = (0.0, 0.0, -1.0)
    vup: Vec3 = (0.0, 1.0, 0.0)
    defocus_angle: float = 0.0
    focus_dist: float = 10.0

    def __post_init__(self) -> None:
        self.look_from = as_vec3(self.look_from)
        self.look_at = as_vec3(self.look_at)
        self.vup = as_vec3(self.vup)

        if self.image_width < 1:
            raise ValueError(f"Image width must be >= 1, got {self.image_width}")
        if not self.aspect_ratio > 0.0:
            raise ValueError(f"Aspect ratio must be positive, got {self.aspect_ratio}")
        if self.samples_per_pixel < 1:
            raise ValueError(f"Samples per pixel must be >= 1, got {self.samples_per_pixel}")
        if self.max_depth < 0:
            raise ValueError(f"Max depth must be >= 0, got {self.max_depth}")
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"Vertical field of view must be in (0, 180), got {self.vfov}")
        if self.defocus_angle < 0.0:
            raise ValueError(f"Defocus angle must be >= 0, got {self.defocus_angle}")
        if not self.focus_dist > 0.0:
            raise ValueError(f"Focus distance must be positive, got {self.focus_dist}")

        view = np.subtract(self.look_from, self.look_at)
        if not np.any(view):
            raise ValueError("look_from and look_at must differ")
        if not np.any(np.cross(self.vup, view)):
            raise ValueError("vup must not be parallel to the view direction")

    @property
    def image_height(self) -> int:
        """Image height, rounded to the nearest pixel and at least 1."""
        return max(1, int(round(self.image_width / self.aspect_ratio)))

    def derive(self) -> "CameraGeometry":
        """Compute the camera's derived geometry."""
        width = self.image_width
        height = self.image_height
        center = np.array(self.look_from, dtype=np.float64)

        theta = math.radians(self.vfov)
        h = math.tan(theta / 2.0)
        viewport_height = 2.0 * h * self.focus_dist
        # Use the realized pixel ratio, not the requested aspect ratio
        viewport_width = viewport_height * (width / height)

        w = center - np.array(self.look_at, dtype=np.float64)
        w = w / np.linalg.norm(w)
        u = np.cross(self.vup, w)
        u = u / np.linalg.norm(u)
        v = np.cross(w, u)

        viewport_u = viewport_width * u
        # Rows run top to bottom
        viewport_v = viewport_height * -v
        pixel_delta_u = viewport_u / width
        pixel_delta_v = viewport_v / height

        upper_left = center - self.focus_dist * w - viewport_u / 2.0 - viewport_v / 2.0
        pixel00 = upper_left + 0.5 * (pixel_delta_u + pixel_delta_v)

        defocus_radius = self.focus_dist * math.tan(math.radians(self.defocus_angle / 2.0))

        return CameraGeometry(
            image_width=width,
            image_height=height,
            center=center,
            pixel00=pixel00,
            pixel_delta_u=pixel_delta_u,
            pixel_delta_v=pixel_delta_v,
            u=u,
            v=v,
            w=w,
            defocus_disk_u=defocus_radius * u,
            defocus_disk_v=defocus_radius * v,
            defocus_enabled=self.defocus_angle > 0.0,
        )


@dataclass(frozen=True, eq=False)
class CameraGeometry:
    """Quantities derived from a Camera, in world space.

    Attributes:
        image_width: Image width in pixels.
        image_height: Image height in pixels.
        center: Camera position (the ray origin without defocus).
        pixel00: Center of the top-left pixel on the focus plane.
        pixel_delta_u: Offset from one pixel to the next one to the right.
        pixel_delta_v: Offset from one pixel to the next one below.
        u: Camera right vector.
        v: Camera up vector.
        w: Camera backward vector.
        defocus_disk_u: Horizontal radius of the aperture disk.
        defocus_disk_v: Vertical radius of the aperture disk.
        defocus_enabled: Whether rays start on the aperture disk.
    """

    image_width: int
    image_height: int
    center: np.ndarray
    pixel00: np.ndarray
    pixel_delta_u: np.ndarray
    pixel_delta_v: np.ndarray
    u: np.ndarray
    v: np.ndarray
    w: np.ndarray
    defocus_disk_u: np.ndarray
    defocus_disk_v: np.ndarray
    defocus_enabled: bool


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_center = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel00 = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_delta_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_pixel_delta_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_enabled = ti.field(dtype=ti.i32, shape=())
_camera_ready = ti.field(dtype=ti.i32, shape=())


def setup_camera(camera: Camera) -> CameraGeometry:
    """Upload a camera's derived geometry for use in kernels.

    Args:
        camera: The camera configuration.

    Returns:
        The derived geometry that was uploaded.
    """
    geometry = camera.derive()
    _camera_center[None] = geometry.center.tolist()
    _pixel00[None] = geometry.pixel00.tolist()
    _pixel_delta_u[None] = geometry.pixel_delta_u.tolist()
    _pixel_delta_v[None] = geometry.pixel_delta_v.tolist()
    _defocus_disk_u[None] = geometry.defocus_disk_u.tolist()
    _defocus_disk_v[None] = geometry.defocus_disk_v.tolist()
    _defocus_enabled[None] = int(geometry.defocus_enabled)
    _camera_ready[None] = 1
    return geometry


def is_camera_ready() -> bool:
    return bool(_camera_ready[None])


def reset_camera() -> None:
    """Mark the camera as not configured."""
    _camera_ready[None] = 0


# =============================================================================
# Ray Generation
# =============================================================================


@ti.func
def _defocus_disk_sample() -> vec3:
    p = random_in_unit_disk()
    return _camera_center[None] + p.x * _defocus_disk_u[None] + p.y * _defocus_disk_v[None]


@ti.func
def get_ray(pixel_i: ti.i32, pixel_j: ti.i32) -> Ray:
    """Generate a randomly sampled camera ray for a pixel.

    The ray passes through a random point within the pixel's square; its
    origin is the camera center or, with defocus blur, a random point on the
    aperture disk. Its time is uniform in [0, 1).

    Args:
        pixel_i: Pixel column (0 = left).
        pixel_j: Pixel row (0 = top).

    Returns:
        A ray with a unit direction.
    """
    offset = sample_square()
    pixel_sample = (
        _pixel00[None]
        + (ti.cast(pixel_i, ti.f32) + offset.x) * _pixel_delta_u[None]
        + (ti.cast(pixel_j, ti.f32) + offset.y) * _pixel_delta_v[None]
    )

    origin = _camera_center[None]
    if _defocus_enabled[None] == 1:
        origin = _defocus_disk_sample()

    return make_ray(origin, pixel_sample - origin, ti.random(ti.f32))
