"""Sphere primitives with robust ray-sphere intersection.

This module provides the host-side Sphere and MovingSphere descriptions and
the device-side intersection function shared by both. The intersection uses
the robust quadratic formula from Ray Tracing Gems to avoid catastrophic
cancellation when b^2 is nearly equal to 4ac.

Only roots strictly inside the requested parameter range are accepted, so a
scattered ray starting exactly on the surface never re-hits it at t == t_min.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import Sphere, MovingSphere
    >>> ball = Sphere(center=(0, 0, -1), radius=0.5, material_id=0)
    >>> ball.bounding_box.minimum
    (-0.5, -0.5, -1.5)
    >>> bouncing = MovingSphere((0, 0, 0), (0, 1, 0), radius=0.2, material_id=1)
"""

from dataclasses import dataclass, field
from typing import Iterator

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, ray_at
from pathtracer.geometry.aabb import AABB, Vec3, as_vec3
from pathtracer.geometry.hit_record import HitRecord, empty_hit_record, face_normal

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


# =============================================================================
# Host-side descriptions
# =============================================================================


def _sphere_box(center: Vec3, radius: float) -> AABB:
    lo = tuple(c - radius for c in center)
    hi = tuple(c + radius for c in center)
    return AABB.from_points(lo, hi)


@dataclass
class Sphere:
    """A static sphere.

    Attributes:
        center: Center point of the sphere.
        radius: Radius of the sphere (strictly positive).
        material_id: Index into the scene's material table.
        bounding_box: Box enclosing the sphere, computed at construction.
    """

    center: Vec3
    radius: float
    material_id: int
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.center = as_vec3(self.center)
        self.radius = float(self.radius)
        if not self.radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")
        self.bounding_box = _sphere_box(self.center, self.radius)

    def material_ids(self) -> Iterator[int]:
        yield self.material_id


@dataclass
class MovingSphere:
    """A sphere whose center moves linearly during the exposure.

    The center is ``center_from`` at time 0 and ``center_to`` at time 1.

    Attributes:
        center_from: Center at time 0.
        center_to: Center at time 1.
        radius: Radius of the sphere (strictly positive).
        material_id: Index into the scene's material table.
        bounding_box: Union of the boxes at time 0 and time 1.
    """

    center_from: Vec3
    center_to: Vec3
    radius: float
    material_id: int
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.center_from = as_vec3(self.center_from)
        self.center_to = as_vec3(self.center_to)
        self.radius = float(self.radius)
        if not self.radius > 0.0:
            raise ValueError(f"Sphere radius must be positive, got {self.radius}")
        self.bounding_box = AABB.merge(
            _sphere_box(self.center_from, self.radius),
            _sphere_box(self.center_to, self.radius),
        )

    def center_at(self, time: float) -> Vec3:
        """Center of the sphere at the given time."""
        return tuple(a + time * (b - a) for a, b in zip(self.center_from, self.center_to))

    def material_ids(self) -> Iterator[int]:
        yield self.material_id


# =============================================================================
# Device-side intersection
# =============================================================================


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 with the numerically stable formulation.

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0
    if ti.abs(q) < 1e-10:
        # Tangent ray through the center plane: fall back to the textbook form
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp
    return t0, t1


@ti.func
def sphere_uv(outward_normal: vec3):
    """Spherical texture coordinates of a point on the unit sphere.

    u = atan2(-z, x) / (2*pi) + 0.5 wraps around the Y axis starting at -X;
    v = acos(-y) / pi runs from the bottom pole (0) to the top pole (1).

    Args:
        outward_normal: Unit vector from the center to the surface point.

    Returns:
        Tuple of (u, v), both in [0, 1].
    """
    u = ti.atan2(-outward_normal.z, outward_normal.x) / (2.0 * tm.pi) + 0.5
    v = ti.acos(ti.min(ti.max(-outward_normal.y, -1.0), 1.0)) / tm.pi
    return u, v


@ti.func
def hit_sphere(
    ray: Ray,
    center: vec3,
    radius: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a sphere.

    Solves |origin + t*direction - center|^2 = radius^2 in the half-b form
    a*t^2 + 2*h*t + c = 0 and returns the nearest root strictly inside
    (t_min, t_max).

    Args:
        ray: The ray to test.
        center: Center of the sphere.
        radius: Radius of the sphere.
        t_min: Exclusive lower bound of accepted ray parameters.
        t_max: Exclusive upper bound of accepted ray parameters.

    Returns:
        A HitRecord; check its ``hit`` field. The material id is left unset
        for the caller to fill in.
    """
    record = empty_hit_record()

    oc = ray.origin - center
    a = tm.dot(ray.direction, ray.direction)
    h = tm.dot(ray.direction, oc)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = h * h - a * c

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = t_min < t < t_max
        if not valid:
            t = t1
            valid = t_min < t < t_max

        if valid:
            point = ray_at(ray, t)
            outward_normal = (point - center) / radius
            normal, front_face = face_normal(ray.direction, outward_normal)
            u, v = sphere_uv(outward_normal)
            record.hit = 1
            record.t = t
            record.point = point
            record.normal = normal
            record.front_face = front_face
            record.u = u
            record.v = v

    return record


@ti.func
def moving_center(center_from: vec3, center_to: vec3, time: ti.f32) -> vec3:
    """Linearly interpolated center of a moving sphere at ``time``."""
    return center_from + time * (center_to - center_from)
