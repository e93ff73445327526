"""Quad primitive with ray-quad intersection.

A quad is a planar parallelogram defined by:
- start: A corner point of the quad
- u: Edge vector from start to an adjacent corner
- v: Edge vector from start to the other adjacent corner

The quad spans start + alpha*u + beta*v for alpha, beta in [0, 1]. The
plane normal is normalize(u x v) (right-hand rule) and the plane constant is
D = normal . start. The helper vector w = n / (n . n), with n = u x v
unnormalized, turns a planar hit point into (alpha, beta) with two dot
products; those planar coordinates double as texture coordinates.

Example:
    >>> from pathtracer.geometry.quad import Quad, cuboid
    >>> # Floor quad at y=0, spanning x=[0,1] and z=[0,1]
    >>> floor = Quad(start=(0, 0, 0), u=(1, 0, 0), v=(0, 0, 1), material_id=0)
    >>> box = cuboid((0, 0, 0), (165, 330, 165), material_id=2)
    >>> len(box.objects)
    6
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, ray_at
from pathtracer.geometry.aabb import AABB, Vec3, as_vec3
from pathtracer.geometry.hit_record import HitRecord, empty_hit_record, face_normal

if TYPE_CHECKING:
    from pathtracer.geometry.hittable_list import HittableList

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rays whose direction is this close to parallel with the plane are rejected
PARALLEL_EPSILON = 1e-8


# =============================================================================
# Host-side description
# =============================================================================


@dataclass
class Quad:
    """A parallelogram with a precomputed plane equation.

    Attributes:
        start: Corner point of the quad.
        u: First edge vector.
        v: Second edge vector.
        material_id: Index into the scene's material table.
        normal: Unit plane normal, normalize(u x v).
        plane_d: Plane constant, normal . start.
        w: Helper vector n / (n . n) used to compute planar coordinates.
        bounding_box: Box over both diagonals, padded so it is never flat.
    """

    start: Vec3
    u: Vec3
    v: Vec3
    material_id: int
    normal: Vec3 = field(init=False, repr=False, compare=False)
    plane_d: float = field(init=False, repr=False, compare=False)
    w: Vec3 = field(init=False, repr=False, compare=False)
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.start = as_vec3(self.start)
        self.u = as_vec3(self.u)
        self.v = as_vec3(self.v)

        start = np.array(self.start)
        u = np.array(self.u)
        v = np.array(self.v)
        n = np.cross(u, v)
        n_dot_n = float(np.dot(n, n))
        if n_dot_n == 0.0:
            raise ValueError(f"Quad edges {self.u} and {self.v} are parallel or zero")

        normal = n / np.sqrt(n_dot_n)
        self.normal = as_vec3(normal)
        self.plane_d = float(np.dot(normal, start))
        self.w = as_vec3(n / n_dot_n)

        diagonal_1 = AABB.from_points(start, start + u + v)
        diagonal_2 = AABB.from_points(start + u, start + v)
        self.bounding_box = AABB.merge(diagonal_1, diagonal_2).padded()

    def material_ids(self) -> Iterator[int]:
        yield self.material_id


def cuboid(a: Sequence[float], b: Sequence[float], material_id: int) -> "HittableList":
    """Build the six axis-aligned faces of the box spanned by two corners.

    Args:
        a: One corner of the box.
        b: The opposite corner of the box.
        material_id: Material shared by every face.

    Returns:
        A HittableList of six outward-facing quads.
    """
    from pathtracer.geometry.hittable_list import HittableList

    a = as_vec3(a)
    b = as_vec3(b)
    lo = tuple(min(p, q) for p, q in zip(a, b))
    hi = tuple(max(p, q) for p, q in zip(a, b))

    dx = (hi[0] - lo[0], 0.0, 0.0)
    dy = (0.0, hi[1] - lo[1], 0.0)
    dz = (0.0, 0.0, hi[2] - lo[2])
    minus_dx = (-dx[0], 0.0, 0.0)
    minus_dz = (0.0, 0.0, -dz[2])

    faces = [
        Quad((lo[0], lo[1], hi[2]), dx, dy, material_id),  # front
        Quad((hi[0], lo[1], hi[2]), minus_dz, dy, material_id),  # right
        Quad((hi[0], lo[1], lo[2]), minus_dx, dy, material_id),  # back
        Quad((lo[0], lo[1], lo[2]), dz, dy, material_id),  # left
        Quad((lo[0], hi[1], hi[2]), dx, minus_dz, material_id),  # top
        Quad((lo[0], lo[1], lo[2]), dx, dz, material_id),  # bottom
    ]
    return HittableList(faces)


# =============================================================================
# Device-side intersection
# =============================================================================


@ti.func
def hit_quad(
    ray: Ray,
    start: vec3,
    u: vec3,
    v: vec3,
    normal: vec3,
    plane_d: ti.f32,
    w: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-quad intersection.

    1. Reject rays (nearly) parallel to the plane.
    2. Solve t = (D - normal . origin) / (normal . direction) and require
       t in [t_min, t_max] (inclusive).
    3. With p = hit_point - start, compute alpha = w . (p x v) and
       beta = w . (u x p) and require both in [0, 1].

    Args:
        ray: The ray to test.
        start: Corner point of the quad.
        u: First edge vector.
        v: Second edge vector.
        normal: Unit plane normal.
        plane_d: Plane constant.
        w: Planar coordinate helper vector.
        t_min: Lower bound of accepted ray parameters.
        t_max: Upper bound of accepted ray parameters.

    Returns:
        A HitRecord with (u, v) set to (alpha, beta). The material id is left
        unset for the caller to fill in.
    """
    record = empty_hit_record()

    denom = tm.dot(normal, ray.direction)
    if ti.abs(denom) >= PARALLEL_EPSILON:
        t = (plane_d - tm.dot(normal, ray.origin)) / denom
        if t_min <= t <= t_max:
            point = ray_at(ray, t)
            p = point - start
            alpha = tm.dot(w, tm.cross(p, v))
            beta = tm.dot(w, tm.cross(u, p))

            if 0.0 <= alpha <= 1.0 and 0.0 <= beta <= 1.0:
                hit_normal, front_face = face_normal(ray.direction, normal)
                record.hit = 1
                record.t = t
                record.point = point
                record.normal = hit_normal
                record.front_face = front_face
                record.u = alpha
                record.v = beta

    return record
