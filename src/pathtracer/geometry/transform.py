"""Translate and rotate-about-Y decorators.

Decorators wrap an inner hittable and move it rigidly. A hit is computed by
moving the ray into object space, intersecting the inner object and moving
the resulting point and normal back to world space; every other field of the
hit record is kept.

Rigid transforms preserve distances, so the ray parameter t is the same in
both spaces. This lets the scene compiler collapse any chain of decorators
into a single RigidTransform per primitive (world = R @ object + offset),
which is what the device-side intersection code applies.

Example:
    >>> from pathtracer.geometry.quad import cuboid
    >>> from pathtracer.geometry.transform import RotateY, Translate
    >>> box = cuboid((0, 0, 0), (165, 330, 165), material_id=2)
    >>> placed = Translate(RotateY(box, 15.0), (265, 0, 295))
"""

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import AABB, Vec3, as_vec3

if TYPE_CHECKING:
    from pathtracer.geometry.hittable_list import Hittable

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@dataclass(frozen=True, eq=False)
class RigidTransform:
    """A rotation followed by a translation: world = rotation @ p + offset.

    Attributes:
        rotation: 3x3 orthonormal matrix mapping object to world directions.
        offset: Translation applied after the rotation.
    """

    rotation: np.ndarray
    offset: np.ndarray

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(np.eye(3), np.zeros(3))

    @classmethod
    def translation(cls, offset: Sequence[float]) -> "RigidTransform":
        return cls(np.eye(3), np.asarray(offset, dtype=np.float64))

    @classmethod
    def rotation_y(cls, sin_theta: float, cos_theta: float) -> "RigidTransform":
        rotation = np.array(
            [
                [cos_theta, 0.0, sin_theta],
                [0.0, 1.0, 0.0],
                [-sin_theta, 0.0, cos_theta],
            ]
        )
        return cls(rotation, np.zeros(3))

    def compose(self, inner: "RigidTransform") -> "RigidTransform":
        """Return the transform applying ``inner`` first, then ``self``."""
        return RigidTransform(
            self.rotation @ inner.rotation,
            self.rotation @ inner.offset + self.offset,
        )

    def apply_point(self, point: Sequence[float]) -> np.ndarray:
        return self.rotation @ np.asarray(point, dtype=np.float64) + self.offset

    def apply_vector(self, vector: Sequence[float]) -> np.ndarray:
        return self.rotation @ np.asarray(vector, dtype=np.float64)

    def is_identity(self) -> bool:
        return bool(np.array_equal(self.rotation, np.eye(3)) and not self.offset.any())


@dataclass
class Translate:
    """Moves an inner object by a fixed offset.

    Attributes:
        inner: The wrapped object.
        offset: Translation vector.
        bounding_box: The inner box moved by ``offset``.
    """

    inner: "Hittable"
    offset: Vec3
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.offset = as_vec3(self.offset)
        self.bounding_box = self.inner.bounding_box.moved_by(self.offset)

    @property
    def transform(self) -> "RigidTransform":
        return RigidTransform.translation(self.offset)

    def material_ids(self) -> Iterator[int]:
        return self.inner.material_ids()


@dataclass
class RotateY:
    """Rotates an inner object about the Y axis.

    Attributes:
        inner: The wrapped object.
        angle: Rotation angle in degrees (counter-clockwise seen from +Y).
        sin_theta: Sine of the angle.
        cos_theta: Cosine of the angle.
        bounding_box: Componentwise min/max of the eight rotated corners of
            the inner box.
    """

    inner: "Hittable"
    angle: float
    sin_theta: float = field(init=False, repr=False, compare=False)
    cos_theta: float = field(init=False, repr=False, compare=False)
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        radians = math.radians(float(self.angle))
        self.sin_theta = math.sin(radians)
        self.cos_theta = math.cos(radians)

        rotate = self.transform
        corners = np.array([rotate.apply_point(c) for c in self.inner.bounding_box.corners()])
        self.bounding_box = AABB.from_points(corners.min(axis=0), corners.max(axis=0))

    @property
    def transform(self) -> "RigidTransform":
        return RigidTransform.rotation_y(self.sin_theta, self.cos_theta)

    def material_ids(self) -> Iterator[int]:
        return self.inner.material_ids()


# =============================================================================
# Device-side helpers
# =============================================================================


@ti.func
def ray_to_object_space(ray: Ray, rotation: tm.mat3, offset: vec3) -> Ray:
    """Move a world-space ray into the object space of a rigid transform.

    The inverse of an orthonormal rotation is its transpose.
    """
    inverse = rotation.transpose()
    return Ray(
        origin=inverse @ (ray.origin - offset),
        direction=inverse @ ray.direction,
        time=ray.time,
    )


@ti.func
def point_to_world_space(point: vec3, rotation: tm.mat3, offset: vec3) -> vec3:
    return rotation @ point + offset


@ti.func
def normal_to_world_space(normal: vec3, rotation: tm.mat3) -> vec3:
    return rotation @ normal
