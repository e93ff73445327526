"""Axis-aligned bounding boxes and interval algebra.

Bounding boxes are computed on the host when primitives are constructed and
drive BVH construction. Boxes are immutable: every transformation (merge,
translation, padding) returns a new box.

The host-side slab test follows IEEE semantics (numpy float64 under
``np.errstate``), so rays with zero direction components produce infinite
slab distances and are still accepted or rejected correctly. The device-side
test ``hit_aabb`` handles zero components explicitly because Taichi kernels
are compiled with fast-math, where infinities are not guaranteed.

Example:
    >>> from pathtracer.geometry.aabb import AABB, Interval
    >>> box = AABB.from_points((-1, -1, -1), (1, 1, 1))
    >>> box.intersects_ray((0, 0, -5), (0, 0, 1), Interval(0.0, float("inf")))
    True
    >>> box.intersects_ray((0, 0, -5), (0, 0, 1), Interval(0.0, 1.0))
    False
"""

import math
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Host-side 3D vectors are plain float triples
Vec3 = tuple[float, float, float]

# Minimum thickness given to flat boxes (e.g. axis-aligned quads) so that the
# slab test can accept them
PADDING_DELTA = 1e-4


def as_vec3(value: Sequence[float]) -> Vec3:
    """Convert any 3-element sequence (tuple, list, ndarray) to a float triple.

    Raises:
        ValueError: If the value does not have exactly three components.
    """
    components = tuple(float(c) for c in value)
    if len(components) != 3:
        raise ValueError(f"Expected 3 components, got {len(components)}")
    return components


class Axis(IntEnum):
    """Coordinate axes, usable as vector indices."""

    X = 0
    Y = 1
    Z = 2


@dataclass(frozen=True)
class Interval:
    """A closed interval [start, end] of real numbers."""

    start: float
    end: float

    @property
    def length(self) -> float:
        return self.end - self.start

    def contains(self, value: float) -> bool:
        """Inclusive membership test."""
        return self.start <= value <= self.end

    def surrounds(self, value: float) -> bool:
        """Exclusive membership test (boundary values are rejected)."""
        return self.start < value < self.end

    def union(self, other: "Interval") -> "Interval":
        return Interval(min(self.start, other.start), max(self.end, other.end))

    def expand(self, delta: float) -> "Interval":
        half = delta / 2.0
        return Interval(self.start - half, self.end + half)

    def moved_by(self, offset: float) -> "Interval":
        return Interval(self.start + offset, self.end + offset)


@dataclass(frozen=True)
class AABB:
    """An axis-aligned bounding box made of three closed intervals.

    Use the ``from_points``/``from_intervals`` constructors, which enforce
    ``start <= end`` on every axis.

    Attributes:
        x: Extent along the X axis.
        y: Extent along the Y axis.
        z: Extent along the Z axis.
    """

    x: Interval
    y: Interval
    z: Interval

    def __post_init__(self) -> None:
        for interval in (self.x, self.y, self.z):
            if math.isnan(interval.start) or math.isnan(interval.end):
                raise ValueError("Bounding box bounds must not be NaN")

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_points(cls, p0: Sequence[float], p1: Sequence[float]) -> "AABB":
        """Create the box spanned by two corner points, in any order."""
        x, y, z = (
            Interval(min(float(a), float(b)), max(float(a), float(b)))
            for a, b in zip(p0, p1)
        )
        return cls(x, y, z)

    @classmethod
    def from_intervals(cls, x: Interval, y: Interval, z: Interval) -> "AABB":
        """Create a box from intervals, swapping any reversed bounds."""
        fixed = (Interval(min(i.start, i.end), max(i.start, i.end)) for i in (x, y, z))
        return cls(*fixed)

    @classmethod
    def empty(cls) -> "AABB":
        """The degenerate box [0, 0]^3, used as a fold seed for merges."""
        zero = Interval(0.0, 0.0)
        return cls(zero, zero, zero)

    @staticmethod
    def merge(b1: "AABB", b2: "AABB") -> "AABB":
        """Return the smallest box containing both boxes."""
        return AABB(b1.x.union(b2.x), b1.y.union(b2.y), b1.z.union(b2.z))

    @classmethod
    def enclosing(cls, boxes: Sequence["AABB"]) -> "AABB":
        """Fold ``merge`` over a sequence of boxes, starting from ``empty()``."""
        result = cls.empty()
        for box in boxes:
            result = cls.merge(result, box)
        return result

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def axis_interval(self, axis: int) -> Interval:
        return (self.x, self.y, self.z)[axis]

    @property
    def minimum(self) -> tuple[float, float, float]:
        return (self.x.start, self.y.start, self.z.start)

    @property
    def maximum(self) -> tuple[float, float, float]:
        return (self.x.end, self.y.end, self.z.end)

    def longest_axis(self) -> Axis:
        """Axis with the greatest extent.

        Ties are broken toward Z, then Y: X wins only when strictly longer
        than both other axes, Y only when strictly longer than Z.
        """
        len_x, len_y, len_z = self.x.length, self.y.length, self.z.length
        if len_x > len_y:
            return Axis.X if len_x > len_z else Axis.Z
        return Axis.Y if len_y > len_z else Axis.Z

    def corners(self) -> Iterator[tuple[float, float, float]]:
        """Yield the eight corner points of the box."""
        for px in (self.x.start, self.x.end):
            for py in (self.y.start, self.y.end):
                for pz in (self.z.start, self.z.end):
                    yield (px, py, pz)

    def intersects_ray(
        self,
        origin: Sequence[float],
        direction: Sequence[float],
        t_range: Interval,
    ) -> bool:
        """Slab test of a ray against the box within ``t_range``.

        Args:
            origin: Ray origin.
            direction: Ray direction (zero components are allowed).
            t_range: Closed interval of accepted ray parameters.

        Returns:
            True if the ray overlaps the box for some t in the range.
        """
        t_min = t_range.start
        t_max = t_range.end
        o = np.asarray(origin, dtype=np.float64)
        d = np.asarray(direction, dtype=np.float64)
        with np.errstate(divide="ignore", invalid="ignore"):
            for axis in Axis:
                interval = self.axis_interval(axis)
                t0 = (interval.start - o[axis]) / d[axis]
                t1 = (interval.end - o[axis]) / d[axis]
                # fmin/fmax ignore the NaN produced by 0/0 (origin on a slab plane)
                t_min = float(np.fmax(t_min, np.fmin(t0, t1)))
                t_max = float(np.fmin(t_max, np.fmax(t0, t1)))
                if t_max <= t_min:
                    return False
        return t_max > t_min

    # -------------------------------------------------------------------------
    # Transformations
    # -------------------------------------------------------------------------

    def moved_by(self, offset: Sequence[float]) -> "AABB":
        """Translate the box by an offset vector."""
        return AABB(
            self.x.moved_by(float(offset[0])),
            self.y.moved_by(float(offset[1])),
            self.z.moved_by(float(offset[2])),
        )

    def padded(self, delta: float = PADDING_DELTA) -> "AABB":
        """Widen every axis thinner than ``delta`` by ``delta``."""
        x, y, z = (i if i.length >= delta else i.expand(delta) for i in (self.x, self.y, self.z))
        return AABB(x, y, z)

    @staticmethod
    def compare_by_axis(b1: "AABB", b2: "AABB", axis: int) -> int:
        """Order two boxes by the start of their interval along ``axis``.

        Returns:
            -1, 0 or 1, suitable for ``functools.cmp_to_key``.
        """
        s1 = b1.axis_interval(axis).start
        s2 = b2.axis_interval(axis).start
        return (s1 > s2) - (s1 < s2)


# =============================================================================
# Device-side slab test
# =============================================================================


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray: Ray,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Test a ray against a box inside a Taichi kernel.

    Args:
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        ray: The ray to test.
        t_min: Lower bound of the accepted ray parameter range.
        t_max: Upper bound of the accepted ray parameter range.

    Returns:
        1 if the ray overlaps the box within [t_min, t_max], 0 otherwise.
    """
    lo = t_min
    hi = t_max
    for axis in ti.static(range(3)):
        o = ray.origin[axis]
        d = ray.direction[axis]
        if d == 0.0:
            # Parallel to the slab: either always inside it or never
            if o < box_min[axis] or o > box_max[axis]:
                hi = lo
        else:
            inv_d = 1.0 / d
            t0 = (box_min[axis] - o) * inv_d
            t1 = (box_max[axis] - o) * inv_d
            lo = ti.max(lo, ti.min(t0, t1))
            hi = ti.min(hi, ti.max(t0, t1))
    return hi > lo
