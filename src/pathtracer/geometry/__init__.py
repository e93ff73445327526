"""Geometry module for shape primitives and spatial acceleration.

This module provides the hittable object model and its intersection routines:

Components:
    aabb: Axis-aligned bounding boxes, intervals and the slab test
    hit_record: The HitRecord produced by every intersection
    sphere: Static and moving spheres
    quad: Parallelograms and axis-aligned cuboids
    transform: Translate / RotateY decorators and rigid transforms
    medium: Constant-density participating media
    hittable_list: Ordered groups of objects
    bvh: Bounding volume hierarchy construction and flattening

Objects are described on the host as plain dataclasses that carry their
bounding boxes; intersection routines are Taichi functions (@ti.func) used by
the scene storage in ``pathtracer.scene.intersection``.
"""

from .aabb import AABB, Axis, Interval, hit_aabb
from .bvh import BVH, BVHLeaf, BVHNode, LinearBVH
from .hit_record import HitRecord
from .hittable_list import Hittable, HittableList
from .medium import ConstantDensityMedium
from .quad import Quad, cuboid, hit_quad
from .sphere import MovingSphere, Sphere, hit_sphere
from .transform import RigidTransform, RotateY, Translate

__all__ = [
    "AABB",
    "Axis",
    "Interval",
    "hit_aabb",
    "BVH",
    "BVHLeaf",
    "BVHNode",
    "LinearBVH",
    "HitRecord",
    "Hittable",
    "HittableList",
    "ConstantDensityMedium",
    "Quad",
    "cuboid",
    "hit_quad",
    "MovingSphere",
    "Sphere",
    "hit_sphere",
    "RigidTransform",
    "RotateY",
    "Translate",
]
