"""Device-side scene storage and ray queries.

A built scene is compiled into flat Taichi fields:

- primitives: spheres, moving spheres and quads, each with an optional rigid
  transform (the composition of every Translate / RotateY wrapped around it);
- media: constant-density volumes whose boundary is a contiguous range of
  primitives that is never referenced by the BVH directly;
- nodes: the BVH in depth-first order with skip links. Every leaf node holds
  exactly one primitive or one medium. Leaf objects that expand into several
  pieces (cuboids, transformed groups) get a nested BVH spliced in place of
  the leaf, so large groups are not scanned linearly.

Kernels query the scene with ``intersect_scene`` (BVH traversal) or
``hit_linear`` (a scan over every leaf, used as a reference in tests).

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry import BVH, Sphere
    >>> from pathtracer.scene.intersection import upload_bvh
    >>> stats = upload_bvh(BVH.build([Sphere((0.0, 0.0, -1.0), 0.5, 0)]))
    >>> # Use intersect_scene(ray, 0.001, INFINITY) within a Taichi kernel
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Union

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray, ray_at
from pathtracer.geometry.aabb import AABB, hit_aabb
from pathtracer.geometry.bvh import BVH
from pathtracer.geometry.hit_record import HitRecord, empty_hit_record
from pathtracer.geometry.hittable_list import Hittable, HittableList
from pathtracer.geometry.medium import (
    EXIT_SEARCH_EPSILON,
    ConstantDensityMedium,
    sample_free_flight,
)
from pathtracer.geometry.quad import Quad, hit_quad
from pathtracer.geometry.sphere import MovingSphere, Sphere, hit_sphere, moving_center
from pathtracer.geometry.transform import (
    RigidTransform,
    RotateY,
    Translate,
    normal_to_world_space,
    point_to_world_space,
    ray_to_object_space,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Stand-in for an unbounded ray parameter inside kernels
INFINITY = 1e30


class PrimitiveKind(IntEnum):
    SPHERE = 0
    MOVING_SPHERE = 1
    QUAD = 2


class NodeKind(IntEnum):
    """What a BVH node holds: nothing (internal), a primitive or a medium."""

    INTERNAL = -1
    PRIMITIVE = 0
    MEDIUM = 1


# =============================================================================
# Host-side flattening
# =============================================================================


def _transformed_box(box: AABB, transform: RigidTransform) -> AABB:
    if transform.is_identity():
        return box
    corners = np.array([transform.apply_point(c) for c in box.corners()])
    return AABB.from_points(corners.min(axis=0), corners.max(axis=0))


@dataclass(eq=False)
class PrimitivePiece:
    """A primitive placed in the world by a composed rigid transform."""

    shape: Union[Sphere, MovingSphere, Quad]
    transform: RigidTransform
    bounding_box: AABB = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.bounding_box = _transformed_box(self.shape.bounding_box, self.transform)


@dataclass(eq=False)
class MediumPiece:
    """A medium together with its already flattened boundary."""

    medium: ConstantDensityMedium
    boundary: List[PrimitivePiece]
    bounding_box: AABB = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.bounding_box = AABB.enclosing([piece.bounding_box for piece in self.boundary])


Piece = Union[PrimitivePiece, MediumPiece]


def flatten(obj: Hittable, transform: Optional[RigidTransform] = None) -> List[Piece]:
    """Split a hittable into world-placed primitives and media.

    Decorators are folded into one rigid transform per primitive and lists are
    expanded in order.

    Args:
        obj: The object to flatten.
        transform: Transform accumulated from enclosing decorators.

    Returns:
        The pieces making up ``obj``.

    Raises:
        ValueError: If a medium boundary contains another medium.
        TypeError: If ``obj`` is not a supported hittable.
    """
    if transform is None:
        transform = RigidTransform.identity()

    if isinstance(obj, (Sphere, MovingSphere, Quad)):
        return [PrimitivePiece(obj, transform)]
    if isinstance(obj, (Translate, RotateY)):
        return flatten(obj.inner, transform.compose(obj.transform))
    if isinstance(obj, HittableList):
        pieces: List[Piece] = []
        for child in obj:
            pieces.extend(flatten(child, transform))
        return pieces
    if isinstance(obj, ConstantDensityMedium):
        boundary = flatten(obj.boundary, transform)
        if any(isinstance(piece, MediumPiece) for piece in boundary):
            raise ValueError("Medium boundaries cannot contain other media")
        if not boundary:
            raise ValueError("Medium boundary is empty")
        return [MediumPiece(obj, boundary)]
    raise TypeError(f"Unsupported hittable type: {type(obj).__name__}")


# =============================================================================
# Device storage
# =============================================================================

MAX_PRIMITIVES = 16384
MAX_MEDIA = 256
MAX_NODES = 32768

prim_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
prim_materials = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
# Index into the transform arrays, -1 for primitives already in world space
prim_transforms = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
# Sphere: center / center at time 0; quad: start corner
prim_a = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
# Moving sphere: center at time 1; quad: edge u
prim_b = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
# Quad: edge v
prim_c = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_w = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_plane_d = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
prim_radii = ti.field(dtype=ti.f32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

transform_rotations = ti.Matrix.field(3, 3, dtype=ti.f32, shape=MAX_PRIMITIVES)
transform_offsets = ti.Vector.field(3, dtype=ti.f32, shape=MAX_PRIMITIVES)

medium_boundary_starts = ti.field(dtype=ti.i32, shape=MAX_MEDIA)
medium_boundary_counts = ti.field(dtype=ti.i32, shape=MAX_MEDIA)
medium_neg_inv_densities = ti.field(dtype=ti.f32, shape=MAX_MEDIA)
medium_materials = ti.field(dtype=ti.i32, shape=MAX_MEDIA)
num_media = ti.field(dtype=ti.i32, shape=())

node_mins = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_maxs = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NODES)
node_kinds = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_indices = ti.field(dtype=ti.i32, shape=MAX_NODES)
node_skips = ti.field(dtype=ti.i32, shape=MAX_NODES)
num_nodes = ti.field(dtype=ti.i32, shape=())


@dataclass(frozen=True)
class SceneStats:
    """Sizes of the uploaded scene."""

    primitives: int
    media: int
    nodes: int


class _SceneArrays:
    """Host staging buffers, sized like the device fields."""

    def __init__(self) -> None:
        self.kinds = np.zeros(MAX_PRIMITIVES, dtype=np.int32)
        self.materials = np.zeros(MAX_PRIMITIVES, dtype=np.int32)
        self.transforms = np.full(MAX_PRIMITIVES, -1, dtype=np.int32)
        self.a = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.b = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.c = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.normals = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.w = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.plane_d = np.zeros(MAX_PRIMITIVES, dtype=np.float32)
        self.radii = np.zeros(MAX_PRIMITIVES, dtype=np.float32)
        self.rotations = np.tile(np.eye(3, dtype=np.float32), (MAX_PRIMITIVES, 1, 1))
        self.offsets = np.zeros((MAX_PRIMITIVES, 3), dtype=np.float32)
        self.num_primitives = 0
        self.num_transforms = 0

        self.boundary_starts = np.zeros(MAX_MEDIA, dtype=np.int32)
        self.boundary_counts = np.zeros(MAX_MEDIA, dtype=np.int32)
        self.neg_inv_densities = np.zeros(MAX_MEDIA, dtype=np.float32)
        self.medium_materials = np.zeros(MAX_MEDIA, dtype=np.int32)
        self.num_media = 0

    def add_primitive(self, piece: PrimitivePiece) -> int:
        idx = self.num_primitives
        if idx >= MAX_PRIMITIVES:
            raise RuntimeError(f"Maximum number of primitives ({MAX_PRIMITIVES}) exceeded")

        shape = piece.shape
        self.materials[idx] = shape.material_id
        if isinstance(shape, Sphere):
            self.kinds[idx] = int(PrimitiveKind.SPHERE)
            self.a[idx] = shape.center
            self.radii[idx] = shape.radius
        elif isinstance(shape, MovingSphere):
            self.kinds[idx] = int(PrimitiveKind.MOVING_SPHERE)
            self.a[idx] = shape.center_from
            self.b[idx] = shape.center_to
            self.radii[idx] = shape.radius
        else:
            self.kinds[idx] = int(PrimitiveKind.QUAD)
            self.a[idx] = shape.start
            self.b[idx] = shape.u
            self.c[idx] = shape.v
            self.normals[idx] = shape.normal
            self.w[idx] = shape.w
            self.plane_d[idx] = shape.plane_d

        if not piece.transform.is_identity():
            t = self.num_transforms
            self.rotations[t] = piece.transform.rotation
            self.offsets[t] = piece.transform.offset
            self.transforms[idx] = t
            self.num_transforms = t + 1

        self.num_primitives = idx + 1
        return idx

    def add_medium(self, piece: MediumPiece) -> int:
        idx = self.num_media
        if idx >= MAX_MEDIA:
            raise RuntimeError(f"Maximum number of media ({MAX_MEDIA}) exceeded")

        start = self.num_primitives
        for boundary_piece in piece.boundary:
            self.add_primitive(boundary_piece)
        self.boundary_starts[idx] = start
        self.boundary_counts[idx] = len(piece.boundary)
        self.neg_inv_densities[idx] = piece.medium.neg_inv_density
        self.medium_materials[idx] = piece.medium.phase_material_id
        self.num_media = idx + 1
        return idx


def _round_out(box: AABB):
    """Box corners as float32, rounded outward so the box never shrinks."""
    lo = np.asarray(box.minimum, dtype=np.float32)
    hi = np.asarray(box.maximum, dtype=np.float32)
    return np.nextafter(lo, np.float32(-np.inf)), np.nextafter(hi, np.float32(np.inf))


def upload_bvh(bvh: BVH) -> SceneStats:
    """Compile a BVH and its objects into the device fields.

    Any previously uploaded scene is replaced.

    Args:
        bvh: Hierarchy over the scene's top-level objects.

    Returns:
        Counts of uploaded primitives, media and nodes.

    Raises:
        RuntimeError: If the scene exceeds the preallocated capacities.
        ValueError: If a medium boundary contains another medium.
    """
    linear = bvh.linearize(expand=flatten)
    if len(linear.nodes) > MAX_NODES:
        raise RuntimeError(f"Maximum number of BVH nodes ({MAX_NODES}) exceeded")

    arrays = _SceneArrays()
    kinds = np.full(MAX_NODES, int(NodeKind.INTERNAL), dtype=np.int32)
    indices = np.zeros(MAX_NODES, dtype=np.int32)
    skips = np.zeros(MAX_NODES, dtype=np.int32)
    mins = np.zeros((MAX_NODES, 3), dtype=np.float32)
    maxs = np.zeros((MAX_NODES, 3), dtype=np.float32)

    slots = []
    for piece in linear.objects:
        if isinstance(piece, MediumPiece):
            slots.append((int(NodeKind.MEDIUM), arrays.add_medium(piece)))
        else:
            slots.append((int(NodeKind.PRIMITIVE), arrays.add_primitive(piece)))

    for i, node in enumerate(linear.nodes):
        mins[i], maxs[i] = _round_out(node.bounding_box)
        skips[i] = node.skip
        if node.is_leaf:
            kinds[i], indices[i] = slots[node.object_index]

    prim_kinds.from_numpy(arrays.kinds)
    prim_materials.from_numpy(arrays.materials)
    prim_transforms.from_numpy(arrays.transforms)
    prim_a.from_numpy(arrays.a)
    prim_b.from_numpy(arrays.b)
    prim_c.from_numpy(arrays.c)
    prim_normals.from_numpy(arrays.normals)
    prim_w.from_numpy(arrays.w)
    prim_plane_d.from_numpy(arrays.plane_d)
    prim_radii.from_numpy(arrays.radii)
    transform_rotations.from_numpy(arrays.rotations)
    transform_offsets.from_numpy(arrays.offsets)
    num_primitives[None] = arrays.num_primitives

    medium_boundary_starts.from_numpy(arrays.boundary_starts)
    medium_boundary_counts.from_numpy(arrays.boundary_counts)
    medium_neg_inv_densities.from_numpy(arrays.neg_inv_densities)
    medium_materials.from_numpy(arrays.medium_materials)
    num_media[None] = arrays.num_media

    node_mins.from_numpy(mins)
    node_maxs.from_numpy(maxs)
    node_kinds.from_numpy(kinds)
    node_indices.from_numpy(indices)
    node_skips.from_numpy(skips)
    num_nodes[None] = len(linear.nodes)

    stats = SceneStats(arrays.num_primitives, arrays.num_media, len(linear.nodes))
    logger.debug(
        "Uploaded scene: %d primitives, %d media, %d nodes",
        stats.primitives,
        stats.media,
        stats.nodes,
    )
    return stats


def clear_scene_storage() -> None:
    """Forget the uploaded scene; queries then report no hits."""
    num_primitives[None] = 0
    num_media[None] = 0
    num_nodes[None] = 0


def get_node_count() -> int:
    return int(num_nodes[None])


# =============================================================================
# Device queries
# =============================================================================


@ti.func
def hit_primitive(prim: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Intersect one primitive, applying its rigid transform if it has one."""
    xf = prim_transforms[prim]
    local = ray
    if xf >= 0:
        local = ray_to_object_space(ray, transform_rotations[xf], transform_offsets[xf])

    kind = prim_kinds[prim]
    record = empty_hit_record()
    if kind == int(PrimitiveKind.SPHERE):
        record = hit_sphere(local, prim_a[prim], prim_radii[prim], t_min, t_max)
    elif kind == int(PrimitiveKind.MOVING_SPHERE):
        center = moving_center(prim_a[prim], prim_b[prim], local.time)
        record = hit_sphere(local, center, prim_radii[prim], t_min, t_max)
    else:
        record = hit_quad(
            local,
            prim_a[prim],
            prim_b[prim],
            prim_c[prim],
            prim_normals[prim],
            prim_plane_d[prim],
            prim_w[prim],
            t_min,
            t_max,
        )

    if record.hit == 1 and xf >= 0:
        record.point = point_to_world_space(record.point, transform_rotations[xf], transform_offsets[xf])
        record.normal = normal_to_world_space(record.normal, transform_rotations[xf])
    record.material_id = prim_materials[prim]
    return record


@ti.func
def _hit_primitive_range(start: ti.i32, count: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Closest hit among ``count`` consecutive primitives."""
    closest = empty_hit_record()
    closest_t = t_max
    for k in range(count):
        record = hit_primitive(start + k, ray, t_min, closest_t)
        if record.hit == 1:
            closest = record
            closest_t = record.t
    return closest


@ti.func
def hit_medium(medium: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Sample a scattering event inside a constant-density medium.

    The boundary is intersected over the whole line to find the entry point
    and again just past it to find the exit point. A free-flight distance is
    sampled; if it falls short of the chord inside [t_min, t_max], the ray
    scatters there.
    """
    record = empty_hit_record()
    start = medium_boundary_starts[medium]
    count = medium_boundary_counts[medium]

    entry = _hit_primitive_range(start, count, ray, -INFINITY, INFINITY)
    if entry.hit == 1:
        exit_ = _hit_primitive_range(start, count, ray, entry.t + EXIT_SEARCH_EPSILON, INFINITY)
        if exit_.hit == 1:
            t_enter = ti.max(entry.t, t_min)
            t_exit = ti.min(exit_.t, t_max)
            if t_enter < t_exit:
                t_enter = ti.max(t_enter, 0.0)
                ray_length = tm.length(ray.direction)
                inside = (t_exit - t_enter) * ray_length
                hit_distance = sample_free_flight(medium_neg_inv_densities[medium])
                if hit_distance <= inside:
                    t = t_enter + hit_distance / ray_length
                    record.hit = 1
                    record.t = t
                    record.point = ray_at(ray, t)
                    # Arbitrary: phase functions ignore the normal
                    record.normal = vec3(1.0, 0.0, 0.0)
                    record.front_face = 1
                    record.material_id = medium_materials[medium]
    return record


@ti.func
def _hit_leaf(node: ti.i32, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    record = empty_hit_record()
    if node_kinds[node] == int(NodeKind.PRIMITIVE):
        record = hit_primitive(node_indices[node], ray, t_min, t_max)
    elif node_kinds[node] == int(NodeKind.MEDIUM):
        record = hit_medium(node_indices[node], ray, t_min, t_max)
    return record


@ti.func
def hit_bvh(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Closest hit by walking the depth-first node array.

    A node whose box is missed (within the range shrunk to the closest hit so
    far) is skipped together with its subtree; otherwise the walk continues
    with the next node, which is the node's left child or, for a leaf, the
    next subtree to visit.
    """
    closest = empty_hit_record()
    closest_t = t_max
    i = 0
    n = num_nodes[None]
    while i < n:
        if hit_aabb(node_mins[i], node_maxs[i], ray, t_min, closest_t):
            if node_kinds[i] != int(NodeKind.INTERNAL):
                record = _hit_leaf(i, ray, t_min, closest_t)
                if record.hit == 1:
                    closest = record
                    closest_t = record.t
            i += 1
        else:
            i = node_skips[i]
    return closest


@ti.func
def hit_linear(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Closest hit by testing every leaf, ignoring the hierarchy."""
    closest = empty_hit_record()
    closest_t = t_max
    for i in range(num_nodes[None]):
        if node_kinds[i] != int(NodeKind.INTERNAL):
            record = _hit_leaf(i, ray, t_min, closest_t)
            if record.hit == 1:
                closest = record
                closest_t = record.t
    return closest


@ti.func
def intersect_scene(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Closest intersection of a ray with the uploaded scene.

    Args:
        ray: The ray to trace.
        t_min: Lower bound of accepted ray parameters.
        t_max: Upper bound of accepted ray parameters.

    Returns:
        The closest HitRecord, or a record with hit == 0.
    """
    return hit_bvh(ray, t_min, t_max)
