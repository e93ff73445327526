"""Intersection record shared by every primitive.

A HitRecord is created by a ``hit`` function, consumed immediately by the
caller and discarded. The stored normal always faces against the incoming
ray; ``front_face`` records whether the geometric outward normal had to be
flipped to achieve that.
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class HitRecord:
    """Record of a ray-object intersection.

    Attributes:
        hit: 1 if the ray intersected the object, 0 otherwise. All other
            fields are only meaningful when hit == 1.
        t: Ray parameter of the intersection.
        point: World-space intersection point.
        normal: Unit surface normal, oriented against the incoming ray.
        front_face: 1 if the ray hit the outward-facing side of the surface.
        material_id: Index into the scene's material table.
        u: First surface parameter, used for texture lookup.
        v: Second surface parameter, used for texture lookup.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    material_id: ti.i32
    u: ti.f32
    v: ti.f32


@ti.func
def empty_hit_record() -> HitRecord:
    """Return a record representing 'no intersection'."""
    return HitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        material_id=-1,
        u=0.0,
        v=0.0,
    )


@ti.func
def face_normal(ray_direction: vec3, outward_normal: vec3):
    """Orient an outward normal against the ray.

    Args:
        ray_direction: Direction of the incoming ray.
        outward_normal: Unit geometric normal pointing out of the surface.

    Returns:
        A tuple of (normal, front_face) where normal faces the ray origin and
        front_face is 1 when no flip was needed.
    """
    front_face = 1
    normal = outward_normal
    if tm.dot(ray_direction, outward_normal) > 0.0:
        front_face = 0
        normal = -outward_normal
    return normal, front_face
