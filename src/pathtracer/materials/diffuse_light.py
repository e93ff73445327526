"""Emissive material.

A DiffuseLight never scatters; rays that hit it terminate and pick up the
texture color as emitted radiance. Both faces of the surface emit.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.materials.texture import Texture, as_texture, texture_value

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(eq=False)
class DiffuseLight:
    """Light-emitting material.

    Attributes:
        texture: Emitted radiance; components may exceed 1.
    """

    texture: Texture

    def __post_init__(self) -> None:
        self.texture = as_texture(self.texture)


MAX_DIFFUSE_LIGHT_MATERIALS = 256

diffuse_light_textures = ti.field(dtype=ti.i32, shape=MAX_DIFFUSE_LIGHT_MATERIALS)
num_diffuse_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_diffuse_light_materials() -> None:
    num_diffuse_light_materials[None] = 0


def add_diffuse_light_material(texture_id: int) -> int:
    """Add an emissive material and return its registry index.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_diffuse_light_materials[None]
    if idx >= MAX_DIFFUSE_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of diffuse light materials ({MAX_DIFFUSE_LIGHT_MATERIALS}) exceeded"
        )
    diffuse_light_textures[idx] = texture_id
    num_diffuse_light_materials[None] = idx + 1
    return idx


def get_diffuse_light_material_count() -> int:
    return int(num_diffuse_light_materials[None])


@ti.func
def emit_diffuse_light(material_idx: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Radiance emitted at surface coordinates (u, v) and point p."""
    return texture_value(diffuse_light_textures[material_idx], u, v, p)
