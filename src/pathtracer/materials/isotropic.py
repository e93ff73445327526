"""Isotropic phase function for participating media.

Scattering inside a medium picks a direction uniformly on the unit sphere,
independent of the incoming direction and of the (arbitrary) normal reported
by the medium. The attenuation is the texture color at the scatter point.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector
from pathtracer.materials.texture import Texture, as_texture, texture_value

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(eq=False)
class Isotropic:
    """Uniform phase function.

    Attributes:
        texture: Scattering albedo of the medium.
    """

    texture: Texture

    def __post_init__(self) -> None:
        self.texture = as_texture(self.texture)


MAX_ISOTROPIC_MATERIALS = 256

isotropic_textures = ti.field(dtype=ti.i32, shape=MAX_ISOTROPIC_MATERIALS)
num_isotropic_materials = ti.field(dtype=ti.i32, shape=())


def clear_isotropic_materials() -> None:
    num_isotropic_materials[None] = 0


def add_isotropic_material(texture_id: int) -> int:
    """Add an isotropic phase function and return its registry index.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_isotropic_materials[None]
    if idx >= MAX_ISOTROPIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of isotropic materials ({MAX_ISOTROPIC_MATERIALS}) exceeded"
        )
    isotropic_textures[idx] = texture_id
    num_isotropic_materials[None] = idx + 1
    return idx


def get_isotropic_material_count() -> int:
    return int(num_isotropic_materials[None])


@ti.func
def scatter_isotropic(material_idx: ti.i32, u: ti.f32, v: ti.f32, p: vec3):
    """Scatter into a uniformly random direction.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter).
    """
    scattered_direction = random_unit_vector()
    attenuation = texture_value(isotropic_textures[material_idx], u, v, p)
    did_scatter = 1
    return scattered_direction, attenuation, did_scatter
