"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters every incoming ray. The scattered direction is
the surface normal plus a random unit vector flipped into the normal's
hemisphere, so bounces always leave the surface and lean toward the normal;
the attenuation is the material's texture sampled at the hit point.

If the random vector almost exactly cancels the normal, the scattered
direction would be degenerate, so the normal itself is used instead.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import Lambertian
    >>> from pathtracer.materials.texture import SolidColor
    >>> red = Lambertian(SolidColor((0.65, 0.05, 0.05)))
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, random_on_hemisphere
from pathtracer.materials.texture import Texture, as_texture, texture_value

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(eq=False)
class Lambertian:
    """Diffuse material.

    Attributes:
        texture: Albedo texture, or an RGB triple for a constant albedo.
    """

    texture: Texture

    def __post_init__(self) -> None:
        self.texture = as_texture(self.texture)


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 4096

lambertian_textures = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def add_lambertian_material(texture_id: int) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        texture_id: Id of an already registered albedo texture.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )
    lambertian_textures[idx] = texture_id
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def scatter_lambertian(material_idx: ti.i32, normal: vec3, u: ti.f32, v: ti.f32, p: vec3):
    """Sample a diffuse bounce.

    Args:
        material_idx: Index of the material in the Lambertian registry.
        normal: Unit surface normal, facing the incoming ray.
        u: Surface parameter u at the hit point.
        v: Surface parameter v at the hit point.
        p: Hit point.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). Lambertian
        surfaces always scatter.
    """
    scattered_direction = normal + random_on_hemisphere(normal)
    if near_zero(scattered_direction):
        scattered_direction = normal

    attenuation = texture_value(lambertian_textures[material_idx], u, v, p)
    did_scatter = 1
    return scattered_direction, attenuation, did_scatter
