"""Metal (specular reflective) material implementation.

Metals mirror the incoming direction about the normal. A non-zero ``fuzz``
perturbs the mirrored direction by a random unit vector scaled by fuzz, which
blurs the reflection; perturbed directions that end up below the surface are
absorbed.
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector, reflect
from pathtracer.geometry.aabb import Vec3, as_vec3

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(eq=False)
class Metal:
    """Reflective material.

    Attributes:
        albedo: Reflective tint (RGB, each component in [0, 1]).
        fuzz: Radius of the random perturbation of the reflection (>= 0).
    """

    albedo: Vec3
    fuzz: float = 0.0

    def __post_init__(self) -> None:
        self.albedo = as_vec3(self.albedo)
        for i, component in enumerate(self.albedo):
            if component < 0.0 or component > 1.0:
                raise ValueError(
                    f"Albedo component {i} = {component} is outside [0, 1]. "
                    "This would violate energy conservation."
                )
        self.fuzz = float(self.fuzz)
        if self.fuzz < 0.0:
            raise ValueError(f"Metal fuzz must be >= 0, got {self.fuzz}")


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 1024

metal_albedos = ti.Vector.field(3, dtype=ti.f32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials."""
    num_metal_materials[None] = 0


def add_metal_material(albedo: Vec3, fuzz: float = 0.0) -> int:
    """Add a metal material to the material registry.

    Args:
        albedo: Reflective tint as (R, G, B).
        fuzz: Reflection perturbation radius.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
    """
    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded")

    metal_albedos[idx] = vec3(albedo[0], albedo[1], albedo[2])
    metal_fuzzes[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    return int(num_metal_materials[None])


@ti.func
def scatter_metal(material_idx: ti.i32, incident_direction: vec3, normal: vec3):
    """Compute the reflected direction for a metal material.

    Args:
        material_idx: Index of the material in the metal registry.
        incident_direction: Unit direction of the incoming ray.
        normal: Unit surface normal, facing the incoming ray.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is 0 when the fuzzed reflection points into the surface.
    """
    fuzz = metal_fuzzes[material_idx]
    scattered_direction = reflect(incident_direction, normal)
    if fuzz > 0.0:
        scattered_direction = tm.normalize(scattered_direction) + fuzz * random_unit_vector()

    did_scatter = 0
    if tm.dot(scattered_direction, normal) > 0.0:
        did_scatter = 1
    return scattered_direction, metal_albedos[material_idx], did_scatter
