"""Dielectric (glass/water) material implementation.

This module implements clear dielectrics that both reflect and refract.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for the reflectance
    - Total internal reflection when ratio * sin(theta) > 1

The relative index of refraction is 1/ior when the ray enters the surface
(front face) and ior when it leaves. Reflection is chosen whenever refraction
is impossible or Schlick's reflectance exceeds a uniform random number.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.dielectric import Dielectric
    >>> glass = Dielectric(1.5)
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, refract, schlick_reflectance

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(eq=False)
class Dielectric:
    """Transparent material.

    Attributes:
        ior: Index of refraction relative to the surrounding medium. Common
            values: water 1.33, glass 1.5, diamond 2.4. Values below 1
            describe an air bubble inside a denser medium.
    """

    ior: float = 1.5

    def __post_init__(self) -> None:
        self.ior = float(self.ior)
        if self.ior <= 0.0:
            raise ValueError(f"Index of refraction must be > 0, got {self.ior}")


# =============================================================================
# Material Field Storage
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 1024

dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ior: Index of refraction (> 0).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If ior is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction must be > 0, got {ior}")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """Relative index of refraction for the side of the surface that was hit."""
    ratio = ior
    if front_face == 1:
        ratio = 1.0 / ior
    return ratio


@ti.func
def scatter_dielectric(
    material_idx: ti.i32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Compute the scattered direction for a dielectric material.

    Args:
        material_idx: Index of the material in the dielectric registry.
        incident_direction: Unit direction of the incoming ray.
        normal: Unit surface normal, facing the incoming ray.
        front_face: 1 if the ray hit the outside of the surface.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). The
        attenuation is always white and dielectrics always scatter.
    """
    attenuation = vec3(1.0, 1.0, 1.0)
    ratio = refraction_ratio(dielectric_iors[material_idx], front_face)

    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))
    cannot_refract = ratio * sin_theta > 1.0

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or schlick_reflectance(cos_theta, ratio) > ti.random(ti.f32):
        scattered_direction = reflect(incident_direction, normal)
    else:
        scattered_direction = refract(incident_direction, normal, ratio)

    did_scatter = 1
    return scattered_direction, attenuation, did_scatter
