"""Core rendering module.

Components:
    ray: Ray data structure, vector helpers and Monte Carlo sampling
    integrator: Path tracing kernel and the render entry point

Note: integrator is NOT imported here. It declares Taichi fields at import
time, which requires ``ti.init`` to have run first. Import it directly from
``pathtracer.core.integrator`` when needed.
"""

from .ray import (
    Ray,
    length_squared,
    make_ray,
    near_zero,
    random_in_unit_disk,
    random_on_hemisphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_reflectance,
    vec3,
)

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length_squared",
    "near_zero",
    "reflect",
    "refract",
    "schlick_reflectance",
    "random_unit_vector",
    "random_on_hemisphere",
    "random_in_unit_disk",
]
