"""Ray data structure and vector/sampling utilities.

This module provides the Ray dataclass used by every intersection and
scattering routine, plus the small vector helpers (reflection, refraction,
Schlick reflectance) and Monte Carlo sampling functions shared by the
materials and the camera.

Rays always carry a unit direction: ``make_ray`` normalizes at construction,
so intersection code may rely on ``|direction| == 1`` up to rounding.

All sampling functions draw from Taichi's per-thread generator
(``ti.random``), which is seeded through ``ti.init(random_seed=...)``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.ray import Ray, make_ray, ray_at
    >>> @ti.kernel
    ... def trace():
    ...     ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, -2.0), 0.5)
    ...     point = ray_at(ray, 2.0)  # (0, 0, -2)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rejection sampling keeps candidates whose squared length lies in
# (MIN_LENGTH_SQUARED, 1]; the lower bound discards vectors too short to
# normalize in float32.
MIN_LENGTH_SQUARED = 1e-30

# Upper bound on rejection sampling attempts (acceptance rate is ~52%)
MAX_REJECTION_ATTEMPTS = 64


@ti.dataclass
class Ray:
    """A ray with origin, unit direction and time.

    Attributes:
        origin: The starting point of the ray.
        direction: The unit direction of the ray.
        time: Sample time in [0, 1], used by moving primitives.
    """

    origin: vec3
    direction: vec3
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The distance along the ray.

    Returns:
        The point ``origin + t * direction``.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    """Create a ray, normalizing its direction.

    Args:
        origin: The starting point of the ray.
        direction: Any non-zero direction vector.
        time: Sample time in [0, 1].

    Returns:
        A Ray whose direction has unit length.
    """
    return Ray(origin=origin, direction=tm.normalize(direction), time=time)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    return tm.dot(v, v)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check whether every component of a vector is below 1e-8 in magnitude."""
    s = 1e-8
    return ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect a vector about a normal.

    Computes: reflected = incident - 2 * dot(incident, normal) * normal

    Args:
        incident: The incoming direction (pointing toward the surface).
        normal: The unit surface normal.

    Returns:
        The reflected direction.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit vector through a surface using Snell's law.

    The result is split into the component perpendicular to the normal,
    ``eta_ratio * (incident + cos_theta * normal)``, and the component
    parallel to it, ``-sqrt(|1 - |perp|^2|) * normal``. Callers must check
    for total internal reflection first.

    Args:
        incident: The unit incoming direction.
        normal: The unit normal, facing against ``incident``.
        eta_ratio: Ratio of refractive indices (incident over transmitted).

    Returns:
        The refracted unit direction.
    """
    cos_theta = ti.min(-tm.dot(incident, normal), 1.0)
    r_out_perp = eta_ratio * (incident + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - length_squared(r_out_perp))) * normal
    return r_out_perp + r_out_parallel


@ti.func
def schlick_reflectance(cosine: ti.f32, eta_ratio: ti.f32) -> ti.f32:
    """Approximate Fresnel reflectance with Schlick's polynomial.

    Args:
        cosine: Cosine of the angle between the incoming ray and the normal.
        eta_ratio: Ratio of refractive indices.

    Returns:
        The probability that the ray reflects instead of refracting.
    """
    r0 = (1.0 - eta_ratio) / (1.0 + eta_ratio)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_in_cube() -> vec3:
    """Draw a point uniformly from [-1, 1)^3."""
    return vec3(
        ti.random(ti.f32) * 2.0 - 1.0,
        ti.random(ti.f32) * 2.0 - 1.0,
        ti.random(ti.f32) * 2.0 - 1.0,
    )


@ti.func
def random_unit_vector() -> vec3:
    """Generate a random unit vector uniformly distributed on the sphere.

    Uses rejection sampling: uniform points in the cube are drawn until one
    falls inside the unit ball (and is long enough to normalize), then it is
    projected onto the sphere.

    Returns:
        A random unit vector.
    """
    p = random_in_cube()
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            p = random_in_cube()
            len_sq = length_squared(p)
            if MIN_LENGTH_SQUARED < len_sq <= 1.0:
                found = True
    return tm.normalize(p)


@ti.func
def random_on_hemisphere(normal: vec3) -> vec3:
    """Generate a random unit vector in the hemisphere around a normal."""
    direction = random_unit_vector()
    if tm.dot(direction, normal) < 0.0:
        direction = -direction
    return direction


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the XY plane.

    Returns:
        A point (x, y, 0) with x^2 + y^2 <= 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if not found:
            p = vec3(ti.random(ti.f32) * 2.0 - 1.0, ti.random(ti.f32) * 2.0 - 1.0, 0.0)
            if length_squared(p) <= 1.0:
                found = True
    return p


@ti.func
def sample_square() -> tm.vec2:
    """Draw an offset uniformly from [-0.5, 0.5)^2 for pixel jitter."""
    return tm.vec2(ti.random(ti.f32) - 0.5, ti.random(ti.f32) - 0.5)
