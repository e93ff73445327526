"""Path tracing integrator for Monte Carlo light transport.

This module implements the main rendering kernel. Rays are traced from the
camera through the scene, bouncing off surfaces according to their material
properties, and the radiance gathered along each path is averaged per pixel.

The radiance of a path is defined recursively:

    radiance(ray, depth) = 0                                   if depth >= max_depth
                         = background(ray)                     if the ray misses
                         = emitted + attenuation * radiance(scattered, depth + 1)

Taichi functions cannot recurse, so ``trace_ray`` evaluates the same sum with
a loop over a running throughput (the product of attenuations so far).

Key features:
    - Material dispatch (Lambertian, Metal, Dielectric, DiffuseLight, Isotropic)
    - Flat or sky-gradient background for escaped rays
    - Rendering in bands of rows with progress reporting
    - Gamma-2 encoding and 8-bit quantization of the averaged radiance

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu, random_seed=42)
    >>> from pathtracer.core.integrator import render
    >>> from pathtracer.scene.scenes import build_scene
    >>> scene, camera = build_scene("quads")
    >>> result = render(scene, camera)
    >>> result.as_array().shape
    (400, 400, 3)
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.camera import Camera, get_ray, setup_camera
from pathtracer.core.ray import Ray, make_ray
from pathtracer.geometry.hit_record import HitRecord
from pathtracer.materials.dielectric import scatter_dielectric
from pathtracer.materials.diffuse_light import emit_diffuse_light
from pathtracer.materials.isotropic import scatter_isotropic
from pathtracer.materials.lambertian import scatter_lambertian
from pathtracer.materials.metal import scatter_metal
from pathtracer.scene.intersection import INFINITY, intersect_scene
from pathtracer.scene.manager import (
    MaterialType,
    Scene,
    get_material_type,
    get_material_type_index,
    upload_scene,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Ray parameter range for scene queries; T_MIN avoids self-intersection acne
T_MIN = 0.001
T_MAX = INFINITY

# Rows rendered per kernel launch between progress reports
DEFAULT_BAND_ROWS = 16

# Maximum supported image dimensions (preallocated to avoid reallocation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

ProgressCallback = Callable[[int, int], None]

# =============================================================================
# Render Target and Background
# =============================================================================

# Averaged linear radiance, indexed [row, column]
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))

_background = ti.Vector.field(3, dtype=ti.f32, shape=())
_sky_gradient = ti.field(dtype=ti.i32, shape=())


def clear_render_target() -> None:
    """Clear the color buffer to zero."""
    _color_buffer.fill(0.0)


def setup_background(background, sky_gradient: bool = False) -> None:
    """Set the radiance returned by rays that escape the scene.

    Args:
        background: Flat background color (R, G, B).
        sky_gradient: If True, use the white-to-blue sky gradient instead.
    """
    _background[None] = [background[0], background[1], background[2]]
    _sky_gradient[None] = int(sky_gradient)


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(material_id: ti.i32, ray: Ray, rec: HitRecord):
    """Dispatch to the appropriate material scattering function.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter). Emissive
        materials never scatter.
    """
    mat_type = get_material_type(material_id)
    type_index = get_material_type_index(material_id)
    assert mat_type >= 0, "material id outside the material table"

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        scattered_direction, attenuation, did_scatter = scatter_lambertian(
            type_index, rec.normal, rec.u, rec.v, rec.point
        )
    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal(
            type_index, ray.direction, rec.normal
        )
    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            type_index, ray.direction, rec.normal, rec.front_face
        )
    elif mat_type == int(MaterialType.ISOTROPIC):
        scattered_direction, attenuation, did_scatter = scatter_isotropic(
            type_index, rec.u, rec.v, rec.point
        )

    return scattered_direction, attenuation, did_scatter


@ti.func
def _emitted(material_id: ti.i32, rec: HitRecord) -> vec3:
    """Radiance emitted at a hit; black for every non-emissive material."""
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(material_id) == int(MaterialType.DIFFUSE_LIGHT):
        emission = emit_diffuse_light(get_material_type_index(material_id), rec.u, rec.v, rec.point)
    return emission


@ti.func
def _miss_color(direction: vec3) -> vec3:
    color = _background[None]
    if _sky_gradient[None] == 1:
        a = 0.5 * (tm.normalize(direction).y + 1.0)
        # White at the horizon, light blue at the zenith
        color = (1.0 - a) * vec3(1.0, 1.0, 1.0) + a * vec3(0.5, 0.7, 1.0)
    return color


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def trace_ray(ray: Ray, max_depth: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        ray: The camera ray.
        max_depth: Maximum number of path segments; a path still bouncing
            after that many segments contributes nothing more.

    Returns:
        The radiance estimate (RGB).
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    current = ray

    # Active flag for path continuation
    active = 1
    depth = 0
    while active == 1 and depth < max_depth:
        rec = intersect_scene(current, T_MIN, T_MAX)

        if rec.hit == 0:
            radiance += throughput * _miss_color(current.direction)
            active = 0
        else:
            radiance += throughput * _emitted(rec.material_id, rec)
            scattered_direction, attenuation, did_scatter = _scatter_material(
                rec.material_id, current, rec
            )
            if did_scatter == 0:
                active = 0
            else:
                throughput *= attenuation
                current = make_ray(rec.point, scattered_direction, current.time)

        depth += 1

    return radiance


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows(row_start: ti.i32, row_end: ti.i32, width: ti.i32, samples: ti.i32, max_depth: ti.i32):
    """Average ``samples`` paths for every pixel of rows [row_start, row_end)."""
    for j, i in ti.ndrange((row_start, row_end), width):
        color = vec3(0.0, 0.0, 0.0)
        for _ in range(samples):
            sample = trace_ray(get_ray(i, j), max_depth)

            # Check for NaN/Inf and replace with zero
            for c in ti.static(range(3)):
                if tm.isnan(sample[c]) or tm.isinf(sample[c]):
                    sample[c] = 0.0

            color += sample
        _color_buffer[j, i] = color / ti.cast(samples, ti.f32)


# =============================================================================
# Public Rendering API
# =============================================================================


@dataclass(frozen=True, eq=False)
class RenderResult:
    """A rendered 8-bit RGB image.

    Attributes:
        pixels: Flat uint8 array of length width * height * 3, row-major
            from the top row, three channels per pixel.
        width: Image width in pixels.
        height: Image height in pixels.
        elapsed: Wall-clock render time in seconds.
    """

    pixels: np.ndarray
    width: int
    height: int
    elapsed: float = 0.0

    def as_array(self) -> np.ndarray:
        """The pixels as a (height, width, 3) array view."""
        return self.pixels.reshape(self.height, self.width, 3)


def linear_to_bytes(colors: np.ndarray) -> np.ndarray:
    """Gamma-encode averaged linear radiance and quantize to 8 bits.

    Applies gamma 2 (square root), clamps to [0, 1] and truncates c * 255.

    Args:
        colors: Array of linear RGB values, any shape.

    Returns:
        A uint8 array of the same shape.
    """
    gamma = np.sqrt(np.maximum(np.asarray(colors, dtype=np.float64), 0.0))
    return (np.clip(gamma, 0.0, 1.0) * 255.0).astype(np.uint8)


def render(
    scene: Scene,
    camera: Camera,
    progress: Optional[ProgressCallback] = None,
    band_rows: int = DEFAULT_BAND_ROWS,
) -> RenderResult:
    """Render a scene through a camera.

    Args:
        scene: A built scene.
        camera: Camera and sampling configuration.
        progress: Optional callback receiving (done_pixels, total_pixels)
            after each band of rows.
        band_rows: Rows rendered per kernel launch.

    Returns:
        The rendered image.

    Raises:
        ValueError: If the image exceeds the supported size or band_rows < 1.
        RuntimeError: If the scene's materials are no longer registered or
            the scene exceeds device capacities.
    """
    if band_rows < 1:
        raise ValueError(f"band_rows must be >= 1, got {band_rows}")

    width = camera.image_width
    height = camera.image_height
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    upload_scene(scene)
    setup_camera(camera)
    setup_background(scene.options.background, scene.options.sky_gradient)

    total = width * height
    logger.info(
        "Rendering %dx%d, %d samples per pixel, max depth %d",
        width,
        height,
        camera.samples_per_pixel,
        camera.max_depth,
    )
    start = time.perf_counter()

    done = 0
    for row_start in range(0, height, band_rows):
        row_end = min(row_start + band_rows, height)
        _render_rows(row_start, row_end, width, camera.samples_per_pixel, camera.max_depth)
        done += (row_end - row_start) * width
        logger.debug("Rendered rows %d-%d (%d/%d pixels)", row_start, row_end - 1, done, total)
        if progress is not None:
            progress(done, total)

    ti.sync()
    elapsed = time.perf_counter() - start
    logger.info("Render finished in %.2fs", elapsed)

    colors = _color_buffer.to_numpy()[:height, :width, :]
    pixels = linear_to_bytes(colors).reshape(-1)
    return RenderResult(pixels=pixels, width=width, height=height, elapsed=elapsed)
