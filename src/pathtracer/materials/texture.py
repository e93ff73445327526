"""Textures: spatially varying colors sampled by materials.

This module provides the closed set of texture variants and their device-side
storage:

- SolidColor: a constant color.
- CheckerTexture: 3D checkerboard alternating between two sub-textures by the
  parity of floor(x/scale) + floor(y/scale) + floor(z/scale). Sub-textures
  may not themselves be checkers, so evaluation never recurses.
- ImageTexture: nearest-texel lookup into a decoded RGB raster, with u
  clamped to [0, 1] and v flipped so v = 1 is the top row.
- NoiseTexture: marbled gray from Perlin turbulence,
  0.5 * (1 + sin(scale * z + factor * turbulence(p, depth))).

Textures are registered with ``add_texture`` (which returns a texture id) and
sampled inside kernels with ``texture_value(texture_id, u, v, p)``.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.texture import CheckerTexture, SolidColor, add_texture
    >>> checker = CheckerTexture(0.32, SolidColor((0.2, 0.3, 0.1)), SolidColor((0.9, 0.9, 0.9)))
    >>> tex_id = add_texture(checker)
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from pathtracer.geometry.aabb import Vec3, as_vec3
from pathtracer.materials.perlin import (
    PerlinNoise,
    add_perlin_noise,
    clear_perlin_noises,
    perlin_turbulence,
)

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# Color returned by an image texture without any texels (debugging aid)
MISSING_IMAGE_COLOR = (0.0, 1.0, 1.0)


class TextureKind(IntEnum):
    """Enumeration of texture variants, used for dispatch in kernels."""

    SOLID = 0
    CHECKER = 1
    IMAGE = 2
    NOISE = 3


# =============================================================================
# Host-side descriptions
# =============================================================================


@dataclass(eq=False)
class SolidColor:
    """A constant color.

    Attributes:
        color: Linear RGB color.
    """

    color: Vec3

    def __post_init__(self) -> None:
        self.color = as_vec3(self.color)


@dataclass(eq=False)
class ImageTexture:
    """A raster image mapped by (u, v).

    Attributes:
        pixels: (height, width, 3) uint8 array, first row at the top.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Image texture must have shape (H, W, 3), got {pixels.shape}")
        self.pixels = np.ascontiguousarray(pixels, dtype=np.uint8)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageTexture":
        """Decode an image file into an RGB texture.

        Raises:
            ValueError: If the file does not exist or cannot be decoded.
        """
        path = Path(path)
        try:
            with PILImage.open(path) as image:
                pixels = np.asarray(image.convert("RGB"))
        except FileNotFoundError as e:
            raise ValueError(f"Image texture file not found: {path}") from e
        except (UnidentifiedImageError, OSError) as e:
            raise ValueError(f"Cannot decode image texture {path}: {e}") from e
        logger.debug("Loaded image texture %s (%dx%d)", path, pixels.shape[1], pixels.shape[0])
        return cls(pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(eq=False)
class NoiseTexture:
    """Perlin turbulence texture.

    Attributes:
        scale: Frequency of the marble stripes along z.
        turbulence_depth: Number of turbulence octaves.
        turbulence_factor: Strength of the turbulence phase shift.
        seed: Seed for the noise tables; None draws fresh entropy.
        noise: The generated Perlin tables.
    """

    scale: float
    turbulence_depth: int = 7
    turbulence_factor: float = 10.0
    seed: Optional[int] = None
    noise: PerlinNoise = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.turbulence_depth < 0:
            raise ValueError(f"Turbulence depth must be >= 0, got {self.turbulence_depth}")
        self.noise = PerlinNoise.generate(np.random.default_rng(self.seed))


@dataclass(eq=False)
class CheckerTexture:
    """3D checkerboard alternating between two non-checker textures.

    Attributes:
        scale: Edge length of one checker cell.
        even: Texture used where the cell parity is even.
        odd: Texture used where the cell parity is odd.
    """

    scale: float
    even: Union[SolidColor, ImageTexture, NoiseTexture]
    odd: Union[SolidColor, ImageTexture, NoiseTexture]

    def __post_init__(self) -> None:
        self.scale = float(self.scale)
        if self.scale == 0.0:
            raise ValueError("Checker scale must be non-zero")
        for sub in (self.even, self.odd):
            if isinstance(sub, CheckerTexture):
                raise ValueError("Checker sub-textures cannot be checkers themselves")

    @property
    def inv_scale(self) -> float:
        return 1.0 / self.scale


Texture = Union[SolidColor, CheckerTexture, ImageTexture, NoiseTexture]


def as_texture(value: Union[Texture, Sequence[float]]) -> Texture:
    """Wrap a bare RGB triple into a SolidColor; pass textures through."""
    if isinstance(value, (SolidColor, CheckerTexture, ImageTexture, NoiseTexture)):
        return value
    return SolidColor(value)


# =============================================================================
# Device storage
# =============================================================================

# Maximum number of textures and total image texels across all textures
MAX_TEXTURES = 1024
MAX_TEXELS = 2048 * 2048

texture_kinds = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
# Checker: inverse cell size; noise: stripe frequency
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_even_ids = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_odd_ids = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_noise_ids = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_turbulence_depths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_turbulence_factors = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

# Normalized texels of every image texture, row-major, concatenated
texels = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXELS)
num_texels = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _write_texels(offset: ti.i32, pixels: ti.types.ndarray()):
    for j, i in ti.ndrange(pixels.shape[0], pixels.shape[1]):
        r = ti.cast(pixels[j, i, 0], ti.f32)
        g = ti.cast(pixels[j, i, 1], ti.f32)
        b = ti.cast(pixels[j, i, 2], ti.f32)
        texels[offset + j * pixels.shape[1] + i] = vec3(r, g, b) / 255.0


def _next_texture_slot() -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    return idx


def add_texture(texture: Union[Texture, Sequence[float]]) -> int:
    """Register a texture for use in kernels.

    Checker sub-textures are registered first, so a checker consumes three
    texture slots.

    Args:
        texture: A texture, or an RGB triple for a solid color.

    Returns:
        The texture id.

    Raises:
        RuntimeError: If texture or texel capacity is exceeded.
    """
    texture = as_texture(texture)

    if isinstance(texture, CheckerTexture):
        even_id = add_texture(texture.even)
        odd_id = add_texture(texture.odd)
        idx = _next_texture_slot()
        texture_kinds[idx] = int(TextureKind.CHECKER)
        texture_scales[idx] = texture.inv_scale
        texture_even_ids[idx] = even_id
        texture_odd_ids[idx] = odd_id

    elif isinstance(texture, ImageTexture):
        idx = _next_texture_slot()
        offset = num_texels[None]
        count = texture.width * texture.height
        if offset + count > MAX_TEXELS:
            raise RuntimeError(f"Maximum number of image texels ({MAX_TEXELS}) exceeded")
        if count > 0:
            _write_texels(offset, texture.pixels)
        num_texels[None] = offset + count
        texture_kinds[idx] = int(TextureKind.IMAGE)
        texture_image_offsets[idx] = offset
        texture_image_widths[idx] = texture.width
        texture_image_heights[idx] = texture.height
        texture_colors[idx] = MISSING_IMAGE_COLOR

    elif isinstance(texture, NoiseTexture):
        noise_id = add_perlin_noise(texture.noise)
        idx = _next_texture_slot()
        texture_kinds[idx] = int(TextureKind.NOISE)
        texture_scales[idx] = texture.scale
        texture_noise_ids[idx] = noise_id
        texture_turbulence_depths[idx] = texture.turbulence_depth
        texture_turbulence_factors[idx] = texture.turbulence_factor

    else:
        idx = _next_texture_slot()
        texture_kinds[idx] = int(TextureKind.SOLID)
        texture_colors[idx] = texture.color

    num_textures[None] = idx + 1
    return idx


def clear_textures() -> None:
    """Forget every registered texture and image texel."""
    num_textures[None] = 0
    num_texels[None] = 0
    clear_perlin_noises()


def get_texture_count() -> int:
    return int(num_textures[None])


# =============================================================================
# Device evaluation
# =============================================================================


@ti.func
def _image_value(texture_id: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    width = texture_image_widths[texture_id]
    height = texture_image_heights[texture_id]
    color = texture_colors[texture_id]
    if width > 0 and height > 0:
        u_clamped = ti.min(ti.max(u, 0.0), 1.0)
        # Image rows run top to bottom, v runs bottom to top
        v_flipped = 1.0 - ti.min(ti.max(v, 0.0), 1.0)
        i = ti.min(ti.cast(u_clamped * width, ti.i32), width - 1)
        j = ti.min(ti.cast(v_flipped * height, ti.i32), height - 1)
        color = texels[texture_image_offsets[texture_id] + j * width + i]
    return color


@ti.func
def _noise_value(texture_id: ti.i32, p: vec3) -> vec3:
    turbulence = perlin_turbulence(
        texture_noise_ids[texture_id], p, texture_turbulence_depths[texture_id]
    )
    phase = texture_scales[texture_id] * p.z + texture_turbulence_factors[texture_id] * turbulence
    return vec3(1.0, 1.0, 1.0) * 0.5 * (1.0 + ti.sin(phase))


@ti.func
def _simple_texture_value(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Evaluate any texture except a checker."""
    kind = texture_kinds[texture_id]
    color = vec3(0.0, 0.0, 0.0)
    if kind == int(TextureKind.SOLID):
        color = texture_colors[texture_id]
    elif kind == int(TextureKind.IMAGE):
        color = _image_value(texture_id, u, v)
    elif kind == int(TextureKind.NOISE):
        color = _noise_value(texture_id, p)
    return color


@ti.func
def texture_value(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Sample a texture at surface coordinates (u, v) and position p.

    Args:
        texture_id: Id returned by ``add_texture``.
        u: First surface parameter.
        v: Second surface parameter.
        p: World-space position of the sample.

    Returns:
        The linear RGB color.
    """
    color = vec3(0.0, 0.0, 0.0)
    if texture_kinds[texture_id] == int(TextureKind.CHECKER):
        inv_scale = texture_scales[texture_id]
        cell = (
            ti.cast(ti.floor(inv_scale * p.x), ti.i32)
            + ti.cast(ti.floor(inv_scale * p.y), ti.i32)
            + ti.cast(ti.floor(inv_scale * p.z), ti.i32)
        )
        sub_id = texture_odd_ids[texture_id]
        if cell & 1 == 0:
            sub_id = texture_even_ids[texture_id]
        color = _simple_texture_value(sub_id, u, v, p)
    else:
        color = _simple_texture_value(texture_id, u, v, p)
    return color
