"""Perlin gradient noise and turbulence.

Each PerlinNoise owns 256 random unit gradient vectors and three random
permutations of 0..255 (one per axis), generated on the host from an explicit
``numpy.random.Generator`` so that noise patterns are reproducible. The
tables are uploaded into Taichi fields and evaluated inside kernels with
Hermite-smoothed trilinear interpolation of the lattice gradients.

Turbulence sums several octaves of noise, doubling the frequency and halving
the amplitude at each octave, and returns the absolute value of the sum.

Example:
    >>> import numpy as np
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.perlin import PerlinNoise, add_perlin_noise
    >>> noise = PerlinNoise.generate(np.random.default_rng(7))
    >>> noise_id = add_perlin_noise(noise)
    >>> # Use perlin_turbulence(noise_id, p, 7) within a Taichi kernel
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

# Lattice size; must be a power of two for the "& (POINT_COUNT - 1)" wrap
POINT_COUNT = 256

# Maximum number of distinct noise generators in a scene
MAX_PERLIN_NOISES = 64


@dataclass(frozen=True, eq=False)
class PerlinNoise:
    """Host-side Perlin noise tables.

    Attributes:
        gradients: (256, 3) array of random unit vectors.
        permutations: (3, 256) array; row k permutes lattice coordinates
            along axis k.
    """

    gradients: np.ndarray
    permutations: np.ndarray

    @classmethod
    def generate(cls, rng: Optional[np.random.Generator] = None) -> "PerlinNoise":
        """Generate fresh noise tables.

        Args:
            rng: Random generator to draw from. A new unseeded generator is
                used when omitted.
        """
        if rng is None:
            rng = np.random.default_rng()
        gradients = rng.uniform(-1.0, 1.0, size=(POINT_COUNT, 3))
        norms = np.linalg.norm(gradients, axis=1, keepdims=True)
        # A zero vector has probability ~0, but normalizing it would give NaN
        norms[norms == 0.0] = 1.0
        gradients = gradients / norms
        permutations = np.stack([rng.permutation(POINT_COUNT) for _ in range(3)])
        return cls(gradients.astype(np.float32), permutations.astype(np.int32))


# =============================================================================
# Device storage
# =============================================================================

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_PERLIN_NOISES, POINT_COUNT))
perlin_permutations = ti.field(dtype=ti.i32, shape=(MAX_PERLIN_NOISES, 3, POINT_COUNT))
num_perlin_noises = ti.field(dtype=ti.i32, shape=())


@ti.kernel
def _write_tables(
    index: ti.i32,
    gradients: ti.types.ndarray(),
    permutations: ti.types.ndarray(),
):
    for i in range(POINT_COUNT):
        perlin_gradients[index, i] = vec3(gradients[i, 0], gradients[i, 1], gradients[i, 2])
        for axis in ti.static(range(3)):
            perlin_permutations[index, axis, i] = permutations[axis, i]


def add_perlin_noise(noise: PerlinNoise) -> int:
    """Upload a noise generator's tables.

    Args:
        noise: The tables to upload.

    Returns:
        The index of the uploaded generator.

    Raises:
        RuntimeError: If the maximum number of noise generators is exceeded.
    """
    idx = num_perlin_noises[None]
    if idx >= MAX_PERLIN_NOISES:
        raise RuntimeError(f"Maximum number of noise generators ({MAX_PERLIN_NOISES}) exceeded")
    _write_tables(idx, noise.gradients, noise.permutations)
    num_perlin_noises[None] = idx + 1
    return idx


def clear_perlin_noises() -> None:
    """Forget every uploaded noise generator."""
    num_perlin_noises[None] = 0


def get_perlin_noise_count() -> int:
    return int(num_perlin_noises[None])


# =============================================================================
# Device evaluation
# =============================================================================


@ti.func
def perlin_noise(index: ti.i32, p: vec3) -> ti.f32:
    """Evaluate gradient noise at a point; the result lies roughly in [-1, 1]."""
    fx = ti.floor(p.x)
    fy = ti.floor(p.y)
    fz = ti.floor(p.z)
    u = p.x - fx
    v = p.y - fy
    w = p.z - fz
    i = ti.cast(fx, ti.i32)
    j = ti.cast(fy, ti.i32)
    k = ti.cast(fz, ti.i32)

    # Hermite smoothing
    uu = u * u * (3.0 - 2.0 * u)
    vv = v * v * (3.0 - 2.0 * v)
    ww = w * w * (3.0 - 2.0 * w)

    mask = POINT_COUNT - 1
    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                hashed = (
                    perlin_permutations[index, 0, (i + di) & mask]
                    ^ perlin_permutations[index, 1, (j + dj) & mask]
                    ^ perlin_permutations[index, 2, (k + dk) & mask]
                )
                gradient = perlin_gradients[index, hashed]
                weight = vec3(u - di, v - dj, w - dk)
                accum += (
                    (di * uu + (1 - di) * (1.0 - uu))
                    * (dj * vv + (1 - dj) * (1.0 - vv))
                    * (dk * ww + (1 - dk) * (1.0 - ww))
                    * tm.dot(gradient, weight)
                )
    return accum


@ti.func
def perlin_turbulence(index: ti.i32, p: vec3, depth: ti.i32) -> ti.f32:
    """Sum ``depth`` octaves of noise and return the absolute value."""
    accum = 0.0
    temp_p = p
    weight = 1.0
    for _ in range(depth):
        accum += weight * perlin_noise(index, temp_p)
        weight *= 0.5
        temp_p *= 2.0
    return ti.abs(accum)
