"""Constant-density participating media.

A ConstantDensityMedium fills the inside of a closed boundary object with a
homogeneous fog. A ray entering the boundary travels a random free-flight
distance, exponentially distributed with rate ``density``, before scattering;
if that distance exceeds the chord through the boundary, the ray passes
through untouched.

The scatter point's normal is arbitrary: isotropic phase functions ignore it.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

import taichi as ti

from pathtracer.geometry.aabb import AABB

if TYPE_CHECKING:
    from pathtracer.geometry.hittable_list import Hittable

# Densities at or below this magnitude are rejected
MIN_DENSITY = 1e-4

# Offset past the entry point when searching for the exit point
EXIT_SEARCH_EPSILON = 1e-4


@dataclass
class ConstantDensityMedium:
    """Homogeneous volume bounded by a closed object.

    Attributes:
        boundary: Closed object delimiting the volume (must not itself contain
            a medium).
        density: Scattering events per unit length.
        phase_material_id: Material used at scatter points (usually Isotropic).
        neg_inv_density: -1 / density, used to sample free-flight distances.
        bounding_box: The boundary's box.
    """

    boundary: "Hittable"
    density: float
    phase_material_id: int
    neg_inv_density: float = field(init=False, repr=False, compare=False)
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.density = float(self.density)
        if abs(self.density) <= MIN_DENSITY:
            raise ValueError(
                f"Medium density must exceed {MIN_DENSITY} in magnitude, got {self.density}"
            )
        self.neg_inv_density = -1.0 / self.density
        self.bounding_box = self.boundary.bounding_box

    def material_ids(self) -> Iterator[int]:
        yield self.phase_material_id


@ti.func
def sample_free_flight(neg_inv_density: ti.f32) -> ti.f32:
    """Sample an exponential free-flight distance: -ln(U) / density.

    U is drawn from (0, 1] so the logarithm is always finite.
    """
    return neg_inv_density * ti.log(1.0 - ti.random(ti.f32))
