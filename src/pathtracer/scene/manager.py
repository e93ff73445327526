"""Unified scene manager coordinating objects, materials and textures.

This module provides a high-level scene building API. The SceneManager
assigns every material a unified material id and records which material type
(and which slot of that type's registry) the id refers to, enabling material
dispatch in the path tracer. Objects reference materials by unified id only.

The SceneManager maintains:
- A unified material_id space across all material types
- Mapping from material_id to (material_type, type_local_index)
- The scene's top-level objects and per-scene options (background)
- ``build()``, which validates material references and constructs the BVH

Registries live in module-level Taichi fields, so only one SceneManager owns
them at a time: creating a new manager (or calling ``clear``) clears every
registry, and scenes built before that can no longer be uploaded.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> manager = SceneManager()
    >>> red = manager.add_lambertian_material((0.8, 0.3, 0.3))
    >>> manager.add_sphere((0.0, 0.0, -1.0), 0.5, red)
    >>> scene = manager.build()
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import Vec3, as_vec3
from pathtracer.geometry.bvh import BVH
from pathtracer.geometry.hittable_list import Hittable, HittableList
from pathtracer.geometry.quad import Quad, cuboid
from pathtracer.geometry.sphere import MovingSphere, Sphere
from pathtracer.materials.dielectric import (
    Dielectric,
    add_dielectric_material,
    clear_dielectric_materials,
)
from pathtracer.materials.diffuse_light import (
    DiffuseLight,
    add_diffuse_light_material,
    clear_diffuse_light_materials,
)
from pathtracer.materials.isotropic import (
    Isotropic,
    add_isotropic_material,
    clear_isotropic_materials,
)
from pathtracer.materials.lambertian import (
    Lambertian,
    add_lambertian_material,
    clear_lambertian_materials,
)
from pathtracer.materials.metal import Metal, add_metal_material, clear_metal_materials
from pathtracer.materials.texture import Texture, add_texture, clear_textures
from pathtracer.scene.intersection import SceneStats, clear_scene_storage, upload_bvh

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

Material = Union[Lambertian, Metal, Dielectric, DiffuseLight, Isotropic]


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    DIFFUSE_LIGHT = 3
    ISOTROPIC = 4


# Maximum number of materials across all types
MAX_MATERIALS = 8192

# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
# (e.g., if material_id 5 is the 2nd metal material, material_type_indices[5] = 1)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    """Clear the material tracking fields."""
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Returns:
        The material type as an integer (see MaterialType enum), or -1 for
        invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the index into the type-specific registry for a material ID.

    Returns:
        The type-local index, or -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


# =============================================================================
# Scene Data Structures
# =============================================================================


@dataclass
class SceneOptions:
    """Per-scene rendering options.

    Attributes:
        background: Radiance returned by rays that miss every object.
        sky_gradient: If True, misses return a vertical blend from white to
            light blue instead of the flat background.
    """

    background: Vec3 = (0.7, 0.8, 1.0)
    sky_gradient: bool = False

    def __post_init__(self) -> None:
        self.background = as_vec3(self.background)


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material registry.
        material: The host-side material description.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    material: Material


@dataclass(frozen=True, eq=False)
class Scene:
    """A built, immutable scene ready for rendering.

    Attributes:
        bvh: Hierarchy over the top-level objects.
        materials: The material table, indexed by material id.
        options: Background settings.
        generation: Registry generation the materials were registered in.
    """

    bvh: BVH
    materials: Tuple[MaterialInfo, ...]
    options: SceneOptions
    generation: int = field(repr=False)


# Incremented whenever the registries are cleared
_registry_generation = 0


class SceneManager:
    """Unified scene builder coordinating objects and materials.

    Attributes:
        materials: MaterialInfo for every registered material, by id.
        objects: The scene's top-level objects.
        options: Per-scene rendering options.

    Example:
        >>> manager = SceneManager()
        >>> red_diffuse = manager.add_lambertian_material((0.8, 0.1, 0.1))
        >>> gold_metal = manager.add_metal_material((0.8, 0.6, 0.2), fuzz=0.3)
        >>> glass = manager.add_dielectric_material(1.5)
        >>> manager.add_sphere((0, 0, -1), 0.5, red_diffuse)
        >>> manager.add_sphere((1, 0, -1), 0.5, gold_metal)
        >>> manager.add_sphere((-1, 0, -1), 0.5, glass)
    """

    def __init__(self, options: Optional[SceneOptions] = None) -> None:
        self.materials: List[MaterialInfo] = []
        self.objects = HittableList()
        self.options = options if options is not None else SceneOptions()
        self._texture_ids: Dict[int, int] = {}
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        global _registry_generation

        clear_scene_storage()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_diffuse_light_materials()
        clear_isotropic_materials()
        clear_textures()
        _clear_material_tracking()

        self.materials.clear()
        self.objects = HittableList()
        self._texture_ids.clear()
        _registry_generation += 1

    def clear(self) -> None:
        """Clear the entire scene (objects, materials and textures)."""
        self._clear_all()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _texture_id(self, texture: Texture) -> int:
        # Textures shared between materials are uploaded once
        key = id(texture)
        if key not in self._texture_ids:
            self._texture_ids[key] = add_texture(texture)
        return self._texture_ids[key]

    def add_material(self, material: Material) -> int:
        """Register a material and return its unified material id.

        Args:
            material: Any supported material description.

        Returns:
            The unified material ID.

        Raises:
            RuntimeError: If a material or texture registry is full.
            TypeError: If ``material`` is not a supported material.
        """
        if isinstance(material, Lambertian):
            material_type = MaterialType.LAMBERTIAN
            type_index = add_lambertian_material(self._texture_id(material.texture))
        elif isinstance(material, Metal):
            material_type = MaterialType.METAL
            type_index = add_metal_material(material.albedo, material.fuzz)
        elif isinstance(material, Dielectric):
            material_type = MaterialType.DIELECTRIC
            type_index = add_dielectric_material(material.ior)
        elif isinstance(material, DiffuseLight):
            material_type = MaterialType.DIFFUSE_LIGHT
            type_index = add_diffuse_light_material(self._texture_id(material.texture))
        elif isinstance(material, Isotropic):
            material_type = MaterialType.ISOTROPIC
            type_index = add_isotropic_material(self._texture_id(material.texture))
        else:
            raise TypeError(f"Unsupported material type: {type(material).__name__}")

        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(MaterialInfo(material_id, material_type, type_index, material))
        return material_id

    def add_lambertian_material(self, albedo: Union[Texture, Sequence[float]]) -> int:
        """Add a diffuse material with a texture or constant albedo."""
        return self.add_material(Lambertian(albedo))

    def add_metal_material(self, albedo: Sequence[float], fuzz: float = 0.0) -> int:
        """Add a metal material.

        Raises:
            ValueError: If an albedo component is outside [0, 1] or fuzz < 0.
        """
        return self.add_material(Metal(albedo, fuzz))

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric material.

        Raises:
            ValueError: If ior is not positive.
        """
        return self.add_material(Dielectric(ior))

    def add_diffuse_light_material(self, emission: Union[Texture, Sequence[float]]) -> int:
        """Add an emissive material with a texture or constant radiance."""
        return self.add_material(DiffuseLight(emission))

    def add_isotropic_material(self, albedo: Union[Texture, Sequence[float]]) -> int:
        """Add an isotropic phase function for participating media."""
        return self.add_material(Isotropic(albedo))

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return len(self.materials)

    def get_material_info(self, material_id: int) -> Optional[MaterialInfo]:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> Optional[MaterialType]:
        """Get the material type for a given material ID (Python side).

        For lookups inside kernels, use the get_material_type() Taichi function.
        """
        info = self.get_material_info(material_id)
        return info.material_type if info is not None else None

    # =========================================================================
    # Object Management
    # =========================================================================

    def _validate_materials(self, obj: Hittable) -> None:
        for material_id in obj.material_ids():
            if not 0 <= material_id < len(self.materials):
                raise ValueError(
                    f"Invalid material_id {material_id}: scene has {len(self.materials)} materials"
                )

    def add(self, obj: Hittable) -> Hittable:
        """Add a top-level object to the scene.

        Args:
            obj: Any hittable (primitives, decorators, media, lists).

        Returns:
            The object, for chaining.

        Raises:
            ValueError: If the object references an unknown material id.
        """
        self._validate_materials(obj)
        self.objects.add(obj)
        return obj

    def add_sphere(self, center: Sequence[float], radius: float, material_id: int) -> Sphere:
        """Add a static sphere."""
        return self.add(Sphere(center, radius, material_id))

    def add_moving_sphere(
        self,
        center_from: Sequence[float],
        center_to: Sequence[float],
        radius: float,
        material_id: int,
    ) -> MovingSphere:
        """Add a sphere moving from ``center_from`` (time 0) to ``center_to`` (time 1)."""
        return self.add(MovingSphere(center_from, center_to, radius, material_id))

    def add_quad(
        self,
        start: Sequence[float],
        u: Sequence[float],
        v: Sequence[float],
        material_id: int,
    ) -> Quad:
        """Add a parallelogram with corner ``start`` and edges ``u`` and ``v``."""
        return self.add(Quad(start, u, v, material_id))

    def add_box(self, a: Sequence[float], b: Sequence[float], material_id: int) -> HittableList:
        """Add an axis-aligned box spanning opposite corners ``a`` and ``b``."""
        return self.add(cuboid(a, b, material_id))

    def get_object_count(self) -> int:
        return len(self.objects)

    # =========================================================================
    # Build / Upload
    # =========================================================================

    def build(self) -> Scene:
        """Validate the scene and construct its BVH.

        Returns:
            An immutable Scene.

        Raises:
            ValueError: If the scene is empty or references unknown materials.
        """
        if len(self.objects) == 0:
            raise ValueError("Cannot build an empty scene")
        for obj in self.objects:
            self._validate_materials(obj)

        bvh = BVH.build(self.objects.objects)
        logger.info(
            "Built scene: %d objects, %d materials, %d BVH nodes (depth %d)",
            len(self.objects),
            len(self.materials),
            len(bvh),
            bvh.depth(),
        )
        return Scene(bvh, tuple(self.materials), self.options, _registry_generation)


def upload_scene(scene: Scene) -> SceneStats:
    """Upload a built scene's geometry into the device fields.

    Args:
        scene: A scene built since the registries were last cleared.

    Returns:
        Counts of uploaded primitives, media and nodes.

    Raises:
        RuntimeError: If the scene's materials were cleared since it was built,
            or if the scene exceeds device capacities.
    """
    if scene.generation != _registry_generation:
        raise RuntimeError(
            "Scene materials are no longer registered; the registries were cleared since it was built"
        )
    return upload_bvh(scene.bvh)
