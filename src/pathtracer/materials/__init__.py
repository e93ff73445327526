"""Materials and textures.

Components:
    texture: Solid, checker, image and noise textures
    perlin: Perlin gradient noise and turbulence
    lambertian: Ideal diffuse reflection
    metal: Mirror reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    diffuse_light: Emissive surfaces
    isotropic: Uniform phase function for participating media

Each material has a host-side description (a dataclass), a per-type Taichi
registry filled by ``add_*_material`` and a device-side scatter or emit
function. Materials are referenced from geometry by the unified material id
assigned by ``pathtracer.scene.manager.SceneManager``.

Importing this package allocates Taichi fields, so ``ti.init`` must be called
first.
"""

from .dielectric import Dielectric, add_dielectric_material, clear_dielectric_materials, scatter_dielectric
from .diffuse_light import (
    DiffuseLight,
    add_diffuse_light_material,
    clear_diffuse_light_materials,
    emit_diffuse_light,
)
from .isotropic import Isotropic, add_isotropic_material, clear_isotropic_materials, scatter_isotropic
from .lambertian import Lambertian, add_lambertian_material, clear_lambertian_materials, scatter_lambertian
from .metal import Metal, add_metal_material, clear_metal_materials, scatter_metal
from .perlin import PerlinNoise
from .texture import (
    CheckerTexture,
    ImageTexture,
    NoiseTexture,
    SolidColor,
    Texture,
    TextureKind,
    add_texture,
    clear_textures,
    texture_value,
)

__all__ = [
    "Dielectric",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "scatter_dielectric",
    "DiffuseLight",
    "add_diffuse_light_material",
    "clear_diffuse_light_materials",
    "emit_diffuse_light",
    "Isotropic",
    "add_isotropic_material",
    "clear_isotropic_materials",
    "scatter_isotropic",
    "Lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "scatter_lambertian",
    "Metal",
    "add_metal_material",
    "clear_metal_materials",
    "scatter_metal",
    "PerlinNoise",
    "CheckerTexture",
    "ImageTexture",
    "NoiseTexture",
    "SolidColor",
    "Texture",
    "TextureKind",
    "add_texture",
    "clear_textures",
    "texture_value",
]
