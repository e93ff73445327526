"""Demo scene builders.

Each builder assembles one of the classic demo scenes with a fresh
SceneManager and returns the built scene together with the camera it is
meant to be viewed through:

- spheres: a field of small random spheres around three large ones
- moving_spheres: the same field with bouncing spheres on a checker ground
- two_checker: two large spheres sharing a checker texture
- earthmap: a globe with an image texture
- perlin_noise: marble spheres textured with Perlin turbulence
- quads: five colored parallelograms around the camera axis
- simple_light: a marble sphere lit by a quad and a sphere light
- cornell_box: the Cornell box with two rotated boxes
- fog_cornell_box: the Cornell box with the boxes replaced by smoke
- all_effects: every primitive, material, texture and medium in one scene

Builders are registered by name in ``SCENES``; ``build_scene`` looks them up.
Host-side randomness (sphere placement, box heights, noise tables) comes from
``SceneBuildOptions.rng``, so a fixed seed reproduces a scene exactly.

Importing this module allocates Taichi fields, so ``ti.init`` must be called
first.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.scenes import SceneBuildOptions, build_scene
    >>> scene, camera = build_scene("cornell_box", SceneBuildOptions(seed=7))
    >>> camera.image_width
    600
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from pathtracer.camera.camera import Camera
from pathtracer.geometry.hittable_list import HittableList
from pathtracer.geometry.medium import ConstantDensityMedium
from pathtracer.geometry.quad import cuboid
from pathtracer.geometry.sphere import Sphere
from pathtracer.geometry.transform import RotateY, Translate
from pathtracer.materials.texture import CheckerTexture, ImageTexture, NoiseTexture, SolidColor
from pathtracer.scene.manager import Scene, SceneManager, SceneOptions

# =============================================================================
# Build Options
# =============================================================================

DEFAULT_EARTH_TEXTURE = "assets/earthmap.jpg"

BLACK_BACKGROUND = (0.0, 0.0, 0.0)


@dataclass
class SceneBuildOptions:
    """Options shared by every demo scene builder.

    Attributes:
        seed: Seed for host-side randomness; None draws fresh entropy.
        earth_texture_path: Image used by the earth texture.
        rng: Random generator derived from ``seed``.
    """

    seed: Optional[int] = None
    earth_texture_path: Union[str, Path] = DEFAULT_EARTH_TEXTURE
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    def noise_seed(self) -> int:
        """Draw a seed for a noise texture's Perlin tables."""
        return int(self.rng.integers(0, 2**32))


SceneBuilder = Callable[[SceneBuildOptions], Tuple[Scene, Camera]]

# =============================================================================
# Sphere Fields
# =============================================================================

SPHERE_FIELD_SIZE = 24
SMALL_SPHERE_RADIUS = 0.2

CHECKER_EVEN = (0.2, 0.3, 0.1)
CHECKER_ODD = (0.9, 0.9, 0.9)
CHECKER_SCALE = 0.32


def _checker_texture() -> CheckerTexture:
    return CheckerTexture(CHECKER_SCALE, SolidColor(CHECKER_EVEN), SolidColor(CHECKER_ODD))


def _random_material(manager: SceneManager, rng: np.random.Generator) -> int:
    """Pick a diffuse (80%), metal (15%) or glass (5%) material."""
    choose = rng.random()
    if choose < 0.8:
        albedo = rng.random(3) * rng.random(3)
        return manager.add_lambertian_material(tuple(albedo))
    if choose < 0.95:
        albedo = rng.uniform(0.5, 1.0, 3)
        return manager.add_metal_material(tuple(albedo), fuzz=float(rng.random()))
    return manager.add_dielectric_material(1.5)


def _sphere_field(manager: SceneManager, rng: np.random.Generator, moving: bool) -> None:
    half = SPHERE_FIELD_SIZE // 2
    for i in range(-half, half):
        for j in range(-half, half):
            center = (i + 0.9 * rng.random(), SMALL_SPHERE_RADIUS, j + 0.9 * rng.random())
            material_id = _random_material(manager, rng)
            if moving:
                center_to = (center[0], center[1] + 0.5 * rng.random(), center[2])
                manager.add_moving_sphere(center, center_to, SMALL_SPHERE_RADIUS, material_id)
            else:
                manager.add_sphere(center, SMALL_SPHERE_RADIUS, material_id)


def _add_feature_spheres(manager: SceneManager, ground_material: int) -> None:
    glass = manager.add_dielectric_material(1.5)
    brown = manager.add_lambertian_material((0.4, 0.2, 0.1))
    metal = manager.add_metal_material((0.7, 0.6, 0.5), fuzz=0.0)

    manager.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground_material)
    manager.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    manager.add_sphere((-4.0, 1.0, 0.0), 1.0, brown)
    manager.add_sphere((4.0, 1.0, 0.0), 1.0, metal)


def _sphere_field_camera() -> Camera:
    return Camera(
        image_width=1200,
        aspect_ratio=16.0 / 9.0,
        samples_per_pixel=500,
        max_depth=50,
        vfov=20.0,
        look_from=(13.0, 2.0, 3.0),
        look_at=(0.0, 0.0, 0.0),
        defocus_angle=0.6,
        focus_dist=10.0,
    )


def _overview_camera(look_from, look_at=(0.0, 0.0, 0.0)) -> Camera:
    return Camera(
        image_width=1200,
        aspect_ratio=16.0 / 9.0,
        samples_per_pixel=100,
        max_depth=50,
        vfov=20.0,
        look_from=look_from,
        look_at=look_at,
    )


def build_spheres(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Random small spheres around a glass, a diffuse and a metal sphere."""
    manager = SceneManager()
    _sphere_field(manager, options.rng, moving=False)
    _add_feature_spheres(manager, manager.add_lambertian_material((0.5, 0.5, 0.5)))
    return manager.build(), _sphere_field_camera()


def build_moving_spheres(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Sphere field with motion-blurred spheres on a checkered ground."""
    manager = SceneManager()
    _sphere_field(manager, options.rng, moving=True)
    _add_feature_spheres(manager, manager.add_lambertian_material(_checker_texture()))
    return manager.build(), _sphere_field_camera()


# =============================================================================
# Texture Showcases
# =============================================================================


def build_two_checker(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Two large spheres sharing one checker material."""
    manager = SceneManager()
    checker = manager.add_lambertian_material(_checker_texture())
    manager.add_sphere((0.0, -10.0, 0.0), 10.0, checker)
    manager.add_sphere((0.0, 10.0, 0.0), 10.0, checker)
    return manager.build(), _overview_camera((13.0, 2.0, 3.0))


def build_earthmap(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """A globe textured with the earth image.

    Raises:
        ValueError: If the earth image cannot be loaded.
    """
    manager = SceneManager()
    earth = manager.add_lambertian_material(ImageTexture.from_file(options.earth_texture_path))
    manager.add_sphere((0.0, 0.0, 0.0), 1.0, earth)
    return manager.build(), _overview_camera((12.0, 0.3, 0.0))


def build_perlin_noise(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Ground and sphere sharing a marble noise texture."""
    manager = SceneManager()
    marble = manager.add_lambertian_material(NoiseTexture(4.0, seed=options.noise_seed()))
    manager.add_sphere((0.0, -1000.0, 0.0), 1000.0, marble)
    manager.add_sphere((0.0, 2.0, 0.0), 2.0, marble)
    return manager.build(), _overview_camera((13.0, 2.0, 3.0))


def build_quads(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Five colored quads facing the camera axis."""
    manager = SceneManager()
    left_red = manager.add_lambertian_material((1.0, 0.2, 0.2))
    back_green = manager.add_lambertian_material((0.2, 1.0, 0.2))
    right_blue = manager.add_lambertian_material((0.2, 0.2, 1.0))
    upper_orange = manager.add_lambertian_material((1.0, 0.5, 0.0))
    lower_teal = manager.add_lambertian_material((0.2, 0.8, 0.8))

    manager.add_quad((-3.0, -2.0, 5.0), (0.0, 0.0, -4.0), (0.0, 4.0, 0.0), left_red)
    manager.add_quad((-2.0, -2.0, 0.0), (4.0, 0.0, 0.0), (0.0, 4.0, 0.0), back_green)
    manager.add_quad((3.0, -2.0, 1.0), (0.0, 0.0, 4.0), (0.0, 4.0, 0.0), right_blue)
    manager.add_quad((-2.0, 3.0, 1.0), (4.0, 0.0, 0.0), (0.0, 0.0, 4.0), upper_orange)
    manager.add_quad((-2.0, -3.0, 5.0), (4.0, 0.0, 0.0), (0.0, 0.0, -4.0), lower_teal)

    camera = Camera(
        image_width=400,
        aspect_ratio=1.0,
        samples_per_pixel=100,
        max_depth=50,
        vfov=80.0,
        look_from=(0.0, 0.0, 9.0),
        look_at=(0.0, 0.0, 0.0),
    )
    return manager.build(), camera


# =============================================================================
# Lit Scenes
# =============================================================================


def build_simple_light(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """A marble sphere lit by a rectangular and a spherical light."""
    manager = SceneManager(SceneOptions(background=BLACK_BACKGROUND))
    marble = manager.add_lambertian_material(NoiseTexture(4.0, seed=options.noise_seed()))
    # Brighter than (1, 1, 1) so it lights its surroundings
    light = manager.add_diffuse_light_material((4.0, 4.0, 4.0))

    manager.add_sphere((0.0, -1000.0, 0.0), 1000.0, marble)
    manager.add_sphere((0.0, 2.0, 0.0), 2.0, marble)
    manager.add_quad((3.0, 1.0, -2.0), (2.0, 0.0, 0.0), (0.0, 2.0, 0.0), light)
    manager.add_sphere((0.0, 7.0, 0.0), 2.0, light)
    return manager.build(), _overview_camera((26.0, 3.0, 6.0), look_at=(0.0, 2.0, 0.0))


# Classic Cornell box dimensions
BOX_SIZE = 555.0

RED_WALL_ALBEDO = (0.65, 0.05, 0.05)
GREEN_WALL_ALBEDO = (0.12, 0.45, 0.15)
WHITE_WALL_ALBEDO = (0.73, 0.73, 0.73)
CORNELL_LIGHT_EMISSION = (15.0, 15.0, 15.0)

# Smoke density inside the fog box volumes
FOG_DENSITY = 0.005
# Just above the smallest accepted medium density
MIST_DENSITY = 0.0002


def _cornell_walls(manager: SceneManager) -> int:
    """Add the five walls and the ceiling light; return the white material."""
    light = manager.add_diffuse_light_material(CORNELL_LIGHT_EMISSION)
    red = manager.add_lambertian_material(RED_WALL_ALBEDO)
    white = manager.add_lambertian_material(WHITE_WALL_ALBEDO)
    green = manager.add_lambertian_material(GREEN_WALL_ALBEDO)

    s = BOX_SIZE
    manager.add_quad((s, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), green)
    manager.add_quad((0.0, 0.0, 0.0), (0.0, s, 0.0), (0.0, 0.0, s), red)
    manager.add_quad((0.0, 0.0, 0.0), (s, 0.0, 0.0), (0.0, 0.0, s), white)
    manager.add_quad((s, s, s), (-s, 0.0, 0.0), (0.0, 0.0, -s), white)
    manager.add_quad((0.0, 0.0, s), (s, 0.0, 0.0), (0.0, s, 0.0), white)
    manager.add_quad((343.0, 554.0, 332.0), (-130.0, 0.0, 0.0), (0.0, 0.0, -105.0), light)
    return white


def _cornell_boxes(material_id: int) -> Tuple[Translate, Translate]:
    """The tall and the short box, rotated and placed on the floor."""
    tall = cuboid((0.0, 0.0, 0.0), (165.0, 330.0, 165.0), material_id)
    tall = Translate(RotateY(tall, 15.0), (265.0, 0.0, 295.0))

    short = cuboid((0.0, 0.0, 0.0), (165.0, 165.0, 165.0), material_id)
    short = Translate(RotateY(short, -18.0), (130.0, 0.0, 65.0))
    return tall, short


def _cornell_camera() -> Camera:
    return Camera(
        image_width=600,
        aspect_ratio=1.0,
        samples_per_pixel=200,
        max_depth=50,
        vfov=40.0,
        look_from=(278.0, 278.0, -800.0),
        look_at=(278.0, 278.0, 0.0),
    )


def build_cornell_box(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """The Cornell box with a tall and a short white box."""
    manager = SceneManager(SceneOptions(background=BLACK_BACKGROUND))
    white = _cornell_walls(manager)
    for box in _cornell_boxes(white):
        manager.add(box)
    return manager.build(), _cornell_camera()


def build_fog_cornell_box(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """The Cornell box with black and white smoke in place of the boxes."""
    manager = SceneManager(SceneOptions(background=BLACK_BACKGROUND))
    white = _cornell_walls(manager)
    white_smoke = manager.add_isotropic_material((1.0, 1.0, 1.0))
    black_smoke = manager.add_isotropic_material((0.0, 0.0, 0.0))

    tall, short = _cornell_boxes(white)
    manager.add(ConstantDensityMedium(tall, FOG_DENSITY, black_smoke))
    manager.add(ConstantDensityMedium(short, FOG_DENSITY, white_smoke))
    return manager.build(), _cornell_camera()


def build_all_effects(options: SceneBuildOptions) -> Tuple[Scene, Camera]:
    """Every feature at once: boxes, media, motion blur and all textures.

    Raises:
        ValueError: If the earth image cannot be loaded.
    """
    rng = options.rng
    manager = SceneManager(SceneOptions(background=BLACK_BACKGROUND))

    # Ground of boxes with random heights
    ground = manager.add_lambertian_material((0.48, 0.83, 0.53))
    boxes_per_side = 20
    w = 100.0
    for i in range(boxes_per_side):
        for j in range(boxes_per_side):
            x0 = -1000.0 + i * w
            z0 = -1000.0 + j * w
            y1 = rng.uniform(1.0, 101.0)
            manager.add_box((x0, 0.0, z0), (x0 + w, y1, z0 + w), ground)

    light = manager.add_diffuse_light_material((7.0, 7.0, 7.0))
    manager.add_quad((123.0, 554.0, 147.0), (300.0, 0.0, 0.0), (0.0, 0.0, 265.0), light)

    orange = manager.add_lambertian_material((0.7, 0.3, 0.1))
    manager.add_moving_sphere((400.0, 400.0, 200.0), (430.0, 400.0, 200.0), 50.0, orange)

    glass = manager.add_dielectric_material(1.5)
    manager.add_sphere((260.0, 150.0, 45.0), 50.0, glass)

    metal = manager.add_metal_material((0.8, 0.8, 0.9), fuzz=1.0)
    manager.add_sphere((0.0, 150.0, 145.0), 50.0, metal)

    # Blue subsurface sphere: a glass shell filled with a dense medium
    boundary = manager.add_sphere((360.0, 150.0, 145.0), 70.0, glass)
    blue_smoke = manager.add_isotropic_material((0.2, 0.4, 0.9))
    manager.add(ConstantDensityMedium(boundary, 0.2, blue_smoke))

    # Thin mist over the whole scene
    mist = manager.add_isotropic_material((1.0, 1.0, 1.0))
    manager.add(ConstantDensityMedium(Sphere((0.0, 0.0, 0.0), 5000.0, glass), MIST_DENSITY, mist))

    earth = manager.add_lambertian_material(ImageTexture.from_file(options.earth_texture_path))
    manager.add_sphere((400.0, 200.0, 400.0), 100.0, earth)

    marble = manager.add_lambertian_material(NoiseTexture(0.2, seed=options.noise_seed()))
    manager.add_sphere((220.0, 280.0, 300.0), 80.0, marble)

    white = manager.add_lambertian_material(WHITE_WALL_ALBEDO)
    cluster = HittableList(
        [Sphere(tuple(rng.uniform(0.0, 165.0, 3)), 10.0, white) for _ in range(1000)]
    )
    manager.add(Translate(RotateY(cluster, 15.0), (-100.0, 270.0, 395.0)))

    camera = Camera(
        image_width=800,
        aspect_ratio=1.0,
        samples_per_pixel=250,
        max_depth=40,
        vfov=40.0,
        look_from=(478.0, 278.0, -600.0),
        look_at=(278.0, 278.0, 0.0),
    )
    return manager.build(), camera


# =============================================================================
# Registry
# =============================================================================

SCENES: Dict[str, SceneBuilder] = {
    "spheres": build_spheres,
    "moving_spheres": build_moving_spheres,
    "two_checker": build_two_checker,
    "earthmap": build_earthmap,
    "perlin_noise": build_perlin_noise,
    "quads": build_quads,
    "simple_light": build_simple_light,
    "cornell_box": build_cornell_box,
    "fog_cornell_box": build_fog_cornell_box,
    "all_effects": build_all_effects,
}


def build_scene(name: str, options: Optional[SceneBuildOptions] = None) -> Tuple[Scene, Camera]:
    """Build a demo scene by name.

    Args:
        name: One of the keys of ``SCENES``.
        options: Build options; defaults to ``SceneBuildOptions()``.

    Returns:
        A tuple of (Scene, Camera).

    Raises:
        ValueError: If the name is unknown or the scene cannot be built.
    """
    builder = SCENES.get(name)
    if builder is None:
        raise ValueError(f"Unknown scene {name!r}, expected one of {', '.join(SCENES)}")
    return builder(options if options is not None else SceneBuildOptions())
