"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls, which would
    invalidate the fields declared by already imported modules.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Clear scene storage and every registry before and after each test."""
    # Import here so Taichi is initialized before fields are declared
    from pathtracer.camera.camera import reset_camera
    from pathtracer.core.integrator import clear_render_target
    from pathtracer.materials.dielectric import clear_dielectric_materials
    from pathtracer.materials.diffuse_light import clear_diffuse_light_materials
    from pathtracer.materials.isotropic import clear_isotropic_materials
    from pathtracer.materials.lambertian import clear_lambertian_materials
    from pathtracer.materials.metal import clear_metal_materials
    from pathtracer.materials.texture import clear_textures
    from pathtracer.scene.intersection import clear_scene_storage
    from pathtracer.scene.manager import _clear_material_tracking

    def _clear_all():
        clear_scene_storage()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_diffuse_light_materials()
        clear_isotropic_materials()
        clear_textures()
        _clear_material_tracking()
        clear_render_target()
        reset_camera()

    _clear_all()
    yield
    _clear_all()
