"""Import checks for modules that compile Taichi functions and kernels."""

import importlib

import pytest

DEVICE_MODULES = [
    "pathtracer.core.ray",
    "pathtracer.core.integrator",
    "pathtracer.geometry.aabb",
    "pathtracer.geometry.hit_record",
    "pathtracer.geometry.sphere",
    "pathtracer.geometry.quad",
    "pathtracer.geometry.transform",
    "pathtracer.geometry.medium",
    "pathtracer.materials.perlin",
    "pathtracer.materials.texture",
    "pathtracer.materials.lambertian",
    "pathtracer.materials.metal",
    "pathtracer.materials.dielectric",
    "pathtracer.materials.diffuse_light",
    "pathtracer.materials.isotropic",
    "pathtracer.scene.intersection",
    "pathtracer.scene.manager",
    "pathtracer.camera.camera",
]


@pytest.mark.parametrize("name", DEVICE_MODULES)
def test_device_module_imports(name):
    module = importlib.import_module(name)
    # Taichi resolves signature annotations at decoration time; they must not be postponed strings
    assert not hasattr(module, "annotations")


def test_host_forward_references_resolve():
    import typing

    from pathtracer.camera.camera import Camera, CameraGeometry
    from pathtracer.geometry.aabb import AABB, Interval
    from pathtracer.geometry.transform import RigidTransform

    assert typing.get_type_hints(AABB.merge)["return"] is AABB
    assert typing.get_type_hints(Interval.union)["other"] is Interval
    assert typing.get_type_hints(RigidTransform.compose)["return"] is RigidTransform
    assert typing.get_type_hints(Camera.derive)["return"] is CameraGeometry
