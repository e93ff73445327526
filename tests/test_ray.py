"""Unit tests for ray helpers and sampling utilities.

Tests cover:
- Ray construction and evaluation
- Reflection and refraction (Snell's law, ratio 1)
- Schlick reflectance limits
- Random vector sampling
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestRayBasics:
    def test_make_ray_normalizes_direction(self):
        from pathtracer.core.ray import make_ray, ray_at, vec3

        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        point = ti.Vector.field(3, dtype=ti.f32, shape=())
        time = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(1.0, 0.0, 0.0), vec3(0.0, 0.0, -3.0), 0.25)
            direction[None] = ray.direction
            point[None] = ray_at(ray, 2.0)
            time[None] = ray.time

        test_kernel()
        assert np.allclose(direction[None].to_numpy(), [0.0, 0.0, -1.0])
        assert np.allclose(point[None].to_numpy(), [1.0, 0.0, -2.0])
        assert time[None] == pytest.approx(0.25)

    def test_near_zero(self):
        from pathtracer.core.ray import near_zero, vec3

        results = ti.field(dtype=ti.i32, shape=2)

        @ti.kernel
        def test_kernel():
            results[0] = near_zero(vec3(1e-9, -1e-9, 0.0))
            results[1] = near_zero(vec3(1e-9, 1e-3, 0.0))

        test_kernel()
        assert results[0] == 1
        assert results[1] == 0


class TestReflectRefract:
    def test_reflect_mirrors_about_normal(self):
        from pathtracer.core.ray import reflect, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = reflect(vec3(1.0, -1.0, 0.0), vec3(0.0, 1.0, 0.0))

        test_kernel()
        assert np.allclose(result[None].to_numpy(), [1.0, 1.0, 0.0])

    def test_refract_ratio_one_does_not_bend(self):
        from pathtracer.core.ray import refract, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(0.3, -0.8, 0.2))
            result[None] = refract(incident, vec3(0.0, 1.0, 0.0), 1.0)

        test_kernel()
        expected = np.array([0.3, -0.8, 0.2]) / np.linalg.norm([0.3, -0.8, 0.2])
        assert np.allclose(result[None].to_numpy(), expected, atol=1e-5)

    def test_refract_obeys_snells_law(self):
        from pathtracer.core.ray import refract, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            inv_sqrt2 = 1.0 / ti.sqrt(2.0)
            result[None] = refract(vec3(inv_sqrt2, -inv_sqrt2, 0.0), vec3(0.0, 1.0, 0.0), 1.0 / 1.5)

        test_kernel()
        d = result[None].to_numpy()
        assert np.linalg.norm(d) == pytest.approx(1.0, abs=1e-5)
        # sin(theta_t) = sin(theta_i) / 1.5
        assert d[0] == pytest.approx(math.sin(math.pi / 4.0) / 1.5, abs=1e-5)
        assert d[1] < 0.0

    def test_schlick_limits(self):
        from pathtracer.core.ray import schlick_reflectance

        results = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            results[0] = schlick_reflectance(1.0, 1.0 / 1.5)
            results[1] = schlick_reflectance(0.0, 1.0 / 1.5)
            results[2] = schlick_reflectance(1.0, 1.0)

        test_kernel()
        assert results[0] == pytest.approx(0.04, abs=1e-4)
        assert results[1] == pytest.approx(1.0, abs=1e-5)
        assert results[2] == pytest.approx(0.0, abs=1e-6)


class TestSampling:
    N = 4096

    def test_random_unit_vectors_are_unit_and_centered(self):
        from pathtracer.core.ray import random_unit_vector

        samples = ti.Vector.field(3, dtype=ti.f32, shape=self.N)

        @ti.kernel
        def test_kernel():
            for i in samples:
                samples[i] = random_unit_vector()

        test_kernel()
        v = samples.to_numpy()
        assert np.allclose(np.linalg.norm(v, axis=1), 1.0, atol=1e-5)
        assert np.all(np.abs(v.mean(axis=0)) < 0.05)

    def test_random_on_hemisphere_faces_normal(self):
        from pathtracer.core.ray import random_on_hemisphere, vec3

        samples = ti.Vector.field(3, dtype=ti.f32, shape=self.N)

        @ti.kernel
        def test_kernel():
            for i in samples:
                samples[i] = random_on_hemisphere(vec3(0.0, 0.0, 1.0))

        test_kernel()
        assert np.all(samples.to_numpy()[:, 2] >= 0.0)

    def test_random_in_unit_disk(self):
        from pathtracer.core.ray import random_in_unit_disk

        samples = ti.Vector.field(3, dtype=ti.f32, shape=self.N)

        @ti.kernel
        def test_kernel():
            for i in samples:
                samples[i] = random_in_unit_disk()

        test_kernel()
        p = samples.to_numpy()
        assert np.all(p[:, 0] ** 2 + p[:, 1] ** 2 <= 1.0 + 1e-6)
        assert np.all(p[:, 2] == 0.0)
