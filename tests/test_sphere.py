"""Unit tests for spheres and moving spheres.

Tests cover:
- Host-side construction, validation and bounding boxes
- Ray hitting a sphere from outside (t = distance - radius)
- Ray missing a sphere
- Ray starting inside a sphere (back face)
- Texture coordinates and moving centers
"""

import numpy as np
import pytest
import taichi as ti

from pathtracer.geometry.aabb import Interval
from pathtracer.geometry.sphere import MovingSphere, Sphere


class TestSphereHost:
    def test_bounding_box(self):
        sphere = Sphere((1.0, 2.0, 3.0), 0.5, material_id=0)
        assert sphere.bounding_box.minimum == (0.5, 1.5, 2.5)
        assert sphere.bounding_box.maximum == (1.5, 2.5, 3.5)

    @pytest.mark.parametrize("radius", [0.0, -1.0])
    def test_non_positive_radius_rejected(self, radius):
        with pytest.raises(ValueError):
            Sphere((0.0, 0.0, 0.0), radius, material_id=0)

    def test_moving_sphere_box_covers_both_ends(self):
        sphere = MovingSphere((0.0, 0.0, 0.0), (2.0, 0.0, 0.0), 1.0, material_id=0)
        assert sphere.bounding_box.x == Interval(-1.0, 3.0)
        assert sphere.center_at(0.5) == (1.0, 0.0, 0.0)

    def test_material_ids(self):
        assert list(Sphere((0.0, 0.0, 0.0), 1.0, material_id=7).material_ids()) == [7]


class TestSphereIntersection:
    def test_hit_from_outside(self):
        """A ray aimed at the center hits at distance - radius."""
        from pathtracer.core.ray import make_ray, vec3
        from pathtracer.geometry.sphere import hit_sphere

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        normal = ti.Vector.field(3, dtype=ti.f32, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())
        uv = ti.Vector.field(2, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0)
            record = hit_sphere(ray, vec3(0.0, 0.0, 0.0), 1.0, 0.001, 1000.0)
            hit[None] = record.hit
            t_val[None] = record.t
            normal[None] = record.normal
            front_face[None] = record.front_face
            uv[None] = ti.math.vec2(record.u, record.v)

        test_kernel()
        assert hit[None] == 1
        assert t_val[None] == pytest.approx(4.0, abs=1e-5)
        assert np.allclose(normal[None].to_numpy(), [0.0, 0.0, 1.0], atol=1e-5)
        assert front_face[None] == 1
        assert np.allclose(uv[None].to_numpy(), [0.25, 0.5], atol=1e-5)

    def test_miss(self):
        from pathtracer.core.ray import make_ray, vec3
        from pathtracer.geometry.sphere import hit_sphere

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(5.0, 0.0, 0.0), vec3(0.0, 0.0, -1.0), 0.0)
            hit[None] = hit_sphere(ray, vec3(0.0, 0.0, 0.0), 1.0, 0.001, 1000.0).hit

        test_kernel()
        assert hit[None] == 0

    def test_hit_outside_range_is_rejected(self):
        from pathtracer.core.ray import make_ray, vec3
        from pathtracer.geometry.sphere import hit_sphere

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0)
            hit[None] = hit_sphere(ray, vec3(0.0, 0.0, 0.0), 1.0, 0.001, 3.0).hit

        test_kernel()
        assert hit[None] == 0

    def test_hit_from_inside(self):
        from pathtracer.core.ray import make_ray, vec3
        from pathtracer.geometry.sphere import hit_sphere

        t_val = ti.field(dtype=ti.f32, shape=())
        normal = ti.Vector.field(3, dtype=ti.f32, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            ray = make_ray(vec3(0.0, 0.0, 0.0), vec3(0.0, 0.0, 1.0), 0.0)
            record = hit_sphere(ray, vec3(0.0, 0.0, 0.0), 2.0, 0.001, 1000.0)
            t_val[None] = record.t
            normal[None] = record.normal
            front_face[None] = record.front_face

        test_kernel()
        assert t_val[None] == pytest.approx(2.0, abs=1e-5)
        # Normal faces against the ray
        assert np.allclose(normal[None].to_numpy(), [0.0, 0.0, -1.0], atol=1e-5)
        assert front_face[None] == 0

    def test_moving_center(self):
        from pathtracer.geometry.sphere import moving_center, vec3

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = moving_center(vec3(0.0, 0.0, 0.0), vec3(4.0, 2.0, 0.0), 0.25)

        test_kernel()
        assert np.allclose(result[None].to_numpy(), [1.0, 0.5, 0.0])

    def test_sphere_uv(self):
        from pathtracer.geometry.sphere import sphere_uv, vec3

        results = ti.field(dtype=ti.f32, shape=4)

        @ti.kernel
        def test_kernel():
            u0, v0 = sphere_uv(vec3(0.0, -1.0, 0.0))
            u1, v1 = sphere_uv(vec3(0.0, 0.0, -1.0))
            results[0] = v0
            results[1] = u1
            results[2] = v1
            results[3] = u0

        test_kernel()
        # Bottom pole
        assert results[0] == pytest.approx(0.0, abs=1e-5)
        assert 0.0 <= results[3] <= 1.0
        # Quarter turn from -X around +Y
        assert results[1] == pytest.approx(0.75, abs=1e-5)
        assert results[2] == pytest.approx(0.5, abs=1e-5)
