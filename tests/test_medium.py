"""Unit tests for constant-density participating media."""

import numpy as np
import pytest
import taichi as ti

from pathtracer.geometry.hittable_list import HittableList
from pathtracer.geometry.medium import ConstantDensityMedium
from pathtracer.geometry.quad import cuboid
from pathtracer.geometry.sphere import Sphere


class TestMediumHost:
    def test_zero_density_rejected(self):
        with pytest.raises(ValueError):
            ConstantDensityMedium(Sphere((0.0, 0.0, 0.0), 1.0, 0), 0.0, 0)

    def test_box_matches_boundary(self):
        boundary = cuboid((0.0, 0.0, 0.0), (1.0, 2.0, 3.0), 0)
        medium = ConstantDensityMedium(boundary, 0.5, 1)
        assert medium.bounding_box == boundary.bounding_box
        assert medium.neg_inv_density == pytest.approx(-2.0)
        assert list(medium.material_ids()) == [1]

    def test_nested_medium_rejected(self):
        from pathtracer.scene.intersection import flatten

        inner = ConstantDensityMedium(Sphere((0.0, 0.0, 0.0), 1.0, 0), 1.0, 0)
        outer = ConstantDensityMedium(HittableList([inner]), 1.0, 0)
        with pytest.raises(ValueError):
            flatten(outer)

    def test_flatten_keeps_boundary_pieces(self):
        from pathtracer.scene.intersection import MediumPiece, flatten

        medium = ConstantDensityMedium(cuboid((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), 0), 1.0, 0)
        pieces = flatten(medium)
        assert len(pieces) == 1
        assert isinstance(pieces[0], MediumPiece)
        assert len(pieces[0].boundary) == 6


class TestMediumDevice:
    N_RAYS = 512

    def _trace(self, density, origin):
        """Upload a unit-sphere medium and fire rays along +z from ``origin``."""
        from pathtracer.core.ray import make_ray
        from pathtracer.scene.intersection import INFINITY, hit_bvh
        from pathtracer.scene.manager import SceneManager, upload_scene

        manager = SceneManager()
        phase = manager.add_isotropic_material((1.0, 1.0, 1.0))
        manager.add(ConstantDensityMedium(Sphere((0.0, 0.0, 0.0), 1.0, phase), density, phase))
        upload_scene(manager.build())

        n = self.N_RAYS
        hits = ti.field(dtype=ti.i32, shape=n)
        ts = ti.field(dtype=ti.f32, shape=n)
        ox, oy, oz = origin

        @ti.kernel
        def test_kernel():
            for i in range(n):
                ray = make_ray(ti.math.vec3(ox, oy, oz), ti.math.vec3(0.0, 0.0, 1.0), 0.0)
                record = hit_bvh(ray, 0.001, INFINITY)
                hits[i] = record.hit
                ts[i] = record.t

        test_kernel()
        return hits.to_numpy(), ts.to_numpy()

    def test_dense_medium_scatters_near_entry(self):
        hits, ts = self._trace(1000.0, (0.0, 0.0, -5.0))
        assert hits.mean() > 0.99
        assert np.all(ts[hits == 1] >= 4.0 - 1e-4)
        assert np.all(ts[hits == 1] < 4.05)

    def test_thin_medium_is_nearly_transparent(self):
        hits, _ = self._trace(0.001, (0.0, 0.0, -5.0))
        assert hits.mean() < 0.02

    def test_scatter_points_stay_inside_chord(self):
        hits, ts = self._trace(0.7, (0.0, 0.0, -5.0))
        scattered = ts[hits == 1]
        assert 0.0 < hits.mean() < 1.0
        assert np.all(scattered >= 4.0 - 1e-4)
        assert np.all(scattered <= 6.0 + 1e-4)

    def test_ray_starting_inside_scatters_ahead(self):
        hits, ts = self._trace(1000.0, (0.0, 0.0, 0.0))
        assert hits.mean() > 0.99
        assert np.all(ts[hits == 1] >= 0.001)

    def test_ray_missing_boundary(self):
        hits, _ = self._trace(1000.0, (3.0, 0.0, -5.0))
        assert hits.sum() == 0
