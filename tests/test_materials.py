"""Unit tests for the scattering materials.

Tests cover:
- Host-side validation (albedo range, fuzz, ior)
- Lambertian: attenuation from the texture, directions around the normal
- Metal: mirror reflection, absorption of fuzzed rays below the surface
- Dielectric: relative index per side, ratio 1 never bends, total internal reflection
- DiffuseLight and Isotropic behavior
"""

import math

import numpy as np
import pytest
import taichi as ti


class TestValidation:
    def test_metal_albedo_range(self):
        from pathtracer.materials.metal import Metal

        with pytest.raises(ValueError):
            Metal((1.2, 0.5, 0.5))

    def test_metal_negative_fuzz(self):
        from pathtracer.materials.metal import Metal

        with pytest.raises(ValueError):
            Metal((0.5, 0.5, 0.5), fuzz=-0.1)

    def test_metal_fuzz_above_one_allowed(self):
        from pathtracer.materials.metal import Metal

        assert Metal((0.5, 0.5, 0.5), fuzz=1.5).fuzz == 1.5

    @pytest.mark.parametrize("ior", [0.0, -1.5])
    def test_dielectric_ior_must_be_positive(self, ior):
        from pathtracer.materials.dielectric import Dielectric, add_dielectric_material

        with pytest.raises(ValueError):
            Dielectric(ior)
        with pytest.raises(ValueError):
            add_dielectric_material(ior)

    def test_bare_color_becomes_solid_texture(self):
        from pathtracer.materials.lambertian import Lambertian
        from pathtracer.materials.texture import SolidColor

        material = Lambertian((0.1, 0.2, 0.3))
        assert isinstance(material.texture, SolidColor)
        assert material.texture.color == (0.1, 0.2, 0.3)


class TestLambertian:
    N = 2048

    def test_scatter_follows_normal_with_texture_attenuation(self):
        from pathtracer.materials.lambertian import add_lambertian_material, scatter_lambertian, vec3
        from pathtracer.materials.texture import add_texture

        n = self.N
        idx = add_lambertian_material(add_texture((0.8, 0.4, 0.2)))
        directions = ti.Vector.field(3, dtype=ti.f32, shape=self.N)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
        scattered = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, a, s = scatter_lambertian(idx, vec3(0.0, 1.0, 0.0), 0.0, 0.0, vec3(0.0, 0.0, 0.0))
                directions[i] = d
                if i == 0:
                    attenuation[None] = a
                    scattered[None] = s

        test_kernel()
        d = directions.to_numpy()
        assert scattered[None] == 1
        assert np.allclose(attenuation[None].to_numpy(), [0.8, 0.4, 0.2])
        # The flipped unit vector never points below the surface
        assert np.all(d[:, 1] >= -1e-6)
        # Uniform hemisphere offset: E[cos] = (2/3)(2 - 1/sqrt(2))
        cosines = d[:, 1] / np.linalg.norm(d, axis=1)
        assert cosines.mean() == pytest.approx((2.0 / 3.0) * (2.0 - math.sqrt(0.5)), abs=0.02)


class TestMetal:
    def test_polished_metal_mirrors(self):
        from pathtracer.materials.metal import add_metal_material, scatter_metal, vec3

        idx = add_metal_material((0.9, 0.8, 0.7), 0.0)
        direction = ti.Vector.field(3, dtype=ti.f32, shape=())
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())
        scattered = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(1.0, -1.0, 0.0))
            d, a, s = scatter_metal(idx, incident, vec3(0.0, 1.0, 0.0))
            direction[None] = d
            attenuation[None] = a
            scattered[None] = s

        test_kernel()
        half = math.sqrt(0.5)
        assert np.allclose(direction[None].to_numpy(), [half, half, 0.0], atol=1e-5)
        assert np.allclose(attenuation[None].to_numpy(), [0.9, 0.8, 0.7])
        assert scattered[None] == 1

    def test_fuzzed_reflection_below_surface_is_absorbed(self):
        from pathtracer.materials.metal import add_metal_material, scatter_metal, vec3

        n = 4096
        idx = add_metal_material((0.5, 0.5, 0.5), 1.0)
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        flags = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            # Grazing incidence: many fuzzed reflections end up below the surface
            incident = ti.math.normalize(vec3(1.0, -0.05, 0.0))
            for i in range(n):
                d, a, s = scatter_metal(idx, incident, vec3(0.0, 1.0, 0.0))
                directions[i] = d
                flags[i] = s

        test_kernel()
        d = directions.to_numpy()
        f = flags.to_numpy()
        assert np.all((d[:, 1] > 0.0) == (f == 1))
        assert 0 < f.sum() < n


class TestDielectric:
    def test_refraction_ratio_per_side(self):
        from pathtracer.materials.dielectric import refraction_ratio

        results = ti.field(dtype=ti.f32, shape=2)

        @ti.kernel
        def test_kernel():
            results[0] = refraction_ratio(1.5, 1)
            results[1] = refraction_ratio(1.5, 0)

        test_kernel()
        assert results[0] == pytest.approx(1.0 / 1.5)
        assert results[1] == pytest.approx(1.5)

    def test_ratio_one_never_bends(self):
        """With ior 1 Schlick reflectance is 0, so every ray passes straight through."""
        from pathtracer.materials.dielectric import add_dielectric_material, scatter_dielectric, vec3

        n = 512
        idx = add_dielectric_material(1.0)
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(0.6, -0.8, 0.0))
            for i in range(n):
                d, a, s = scatter_dielectric(idx, incident, vec3(0.0, 1.0, 0.0), 1)
                directions[i] = d
                if i == 0:
                    attenuation[None] = a

        test_kernel()
        assert np.allclose(directions.to_numpy(), [0.6, -0.8, 0.0], atol=1e-5)
        assert np.allclose(attenuation[None].to_numpy(), [1.0, 1.0, 1.0])

    def test_total_internal_reflection(self):
        from pathtracer.materials.dielectric import add_dielectric_material, scatter_dielectric, vec3

        n = 256
        idx = add_dielectric_material(1.5)
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            # Leaving glass at 60 degrees: 1.5 * sin(60) > 1
            incident = ti.math.normalize(vec3(ti.sqrt(3.0), -1.0, 0.0))
            for i in range(n):
                d, a, s = scatter_dielectric(idx, incident, vec3(0.0, 1.0, 0.0), 0)
                directions[i] = d

        test_kernel()
        expected = np.array([math.sqrt(3.0), 1.0, 0.0]) / 2.0
        assert np.allclose(directions.to_numpy(), expected, atol=1e-5)

    def test_refracted_rays_obey_snells_law(self):
        from pathtracer.materials.dielectric import add_dielectric_material, scatter_dielectric, vec3

        n = 1024
        idx = add_dielectric_material(1.5)
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            incident = ti.math.normalize(vec3(1.0, -1.0, 0.0))
            for i in range(n):
                d, a, s = scatter_dielectric(idx, incident, vec3(0.0, 1.0, 0.0), 1)
                directions[i] = d

        test_kernel()
        d = directions.to_numpy()
        refracted = d[d[:, 1] < 0.0]
        reflected = d[d[:, 1] > 0.0]
        assert len(refracted) > len(reflected)
        assert np.allclose(refracted[:, 0], math.sqrt(0.5) / 1.5, atol=1e-4)


class TestEmissionAndPhase:
    def test_diffuse_light_emits_texture(self):
        from pathtracer.materials.diffuse_light import add_diffuse_light_material, emit_diffuse_light, vec3
        from pathtracer.materials.texture import add_texture

        idx = add_diffuse_light_material(add_texture((4.0, 4.0, 4.0)))
        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = emit_diffuse_light(idx, 0.3, 0.7, vec3(1.0, 2.0, 3.0))

        test_kernel()
        assert np.allclose(result[None].to_numpy(), [4.0, 4.0, 4.0])

    def test_isotropic_scatters_uniformly(self):
        from pathtracer.materials.isotropic import add_isotropic_material, scatter_isotropic, vec3
        from pathtracer.materials.texture import add_texture

        n = 4096
        idx = add_isotropic_material(add_texture((0.2, 0.4, 0.9)))
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
        attenuation = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            for i in range(n):
                d, a, s = scatter_isotropic(idx, 0.0, 0.0, vec3(0.0, 0.0, 0.0))
                directions[i] = d
                if i == 0:
                    attenuation[None] = a

        test_kernel()
        d = directions.to_numpy()
        assert np.allclose(np.linalg.norm(d, axis=1), 1.0, atol=1e-5)
        assert np.all(np.abs(d.mean(axis=0)) < 0.05)
        assert np.allclose(attenuation[None].to_numpy(), [0.2, 0.4, 0.9])
