"""Integration tests for the path tracing integrator.

Scenes here are tiny and built so that the expected pixel values are exact:
emitters seen directly, flat backgrounds and zero-depth renders.
"""

import numpy as np
import pytest


def _camera(**kwargs):
    from pathtracer.camera.camera import Camera

    settings = dict(image_width=9, aspect_ratio=1.0, samples_per_pixel=4, max_depth=5, vfov=90.0)
    settings.update(kwargs)
    return Camera(**settings)


def _light_scene(background=(0.0, 0.0, 0.0)):
    """An emissive sphere straight ahead of the default camera."""
    from pathtracer.scene.manager import SceneManager, SceneOptions

    manager = SceneManager(SceneOptions(background=background))
    light = manager.add_diffuse_light_material((1.0, 1.0, 1.0))
    manager.add_sphere((0.0, 0.0, -1.0), 0.5, light)
    return manager.build()


def _empty_view_scene(background, sky_gradient=False):
    """A scene whose only object sits behind the camera."""
    from pathtracer.scene.manager import SceneManager, SceneOptions

    manager = SceneManager(SceneOptions(background=background, sky_gradient=sky_gradient))
    mat = manager.add_lambertian_material((0.5, 0.5, 0.5))
    manager.add_sphere((0.0, 0.0, 10.0), 0.5, mat)
    return manager.build()


class TestLinearToBytes:
    def test_gamma_clamp_and_truncation(self):
        from pathtracer.core.integrator import linear_to_bytes

        colors = np.array([0.0, 0.25, 1.0, 4.0, -1.0, 0.5])
        assert linear_to_bytes(colors).tolist() == [0, 127, 255, 255, 0, 180]

    def test_keeps_shape(self):
        from pathtracer.core.integrator import linear_to_bytes

        result = linear_to_bytes(np.zeros((3, 4, 3)))
        assert result.shape == (3, 4, 3)
        assert result.dtype == np.uint8


class TestRender:
    def test_result_layout(self):
        from pathtracer.core.integrator import render

        result = render(_light_scene(), _camera(image_width=6, aspect_ratio=2.0))
        assert result.width == 6
        assert result.height == 3
        assert result.pixels.shape == (6 * 3 * 3,)
        assert result.pixels.dtype == np.uint8
        assert result.as_array().shape == (3, 6, 3)
        assert result.elapsed >= 0.0

    def test_emitter_seen_directly(self):
        from pathtracer.core.integrator import render

        image = render(_light_scene(), _camera()).as_array()
        assert image[4, 4].tolist() == [255, 255, 255]
        assert image[0, 0].tolist() == [0, 0, 0]
        assert image[8, 8].tolist() == [0, 0, 0]

    def test_zero_depth_is_black(self):
        from pathtracer.core.integrator import render

        result = render(_light_scene(background=(1.0, 1.0, 1.0)), _camera(max_depth=0))
        assert not result.pixels.any()

    def test_flat_background(self):
        from pathtracer.core.integrator import render

        result = render(_empty_view_scene((0.25, 0.25, 0.25)), _camera())
        assert np.all(result.pixels == 127)

    def test_single_bounce_grey_sphere(self):
        """One sample, one bounce: the sphere absorbs, the corners see the sky."""
        from pathtracer.core.integrator import linear_to_bytes, render
        from pathtracer.scene.manager import SceneManager

        manager = SceneManager()
        grey = manager.add_lambertian_material((0.5, 0.5, 0.5))
        manager.add_sphere((0.0, 0.0, 0.0), 1.0, grey)
        scene = manager.build()
        camera = _camera(
            image_width=11, samples_per_pixel=1, max_depth=1, look_from=(0.0, 0.0, 3.0), look_at=(0.0, 0.0, 0.0)
        )

        image = render(scene, camera).as_array()
        background = linear_to_bytes(np.array(scene.options.background)).tolist()
        assert background == [213, 228, 255]
        assert image[5, 5].tolist() != background
        for corner in (image[0, 0], image[0, 10], image[10, 0], image[10, 10]):
            assert corner.tolist() == background

    def test_sky_gradient(self):
        from pathtracer.core.integrator import render

        image = render(_empty_view_scene((0.0, 0.0, 0.0), sky_gradient=True), _camera()).as_array()
        # Blue stays saturated; red fades toward the zenith
        assert np.all(image[..., 2] >= 254)
        assert image[0, 4, 0] < image[8, 4, 0]

    def test_diffuse_surface_lit_by_background(self):
        """A grey ball under a white sky reflects less than the sky itself."""
        from pathtracer.core.integrator import render
        from pathtracer.scene.manager import SceneManager, SceneOptions

        manager = SceneManager(SceneOptions(background=(1.0, 1.0, 1.0)))
        grey = manager.add_lambertian_material((0.5, 0.5, 0.5))
        manager.add_sphere((0.0, 0.0, -1.0), 0.5, grey)
        image = render(manager.build(), _camera(samples_per_pixel=64, max_depth=10)).as_array()
        assert image[0, 0].tolist() == [255, 255, 255]
        center = int(image[4, 4, 0])
        assert 120 < center < 230

    def test_progress_reports_bands(self):
        from pathtracer.core.integrator import render

        calls = []
        render(_light_scene(), _camera(), progress=lambda done, total: calls.append((done, total)), band_rows=2)
        assert [done for done, _ in calls] == [18, 36, 54, 72, 81]
        assert all(total == 81 for _, total in calls)

    def test_oversized_image_rejected(self):
        from pathtracer.core.integrator import render

        with pytest.raises(ValueError):
            render(_light_scene(), _camera(image_width=4096))

    def test_invalid_band_rows_rejected(self):
        from pathtracer.core.integrator import render

        with pytest.raises(ValueError):
            render(_light_scene(), _camera(), band_rows=0)

    def test_stale_scene_rejected(self):
        from pathtracer.core.integrator import render
        from pathtracer.scene.manager import SceneManager

        scene = _light_scene()
        SceneManager()
        with pytest.raises(RuntimeError):
            render(scene, _camera())
