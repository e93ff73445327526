"""Unit tests for textures: solid colors, checkers, images and Perlin noise."""

import numpy as np
import pytest
import taichi as ti
from PIL import Image as PILImage

RED = (1.0, 0.0, 0.0)
BLUE = (0.0, 0.0, 1.0)


@pytest.fixture
def tex():
    """The texture module, imported after Taichi initialization."""
    from pathtracer.materials import texture

    return texture


def sample(texture_id, uvs, points):
    """Evaluate a texture at matching lists of (u, v) and points."""
    from pathtracer.materials.texture import texture_value

    n = len(uvs)
    uv_field = ti.Vector.field(2, dtype=ti.f32, shape=n)
    p_field = ti.Vector.field(3, dtype=ti.f32, shape=n)
    out = ti.Vector.field(3, dtype=ti.f32, shape=n)
    uv_field.from_numpy(np.array(uvs, dtype=np.float32))
    p_field.from_numpy(np.array(points, dtype=np.float32))

    @ti.kernel
    def test_kernel():
        for i in range(n):
            out[i] = texture_value(texture_id, uv_field[i].x, uv_field[i].y, p_field[i])

    test_kernel()
    return out.to_numpy()


class TestHostTextures:
    def test_checker_rejects_zero_scale(self, tex):
        with pytest.raises(ValueError):
            tex.CheckerTexture(0.0, tex.SolidColor(RED), tex.SolidColor(BLUE))

    def test_checker_rejects_nested_checker(self, tex):
        inner = tex.CheckerTexture(1.0, tex.SolidColor(RED), tex.SolidColor(BLUE))
        with pytest.raises(ValueError):
            tex.CheckerTexture(1.0, inner, tex.SolidColor(BLUE))

    def test_image_shape_validated(self, tex):
        with pytest.raises(ValueError):
            tex.ImageTexture(np.zeros((4, 4), dtype=np.uint8))

    def test_missing_file_raises(self, tex, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            tex.ImageTexture.from_file(tmp_path / "missing.png")

    def test_undecodable_file_raises(self, tex, tmp_path):
        path = tmp_path / "garbage.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ValueError):
            tex.ImageTexture.from_file(path)

    def test_from_file_loads_rgb(self, tex, tmp_path):
        path = tmp_path / "tiny.png"
        PILImage.fromarray(np.full((3, 5, 3), 200, dtype=np.uint8)).save(path)
        texture = tex.ImageTexture.from_file(path)
        assert texture.width == 5
        assert texture.height == 3

    def test_bare_triple_becomes_solid_color(self, tex):
        texture = tex.as_texture([0.1, 0.2, 0.3])
        assert isinstance(texture, tex.SolidColor)
        assert texture.color == (0.1, 0.2, 0.3)

    def test_checker_uses_three_slots(self, tex):
        tex.add_texture(tex.CheckerTexture(1.0, tex.SolidColor(RED), tex.SolidColor(BLUE)))
        assert tex.get_texture_count() == 3


class TestDeviceTextures:
    def test_solid_color(self, tex):
        texture_id = tex.add_texture((0.2, 0.4, 0.6))
        colors = sample(texture_id, [(0.3, 0.9)], [(5.0, -2.0, 1.0)])
        assert np.allclose(colors[0], [0.2, 0.4, 0.6])

    def test_checker_parity(self, tex):
        texture_id = tex.add_texture(tex.CheckerTexture(1.0, tex.SolidColor(RED), tex.SolidColor(BLUE)))
        points = [(0.5, 0.5, 0.5), (1.5, 0.5, 0.5), (-0.5, 0.5, 0.5), (1.5, 1.5, 0.5)]
        colors = sample(texture_id, [(0.0, 0.0)] * len(points), points)
        assert np.allclose(colors[0], RED)
        assert np.allclose(colors[1], BLUE)
        assert np.allclose(colors[2], BLUE)
        assert np.allclose(colors[3], RED)

    def test_checker_scale(self, tex):
        texture_id = tex.add_texture(tex.CheckerTexture(2.0, tex.SolidColor(RED), tex.SolidColor(BLUE)))
        colors = sample(texture_id, [(0.0, 0.0)] * 2, [(1.5, 0.5, 0.5), (2.5, 0.5, 0.5)])
        assert np.allclose(colors[0], RED)
        assert np.allclose(colors[1], BLUE)

    def test_image_lookup_flips_v(self, tex):
        pixels = np.array(
            [
                [[255, 0, 0], [0, 255, 0]],
                [[0, 0, 255], [255, 255, 255]],
            ],
            dtype=np.uint8,
        )
        texture_id = tex.add_texture(tex.ImageTexture(pixels))
        uvs = [(0.25, 0.75), (0.75, 0.75), (0.25, 0.25), (0.75, 0.25), (1.0, 1.0)]
        colors = sample(texture_id, uvs, [(0.0, 0.0, 0.0)] * len(uvs))
        # v = 1 is the top row of the image
        assert np.allclose(colors[0], [1.0, 0.0, 0.0])
        assert np.allclose(colors[1], [0.0, 1.0, 0.0])
        assert np.allclose(colors[2], [0.0, 0.0, 1.0])
        assert np.allclose(colors[3], [1.0, 1.0, 1.0])
        # Coordinates on the edge clamp to the last texel
        assert np.allclose(colors[4], [0.0, 1.0, 0.0])

    def test_noise_is_gray_in_unit_range(self, tex):
        texture_id = tex.add_texture(tex.NoiseTexture(4.0, seed=3))
        rng = np.random.default_rng(0)
        points = rng.uniform(-10.0, 10.0, size=(200, 3))
        colors = sample(texture_id, [(0.0, 0.0)] * len(points), points)
        assert np.all(colors >= -1e-6)
        assert np.all(colors <= 1.0 + 1e-6)
        assert np.allclose(colors[:, 0], colors[:, 1])
        assert np.allclose(colors[:, 1], colors[:, 2])
        assert colors[:, 0].std() > 0.05

    def test_noise_reproducible_with_seed(self, tex):
        points = [(0.3, 1.7, -2.2), (4.1, 0.2, 0.9)]
        first = sample(tex.add_texture(tex.NoiseTexture(4.0, seed=11)), [(0.0, 0.0)] * 2, points)
        second = sample(tex.add_texture(tex.NoiseTexture(4.0, seed=11)), [(0.0, 0.0)] * 2, points)
        assert np.allclose(first, second)

    def test_noise_registers_perlin_tables(self, tex):
        from pathtracer.materials.perlin import get_perlin_noise_count

        tex.add_texture(tex.NoiseTexture(4.0, seed=1))
        tex.add_texture(tex.NoiseTexture(2.0, seed=2))
        assert get_perlin_noise_count() == 2
        assert tex.get_texture_count() == 2
        tex.clear_textures()
        assert get_perlin_noise_count() == 0
