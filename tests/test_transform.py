"""Unit tests for rigid transforms and the Translate / RotateY decorators."""

import math

import numpy as np
import pytest

from pathtracer.geometry.quad import cuboid
from pathtracer.geometry.sphere import Sphere
from pathtracer.geometry.transform import RigidTransform, RotateY, Translate


class TestRigidTransform:
    def test_identity(self):
        identity = RigidTransform.identity()
        assert identity.is_identity()
        assert np.allclose(identity.apply_point((1.0, 2.0, 3.0)), [1.0, 2.0, 3.0])

    def test_rotation_y_quarter_turn(self):
        rotate = RigidTransform.rotation_y(1.0, 0.0)
        # Counter-clockwise seen from +Y: +X goes to -Z
        assert np.allclose(rotate.apply_vector((1.0, 0.0, 0.0)), [0.0, 0.0, -1.0])
        assert not rotate.is_identity()

    def test_compose_applies_inner_first(self):
        move = RigidTransform.translation((5.0, 0.0, 0.0))
        rotate = RigidTransform.rotation_y(1.0, 0.0)
        composed = move.compose(rotate)
        assert np.allclose(composed.apply_point((1.0, 0.0, 0.0)), [5.0, 0.0, -1.0])


class TestDecorators:
    def test_translate_moves_box(self):
        moved = Translate(Sphere((0.0, 0.0, 0.0), 1.0, 0), (2.0, 0.0, 0.0))
        assert moved.bounding_box.minimum == (1.0, -1.0, -1.0)
        assert moved.bounding_box.maximum == (3.0, 1.0, 1.0)
        assert list(moved.material_ids()) == [0]

    def test_rotate_y_box_contains_rotated_corners(self):
        box = cuboid((0.0, 0.0, 0.0), (2.0, 1.0, 1.0), material_id=1)
        rotated = RotateY(box, 45.0)
        half = math.sqrt(0.5)
        assert rotated.sin_theta == pytest.approx(half)
        assert rotated.cos_theta == pytest.approx(half)
        # Corner (2, y, 1) lands farthest along +X, corner (2, y, 0) along -Z
        assert rotated.bounding_box.maximum[0] == pytest.approx(3.0 * half, abs=1e-3)
        assert rotated.bounding_box.minimum[2] == pytest.approx(-2.0 * half, abs=1e-3)
        assert list(rotated.material_ids()) == [1] * 6

    def test_nested_decorators_compose(self):
        inner = Sphere((1.0, 0.0, 0.0), 0.5, 0)
        placed = Translate(RotateY(inner, 90.0), (0.0, 3.0, 0.0))
        center = placed.transform.compose(placed.inner.transform).apply_point(inner.center)
        assert np.allclose(center, [0.0, 3.0, -1.0], atol=1e-9)
