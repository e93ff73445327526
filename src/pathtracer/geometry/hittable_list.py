"""Ordered groups of hittable objects.

A HittableList is itself hittable: its closest hit is found by a linear scan
that shrinks the upper parameter bound to the closest hit so far. It is the
scene root before BVH construction and the way composite shapes (cuboids,
sphere clusters) are grouped under a single decorator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Union

from pathtracer.geometry.aabb import AABB
from pathtracer.geometry.medium import ConstantDensityMedium
from pathtracer.geometry.quad import Quad
from pathtracer.geometry.sphere import MovingSphere, Sphere
from pathtracer.geometry.transform import RotateY, Translate


@dataclass
class HittableList:
    """An ordered collection of hittable objects.

    Attributes:
        objects: The wrapped objects, in insertion order.
        bounding_box: Merge of every object's box, folded from AABB.empty().
    """

    objects: List[Hittable] = field(default_factory=list)
    bounding_box: AABB = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.objects = list(self.objects)
        self.bounding_box = AABB.enclosing([obj.bounding_box for obj in self.objects])

    def add(self, obj: Hittable) -> None:
        """Append an object and grow the bounding box to contain it."""
        self.objects.append(obj)
        self.bounding_box = AABB.merge(self.bounding_box, obj.bounding_box)

    def extend(self, objects: Iterable[Hittable]) -> None:
        for obj in objects:
            self.add(obj)

    def material_ids(self) -> Iterator[int]:
        for obj in self.objects:
            yield from obj.material_ids()

    def __len__(self) -> int:
        return len(self.objects)

    def __iter__(self) -> Iterator[Hittable]:
        return iter(self.objects)


# Closed set of hittable variants accepted by the scene compiler
Hittable = Union[Sphere, MovingSphere, Quad, Translate, RotateY, ConstantDensityMedium, HittableList]
