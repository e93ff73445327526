"""Bounding volume hierarchy construction.

The BVH is built on the host over the scene's top-level objects and stored as
an arena: a flat list of nodes addressed by integer ids, root at index 0.
Every child id is a valid index; a one-object tree is a root whose two
children are the same leaf.

Construction recursively partitions the object list:
- 1 object: a leaf.
- 2 objects: two leaves (objects ``start`` and ``start + 1``).
- more: sort the range by box start along the longest axis of the range's
  merged box and split at ``start + count // 2``.

For rendering, ``linearize`` flattens the tree into depth-first order (left
subtree before right) with a "skip" index per node: the position of the next
node to visit once the subtree rooted at this node has been handled or
culled. Kernels then walk the array with a single cursor and no stack, testing
the left subtree with the full range and the right subtree with the range
already shrunk to the closest hit, exactly like a recursive descent.

Example:
    >>> from pathtracer.geometry.bvh import BVH
    >>> from pathtracer.geometry.sphere import Sphere
    >>> spheres = [Sphere((float(i), 0.0, 0.0), 0.4, 0) for i in range(5)]
    >>> bvh = BVH.build(spheres)
    >>> bvh.root.bounding_box.x
    Interval(start=-0.4, end=4.4)
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pathtracer.geometry.aabb import AABB

if TYPE_CHECKING:
    from pathtracer.geometry.hittable_list import Hittable


@dataclass(frozen=True)
class BVHNode:
    """Internal node referencing two children by id."""

    left: int
    right: int
    bounding_box: AABB


@dataclass(frozen=True)
class BVHLeaf:
    """Leaf node owning a single hittable object."""

    obj: Hittable

    @property
    def bounding_box(self) -> AABB:
        return self.obj.bounding_box


Node = Union[BVHNode, BVHLeaf]


@dataclass(frozen=True)
class LinearNode:
    """A BVH node in depth-first order.

    Attributes:
        bounding_box: The node's box.
        object_index: Index of the leaf object in ``LinearBVH.objects``, or -1
            for internal nodes.
        skip: Position of the next node once this subtree is done.
    """

    bounding_box: AABB
    object_index: int
    skip: int

    @property
    def is_leaf(self) -> bool:
        return self.object_index >= 0


@dataclass(frozen=True)
class LinearBVH:
    """Depth-first flattening of a BVH, ready for upload.

    Attributes:
        nodes: Nodes in traversal order; the first node is the root.
        objects: Distinct leaf objects referenced by ``object_index``.
    """

    nodes: List[LinearNode]
    objects: List[Hittable]


class BVH:
    """An immutable bounding volume hierarchy over hittable objects.

    Use ``BVH.build`` to construct one.
    """

    def __init__(self, nodes: Sequence[Node]):
        self._nodes = tuple(nodes)

    @classmethod
    def build(cls, objects: Sequence[Hittable]) -> BVH:
        """Build a BVH over a non-empty sequence of objects.

        Args:
            objects: The objects to organize. The sequence itself is not
                modified.

        Returns:
            The constructed BVH.

        Raises:
            ValueError: If ``objects`` is empty.
        """
        if len(objects) == 0:
            raise ValueError("Cannot build a BVH over an empty object list")

        work = list(objects)
        # Index 0 is reserved for the root, written once its children exist
        nodes: List[Node] = [BVHNode(0, 0, AABB.empty())]
        left, right = _split(work, 0, len(work), nodes)
        nodes[0] = BVHNode(left, right, AABB.merge(nodes[left].bounding_box, nodes[right].bounding_box))
        return cls(nodes)

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return self._nodes

    @property
    def root(self) -> BVHNode:
        return self._nodes[0]

    @property
    def bounding_box(self) -> AABB:
        return self.root.bounding_box

    def __len__(self) -> int:
        return len(self._nodes)

    def leaf_objects(self) -> List[Hittable]:
        """Distinct leaf objects, in node id order."""
        return [node.obj for node in self._nodes if isinstance(node, BVHLeaf)]

    def depth(self) -> int:
        """Number of nodes on the longest root-to-leaf path."""

        def _depth(node_id: int) -> int:
            node = self._nodes[node_id]
            if isinstance(node, BVHLeaf):
                return 1
            return 1 + max(_depth(node.left), _depth(node.right))

        return _depth(0)

    def linearize(self, expand: Optional[Callable[[Hittable], Sequence]] = None) -> LinearBVH:
        """Flatten the tree into depth-first order with skip links.

        Args:
            expand: Optional function splitting a leaf object into pieces
                (anything with a ``bounding_box``). A single piece replaces the
                leaf object; several pieces are organized into a nested BVH
                that is spliced into the array in place of the leaf.

        Returns:
            The flattened hierarchy.

        Raises:
            ValueError: If ``expand`` returns no pieces for a leaf.
        """
        linear: List[Optional[LinearNode]] = []
        objects: List[Hittable] = []
        slots: Dict[Tuple[int, int], int] = {}
        nested: Dict[Tuple[int, int], BVH] = {}

        def _visit(tree: BVH, node_id: int, expand_leaves: bool) -> None:
            node = tree._nodes[node_id]
            key = (id(tree), node_id)
            position = len(linear)
            if isinstance(node, BVHLeaf):
                pieces = [node.obj]
                if expand_leaves:
                    pieces = list(expand(node.obj))
                    if not pieces:
                        raise ValueError(f"Leaf object {node.obj!r} expanded to nothing")
                if len(pieces) > 1:
                    if key not in nested:
                        nested[key] = BVH.build(pieces)
                    _visit(nested[key], 0, False)
                    return
                if key not in slots:
                    slots[key] = len(objects)
                    objects.append(pieces[0])
                linear.append(LinearNode(pieces[0].bounding_box, slots[key], position + 1))
            else:
                linear.append(None)
                _visit(tree, node.left, expand_leaves)
                # A one-object root points at the same leaf twice
                if node.right != node.left:
                    _visit(tree, node.right, expand_leaves)
                linear[position] = LinearNode(node.bounding_box, -1, len(linear))

        _visit(self, 0, expand is not None)
        return LinearBVH(linear, objects)


def _push(nodes: List[Node], node: Node) -> int:
    nodes.append(node)
    return len(nodes) - 1


def _split(objects: List[Hittable], start: int, end: int, nodes: List[Node]) -> Tuple[int, int]:
    """Build the two children of the node covering ``objects[start:end]``."""
    count = end - start
    if count == 1:
        leaf = _push(nodes, BVHLeaf(objects[start]))
        return leaf, leaf
    if count == 2:
        left = _push(nodes, BVHLeaf(objects[start]))
        right = _push(nodes, BVHLeaf(objects[start + 1]))
        return left, right

    span = functools.reduce(AABB.merge, (obj.bounding_box for obj in objects[start:end]))
    axis = span.longest_axis()
    by_axis = functools.cmp_to_key(
        lambda a, b: AABB.compare_by_axis(a.bounding_box, b.bounding_box, axis)
    )
    objects[start:end] = sorted(objects[start:end], key=by_axis)

    mid = start + count // 2
    return _subtree(objects, start, mid, nodes), _subtree(objects, mid, end, nodes)


def _subtree(objects: List[Hittable], start: int, end: int, nodes: List[Node]) -> int:
    if end - start == 1:
        return _push(nodes, BVHLeaf(objects[start]))
    left, right = _split(objects, start, end, nodes)
    box = AABB.merge(nodes[left].bounding_box, nodes[right].bounding_box)
    return _push(nodes, BVHNode(left, right, box))
