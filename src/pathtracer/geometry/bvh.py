"""Bounding volume hierarchy over scene objects.

The tree is built once on the host from NumPy arrays of object bounding
boxes: each node picks the axis with the greatest extent across its objects'
boxes, sorts the objects by box midpoint on that axis and splits at the
median. Lists of at most ``LEAF_SIZE`` objects become leaves.

The tree is flattened depth-first into node arrays and uploaded to Taichi
fields, where it is read-only during rendering. Node 0 is the root. Internal
nodes reference two children; leaves reference a contiguous run of
``bvh_objects`` entries.
"""

import logging
from dataclasses import dataclass

import numpy as np
import taichi as ti

logger = logging.getLogger(__name__)

# Maximum number of objects per leaf
LEAF_SIZE = 2


@dataclass
class FlatBVH:
    """A BVH flattened into parallel node arrays.

    Attributes:
        node_min: (N, 3) minimum corner of each node box.
        node_max: (N, 3) maximum corner of each node box.
        left: (N,) left child index, -1 for leaves.
        right: (N,) right child index, -1 for leaves.
        first: (N,) first entry in ``objects`` for leaves.
        count: (N,) number of objects for leaves, 0 for internal nodes.
        axis: (N,) split axis of internal nodes.
        objects: (M,) object indices in leaf order.
    """

    node_min: np.ndarray
    node_max: np.ndarray
    left: np.ndarray
    right: np.ndarray
    first: np.ndarray
    count: np.ndarray
    axis: np.ndarray
    objects: np.ndarray

    @property
    def node_count(self) -> int:
        return int(self.left.shape[0])

    def depth(self) -> int:
        """Depth of the tree (a single leaf has depth 1)."""
        if self.node_count == 0:
            return 0
        best = 0
        stack = [(0, 1)]
        while stack:
            node, level = stack.pop()
            best = max(best, level)
            if self.left[node] >= 0:
                stack.append((int(self.left[node]), level + 1))
                stack.append((int(self.right[node]), level + 1))
        return best


def build_bvh(box_min: np.ndarray, box_max: np.ndarray) -> FlatBVH:
    """Build a flattened BVH over object boxes.

    Args:
        box_min: (N, 3) minimum corners of the object boxes.
        box_max: (N, 3) maximum corners of the object boxes.

    Returns:
        The flattened tree. Empty arrays when N == 0.
    """
    box_min = np.asarray(box_min, dtype=np.float64).reshape(-1, 3)
    box_max = np.asarray(box_max, dtype=np.float64).reshape(-1, 3)
    midpoints = 0.5 * (box_min + box_max)

    node_min: list[np.ndarray] = []
    node_max: list[np.ndarray] = []
    left: list[int] = []
    right: list[int] = []
    first: list[int] = []
    count: list[int] = []
    axis: list[int] = []
    objects: list[int] = []

    def new_node(indices: np.ndarray) -> int:
        node = len(left)
        node_min.append(box_min[indices].min(axis=0))
        node_max.append(box_max[indices].max(axis=0))
        left.append(-1)
        right.append(-1)
        first.append(0)
        count.append(0)
        axis.append(0)
        return node

    def build(indices: np.ndarray) -> int:
        node = new_node(indices)
        if len(indices) <= LEAF_SIZE:
            first[node] = len(objects)
            count[node] = len(indices)
            objects.extend(int(i) for i in indices)
            return node

        extent = node_max[node] - node_min[node]
        split_axis = int(np.argmax(extent))
        order = np.argsort(midpoints[indices, split_axis], kind="stable")
        sorted_indices = indices[order]
        mid = len(sorted_indices) // 2

        axis[node] = split_axis
        left[node] = build(sorted_indices[:mid])
        right[node] = build(sorted_indices[mid:])
        return node

    if box_min.shape[0] > 0:
        build(np.arange(box_min.shape[0]))

    return FlatBVH(
        node_min=np.array(node_min, dtype=np.float32).reshape(-1, 3),
        node_max=np.array(node_max, dtype=np.float32).reshape(-1, 3),
        left=np.array(left, dtype=np.int32),
        right=np.array(right, dtype=np.int32),
        first=np.array(first, dtype=np.int32),
        count=np.array(count, dtype=np.int32),
        axis=np.array(axis, dtype=np.int32),
        objects=np.array(objects, dtype=np.int32),
    )


# =============================================================================
# BVH Storage
# =============================================================================

MAX_BVH_OBJECTS = 4096
MAX_BVH_NODES = 2 * MAX_BVH_OBJECTS

# Traversal stack depth per stream; a median-split tree over
# MAX_BVH_OBJECTS objects needs far fewer entries.
BVH_STACK_SIZE = 64

bvh_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_first = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_count = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_axis = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_objects = ti.field(dtype=ti.i32, shape=MAX_BVH_OBJECTS)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


def clear_bvh() -> None:
    """Remove the uploaded tree."""
    num_bvh_nodes[None] = 0


@ti.kernel
def _upload_nodes(
    n: ti.i32,
    node_min: ti.types.ndarray(),
    node_max: ti.types.ndarray(),
    left: ti.types.ndarray(),
    right: ti.types.ndarray(),
    first: ti.types.ndarray(),
    count: ti.types.ndarray(),
    axis: ti.types.ndarray(),
):
    for i in range(n):
        for k in ti.static(range(3)):
            bvh_min[i][k] = node_min[i, k]
            bvh_max[i][k] = node_max[i, k]
        bvh_left[i] = left[i]
        bvh_right[i] = right[i]
        bvh_first[i] = first[i]
        bvh_count[i] = count[i]
        bvh_axis[i] = axis[i]


@ti.kernel
def _upload_objects(n: ti.i32, objects: ti.types.ndarray()):
    for i in range(n):
        bvh_objects[i] = objects[i]


def upload_bvh(tree: FlatBVH) -> None:
    """Copy a flattened tree into the BVH fields.

    Raises:
        RuntimeError: If the tree exceeds the preallocated capacity.
    """
    if tree.node_count > MAX_BVH_NODES or tree.objects.shape[0] > MAX_BVH_OBJECTS:
        raise RuntimeError(
            f"BVH with {tree.node_count} nodes / {tree.objects.shape[0]} objects exceeds "
            f"capacity ({MAX_BVH_NODES} / {MAX_BVH_OBJECTS})"
        )
    if tree.depth() > BVH_STACK_SIZE:
        raise RuntimeError(f"BVH depth {tree.depth()} exceeds traversal stack size {BVH_STACK_SIZE}")

    if tree.node_count > 0:
        _upload_nodes(
            tree.node_count,
            np.ascontiguousarray(tree.node_min),
            np.ascontiguousarray(tree.node_max),
            tree.left,
            tree.right,
            tree.first,
            tree.count,
            tree.axis,
        )
        _upload_objects(tree.objects.shape[0], tree.objects)
    num_bvh_nodes[None] = tree.node_count
    logger.debug("Uploaded BVH: %d nodes, depth %d", tree.node_count, tree.depth())


def get_bvh_node_count() -> int:
    return int(num_bvh_nodes[None])
