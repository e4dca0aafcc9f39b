"""
Octree Quantizer - reduces an image to a target number of colors.

The tree is an arena of nodes addressed by integer index. Each level splits
RGB space on one bit plane, so leaves at depth 8 hold exactly one color.
Reduction first collapses whole subtrees bottom-up (phase A) and then, when
the remaining branches only diverge near the root, absorbs single children
into their parent one at a time (phase B).
"""

import logging
from collections import deque
from typing import Callable, Iterator, List

import numpy as np

from .results import Palette, QuantizeResult
from .utils import BufferLike, as_pixels, distinct_opaque_colors, round_half_up

logger = logging.getLogger(__name__)

MAX_DEPTH = 8
NO_CHILD = -1


def child_slot(r: int, g: int, b: int, depth: int) -> int:
    bit = 7 - depth
    return (((r >> bit) & 1) << 2) | (((g >> bit) & 1) << 1) | ((b >> bit) & 1)


class Octree:
    """
    Arena-backed color octree.

    Per node it keeps the color sums and pixel count held directly by the
    node, the number of leaves and the pixel population of its subtree.
    """

    def __init__(self):
        self.r_sum: List[int] = []
        self.g_sum: List[int] = []
        self.b_sum: List[int] = []
        self.pixels: List[int] = []
        self.children: List[List[int]] = []
        self.parent: List[int] = []
        self.depth: List[int] = []
        self.is_leaf: List[bool] = []
        self.palette_index: List[int] = []
        self.leaves: List[int] = []
        self.population: List[int] = []
        self.root = self._new_node(0, NO_CHILD)

    def _new_node(self, depth: int, parent: int) -> int:
        self.r_sum.append(0)
        self.g_sum.append(0)
        self.b_sum.append(0)
        self.pixels.append(0)
        self.children.append([NO_CHILD] * 8)
        self.parent.append(parent)
        self.depth.append(depth)
        self.is_leaf.append(depth == MAX_DEPTH)
        self.palette_index.append(-1)
        self.leaves.append(0)
        self.population.append(0)
        return len(self.pixels) - 1

    def insert(self, r: int, g: int, b: int, count: int = 1) -> None:
        """Add `count` pixels of one color."""
        node = self.root
        for depth in range(MAX_DEPTH):
            slot = child_slot(r, g, b, depth)
            child = self.children[node][slot]
            if child == NO_CHILD:
                child = self._new_node(depth + 1, node)
                self.children[node][slot] = child
            node = child
        self.r_sum[node] += r * count
        self.g_sum[node] += g * count
        self.b_sum[node] += b * count
        self.pixels[node] += count

    def finish_build(self) -> None:
        """Compute subtree leaf counts and populations after insertion."""
        # Children are always allocated after their parent
        for node in range(len(self.pixels) - 1, -1, -1):
            if self.is_leaf[node]:
                self.leaves[node] = 1
                self.population[node] = self.pixels[node]
                continue
            leaves = 0
            population = self.pixels[node]
            for child in self.live_children(node):
                leaves += self.leaves[child]
                population += self.population[child]
            self.leaves[node] = leaves
            self.population[node] = population

    def live_children(self, node: int) -> List[int]:
        return [c for c in self.children[node] if c != NO_CHILD]

    def descendants(self, node: int) -> Iterator[int]:
        stack = self.live_children(node)
        while stack:
            current = stack.pop()
            yield current
            stack.extend(self.live_children(current))

    def interior_nodes_by_depth(self) -> List[List[int]]:
        levels: List[List[int]] = [[] for _ in range(MAX_DEPTH)]
        stack = [self.root]
        while stack:
            node = stack.pop()
            if self.is_leaf[node]:
                continue
            levels[self.depth[node]].append(node)
            stack.extend(self.live_children(node))
        return levels

    def _take_sums(self, target: int, source: int) -> None:
        self.r_sum[target] += self.r_sum[source]
        self.g_sum[target] += self.g_sum[source]
        self.b_sum[target] += self.b_sum[source]
        self.pixels[target] += self.pixels[source]

    def _add_leaves(self, node: int, delta: int) -> None:
        while node != NO_CHILD:
            self.leaves[node] += delta
            node = self.parent[node]

    def palette_entry_count(self) -> int:
        """Leaves holding pixels plus interior nodes holding absorbed pixels."""
        count = 1 if self.pixels[self.root] > 0 else 0
        for node in self.descendants(self.root):
            if self.pixels[node] > 0:
                count += 1
        return count

    def collapse(self, node: int) -> int:
        """
        Fold the whole subtree of `node` into it and make it a leaf.

        Returns:
            Number of leaves removed.
        """
        removed = self.leaves[node] - 1
        for desc in list(self.descendants(node)):
            self._take_sums(node, desc)
        self.children[node] = [NO_CHILD] * 8
        self.is_leaf[node] = True
        self._add_leaves(node, -removed)
        return removed

    def absorb_child(self, target: int, slot: int) -> int:
        """
        Fold one child subtree into `target`'s own totals.

        `target` stays interior unless it has no children left.

        Returns:
            Change in the number of palette entries (<= 0).
        """
        child = self.children[target][slot]
        entries_before = 1 if self.pixels[target] > 0 else 0
        absorbed_entries = 0

        for node in [child, *self.descendants(child)]:
            if self.pixels[node] > 0:
                absorbed_entries += 1
            self._take_sums(target, node)
        self.children[target][slot] = NO_CHILD

        delta_leaves = -self.leaves[child]
        if not self.live_children(target):
            self.is_leaf[target] = True
            delta_leaves += 1
        self._add_leaves(target, delta_leaves)

        entries_after = 1 if self.pixels[target] > 0 else 0
        return entries_after - entries_before - absorbed_entries

    def find_absorption_target(self) -> int:
        """
        Shallowest interior node with at least two children, leftmost first.

        Falls back to the deepest interior node that already holds pixels so
        a single remaining chain can still be merged. NO_CHILD when neither
        exists.
        """
        fallback = NO_CHILD
        queue = deque([self.root])
        while queue:
            node = queue.popleft()
            if self.is_leaf[node]:
                continue
            children = self.live_children(node)
            if len(children) >= 2:
                return node
            if children and self.pixels[node] > 0:
                fallback = node
            queue.extend(children)
        return fallback

    def build_palette(self) -> Palette:
        """Assign palette indices in pre-order and return the palette."""
        palette: Palette = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            count = self.pixels[node]
            if count > 0:
                self.palette_index[node] = len(palette)
                mean = round_half_up(
                    [self.r_sum[node] / count, self.g_sum[node] / count, self.b_sum[node] / count]
                )
                palette.append((int(mean[0]), int(mean[1]), int(mean[2]), 255))
            if not self.is_leaf[node]:
                stack.extend(reversed(self.live_children(node)))
        return palette

    def lookup(self, r: int, g: int, b: int) -> int:
        """Palette index for a color, stopping at a leaf or pruned branch."""
        node = self.root
        for depth in range(MAX_DEPTH):
            if self.is_leaf[node]:
                break
            child = self.children[node][child_slot(r, g, b, depth)]
            if child == NO_CHILD:
                break
            node = child
        return self.palette_index[node]


def reduce_octree(tree: Octree, target_colors: int, weighted: bool = False) -> None:
    """
    Reduce the tree in place until it holds at most `target_colors` entries.

    Args:
        tree: A built octree (finish_build already called).
        target_colors: Desired palette size, >= 1.
        weighted: Order merges by pixel population instead of leaf count so
            frequent colors survive.
    """
    size_of: Callable[[int], int] = (
        (lambda n: tree.population[n]) if weighted else (lambda n: tree.leaves[n])
    )

    # Phase A: collapse interior nodes, deepest level first
    levels = tree.interior_nodes_by_depth()
    leaf_count = tree.leaves[tree.root]
    for depth in range(MAX_DEPTH - 1, -1, -1):
        if leaf_count <= target_colors:
            break
        for node in sorted(levels[depth], key=size_of):
            if leaf_count <= target_colors:
                break
            if tree.is_leaf[node]:
                continue
            reduction = tree.leaves[node] - 1
            if reduction <= 0:
                continue
            if leaf_count - reduction >= target_colors:
                leaf_count -= tree.collapse(node)

    # Phase B: absorb one child at a time near the root
    entries = tree.palette_entry_count()
    while entries > target_colors:
        target = tree.find_absorption_target()
        if target == NO_CHILD:
            break
        slot = min(
            (s for s, c in enumerate(tree.children[target]) if c != NO_CHILD),
            key=lambda s: size_of(tree.children[target][s]),
        )
        entries += tree.absorb_child(target, slot)

    logger.debug(
        "Octree reduced to %d entries (target %d, weighted=%s)",
        entries, target_colors, weighted,
    )


def _octree_quantize(
    buffer: BufferLike,
    width: int,
    height: int,
    target_colors: int,
    weighted: bool,
) -> QuantizeResult:
    pixels = as_pixels(buffer, width, height)
    pixel_count = len(pixels)

    if target_colors <= 0:
        return QuantizeResult.empty(pixel_count)

    opaque, colors, counts, inverse = distinct_opaque_colors(pixels)
    if len(colors) == 0:
        return QuantizeResult.empty(pixel_count)

    target = min(target_colors, len(colors))

    tree = Octree()
    for (r, g, b), count in zip(colors.tolist(), counts.tolist()):
        tree.insert(r, g, b, count)
    tree.finish_build()

    reduce_octree(tree, target, weighted=weighted)
    palette = tree.build_palette()

    color_index = np.array([tree.lookup(r, g, b) for r, g, b in colors.tolist()], dtype=np.int64)
    return QuantizeResult.from_assignment(pixels, opaque, color_index[inverse], palette)


def octree_quantize(
    buffer: BufferLike,
    width: int,
    height: int,
    target_colors: int,
) -> QuantizeResult:
    """
    Quantize an RGBA buffer with an octree.

    Args:
        buffer: Flat RGBA data.
        width: Image width.
        height: Image height.
        target_colors: Maximum palette size.

    Returns:
        QuantizeResult; transparent pixels stay (0, 0, 0, 0) with index 0.
    """
    return _octree_quantize(buffer, width, height, target_colors, weighted=False)


def octree_quantize_weighted(
    buffer: BufferLike,
    width: int,
    height: int,
    target_colors: int,
) -> QuantizeResult:
    """Octree quantization that merges the least-populated branches first."""
    return _octree_quantize(buffer, width, height, target_colors, weighted=True)
