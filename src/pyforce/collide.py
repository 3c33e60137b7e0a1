"""
Collision resolution for circular nodes.

Overlapping pairs are found with a sweep line over x: nodes enter the
scanline at their left edge and leave at their right edge, and the
scanline is kept ordered by y so only nodes whose bounding boxes overlap
vertically are tested. Each overlapping pair is then pushed apart along
the line between their centres.
"""

from __future__ import annotations

from typing import Optional, Union
import math

import numpy as np
from sortedcontainers import SortedKeyList

from .forces import Force, NodeAccessor, _evaluate
from .graph import GraphNode
from .lcg import jiggle


DEFAULT_RADIUS = 50.0


class _Event:
    """Scanline event: a node's bounding box opening or closing on x."""

    __slots__ = ('is_open', 'index', 'pos')

    def __init__(self, is_open: bool, index: int, pos: float):
        self.is_open = is_open
        self.index = index
        self.pos = pos


def _event_key(e: _Event) -> tuple[float, int, int]:
    # Close before open at equal positions: touching boxes do not overlap
    return (e.pos, int(e.is_open), e.index)


def overlapping_pairs(xs: np.ndarray, ys: np.ndarray, radii: np.ndarray) -> list[tuple[int, int]]:
    """
    Find all pairs of circles that overlap.

    Args:
        xs: Centre x coordinates
        ys: Centre y coordinates
        radii: Circle radii

    Returns:
        List of (i, j) index pairs with i != j, each pair reported once
    """
    n = len(xs)
    if n < 2:
        return []

    events: list[_Event] = []
    for i in range(n):
        events.append(_Event(True, i, xs[i] - radii[i]))
        events.append(_Event(False, i, xs[i] + radii[i]))
    events.sort(key=_event_key)

    r_max = float(radii.max())
    scanline = SortedKeyList(key=lambda i: ys[i])
    pairs: list[tuple[int, int]] = []

    for e in events:
        i = e.index
        if not e.is_open:
            scanline.remove(i)
            continue

        reach = radii[i] + r_max
        for j in scanline.irange_key(ys[i] - reach, ys[i] + reach):
            r = radii[i] + radii[j]
            dx = xs[i] - xs[j]
            dy = ys[i] - ys[j]
            if dx * dx + dy * dy < r * r:
                pairs.append((j, i))
        scanline.add(i)

    return pairs


class CollideForce(Force):
    """
    Keeps nodes from overlapping by positional correction.

    Each overlapping pair is displaced along the line between its centres.
    The correction is split in inverse proportion to radius squared (equally
    for equal radii); a pinned node keeps its place and its partner takes
    the whole correction.
    """

    def __init__(self, radius: NodeAccessor = DEFAULT_RADIUS):
        super().__init__()
        self._radius: NodeAccessor = radius
        self._strength: float = 1.0
        self._iterations: int = 1
        self._radii: np.ndarray = np.zeros(0)

    def _initialize(self) -> None:
        radii = _evaluate(self._radius, self._nodes)
        if any(r < 0 for r in radii):
            raise ValueError("collision radius must not be negative")
        self._radii = np.array(radii, dtype=float)

    def __call__(self, alpha: float) -> None:
        self.resolve()

    def resolve(self) -> int:
        """
        Separate overlapping nodes.

        Returns:
            Number of pair corrections applied
        """
        nodes = self._nodes
        n = len(nodes)
        corrected = 0
        if n < 2:
            return corrected

        for _ in range(self._iterations):
            xs = np.fromiter((node.x for node in nodes), dtype=float, count=n)
            ys = np.fromiter((node.y for node in nodes), dtype=float, count=n)
            for i, j in overlapping_pairs(xs, ys, self._radii):
                if self._separate(nodes[i], nodes[j], self._radii[i], self._radii[j]):
                    corrected += 1
        return corrected

    def _separate(self, a: GraphNode, b: GraphNode, ra: float, rb: float) -> bool:
        """Push a and b apart if they still overlap; return True if moved."""
        r = ra + rb
        x = a.x - b.x
        y = a.y - b.y
        if x * x + y * y >= r * r:
            return False

        if a.pinned and b.pinned:
            return False
        if a.pinned:
            wa = 0.0
        elif b.pinned:
            wa = 1.0
        else:
            ra2 = ra * ra
            rb2 = rb * rb
            wa = rb2 / (ra2 + rb2)
        wb = 1.0 - wa

        if x == 0:
            x = jiggle(self._random)
        if y == 0:
            y = jiggle(self._random)
        l = math.sqrt(x * x + y * y)
        l = (r - l) / l * self._strength
        x *= l
        y *= l
        a.x += x * wa
        a.y += y * wa
        b.x -= x * wb
        b.y -= y * wb
        return True

    def radius(self, x: Optional[NodeAccessor] = None) -> Union[NodeAccessor, CollideForce]:
        """Get or set the node radius (constant or callable)."""
        if x is None:
            return self._radius
        self._radius = x
        self._initialize()
        return self

    def strength(self, x: Optional[float] = None) -> Union[float, CollideForce]:
        """Get or set the fraction of each overlap removed per pass."""
        if x is None:
            return self._strength
        self._strength = float(x)
        return self

    def iterations(self, x: Optional[int] = None) -> Union[int, CollideForce]:
        """Get or set the number of passes per tick."""
        if x is None:
            return self._iterations
        if x < 1:
            raise ValueError(f"iterations must be positive: {x}")
        self._iterations = int(x)
        return self
