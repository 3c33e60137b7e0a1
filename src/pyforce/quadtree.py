"""
Region quadtree over node positions.

Used by the many-body force for the Barnes-Hut approximation: internal
quads aggregate the charge of the nodes below them so distant clusters can
be treated as a single body.
"""

from __future__ import annotations

from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")

# Coincident points share a leaf; this bounds subdivision for near-coincident ones
MAX_DEPTH = 32


class Quad(Generic[T]):
    """
    Square region of the tree.

    A leaf holds its points as (x, y, item) triples; an internal quad holds
    up to four children indexed by (bottom << 1) | right. The value, x and
    y slots are free for aggregation by visitors.
    """

    __slots__ = ('x0', 'y0', 'x1', 'y1', 'children', 'points', 'value', 'x', 'y')

    def __init__(self, x0: float, y0: float, x1: float, y1: float):
        self.x0 = x0
        self.y0 = y0
        self.x1 = x1
        self.y1 = y1
        self.children: Optional[list[Optional[Quad[T]]]] = None
        self.points: list[tuple[float, float, T]] = []
        self.value: float = 0.0
        self.x: float = 0.0
        self.y: float = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    def child_for(self, x: float, y: float) -> int:
        xm = (self.x0 + self.x1) / 2
        ym = (self.y0 + self.y1) / 2
        return (int(y >= ym) << 1) | int(x >= xm)

    def make_child(self, i: int) -> Quad[T]:
        xm = (self.x0 + self.x1) / 2
        ym = (self.y0 + self.y1) / 2
        x0, x1 = (xm, self.x1) if i & 1 else (self.x0, xm)
        y0, y1 = (ym, self.y1) if i & 2 else (self.y0, ym)
        return Quad(x0, y0, x1, y1)


class QuadTree(Generic[T]):
    """Point quadtree built once over a list of items."""

    def __init__(
        self,
        items: list[T],
        x: Callable[[T], float],
        y: Callable[[T], float]
    ):
        """
        Build the tree.

        Args:
            items: Items to index
            x: Accessor for an item's x coordinate
            y: Accessor for an item's y coordinate
        """
        coords = [(x(item), y(item), item) for item in items]
        self.size = len(coords)
        self.root: Optional[Quad[T]] = None
        if not coords:
            return

        x0 = min(c[0] for c in coords)
        y0 = min(c[1] for c in coords)
        extent = max(
            max(c[0] for c in coords) - x0,
            max(c[1] for c in coords) - y0
        )
        if extent <= 0:
            extent = 1.0
        # Pad so points on the far edge fall strictly inside
        extent *= 1.0 + 1e-9
        self.root = Quad(x0, y0, x0 + extent, y0 + extent)

        for px, py, item in coords:
            self._insert(px, py, item)

    def _insert(self, px: float, py: float, item: T) -> None:
        quad = self.root
        depth = 0
        while True:
            if quad.children is not None:
                i = quad.child_for(px, py)
                child = quad.children[i]
                if child is None:
                    child = quad.children[i] = quad.make_child(i)
                quad = child
                depth += 1
                continue

            if (not quad.points or depth >= MAX_DEPTH
                    or (quad.points[0][0] == px and quad.points[0][1] == py)):
                quad.points.append((px, py, item))
                return

            # Split the leaf and push its (mutually coincident) points down
            existing = quad.points
            quad.points = []
            quad.children = [None, None, None, None]
            i = quad.child_for(existing[0][0], existing[0][1])
            child = quad.children[i] = quad.make_child(i)
            child.points = existing

    def visit(self, callback: Callable[[Quad[T]], bool]) -> None:
        """
        Visit quads in pre-order.

        Args:
            callback: Called with each quad; return True to skip its children
        """
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            quad = stack.pop()
            if callback(quad) or quad.children is None:
                continue
            for child in reversed(quad.children):
                if child is not None:
                    stack.append(child)

    def visit_after(self, callback: Callable[[Quad[T]], None]) -> None:
        """
        Visit quads in post-order (children before their parent).

        Args:
            callback: Called with each quad
        """
        if self.root is None:
            return
        order = []
        stack = [self.root]
        while stack:
            quad = stack.pop()
            order.append(quad)
            if quad.children is not None:
                for child in quad.children:
                    if child is not None:
                        stack.append(child)
        for quad in reversed(order):
            callback(quad)

    def data(self) -> list[T]:
        """Get all items, in tree order."""
        items: list[T] = []

        def collect(quad: Quad[T]) -> bool:
            items.extend(p[2] for p in quad.points)
            return False

        self.visit(collect)
        return items
