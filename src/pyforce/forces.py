"""
Force contributors for the layout simulation.

Each force is initialised with the simulation's node list and then called
once per tick with the current alpha. Forces adjust node velocities
(link, many-body, x, y) or positions (center) in place; the simulation
integrates velocities into positions after all forces have run.
"""

from __future__ import annotations

from typing import Optional, Callable, Union, Any
import math

import numpy as np

from .graph import GraphNode, GraphLink, as_node_lookup, link_end_id
from .lcg import RandomSource, jiggle
from .quadtree import QuadTree, Quad


# Default parameters
DEFAULT_LINK_DISTANCE = 100.0
DEFAULT_LINK_STRENGTH = 1.0
DEFAULT_CHARGE_STRENGTH = -30.0
DEFAULT_THETA = 0.9
DEFAULT_DISTANCE_MIN = 1.0
DEFAULT_AXIS_STRENGTH = 0.1

NodeAccessor = Union[float, Callable[[GraphNode, int, list], float]]
LinkAccessor = Union[float, Callable[[GraphLink, int, list], float]]


def _evaluate(accessor: Union[NodeAccessor, LinkAccessor], items: list) -> list[float]:
    """Evaluate a constant-or-callable parameter for every item."""
    if callable(accessor):
        return [float(accessor(item, i, items)) for i, item in enumerate(items)]
    return [float(accessor)] * len(items)


class Force:
    """
    Base class for force contributors.

    Subclasses override _initialize() to precompute per-node parameters
    and __call__() to apply the force for one tick.
    """

    def __init__(self):
        self._nodes: list[GraphNode] = []
        self._random: Optional[RandomSource] = None

    def initialize(self, nodes: list[GraphNode], random: RandomSource) -> None:
        """
        Bind the force to a node list.

        Args:
            nodes: Simulation nodes, with index, x and y assigned
            random: Random source used to jiggle degenerate geometry
        """
        self._nodes = nodes
        self._random = random
        self._initialize()

    def _initialize(self) -> None:
        pass

    def __call__(self, alpha: float) -> None:
        raise NotImplementedError


class LinkForce(Force):
    """
    Spring force pulling linked nodes toward a target separation.

    For a link (u, v) at distance l the correction applied this tick is
    (l - distance) / l * alpha * strength along the link, split between the
    endpoints in proportion to their degrees so that high-degree nodes move
    less.
    """

    def __init__(self, links: Optional[list] = None):
        super().__init__()
        self._links: list[GraphLink] = list(links or [])
        self._id: Callable[[GraphNode], str] = lambda node: node.id
        self._distance: LinkAccessor = DEFAULT_LINK_DISTANCE
        self._strength: LinkAccessor = DEFAULT_LINK_STRENGTH
        self._scale_by_degree: bool = False
        self._iterations: int = 1
        self._distances: list[float] = []
        self._strengths: list[float] = []
        self._bias: list[float] = []
        self._count: list[int] = []

    def _initialize(self) -> None:
        nodes = self._nodes
        if not nodes:
            return

        lookup = as_node_lookup(nodes, self._id)
        self._count = [0] * len(nodes)
        for i, link in enumerate(self._links):
            link.index = i
            link.source = self._resolve(link.source, lookup)
            link.target = self._resolve(link.target, lookup)
            self._count[link.source.index] += 1
            self._count[link.target.index] += 1

        self._bias = []
        for link in self._links:
            s = self._count[link.source.index]
            t = self._count[link.target.index]
            self._bias.append(s / (s + t))

        self._init_strength()
        self._init_distance()

    def _resolve(self, end: Union[str, GraphNode], lookup: dict[str, GraphNode]) -> GraphNode:
        if isinstance(end, GraphNode):
            end = self._id(end)
        node = lookup.get(end)
        if node is None:
            raise ValueError(f"node not found: {end}")
        return node

    def _init_strength(self) -> None:
        if not self._nodes:
            return
        self._strengths = _evaluate(self._strength, self._links)
        if self._scale_by_degree:
            for i, link in enumerate(self._links):
                self._strengths[i] /= min(
                    self._count[link.source.index],
                    self._count[link.target.index]
                )

    def _init_distance(self) -> None:
        if not self._nodes:
            return
        self._distances = _evaluate(self._distance, self._links)

    def __call__(self, alpha: float) -> None:
        random = self._random
        for _ in range(self._iterations):
            for i, link in enumerate(self._links):
                source = link.source
                target = link.target
                x = target.x + target.vx - source.x - source.vx or jiggle(random)
                y = target.y + target.vy - source.y - source.vy or jiggle(random)
                l = math.sqrt(x * x + y * y)
                l = (l - self._distances[i]) / l * alpha * self._strengths[i]
                x *= l
                y *= l
                b = self._bias[i]
                target.vx -= x * b
                target.vy -= y * b
                b = 1 - b
                source.vx += x * b
                source.vy += y * b

    def links(self, x: Optional[list] = None) -> Union[list[GraphLink], LinkForce]:
        """
        Get or set the links.

        Args:
            x: Optional list of GraphLink, dicts or (source, target) pairs

        Returns:
            Current links if x is None, otherwise self for chaining
        """
        if x is None:
            return self._links

        self._links = []
        for link_data in x:
            if isinstance(link_data, GraphLink):
                self._links.append(link_data)
            elif isinstance(link_data, dict):
                self._links.append(GraphLink(**link_data))
            else:
                source, target = link_data
                self._links.append(GraphLink(source, target))
        self._initialize()
        return self

    def id(self, f: Optional[Callable[[GraphNode], str]] = None) -> Union[Callable, LinkForce]:
        """Get or set the node id accessor used to resolve link endpoints."""
        if f is None:
            return self._id
        self._id = f
        return self

    def distance(self, x: Optional[LinkAccessor] = None) -> Union[LinkAccessor, LinkForce]:
        """Get or set the target link distance (constant or callable)."""
        if x is None:
            return self._distance
        self._distance = x
        self._init_distance()
        return self

    def strength(self, x: Optional[LinkAccessor] = None) -> Union[LinkAccessor, LinkForce]:
        """Get or set the link strength (constant or callable)."""
        if x is None:
            return self._strength
        self._strength = x
        self._init_strength()
        return self

    def scale_by_degree(self, v: Optional[bool] = None) -> Union[bool, LinkForce]:
        """
        Get or set degree scaling.

        When enabled, each link's strength is divided by the smaller degree
        of its endpoints so that high-degree nodes are not over-constrained.
        """
        if v is None:
            return self._scale_by_degree
        self._scale_by_degree = bool(v)
        self._init_strength()
        return self

    def iterations(self, x: Optional[int] = None) -> Union[int, LinkForce]:
        """Get or set the number of passes per tick."""
        if x is None:
            return self._iterations
        if x < 1:
            raise ValueError(f"iterations must be positive: {x}")
        self._iterations = int(x)
        return self


class ManyBodyForce(Force):
    """
    Mutual repulsion (negative strength) or attraction between all nodes.

    Uses the Barnes-Hut approximation: a quad whose width divided by its
    distance is below theta is treated as one body at its charge-weighted
    centroid. With theta = 0 every pair is computed exactly.
    """

    def __init__(self):
        super().__init__()
        self._strength: NodeAccessor = DEFAULT_CHARGE_STRENGTH
        self._theta2: float = DEFAULT_THETA * DEFAULT_THETA
        self._distance_min2: float = DEFAULT_DISTANCE_MIN * DEFAULT_DISTANCE_MIN
        self._distance_max2: float = math.inf
        self._strengths: list[float] = []

    def _initialize(self) -> None:
        self._strengths = _evaluate(self._strength, self._nodes)

    def _accumulate(self, quad: Quad) -> None:
        if quad.is_leaf:
            quad.x = quad.points[0][0]
            quad.y = quad.points[0][1]
            quad.value = sum(self._strengths[p[2].index] for p in quad.points)
            return

        strength = weight = x = y = 0.0
        for q in quad.children:
            if q is not None and q.value:
                c = abs(q.value)
                strength += q.value
                weight += c
                x += c * q.x
                y += c * q.y
        if weight:
            quad.x = x / weight
            quad.y = y / weight
        quad.value = strength

    def __call__(self, alpha: float) -> None:
        nodes = self._nodes
        if not nodes:
            return

        tree = QuadTree(nodes, lambda n: n.x, lambda n: n.y)
        tree.visit_after(self._accumulate)

        for node in nodes:
            tree.visit(self._visitor(node, alpha))

    def _visitor(self, node: GraphNode, alpha: float) -> Callable[[Quad], bool]:
        random = self._random
        theta2 = self._theta2
        distance_min2 = self._distance_min2
        distance_max2 = self._distance_max2
        strengths = self._strengths

        def apply(quad: Quad) -> bool:
            if not quad.value:
                return True

            x = quad.x - node.x
            y = quad.y - node.y
            w = quad.width
            l = x * x + y * y

            # Far enough away to treat the quad as a single body
            if w * w < l * theta2:
                if l < distance_max2:
                    if x == 0:
                        x = jiggle(random)
                        l += x * x
                    if y == 0:
                        y = jiggle(random)
                        l += y * y
                    if l < distance_min2:
                        l = math.sqrt(distance_min2 * l)
                    node.vx += x * quad.value * alpha / l
                    node.vy += y * quad.value * alpha / l
                return True

            if not quad.is_leaf:
                return False
            if l >= distance_max2:
                return True

            others = [p[2] for p in quad.points if p[2] is not node]
            if not others:
                return True
            if x == 0:
                x = jiggle(random)
                l += x * x
            if y == 0:
                y = jiggle(random)
                l += y * y
            if l < distance_min2:
                l = math.sqrt(distance_min2 * l)
            for other in others:
                w = strengths[other.index] * alpha / l
                node.vx += x * w
                node.vy += y * w
            return True

        return apply

    def strength(self, x: Optional[NodeAccessor] = None) -> Union[NodeAccessor, ManyBodyForce]:
        """Get or set the charge strength (negative repels)."""
        if x is None:
            return self._strength
        self._strength = x
        self._initialize()
        return self

    def theta(self, x: Optional[float] = None) -> Union[float, ManyBodyForce]:
        """Get or set the Barnes-Hut accuracy parameter (0 for exact)."""
        if x is None:
            return math.sqrt(self._theta2)
        self._theta2 = float(x) * float(x)
        return self

    def distance_min(self, x: Optional[float] = None) -> Union[float, ManyBodyForce]:
        """Get or set the distance floor that bounds force magnitude."""
        if x is None:
            return math.sqrt(self._distance_min2)
        if x <= 0:
            raise ValueError(f"distance_min must be positive: {x}")
        self._distance_min2 = float(x) * float(x)
        return self

    def distance_max(self, x: Optional[float] = None) -> Union[float, ManyBodyForce]:
        """Get or set the cut-off beyond which nodes do not interact."""
        if x is None:
            return math.sqrt(self._distance_max2)
        self._distance_max2 = float(x) * float(x)
        return self


class CenterForce(Force):
    """
    Translates all nodes so their centroid moves to a fixed point.

    Unlike the other forces this shifts positions directly; relative
    positions are unchanged.
    """

    def __init__(self, x: float = 0.0, y: float = 0.0):
        super().__init__()
        self._x = float(x)
        self._y = float(y)
        self._strength = 1.0

    def __call__(self, alpha: float) -> None:
        nodes = self._nodes
        n = len(nodes)
        if not n:
            return

        xs = np.fromiter((node.x for node in nodes), dtype=float, count=n)
        ys = np.fromiter((node.y for node in nodes), dtype=float, count=n)
        sx = (float(xs.mean()) - self._x) * self._strength
        sy = (float(ys.mean()) - self._y) * self._strength
        for node in nodes:
            node.x -= sx
            node.y -= sy

    def x(self, v: Optional[float] = None) -> Union[float, CenterForce]:
        """Get or set the target x coordinate."""
        if v is None:
            return self._x
        self._x = float(v)
        return self

    def y(self, v: Optional[float] = None) -> Union[float, CenterForce]:
        """Get or set the target y coordinate."""
        if v is None:
            return self._y
        self._y = float(v)
        return self

    def strength(self, v: Optional[float] = None) -> Union[float, CenterForce]:
        """Get or set the fraction of the centroid offset removed per tick."""
        if v is None:
            return self._strength
        self._strength = float(v)
        return self


class _AxisForce(Force):
    """Pulls each node toward a target coordinate on one axis."""

    axis = 'x'

    def __init__(self, target: NodeAccessor = 0.0):
        super().__init__()
        self._target: NodeAccessor = target
        self._strength: NodeAccessor = DEFAULT_AXIS_STRENGTH
        self._targets: list[float] = []
        self._strengths: list[float] = []

    def _initialize(self) -> None:
        self._targets = _evaluate(self._target, self._nodes)
        self._strengths = _evaluate(self._strength, self._nodes)

    def __call__(self, alpha: float) -> None:
        velocity = 'v' + self.axis
        for i, node in enumerate(self._nodes):
            delta = (self._targets[i] - getattr(node, self.axis)) * self._strengths[i] * alpha
            setattr(node, velocity, getattr(node, velocity) + delta)

    def strength(self, x: Optional[NodeAccessor] = None) -> Union[NodeAccessor, Any]:
        """Get or set the pull strength (constant or callable)."""
        if x is None:
            return self._strength
        self._strength = x
        self._initialize()
        return self

    def target(self, x: Optional[NodeAccessor] = None) -> Union[NodeAccessor, Any]:
        """Get or set the target coordinate (constant or callable)."""
        if x is None:
            return self._target
        self._target = x
        self._initialize()
        return self


class XForce(_AxisForce):
    """Pulls each node's x toward a target."""

    axis = 'x'


class YForce(_AxisForce):
    """Pulls each node's y toward a target."""

    axis = 'y'
