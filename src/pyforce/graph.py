"""
Graph model for the force-directed diagram.

This module holds the node set and derives the undirected link set from
node adjacency. Adjacency is always symmetric: every mutation goes through
the Graph, which updates both endpoints together and then notifies
topology listeners so the simulation can be re-seeded.
"""

from __future__ import annotations

from typing import Optional, Callable, Union, Any, Iterator, Literal
import logging
import uuid

import numpy as np

logger = logging.getLogger(__name__)


TopologyKind = Literal['edge', 'node_added', 'node_removed']


class GraphNode:
    """
    Diagram node with simulation kinematics.

    Attributes:
        id: Unique, stable identity within the graph
        group: Display group (used for colouring only)
        index: Position in the simulation's node list, set on initialisation
        x, y: Position, None until the node is first placed
        vx, vy: Velocity
        fx, fy: Fixed position, set only while the node is pinned
    """

    def __init__(self, id: str, group: int = 1, **kwargs):
        self.id = id
        self.group = group
        self.index: Optional[int] = kwargs.get('index')
        self.x: Optional[float] = kwargs.get('x')
        self.y: Optional[float] = kwargs.get('y')
        self.vx: float = kwargs.get('vx', 0.0)
        self.vy: float = kwargs.get('vy', 0.0)
        self.fx: Optional[float] = kwargs.get('fx')
        self.fy: Optional[float] = kwargs.get('fy')
        self._neighbours: set[str] = set()

        # Copy over any additional properties
        for key, value in kwargs.items():
            if not hasattr(self, key):
                setattr(self, key, value)

    @property
    def neighbours(self) -> frozenset[str]:
        """Ids adjacent to this node (read-only view)."""
        return frozenset(self._neighbours)

    @property
    def degree(self) -> int:
        return len(self._neighbours)

    @property
    def pinned(self) -> bool:
        return self.fx is not None or self.fy is not None

    def __repr__(self) -> str:
        return f"GraphNode({self.id!r}, group={self.group}, x={self.x}, y={self.y})"


class GraphLink:
    """
    Undirected link between two nodes.

    Attributes:
        source: Source node id (or node, once resolved by a link force)
        target: Target node id (or node, once resolved by a link force)
        value: Weight, used for rendering thickness only
        index: Position in the link list, set by the link force
    """

    def __init__(
        self,
        source: Union[str, GraphNode],
        target: Union[str, GraphNode],
        value: float = 1.0,
        **kwargs
    ):
        self.source = source
        self.target = target
        self.value = value
        self.index: Optional[int] = kwargs.get('index')

        for key, value in kwargs.items():
            if not hasattr(self, key):
                setattr(self, key, value)

    def __repr__(self) -> str:
        return f"GraphLink({link_end_id(self.source)!r}, {link_end_id(self.target)!r})"


def link_end_id(end: Union[str, GraphNode]) -> str:
    """Get the id of a link endpoint, which may be an id or a node."""
    if isinstance(end, GraphNode):
        return end.id
    return end


class TopologyEvent:
    """
    Notification that the node or link set changed shape.

    Attributes:
        kind: 'edge', 'node_added' or 'node_removed'
        ids: Node ids involved in the change
    """

    def __init__(self, kind: TopologyKind, ids: tuple[str, ...]):
        self.kind = kind
        self.ids = ids

    def __repr__(self) -> str:
        return f"TopologyEvent({self.kind!r}, {self.ids!r})"


TopologyListener = Callable[[TopologyEvent], None]


class Graph:
    """
    Node set with symmetric adjacency.

    Links are not stored; they are derived on demand by
    links_from_adjacency().
    """

    def __init__(self, nodes: Optional[list] = None, links: Optional[list] = None):
        """
        Initialize graph.

        Args:
            nodes: Nodes as GraphNode instances or dicts with an 'id' key
            links: Links as (a, b) pairs, dicts with 'source'/'target',
                   or GraphLink instances
        """
        self._nodes: dict[str, GraphNode] = {}
        self._listeners: list[TopologyListener] = []

        for node_data in nodes or []:
            if isinstance(node_data, GraphNode):
                node = node_data
                # Adjacency comes from links only
                node._neighbours.clear()
            elif isinstance(node_data, dict):
                node = GraphNode(**node_data)
            else:
                raise ValueError(f"cannot build a node from {node_data!r}")
            if node.id in self._nodes:
                raise ValueError(f"duplicate node id: {node.id}")
            self._nodes[node.id] = node

        for link_data in links or []:
            if isinstance(link_data, GraphLink):
                a, b = link_end_id(link_data.source), link_end_id(link_data.target)
            elif isinstance(link_data, dict):
                a, b = link_end_id(link_data['source']), link_end_id(link_data['target'])
            else:
                a, b = link_data
            for end in (a, b):
                if end not in self._nodes:
                    raise ValueError(f"node not found: {end}")
            if a != b:
                self._connect(a, b)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, id: object) -> bool:
        return id in self._nodes

    def __iter__(self) -> Iterator[GraphNode]:
        return iter(self._nodes.values())

    def nodes(self) -> list[GraphNode]:
        """Get nodes in insertion order."""
        return list(self._nodes.values())

    def node(self, id: str) -> Optional[GraphNode]:
        """Get a node by id, or None if absent."""
        return self._nodes.get(id)

    def has_edge(self, a: str, b: str) -> bool:
        """Check whether a and b are adjacent (in either direction)."""
        na = self._nodes.get(a)
        nb = self._nodes.get(b)
        if na is None or nb is None:
            return False
        return b in na._neighbours or a in nb._neighbours

    def degree(self, id: str) -> int:
        """Get the number of neighbours of a node (0 if absent)."""
        node = self._nodes.get(id)
        return node.degree if node is not None else 0

    def on_change(self, listener: TopologyListener) -> Graph:
        """
        Subscribe to topology changes.

        Args:
            listener: Called with a TopologyEvent after every change

        Returns:
            self for method chaining
        """
        self._listeners.append(listener)
        return self

    def off_change(self, listener: TopologyListener) -> Graph:
        """Unsubscribe a topology listener (no-op if not subscribed)."""
        if listener in self._listeners:
            self._listeners.remove(listener)
        return self

    def _notify(self, event: TopologyEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _connect(self, a: str, b: str) -> None:
        self._nodes[a]._neighbours.add(b)
        self._nodes[b]._neighbours.add(a)

    def _disconnect(self, a: str, b: str) -> None:
        self._nodes[a]._neighbours.discard(b)
        self._nodes[b]._neighbours.discard(a)

    def toggle_edge(self, a: str, b: str) -> bool:
        """
        Add the edge a-b if absent, otherwise remove it.

        Self-loops and unknown ids are ignored. Both endpoints are updated
        together so adjacency stays symmetric.

        Args:
            a: First node id
            b: Second node id

        Returns:
            True if the topology changed
        """
        if a == b:
            logger.debug("ignoring self-loop toggle on %s", a)
            return False
        if a not in self._nodes or b not in self._nodes:
            logger.debug("ignoring toggle of unknown edge %s-%s", a, b)
            return False

        if self.has_edge(a, b):
            self._disconnect(a, b)
        else:
            self._connect(a, b)

        self._notify(TopologyEvent('edge', (a, b)))
        return True

    def add_node(
        self,
        id: Optional[str] = None,
        group: int = 1,
        x: Optional[float] = None,
        y: Optional[float] = None
    ) -> GraphNode:
        """
        Append a new, unconnected node.

        Args:
            id: Identity to use; a fresh uuid4 hex string if omitted
            group: Display group
            x, y: Optional initial position

        Returns:
            The new node
        """
        if id is None:
            id = uuid.uuid4().hex
        elif id in self._nodes:
            raise ValueError(f"duplicate node id: {id}")

        node = GraphNode(id, group=group, x=x, y=y)
        self._nodes[id] = node
        self._notify(TopologyEvent('node_added', (id,)))
        return node

    def remove_node(self, id: str) -> bool:
        """
        Remove a node and every edge touching it.

        Args:
            id: Node id

        Returns:
            True if the node existed
        """
        node = self._nodes.get(id)
        if node is None:
            logger.debug("ignoring removal of unknown node %s", id)
            return False

        for other in list(node._neighbours):
            self._disconnect(id, other)
        del self._nodes[id]
        self._notify(TopologyEvent('node_removed', (id,)))
        return True

    def links_from_adjacency(self) -> list[GraphLink]:
        """
        Derive the undirected link list.

        Each edge is emitted exactly once, from the endpoint whose id sorts
        first. The result is ordered by node insertion order, then by
        neighbour id.

        Returns:
            List of links with string ids as source and target
        """
        links = []
        for node in self._nodes.values():
            for other in sorted(node._neighbours):
                if node.id < other:
                    links.append(GraphLink(node.id, other))
        return links

    def adjacency_matrix(self) -> np.ndarray:
        """
        Get the adjacency matrix in node insertion order.

        Returns:
            Symmetric n x n boolean array
        """
        ids = list(self._nodes)
        position = {id: i for i, id in enumerate(ids)}
        m = np.zeros((len(ids), len(ids)), dtype=bool)
        for i, id in enumerate(ids):
            for other in self._nodes[id]._neighbours:
                m[i, position[other]] = True
        return m


def sample_graph() -> Graph:
    """Five nodes in three groups, linked as a 5-cycle."""
    nodes = [
        {'id': 'Node 1', 'group': 1},
        {'id': 'Node 2', 'group': 1},
        {'id': 'Node 3', 'group': 2},
        {'id': 'Node 4', 'group': 2},
        {'id': 'Node 5', 'group': 3},
    ]
    links = [
        ('Node 1', 'Node 2'),
        ('Node 2', 'Node 3'),
        ('Node 3', 'Node 4'),
        ('Node 4', 'Node 5'),
        ('Node 5', 'Node 1'),
    ]
    return Graph(nodes, links)


def as_node_lookup(nodes: list[Any], id_of: Callable[[Any], str]) -> dict[str, Any]:
    """Map ids to nodes using the given accessor."""
    return {id_of(n): n for n in nodes}
