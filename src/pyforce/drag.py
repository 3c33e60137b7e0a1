"""
Drag and pin handling.

While a node is dragged it is pinned: its fixed position follows the
pointer and the integrator clamps it there. The first drag heats the
simulation by raising alpha_target so the rest of the layout keeps moving
around the dragged node; releasing the last drag lets it cool again.
"""

from __future__ import annotations

from typing import Optional
from enum import IntEnum
import logging

from .graph import Graph, GraphNode
from .simulation import Event, EventType, Simulation, SimulationState

logger = logging.getLogger(__name__)


HOT_ALPHA_TARGET = 0.3


class DragState(IntEnum):
    """
    Per-node drag state:
    - free: moved by the simulation
    - dragging: pinned to the pointer position
    - released: pin just cleared; becomes free after the next tick
    """
    free = 0
    dragging = 1
    released = 2


class DragController:
    """Routes pointer drag events to node pins on a simulation."""

    def __init__(
        self,
        simulation: Simulation,
        graph: Optional[Graph] = None,
        hot_alpha_target: float = HOT_ALPHA_TARGET
    ):
        """
        Initialize controller.

        Args:
            simulation: Simulation whose nodes are dragged
            graph: Optional graph used to look nodes up by id; the
                   simulation's node list is searched otherwise
            hot_alpha_target: alpha_target held while any drag is active
        """
        self.simulation = simulation
        self.graph = graph
        self.hot_alpha_target = hot_alpha_target
        self._states: dict[str, DragState] = {}
        # Simulation tick count at each release
        self._released_at: dict[str, int] = {}
        simulation.on(EventType.tick, self._on_tick)

    @property
    def active(self) -> int:
        """Number of nodes currently being dragged."""
        return sum(1 for s in self._states.values() if s is DragState.dragging)

    def state(self, node_id: str) -> DragState:
        """Get the drag state of a node."""
        s = self._states.get(node_id, DragState.free)
        if s is DragState.released and self.simulation.ticks > self._released_at[node_id]:
            return DragState.free
        return s

    def _lookup(self, node_id: str) -> Optional[GraphNode]:
        if self.graph is not None:
            return self.graph.node(node_id)
        for node in self.simulation.nodes():
            if node.id == node_id:
                return node
        return None

    def drag_start(self, node_id: str, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        """
        Pin a node and heat the simulation.

        Args:
            node_id: Node being dragged
            x, y: Pointer position; the node's current position if omitted

        Returns:
            True if the event was applied
        """
        node = self._lookup(node_id)
        if node is None:
            logger.debug("ignoring drag start on unknown node %s", node_id)
            return False
        if self.state(node_id) is DragState.dragging:
            logger.debug("ignoring repeated drag start on %s", node_id)
            return False

        if self.active == 0:
            self.simulation.alpha_target(self.hot_alpha_target)
            if self.simulation.state is SimulationState.idle:
                self.simulation.restart(self.hot_alpha_target)

        node.fx = node.x if x is None else float(x)
        node.fy = node.y if y is None else float(y)
        self._states[node_id] = DragState.dragging
        self._released_at.pop(node_id, None)
        return True

    def drag_move(self, node_id: str, x: float, y: float) -> bool:
        """
        Move a dragged node's pin.

        Args:
            node_id: Node being dragged
            x, y: Pointer position

        Returns:
            True if the event was applied
        """
        node = self._lookup(node_id)
        if node is None or self.state(node_id) is not DragState.dragging:
            logger.debug("ignoring drag move on %s: not being dragged", node_id)
            return False

        node.fx = float(x)
        node.fy = float(y)
        return True

    def drag_end(self, node_id: str) -> bool:
        """
        Release a dragged node.

        The pin is cleared immediately; when no drag remains active the
        simulation is allowed to cool.

        Args:
            node_id: Node being released

        Returns:
            True if the event was applied
        """
        node = self._lookup(node_id)
        if node is None or self.state(node_id) is not DragState.dragging:
            logger.debug("ignoring drag end on %s: not being dragged", node_id)
            return False

        node.fx = None
        node.fy = None
        self._states[node_id] = DragState.released
        self._released_at[node_id] = self.simulation.ticks
        if self.active == 0:
            self.simulation.alpha_target(0.0)
        return True

    def forget(self, node_id: str) -> None:
        """Drop any drag state for a node that left the graph."""
        self._released_at.pop(node_id, None)
        if self._states.pop(node_id, None) is DragState.dragging and self.active == 0:
            self.simulation.alpha_target(0.0)

    def _on_tick(self, e: Event) -> None:
        for node_id, s in list(self._states.items()):
            if s is DragState.released:
                del self._states[node_id]
                del self._released_at[node_id]

    def close(self) -> None:
        """Detach from the simulation."""
        self.simulation.off(EventType.tick, self._on_tick)
