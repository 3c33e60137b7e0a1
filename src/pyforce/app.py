"""
Application container wiring graph, simulation, drag control and sinks.

ForceGraph owns one Graph and one Simulation configured like the
interactive diagram: springy links, strong repulsion, centering, collision
and a gentle pull toward the middle of the viewport. Every topology change
on the graph re-seeds the simulation and reheats it.
"""

from __future__ import annotations

from typing import Optional
import asyncio
import logging

import numpy as np

from .collide import CollideForce
from .drag import DragController
from .forces import CenterForce, LinkForce, ManyBodyForce, XForce, YForce
from .graph import Graph, GraphNode, TopologyEvent, sample_graph
from .render import RenderSink, Snapshot, make_snapshot
from .simulation import Event, EventType, Simulation, SimulationState
from .timer import Clock

logger = logging.getLogger(__name__)


DEFAULT_WIDTH = 800
DEFAULT_HEIGHT = 600
LINK_DISTANCE = 150.0
LINK_STRENGTH = 1.0
CHARGE_STRENGTH = -1000.0
COLLIDE_RADIUS = 50.0
AXIS_STRENGTH = 0.1


def create_simulation(
    graph: Graph,
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
    clock: Optional[Clock] = None
) -> Simulation:
    """
    Build a simulation over a graph.

    Forces are applied in the order link, charge, collision, center, x, y.

    Args:
        graph: Graph whose nodes and links are simulated
        width, height: Viewport size; forces center on its middle
        clock: Frame clock for the simulation

    Returns:
        An idle simulation; call restart() to run it
    """
    cx = width / 2
    cy = height / 2
    simulation = Simulation(clock=clock).origin((cx, cy))
    simulation.nodes(graph.nodes())
    return (
        simulation
        .force('link', LinkForce(graph.links_from_adjacency())
               .distance(LINK_DISTANCE)
               .strength(LINK_STRENGTH))
        .force('charge', ManyBodyForce().strength(CHARGE_STRENGTH))
        .force('collision', CollideForce(COLLIDE_RADIUS))
        .force('center', CenterForce(cx, cy))
        .force('x', XForce(cx).strength(AXIS_STRENGTH))
        .force('y', YForce(cy).strength(AXIS_STRENGTH))
    )


class ForceGraph:
    """Interactive force-directed diagram of a graph."""

    def __init__(
        self,
        graph: Optional[Graph] = None,
        width: float = DEFAULT_WIDTH,
        height: float = DEFAULT_HEIGHT,
        clock: Optional[Clock] = None
    ):
        """
        Initialize diagram.

        Args:
            graph: Graph to lay out; the five-node sample graph if omitted
            width, height: Viewport size
            clock: Frame clock; a ManualClock if omitted
        """
        self.graph = graph if graph is not None else sample_graph()
        self.width = width
        self.height = height
        self.simulation = create_simulation(self.graph, width, height, clock)
        self.drag = DragController(self.simulation, self.graph)
        self._sinks: list[RenderSink] = []
        self._waiters: list[asyncio.Future] = []
        self._closed = False

        self.simulation.on(EventType.tick, self._on_tick)
        self.simulation.on(EventType.end, self._on_end)
        self.graph.on_change(self._on_topology_change)

    @property
    def link_force(self) -> LinkForce:
        return self.simulation.force('link')

    def start(self) -> ForceGraph:
        """Start (or reheat) the simulation."""
        self.simulation.restart()
        return self

    def run(self, max_ticks: Optional[int] = None) -> int:
        """
        Start the simulation and tick it synchronously until idle.

        Returns:
            Number of ticks run
        """
        self.simulation.restart()
        return self.simulation.kick(max_ticks)

    async def wait_idle(self) -> float:
        """
        Wait until the simulation goes idle or the diagram is closed.

        Returns:
            The alpha at which it converged or was stopped
        """
        if self._closed or self.simulation.state is SimulationState.idle:
            return self.simulation.alpha()

        done: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_end(e: Event) -> None:
            if not done.done():
                done.set_result(e['alpha'])

        self.simulation.on(EventType.end, on_end)
        self._waiters.append(done)
        try:
            return await done
        finally:
            self.simulation.off(EventType.end, on_end)
            self._waiters.remove(done)

    def add_sink(self, sink: RenderSink) -> ForceGraph:
        """Register a sink to receive a snapshot after every tick."""
        self._sinks.append(sink)
        return self

    def remove_sink(self, sink: RenderSink) -> ForceGraph:
        if sink in self._sinks:
            self._sinks.remove(sink)
        return self

    def snapshot(self) -> Snapshot:
        """Copy the current node positions and links."""
        return make_snapshot(
            self.simulation.nodes(),
            self.link_force.links(),
            self.simulation.alpha()
        )

    def positions(self) -> np.ndarray:
        """Get node positions as an (n, 2) array in graph order."""
        return self.simulation.positions()

    def _on_tick(self, e: Event) -> None:
        if not self._sinks:
            return
        snapshot = self.snapshot()
        for sink in self._sinks:
            sink.render(snapshot)

    def _on_end(self, e: Event) -> None:
        finishers = [s.finish for s in self._sinks if hasattr(s, 'finish')]
        if not finishers:
            return
        snapshot = self.snapshot()
        for finish in finishers:
            finish(snapshot)

    def _on_topology_change(self, event: TopologyEvent) -> None:
        logger.debug("topology changed: %r", event)
        if event.kind == 'node_removed':
            self.drag.forget(event.ids[0])
        self.reseed()

    def reseed(self) -> None:
        """Rebuild the simulation's node and link sets and reheat it."""
        link_force = self.link_force
        # Old links may name nodes that are gone; detach them before re-seeding
        link_force.links([])
        self.simulation.nodes(self.graph.nodes())
        link_force.links(self.graph.links_from_adjacency())
        self.simulation.restart()

    def toggle_edge(self, a: str, b: str) -> bool:
        """Toggle the edge a-b (see Graph.toggle_edge)."""
        return self.graph.toggle_edge(a, b)

    def add_node(self, id: Optional[str] = None, group: int = 1) -> GraphNode:
        """Add an unconnected node; it is seeded near the viewport centre."""
        return self.graph.add_node(id, group=group)

    def remove_node(self, id: str) -> bool:
        """Remove a node and its edges."""
        return self.graph.remove_node(id)

    def drag_start(self, node_id: str, x: Optional[float] = None, y: Optional[float] = None) -> bool:
        return self.drag.drag_start(node_id, x, y)

    def drag_move(self, node_id: str, x: float, y: float) -> bool:
        return self.drag.drag_move(node_id, x, y)

    def drag_end(self, node_id: str) -> bool:
        return self.drag.drag_end(node_id)

    def close(self) -> None:
        """Stop the simulation and detach every listener; pending wait_idle() calls return."""
        if self._closed:
            return
        self._closed = True
        self.simulation.stop()
        self.simulation.off(EventType.tick, self._on_tick)
        self.simulation.off(EventType.end, self._on_end)
        self.graph.off_change(self._on_topology_change)
        self.drag.close()
        self._sinks = []
        for done in self._waiters:
            if not done.done():
                done.set_result(self.simulation.alpha())
