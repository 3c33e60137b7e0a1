"""
PyForce: interactive force-directed graph layout.

Iterative force simulation (links, charge, centering, collision) with an
alpha cooling schedule, drag pinning and topology editing.
"""

__version__ = "0.1.0"

from .graph import Graph, GraphNode, GraphLink, TopologyEvent, sample_graph
from .forces import Force, LinkForce, ManyBodyForce, CenterForce, XForce, YForce
from .collide import CollideForce
from .simulation import Simulation, SimulationState, EventType, tick_nodes
from .drag import DragController, DragState
from .timer import ManualClock, AsyncioClock
from .render import SvgSink, make_snapshot, format_matrix
from .app import ForceGraph, create_simulation

__all__ = [
    "Graph", "GraphNode", "GraphLink", "TopologyEvent", "sample_graph",
    "Force", "LinkForce", "ManyBodyForce", "CenterForce", "XForce", "YForce",
    "CollideForce",
    "Simulation", "SimulationState", "EventType", "tick_nodes",
    "DragController", "DragState",
    "ManualClock", "AsyncioClock",
    "SvgSink", "make_snapshot", "format_matrix",
    "ForceGraph", "create_simulation",
]
