"""
Force simulation integrator and tick loop.

This module implements the Simulation class which provides:
- Node seeding (phyllotaxis placement for unplaced nodes)
- A named, ordered registry of forces
- Damped integration of velocities into positions
- The alpha cooling schedule and convergence detection
- Frame scheduling on a clock, with cancellation
- Event system (start/tick/end events)
"""

from __future__ import annotations

from typing import Any, Optional, Callable, Union, TypedDict
from enum import IntEnum
import logging
import math

import numpy as np

from .forces import Force
from .graph import GraphNode
from .lcg import PseudoRandom, RandomSource
from .timer import Clock, FrameHandle, ManualClock

logger = logging.getLogger(__name__)


# Default cooling schedule: alpha falls from 1 to ALPHA_MIN in ~300 ticks
ALPHA_MIN = 0.001
ALPHA_DECAY = 1 - ALPHA_MIN ** (1 / 300)
VELOCITY_DECAY = 0.4
RESTART_ALPHA = 1.0

# Phyllotaxis seeding of unplaced nodes
INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))

# Getter sentinel for force(); None there means removal
_MISSING = object()


class EventType(IntEnum):
    """
    The simulation fires three events:
    - start: the simulation went from idle to running
    - tick: fired once per frame after positions are updated
    - end: alpha fell below alpha_min and the simulation went idle
    """
    start = 0
    tick = 1
    end = 2


class SimulationState(IntEnum):
    """Scheduling state of the tick loop."""
    idle = 0
    running = 1


class Event(TypedDict, total=False):
    """Event dictionary passed to event listeners."""
    type: EventType
    alpha: float


class TickParams(TypedDict):
    """Cooling and friction parameters for a single tick."""
    alpha_target: float
    alpha_decay: float
    velocity_decay: float


def tick_nodes(
    nodes: list[GraphNode],
    forces: list[Force],
    alpha: float,
    params: TickParams
) -> float:
    """
    Advance nodes by one tick.

    Forces are applied in order, then velocities are damped and integrated
    into positions. Pinned nodes are clamped to (fx, fy) with zero velocity.

    Args:
        nodes: Initialised simulation nodes (updated in place)
        forces: Forces to apply, in application order
        alpha: Current alpha
        params: Cooling and friction parameters

    Returns:
        The decayed alpha for the next tick
    """
    for force in forces:
        force(alpha)

    damping = 1 - params['velocity_decay']
    for node in nodes:
        if node.fx is None:
            node.vx *= damping
            node.x += node.vx
        else:
            node.x = node.fx
            node.vx = 0.0
        if node.fy is None:
            node.vy *= damping
            node.y += node.vy
        else:
            node.y = node.fy
            node.vy = 0.0

    return alpha + (params['alpha_target'] - alpha) * params['alpha_decay']


def _placed(v: Optional[float]) -> bool:
    return v is not None and math.isfinite(v)


class Simulation:
    """
    Force-directed layout simulation.

    The simulation is idle until restart() is called. While running it
    requests one frame at a time from its clock and ticks once per frame
    until alpha falls below alpha_min.
    """

    def __init__(self, nodes: Optional[list[GraphNode]] = None, clock: Optional[Clock] = None):
        """
        Initialize simulation with default parameters.

        Args:
            nodes: Optional initial nodes
            clock: Frame clock; a ManualClock if omitted
        """
        self._alpha: float = 1.0
        self._alpha_min: float = ALPHA_MIN
        self._alpha_decay: float = ALPHA_DECAY
        self._alpha_target: float = 0.0
        self._velocity_decay: float = VELOCITY_DECAY
        self._origin: tuple[float, float] = (0.0, 0.0)
        self._random: RandomSource = PseudoRandom()
        self._nodes: list[GraphNode] = []
        self._forces: dict[str, Force] = {}
        self._clock: Clock = clock if clock is not None else ManualClock()
        self._handle: Optional[FrameHandle] = None
        self._state: SimulationState = SimulationState.idle
        self._ticking: bool = False
        self._ticks: int = 0

        # Event system - listener lists keyed by event type
        self.event: Optional[dict[EventType, list[Callable[[Event], None]]]] = None

        if nodes is not None:
            self.nodes(nodes)

    @property
    def state(self) -> SimulationState:
        return self._state

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def ticks(self) -> int:
        """Total ticks run, counting batch tick() calls."""
        return self._ticks

    def on(self, e: Union[EventType, str], listener: Callable[[Event], None]) -> Simulation:
        """
        Subscribe a listener to an event.

        Args:
            e: Event type (EventType enum or string name)
            listener: Function to call when event fires

        Returns:
            self for method chaining
        """
        if self.event is None:
            self.event = {}

        event_type = EventType[e] if isinstance(e, str) else e
        self.event.setdefault(event_type, []).append(listener)
        return self

    def off(self, e: Union[EventType, str], listener: Callable[[Event], None]) -> Simulation:
        """Unsubscribe a listener (no-op if not subscribed)."""
        event_type = EventType[e] if isinstance(e, str) else e
        if self.event and listener in self.event.get(event_type, []):
            self.event[event_type].remove(listener)
        return self

    def trigger(self, e: Event) -> None:
        """
        Trigger an event by calling registered listeners.

        Args:
            e: Event to trigger
        """
        if self.event and e['type'] in self.event:
            for listener in list(self.event[e['type']]):
                listener(e)

    def _check_not_ticking(self, what: str) -> None:
        if self._ticking:
            raise RuntimeError(f"cannot change {what} during a tick")

    def nodes(self, v: Optional[list[GraphNode]] = None) -> Union[list[GraphNode], Simulation]:
        """
        Get or set the nodes.

        Setting nodes re-seeds the simulation: indices are reassigned,
        pinned nodes are moved to their fixed position, unplaced nodes are
        laid out on a phyllotaxis spiral around the origin, velocities are
        reset and every force is re-initialised. Placed nodes keep their
        positions.

        Args:
            v: Optional list of nodes to set

        Returns:
            Current nodes if v is None, otherwise self for chaining
        """
        if v is None:
            return self._nodes

        self._check_not_ticking("nodes")
        self._nodes = list(v)
        self._initialize_nodes()
        for force in self._forces.values():
            force.initialize(self._nodes, self._random)
        return self

    def _initialize_nodes(self) -> None:
        ox, oy = self._origin
        for i, node in enumerate(self._nodes):
            node.index = i
            if node.fx is not None:
                node.x = node.fx
            if node.fy is not None:
                node.y = node.fy
            if not _placed(node.x) or not _placed(node.y):
                radius = INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * INITIAL_ANGLE
                node.x = ox + radius * math.cos(angle)
                node.y = oy + radius * math.sin(angle)
            node.vx = 0.0
            node.vy = 0.0

    def force(self, name: str, f: Any = _MISSING) -> Union[Optional[Force], Simulation]:
        """
        Get, register or remove a named force.

        Registering under an existing name replaces that force in place;
        new names are appended to the application order. Passing None
        removes the force.

        Args:
            name: Force name
            f: Optional force to register, or None to remove

        Returns:
            The named force (or None) if f is omitted, otherwise self for chaining
        """
        if f is _MISSING:
            return self._forces.get(name)
        if f is None:
            return self.remove_force(name)

        self._check_not_ticking("forces")
        f.initialize(self._nodes, self._random)
        self._forces[name] = f
        return self

    def remove_force(self, name: str) -> Simulation:
        """Unregister a named force (no-op if absent)."""
        self._check_not_ticking("forces")
        self._forces.pop(name, None)
        return self

    def force_names(self) -> list[str]:
        """Get force names in application order."""
        return list(self._forces)

    def alpha(self, x: Optional[float] = None) -> Union[float, Simulation]:
        """Get or set alpha (the current cooling level)."""
        if x is None:
            return self._alpha
        self._alpha = float(x)
        return self

    def alpha_min(self, x: Optional[float] = None) -> Union[float, Simulation]:
        """Get or set the alpha below which the simulation goes idle."""
        if x is None:
            return self._alpha_min
        self._alpha_min = float(x)
        return self

    def alpha_decay(self, x: Optional[float] = None) -> Union[float, Simulation]:
        """Get or set the fraction of (alpha_target - alpha) applied per tick."""
        if x is None:
            return self._alpha_decay
        if not 0 <= x <= 1:
            raise ValueError(f"alpha_decay must be in [0, 1]: {x}")
        self._alpha_decay = float(x)
        return self

    def alpha_target(self, x: Optional[float] = None) -> Union[float, Simulation]:
        """Get or set the value alpha decays toward."""
        if x is None:
            return self._alpha_target
        self._alpha_target = float(x)
        return self

    def velocity_decay(self, x: Optional[float] = None) -> Union[float, Simulation]:
        """
        Get or set velocity decay.

        Each tick velocities are multiplied by (1 - velocity_decay).
        """
        if x is None:
            return self._velocity_decay
        if not 0 <= x <= 1:
            raise ValueError(f"velocity_decay must be in [0, 1]: {x}")
        self._velocity_decay = float(x)
        return self

    def origin(self, x: Optional[tuple[float, float]] = None) -> Union[tuple[float, float], Simulation]:
        """Get or set the point around which unplaced nodes are seeded."""
        if x is None:
            return self._origin
        self._origin = (float(x[0]), float(x[1]))
        return self

    def random_source(self, x: Optional[RandomSource] = None) -> Union[RandomSource, Simulation]:
        """Get or set the random source used to jiggle degenerate geometry."""
        if x is None:
            return self._random
        self._random = x
        for force in self._forces.values():
            force.initialize(self._nodes, self._random)
        return self

    def params(self) -> TickParams:
        """Get the current tick parameters."""
        return {
            'alpha_target': self._alpha_target,
            'alpha_decay': self._alpha_decay,
            'velocity_decay': self._velocity_decay,
        }

    def tick(self, iterations: int = 1) -> Simulation:
        """
        Advance the simulation without firing events or scheduling frames.

        Args:
            iterations: Number of ticks to run

        Returns:
            self for method chaining
        """
        self._check_not_ticking("the tick loop")
        forces = list(self._forces.values())
        params = self.params()
        self._ticking = True
        try:
            for _ in range(iterations):
                self._alpha = tick_nodes(self._nodes, forces, self._alpha, params)
                self._ticks += 1
        finally:
            self._ticking = False
        return self

    def _request_frame(self) -> None:
        if self._handle is None:
            self._handle = self._clock.request_frame(self.step)

    def _cancel_frame(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _advance(self) -> bool:
        """Run one tick with events; return True once idle."""
        self.tick()
        self.trigger({'type': EventType.tick, 'alpha': self._alpha})

        # A tick listener may have stopped the simulation
        if self._state is SimulationState.idle:
            return True

        if self._alpha < self._alpha_min:
            logger.debug("simulation converged at alpha %.6f", self._alpha)
            self._state = SimulationState.idle
            self._cancel_frame()
            self.trigger({'type': EventType.end, 'alpha': self._alpha})
            return True
        return False

    def step(self) -> None:
        """Frame callback: tick once and request the next frame if still hot."""
        self._handle = None
        if self._state is not SimulationState.running:
            return
        if not self._advance():
            self._request_frame()

    def restart(self, alpha: Optional[float] = None) -> Simulation:
        """
        Reheat the simulation and schedule ticks.

        Args:
            alpha: Restart value, RESTART_ALPHA if omitted; alpha becomes
                   the larger of this and alpha_target

        Returns:
            self for method chaining
        """
        value = RESTART_ALPHA if alpha is None else float(alpha)
        self._alpha = max(value, self._alpha_target)

        was_idle = self._state is SimulationState.idle
        self._state = SimulationState.running
        if was_idle:
            logger.debug("simulation restarted at alpha %.3f", self._alpha)
            self.trigger({'type': EventType.start, 'alpha': self._alpha})
        self._request_frame()
        return self

    def stop(self) -> Simulation:
        """
        Stop ticking and cancel any pending frame.

        Returns:
            self for method chaining
        """
        self._cancel_frame()
        if self._state is SimulationState.running:
            logger.debug("simulation stopped at alpha %.6f", self._alpha)
        self._state = SimulationState.idle
        return self

    def kick(self, max_ticks: Optional[int] = None) -> int:
        """
        Run the tick loop synchronously until idle.

        Args:
            max_ticks: Optional bound on the number of ticks

        Returns:
            Number of ticks run
        """
        self._cancel_frame()
        n = 0
        while self._state is SimulationState.running:
            if max_ticks is not None and n >= max_ticks:
                self._request_frame()
                break
            n += 1
            if self._advance():
                break
        return n

    def find(self, x: float, y: float, radius: float = math.inf) -> Optional[GraphNode]:
        """
        Find the node closest to a point.

        Args:
            x, y: Query point
            radius: Search radius

        Returns:
            Closest node within radius, or None
        """
        closest = None
        best = radius * radius
        for node in self._nodes:
            dx = x - node.x
            dy = y - node.y
            d2 = dx * dx + dy * dy
            if d2 < best:
                closest = node
                best = d2
        return closest

    def positions(self) -> np.ndarray:
        """Get node positions as an (n, 2) array in node order."""
        if not self._nodes:
            return np.zeros((0, 2))
        return np.array([[node.x, node.y] for node in self._nodes], dtype=float)
