"""Tests for the simulation tick loop."""

import math

import pytest
import numpy as np
from pyforce.graph import GraphNode
from pyforce.forces import Force, ManyBodyForce, LinkForce, CenterForce
from pyforce.collide import CollideForce
from pyforce.timer import ManualClock
from pyforce.simulation import (
    Simulation, SimulationState, EventType, tick_nodes,
    ALPHA_MIN, ALPHA_DECAY, VELOCITY_DECAY
)


def make_nodes(*positions):
    return [GraphNode(f"n{i}", x=float(x), y=float(y)) for i, (x, y) in enumerate(positions)]


def params(alpha_target=0.0, alpha_decay=ALPHA_DECAY, velocity_decay=VELOCITY_DECAY):
    return {
        'alpha_target': alpha_target,
        'alpha_decay': alpha_decay,
        'velocity_decay': velocity_decay,
    }


class RecordingForce(Force):
    """Force that records the alphas it was called with."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def __call__(self, alpha):
        self.calls.append(alpha)


class TestTickNodes:
    """Test the tick function in isolation."""

    def test_velocity_integration(self):
        """Test damping then integration."""
        nodes = make_nodes((0, 0))
        nodes[0].vx = 10.0
        nodes[0].vy = -5.0
        tick_nodes(nodes, [], 1.0, params())
        assert nodes[0].vx == pytest.approx(6.0)
        assert nodes[0].x == pytest.approx(6.0)
        assert nodes[0].y == pytest.approx(-3.0)

    def test_alpha_decay(self):
        """Test the returned alpha moves toward the target."""
        assert tick_nodes([], [], 1.0, params()) == pytest.approx(1 - ALPHA_DECAY)
        assert tick_nodes([], [], 0.0, params(alpha_target=0.3, alpha_decay=0.5)) == pytest.approx(0.15)

    def test_forces_called_in_order_with_alpha(self):
        """Test forces receive the pre-decay alpha in order."""
        order = []

        class Named(Force):
            def __init__(self, name):
                super().__init__()
                self.name = name

            def __call__(self, alpha):
                order.append((self.name, alpha))

        tick_nodes([], [Named('link'), Named('charge')], 0.5, params())
        assert order == [('link', 0.5), ('charge', 0.5)]

    def test_pinned_node_clamped(self):
        """Test pinned nodes sit at (fx, fy) with zero velocity."""
        nodes = make_nodes((0, 0))
        nodes[0].fx = 7.0
        nodes[0].fy = 8.0
        nodes[0].vx = 100.0
        tick_nodes(nodes, [], 1.0, params())
        assert (nodes[0].x, nodes[0].y) == (7.0, 8.0)
        assert (nodes[0].vx, nodes[0].vy) == (0.0, 0.0)


class TestSimulationConfig:
    """Test configuration accessors."""

    def test_defaults(self):
        """Test default parameters."""
        sim = Simulation()
        assert sim.alpha() == 1.0
        assert sim.alpha_min() == ALPHA_MIN
        assert sim.alpha_decay() == pytest.approx(0.0228, abs=1e-4)
        assert sim.alpha_target() == 0.0
        assert sim.velocity_decay() == VELOCITY_DECAY
        assert sim.state is SimulationState.idle
        assert sim.nodes() == []

    def test_fluent_api(self):
        """Test setters return the simulation."""
        sim = Simulation()
        assert sim.alpha(0.5) is sim
        assert sim.alpha_target(0.1) is sim
        assert sim.alpha() == 0.5
        assert sim.alpha_target() == 0.1

    def test_invalid_decay(self):
        """Test decays outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            Simulation().alpha_decay(2)
        with pytest.raises(ValueError):
            Simulation().velocity_decay(-0.1)

    def test_force_registry(self):
        """Test registering, replacing and removing forces."""
        sim = Simulation(make_nodes((0, 0), (10, 0)))
        charge = ManyBodyForce()
        sim.force('link', LinkForce()).force('charge', charge).force('center', CenterForce())
        assert sim.force_names() == ['link', 'charge', 'center']
        assert sim.force('charge') is charge

        sim.force('charge', ManyBodyForce().strength(-100))
        assert sim.force_names() == ['link', 'charge', 'center']
        assert sim.force('charge').strength() == -100

        sim.remove_force('link')
        assert sim.force_names() == ['charge', 'center']
        assert sim.force('link') is None

    def test_force_none_removes(self):
        """Test registering None under a name removes that force."""
        sim = Simulation(make_nodes((0, 0), (10, 0)))
        sim.force('charge', ManyBodyForce()).force('center', CenterForce())
        assert sim.force('charge', None) is sim
        assert sim.force('charge') is None
        assert sim.force_names() == ['center']
        # Removing an absent force is a no-op
        sim.force('charge', None)
        assert sim.force_names() == ['center']

    def test_force_initialized_on_register(self):
        """Test a registered force sees the current nodes."""
        nodes = make_nodes((0, 0), (10, 0))
        sim = Simulation(nodes)
        force = RecordingForce()
        sim.force('rec', force)
        assert force._nodes == nodes


class TestSeeding:
    """Test node initialisation."""

    def test_indices_assigned(self):
        """Test nodes get their list positions as indices."""
        sim = Simulation(make_nodes((0, 0), (1, 1), (2, 2)))
        assert [n.index for n in sim.nodes()] == [0, 1, 2]

    def test_unplaced_nodes_seeded_around_origin(self):
        """Test nodes without positions are spread on a spiral."""
        nodes = [GraphNode(f"n{i}") for i in range(10)]
        sim = Simulation().origin((400, 300))
        sim.nodes(nodes)
        pts = sim.positions()
        assert np.all(np.isfinite(pts))
        assert len({(round(x, 6), round(y, 6)) for x, y in pts}) == 10
        assert np.all(np.hypot(pts[:, 0] - 400, pts[:, 1] - 300) < 50)

    def test_placed_nodes_keep_position(self):
        """Test re-seeding keeps existing positions and clears velocity."""
        nodes = make_nodes((5, 6), (7, 8))
        nodes[0].vx = 3.0
        sim = Simulation(nodes)
        assert (nodes[0].x, nodes[0].y) == (5.0, 6.0)
        assert nodes[0].vx == 0.0

    def test_nan_position_reseeded(self):
        """Test non-finite positions count as unplaced."""
        nodes = make_nodes((float('nan'), 0))
        Simulation(nodes)
        assert math.isfinite(nodes[0].x)

    def test_pinned_node_starts_at_pin(self):
        """Test pinned nodes are moved to their pin on seeding."""
        node = GraphNode('a', fx=1.0, fy=2.0)
        Simulation([node])
        assert (node.x, node.y) == (1.0, 2.0)


class TestTickLoop:
    """Test scheduling and convergence."""

    def make_sim(self, clock=None):
        sim = Simulation(make_nodes((0, 0), (10, 0), (0, 10), (30, 30)), clock=clock)
        sim.force('charge', ManyBodyForce()).force('center', CenterForce())
        return sim

    def test_converges_within_bound(self):
        """Test alpha falls below alpha_min within 400 ticks."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.restart()
        assert sim.state is SimulationState.running
        frames = clock.run_until_idle()
        assert sim.state is SimulationState.idle
        assert sim.alpha() < ALPHA_MIN
        assert frames <= 400
        assert clock.pending == 0

    def test_kick_runs_synchronously(self):
        """Test kick runs to convergence without the clock."""
        sim = self.make_sim()
        sim.restart()
        ticks = sim.kick()
        assert 250 < ticks <= 301
        assert sim.state is SimulationState.idle

    def test_kick_with_bound(self):
        """Test a bounded kick leaves the simulation running."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.restart()
        assert sim.kick(10) == 10
        assert sim.state is SimulationState.running
        assert clock.pending == 1

    def test_kick_when_idle(self):
        """Test kicking an idle simulation does nothing."""
        assert self.make_sim().kick() == 0

    def test_positions_finite(self):
        """Test a full run never produces NaN or inf."""
        sim = Simulation(make_nodes((0, 0), (0, 0), (0, 0), (1e-9, 0)))
        sim.force('charge', ManyBodyForce().strength(-1000)).force('collide', CollideForce(20))
        sim.restart()
        sim.kick()
        assert np.all(np.isfinite(sim.positions()))

    def test_events(self):
        """Test start, tick and end are fired."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        events = []
        sim.on('start', lambda e: events.append(e['type']))
        sim.on(EventType.tick, lambda e: events.append(e['type']))
        sim.on('end', lambda e: events.append(e['type']))
        sim.restart()
        clock.run_until_idle()
        assert events[0] == EventType.start
        assert events[-1] == EventType.end
        assert events.count(EventType.end) == 1
        assert events.count(EventType.tick) == len(events) - 2

    def test_restart_while_running_does_not_refire_start(self):
        """Test start fires only on the idle to running transition."""
        sim = self.make_sim()
        starts = []
        sim.on('start', starts.append)
        sim.restart()
        sim.restart()
        assert len(starts) == 1

    def test_off(self):
        """Test unsubscribing a listener."""
        sim = self.make_sim()
        ticks = []
        listener = ticks.append
        sim.on('tick', listener)
        sim.off('tick', listener)
        sim.restart()
        sim.kick(5)
        assert ticks == []

    def test_unknown_event_name(self):
        """Test unknown event names raise."""
        with pytest.raises(KeyError):
            Simulation().on('bogus', lambda e: None)

    def test_restart_uses_alpha_target_if_higher(self):
        """Test restart alpha is at least alpha_target."""
        sim = self.make_sim()
        sim.alpha_target(0.5).restart(0.2)
        assert sim.alpha() == 0.5
        sim.alpha_target(0).restart()
        assert sim.alpha() == 1.0

    def test_hot_target_keeps_running(self):
        """Test alpha_target above alpha_min prevents convergence."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.alpha_target(0.3).restart()
        clock.advance(1000)
        assert sim.state is SimulationState.running
        assert sim.alpha() == pytest.approx(0.3, abs=1e-3)

    def test_stop_cancels_frame(self):
        """Test stop cancels the pending frame."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.restart()
        sim.stop()
        assert sim.state is SimulationState.idle
        assert clock.pending == 0
        assert clock.advance() == 0

    def test_listener_can_stop(self):
        """Test stopping from a tick listener ends the loop."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.on('tick', lambda e: sim.stop())
        sim.restart()
        assert clock.run_until_idle() == 1
        assert sim.state is SimulationState.idle

    def test_single_pending_frame(self):
        """Test restarting from a tick listener does not double-schedule."""
        clock = ManualClock()
        sim = self.make_sim(clock)
        sim.on('tick', lambda e: sim.restart())
        sim.restart()
        clock.advance(3)
        assert clock.pending == 1

    def test_topology_change_during_tick_rejected(self):
        """Test nodes cannot be replaced while forces run."""
        sim = self.make_sim()

        class Meddler(Force):
            def __call__(self, alpha):
                sim.nodes([])

        sim.force('meddler', Meddler())
        with pytest.raises(RuntimeError):
            sim.tick()
        # The guard is released afterwards
        sim.remove_force('meddler')
        sim.nodes([])

    def test_pinned_node_never_moves(self):
        """Test forces cannot move a pinned node over many ticks."""
        nodes = make_nodes((0, 0), (5, 0), (0, 5), (3, 3))
        nodes[0].fx = 0.0
        nodes[0].fy = 0.0
        sim = Simulation(nodes)
        sim.force('charge', ManyBodyForce().strength(-1000))
        sim.force('collide', CollideForce(50))
        sim.force('center', CenterForce(500, 500))
        for _ in range(100):
            sim.tick()
            assert (nodes[0].x, nodes[0].y) == (0.0, 0.0)

    def test_find(self):
        """Test nearest node lookup."""
        sim = Simulation(make_nodes((0, 0), (100, 0)))
        assert sim.find(90, 5).id == 'n1'
        assert sim.find(50, 500, radius=10) is None
