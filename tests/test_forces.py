"""Tests for force contributors."""

import math

import pytest
import numpy as np
from pyforce.graph import GraphNode, GraphLink
from pyforce.lcg import PseudoRandom
from pyforce.forces import (
    LinkForce, ManyBodyForce, CenterForce, XForce, YForce,
    DEFAULT_LINK_DISTANCE, DEFAULT_CHARGE_STRENGTH
)


def make_nodes(*positions):
    """Nodes with ids n0, n1, ... at the given positions."""
    return [GraphNode(f"n{i}", index=i, x=float(x), y=float(y)) for i, (x, y) in enumerate(positions)]


def random_nodes(n, seed=7, scale=500.0):
    rng = np.random.default_rng(seed)
    return make_nodes(*rng.uniform(0, scale, size=(n, 2)))


def velocities(nodes):
    return np.array([[n.vx, n.vy] for n in nodes])


class TestLinkForce:
    """Test LinkForce class."""

    def test_defaults(self):
        """Test default parameters."""
        force = LinkForce()
        assert force.distance() == DEFAULT_LINK_DISTANCE
        assert force.strength() == 1.0
        assert force.scale_by_degree() is False
        assert force.iterations() == 1
        assert force.links() == []

    def test_fluent_api(self):
        """Test setters return the force."""
        force = LinkForce()
        assert force.distance(150) is force
        assert force.strength(0.5) is force
        assert force.iterations(2) is force

    def test_resolves_ids(self):
        """Test link endpoints are resolved to nodes."""
        nodes = make_nodes((0, 0), (200, 0))
        force = LinkForce([GraphLink('n0', 'n1')])
        force.initialize(nodes, PseudoRandom())
        link = force.links()[0]
        assert link.source is nodes[0]
        assert link.target is nodes[1]
        assert link.index == 0

    def test_links_from_pairs(self):
        """Test links may be given as pairs or dicts."""
        force = LinkForce().links([('a', 'b'), {'source': 'b', 'target': 'c'}])
        assert len(force.links()) == 2
        assert force.links()[1].target == 'c'

    def test_unknown_node(self):
        """Test links to unknown ids raise."""
        force = LinkForce([GraphLink('n0', 'zz')])
        with pytest.raises(ValueError, match="node not found"):
            force.initialize(make_nodes((0, 0)), PseudoRandom())

    def test_stretched_link_pulls_together(self):
        """Test a link longer than its distance pulls endpoints inward."""
        nodes = make_nodes((0, 0), (200, 0))
        force = LinkForce([GraphLink('n0', 'n1')]).distance(100)
        force.initialize(nodes, PseudoRandom())
        force(1.0)

        # (200 - 100) / 200 * 200 = 100, split evenly
        assert nodes[0].vx == pytest.approx(50.0)
        assert nodes[1].vx == pytest.approx(-50.0)
        assert nodes[0].vy == pytest.approx(0.0, abs=1e-6)

    def test_compressed_link_pushes_apart(self):
        """Test a link shorter than its distance pushes endpoints outward."""
        nodes = make_nodes((0, 0), (50, 0))
        force = LinkForce([GraphLink('n0', 'n1')]).distance(100)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert nodes[0].vx == pytest.approx(-25.0)
        assert nodes[1].vx == pytest.approx(25.0)

    def test_scales_with_alpha(self):
        """Test the correction is proportional to alpha."""
        nodes = make_nodes((0, 0), (200, 0))
        force = LinkForce([GraphLink('n0', 'n1')]).distance(100)
        force.initialize(nodes, PseudoRandom())
        force(0.1)
        assert nodes[0].vx == pytest.approx(5.0)

    def test_degree_bias(self):
        """Test a high-degree node moves less than its leaf neighbour."""
        nodes = make_nodes((0, 0), (200, 0), (-200, 0), (0, 200))
        links = [GraphLink('n0', 'n1'), GraphLink('n0', 'n2'), GraphLink('n0', 'n3')]
        force = LinkForce(links).distance(100)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        # Leaf n1 takes 3/4 of its link's correction
        assert nodes[1].vx == pytest.approx(-75.0)

    def test_scale_by_degree(self):
        """Test strength divided by the smaller endpoint degree."""
        nodes = make_nodes((0, 0), (100, 0), (50, 80))
        links = [GraphLink('n0', 'n1'), GraphLink('n1', 'n2'), GraphLink('n2', 'n0')]
        force = LinkForce(links).scale_by_degree(True)
        force.initialize(nodes, PseudoRandom())
        assert force._strengths == [0.5, 0.5, 0.5]

    def test_callable_distance(self):
        """Test per-link distances."""
        nodes = make_nodes((0, 0), (200, 0))
        force = LinkForce([GraphLink('n0', 'n1', length=200.0)])
        force.distance(lambda link, i, links: link.length)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert nodes[0].vx == pytest.approx(0.0)

    def test_coincident_endpoints_finite(self):
        """Test coincident endpoints get a finite push."""
        nodes = make_nodes((5, 5), (5, 5))
        force = LinkForce([GraphLink('n0', 'n1')])
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        v = velocities(nodes)
        assert np.all(np.isfinite(v))
        assert np.any(v != 0)

    def test_invalid_iterations(self):
        """Test iterations must be positive."""
        with pytest.raises(ValueError):
            LinkForce().iterations(0)


class TestManyBodyForce:
    """Test ManyBodyForce class."""

    def test_defaults(self):
        """Test default parameters."""
        force = ManyBodyForce()
        assert force.strength() == DEFAULT_CHARGE_STRENGTH
        assert force.theta() == pytest.approx(0.9)
        assert force.distance_min() == pytest.approx(1.0)
        assert force.distance_max() == math.inf

    def test_two_nodes_repel(self):
        """Test the pairwise repulsion magnitude."""
        nodes = make_nodes((0, 0), (10, 0))
        force = ManyBodyForce()
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        # x * strength * alpha / l^2 = 10 * -30 / 100
        assert nodes[0].vx == pytest.approx(-3.0)
        assert nodes[1].vx == pytest.approx(3.0)

    def test_exact_matches_approximation_for_pair(self):
        """Test theta 0 and default theta agree for two nodes."""
        a = make_nodes((0, 0), (10, 0))
        b = make_nodes((0, 0), (10, 0))
        fa = ManyBodyForce().theta(0)
        fb = ManyBodyForce()
        fa.initialize(a, PseudoRandom())
        fb.initialize(b, PseudoRandom())
        fa(1.0)
        fb(1.0)
        assert np.allclose(velocities(a), velocities(b))

    def test_exact_conserves_momentum(self):
        """Test exact pairwise forces sum to zero."""
        nodes = random_nodes(30)
        force = ManyBodyForce().theta(0)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        total = velocities(nodes).sum(axis=0)
        assert np.allclose(total, 0.0, atol=1e-9)

    def test_barnes_hut_close_to_exact(self):
        """Test the approximation stays close to exact forces."""
        exact = random_nodes(60)
        approx = random_nodes(60)
        fe = ManyBodyForce().theta(0)
        fa = ManyBodyForce().theta(0.5)
        fe.initialize(exact, PseudoRandom())
        fa.initialize(approx, PseudoRandom())
        fe(1.0)
        fa(1.0)
        ve = velocities(exact)
        va = velocities(approx)
        assert np.linalg.norm(va - ve) / np.linalg.norm(ve) < 0.1

    def test_coincident_nodes_finite(self):
        """Test coincident nodes are separated without NaN or inf."""
        nodes = make_nodes((3, 3), (3, 3), (3, 3))
        force = ManyBodyForce().strength(-1000)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        v = velocities(nodes)
        assert np.all(np.isfinite(v))
        assert np.any(v != 0)

    def test_distance_min_bounds_force(self):
        """Test very close nodes are treated as distance_min apart."""
        nodes = make_nodes((0, 0), (0.1, 0))
        force = ManyBodyForce().theta(0)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        # l^2 = 0.01 is floored to sqrt(1 * 0.01) = 0.1
        assert nodes[0].vx == pytest.approx(-30.0)

    def test_distance_max_cuts_off(self):
        """Test nodes beyond distance_max do not interact."""
        nodes = make_nodes((0, 0), (100, 0))
        force = ManyBodyForce().theta(0).distance_max(50)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert nodes[0].vx == 0.0
        assert nodes[1].vx == 0.0

    def test_callable_strength(self):
        """Test per-node strengths."""
        nodes = make_nodes((0, 0), (10, 0))
        force = ManyBodyForce().strength(lambda node, i, nodes: 0.0 if i == 1 else -30.0)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        # n1 carries no charge so n0 feels nothing
        assert nodes[0].vx == 0.0
        assert nodes[1].vx == pytest.approx(3.0)

    def test_invalid_distance_min(self):
        """Test distance_min must be positive."""
        with pytest.raises(ValueError):
            ManyBodyForce().distance_min(0)


class TestCenterForce:
    """Test CenterForce class."""

    def test_moves_centroid(self):
        """Test the centroid lands on the target and shape is kept."""
        nodes = make_nodes((0, 0), (10, 0), (5, 20))
        force = CenterForce(100, 100)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        xs = [n.x for n in nodes]
        ys = [n.y for n in nodes]
        assert np.mean(xs) == pytest.approx(100.0)
        assert np.mean(ys) == pytest.approx(100.0)
        assert xs[1] - xs[0] == pytest.approx(10.0)

    def test_partial_strength(self):
        """Test strength below 1 moves part way."""
        nodes = make_nodes((0, 0), (10, 0))
        force = CenterForce(105, 0).strength(0.5)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert np.mean([n.x for n in nodes]) == pytest.approx(55.0)

    def test_getters(self):
        """Test fluent getters."""
        force = CenterForce(1, 2)
        assert force.x() == 1.0
        assert force.y() == 2.0
        assert force.strength() == 1.0

    def test_empty(self):
        """Test no nodes is harmless."""
        force = CenterForce()
        force.initialize([], PseudoRandom())
        force(1.0)


class TestAxisForces:
    """Test XForce and YForce."""

    def test_x_pull(self):
        """Test x velocity moves toward target."""
        nodes = make_nodes((0, 0))
        force = XForce(100)
        force.initialize(nodes, PseudoRandom())
        force(0.5)
        assert nodes[0].vx == pytest.approx(100 * 0.1 * 0.5)
        assert nodes[0].vy == 0.0

    def test_y_pull(self):
        """Test y velocity moves toward target."""
        nodes = make_nodes((0, 50))
        force = YForce(0).strength(0.2)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert nodes[0].vy == pytest.approx(-10.0)
        assert nodes[0].vx == 0.0

    def test_callable_target(self):
        """Test per-node targets."""
        nodes = make_nodes((0, 0), (0, 0))
        force = XForce().target(lambda node, i, nodes: 10.0 * i)
        force.initialize(nodes, PseudoRandom())
        force(1.0)
        assert nodes[0].vx == 0.0
        assert nodes[1].vx == pytest.approx(1.0)
