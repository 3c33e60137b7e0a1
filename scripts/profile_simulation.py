"""
Profiling script for PyForce simulation performance analysis.

This script profiles layouts of random graphs of increasing size to find
where tick time goes (charge approximation, collision sweep, link springs).
"""

import cProfile
import pstats
import io
from pstats import SortKey
import time
import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
from pyforce.graph import Graph
from pyforce.app import ForceGraph
from pyforce.forces import ManyBodyForce


def create_graph(n_nodes, n_edges):
    """Create a random graph with n nodes and approximately n_edges edges."""
    graph = Graph([{'id': f"n{i}", 'group': i % 10} for i in range(n_nodes)])

    np.random.seed(42)
    for _ in range(n_edges):
        source = np.random.randint(0, n_nodes)
        target = np.random.randint(0, n_nodes)
        if source != target and not graph.has_edge(f"n{source}", f"n{target}"):
            graph.toggle_edge(f"n{source}", f"n{target}")

    return graph


def run_layout(n_nodes, n_edges, max_ticks=None, exact_charge=False):
    diagram = ForceGraph(create_graph(n_nodes, n_edges), width=2000, height=2000)
    if exact_charge:
        diagram.simulation.force('charge', ManyBodyForce().strength(-1000).theta(0))
    diagram.run(max_ticks)
    diagram.close()


def profile_small_graph():
    """Profile a small graph (20 nodes, 30 edges)."""
    run_layout(20, 30)


def profile_medium_graph():
    """Profile a medium graph (100 nodes, 200 edges)."""
    run_layout(100, 200, max_ticks=100)


def profile_large_graph():
    """Profile a large graph (500 nodes, 1000 edges)."""
    run_layout(500, 1000, max_ticks=30)


def profile_exact_charge():
    """Profile all-pairs repulsion for comparison with Barnes-Hut."""
    run_layout(100, 200, max_ticks=100, exact_charge=True)


def benchmark_scenario(name, func):
    """Benchmark a scenario and print timing."""
    print(f"\n{'='*60}")
    print(f"Profiling: {name}")
    print('='*60)

    profiler = cProfile.Profile()

    start_time = time.time()
    profiler.enable()
    func()
    profiler.disable()
    elapsed = time.time() - start_time

    print(f"\nTotal time: {elapsed:.3f}s")

    s = io.StringIO()
    ps = pstats.Stats(profiler, stream=s).sort_stats(SortKey.CUMULATIVE)
    ps.print_stats(20)

    print("\nTop 20 functions by cumulative time:")
    print(s.getvalue())

    return profiler


def main():
    """Run all profiling scenarios."""
    print("PyForce Performance Profiling")
    print("=" * 60)

    scenarios = [
        ("Small Graph (20 nodes, 30 edges)", profile_small_graph),
        ("Medium Graph (100 nodes, 200 edges)", profile_medium_graph),
        ("Large Graph (500 nodes, 1000 edges)", profile_large_graph),
        ("Exact Charge (100 nodes, theta 0)", profile_exact_charge),
    ]

    profilers = {}
    for name, func in scenarios:
        profilers[name] = benchmark_scenario(name, func)

    print("\n" + "="*60)
    print("Saving detailed profiles...")
    print("="*60)

    for name, profiler in profilers.items():
        filename = f"profile_{name.lower().replace(' ', '_').replace('(', '').replace(')', '').replace(',', '')}.prof"
        profiler.dump_stats(filename)
        print(f"Saved: {filename}")

    print("\nTo view detailed profile, use:")
    print("  python -m pstats <profile_file>")
    print("  then type 'stats' or 'sort cumulative' and 'stats 50'")


if __name__ == "__main__":
    main()
