"""
Render sinks and read-only views of the layout.

Sinks receive a snapshot after every tick. The snapshot is a copy, so a
sink can keep it without seeing later updates and cannot move nodes.
"""

from __future__ import annotations

from typing import Optional, Protocol, TypedDict, Union
from pathlib import Path
from xml.sax.saxutils import escape

from .graph import Graph, GraphLink, GraphNode, link_end_id


# d3 schemeCategory10
CATEGORY10 = [
    '#1f77b4', '#ff7f0e', '#2ca02c', '#d62728', '#9467bd',
    '#8c564b', '#e377c2', '#7f7f7f', '#bcbd22', '#17becf',
]


class NodeView(TypedDict):
    """Render-facing view of a node."""
    id: str
    x: float
    y: float
    group: int


class LinkView(TypedDict):
    """Render-facing view of a link."""
    source: str
    target: str
    value: float


class Snapshot(TypedDict):
    """Positions of every node and link after a tick."""
    alpha: float
    nodes: list[NodeView]
    links: list[LinkView]


class RenderSink(Protocol):
    """
    Consumer of per-tick snapshots.

    A sink may also define finish(snapshot), called with the final
    snapshot when the simulation goes idle.
    """

    def render(self, snapshot: Snapshot) -> None:
        ...


def make_snapshot(nodes: list[GraphNode], links: list[GraphLink], alpha: float) -> Snapshot:
    """
    Copy node positions and link endpoints into a snapshot.

    Unplaced coordinates are reported as 0.
    """
    return {
        'alpha': alpha,
        'nodes': [
            {
                'id': n.id,
                'x': n.x if n.x is not None else 0.0,
                'y': n.y if n.y is not None else 0.0,
                'group': n.group,
            }
            for n in nodes
        ],
        'links': [
            {
                'source': link_end_id(l.source),
                'target': link_end_id(l.target),
                'value': l.value,
            }
            for l in links
        ],
    }


def group_color(group: int) -> str:
    """Get the display colour for a group."""
    return CATEGORY10[group % len(CATEGORY10)]


class SvgSink:
    """
    Renders snapshots as an SVG document.

    Links are drawn as lines under the nodes, nodes as circles coloured by
    group, with their id as a centred label. When a path is given the
    final document is written there once the layout converges.
    """

    def __init__(
        self,
        width: float = 800,
        height: float = 600,
        node_radius: float = 25,
        path: Optional[Union[str, Path]] = None
    ):
        self.width = width
        self.height = height
        self.node_radius = node_radius
        self.path = path
        self.svg: Optional[str] = None
        self.frames = 0

    def render(self, snapshot: Snapshot) -> None:
        self.svg = self.to_svg(snapshot)
        self.frames += 1

    def finish(self, snapshot: Snapshot) -> None:
        """Called when the layout goes idle; writes the document to path."""
        if self.svg is None:
            self.render(snapshot)
        if self.path is not None:
            self.save(self.path)

    def to_svg(self, snapshot: Snapshot) -> str:
        """Build the SVG text for a snapshot."""
        positions = {n['id']: (n['x'], n['y']) for n in snapshot['nodes']}
        out = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" '
            f'height="{self.height}" viewBox="0 0 {self.width} {self.height}">',
            '<g stroke="#999" stroke-opacity="0.6">',
        ]
        for l in snapshot['links']:
            x1, y1 = positions[l['source']]
            x2, y2 = positions[l['target']]
            out.append(
                f'<line x1="{x1:.2f}" y1="{y1:.2f}" x2="{x2:.2f}" y2="{y2:.2f}" '
                f'stroke-width="{2 * l["value"]:g}"/>'
            )
        out.append('</g>')

        out.append('<g>')
        for n in snapshot['nodes']:
            out.append(
                f'<circle cx="{n["x"]:.2f}" cy="{n["y"]:.2f}" r="{self.node_radius:g}" '
                f'fill="{group_color(n["group"])}"/>'
            )
        out.append('</g>')

        out.append(
            '<g text-anchor="middle" dominant-baseline="middle" '
            'font-size="12px" fill="white" pointer-events="none">'
        )
        for n in snapshot['nodes']:
            out.append(f'<text x="{n["x"]:.2f}" y="{n["y"]:.2f}">{escape(n["id"])}</text>')
        out.append('</g>')
        out.append('</svg>')
        return '\n'.join(out)

    def save(self, path: Union[str, Path]) -> None:
        """Write the latest rendered document to a file."""
        if self.svg is None:
            raise ValueError("nothing rendered yet")
        Path(path).write_text(self.svg, encoding='utf-8')


def format_matrix(graph: Graph, connected: str = '●', empty: str = '○') -> str:
    """
    Format the adjacency matrix as a text table.

    Args:
        graph: Graph to show
        connected: Cell text for adjacent pairs
        empty: Cell text for non-adjacent pairs

    Returns:
        Table with one header row and one row per node
    """
    ids = [n.id for n in graph]
    matrix = graph.adjacency_matrix()
    label_width = max([len('Node')] + [len(i) for i in ids])
    widths = [max(len(i), 1) for i in ids]

    lines = ['  '.join(['Node'.ljust(label_width)] + [i.center(w) for i, w in zip(ids, widths)])]
    for r, row_id in enumerate(ids):
        cells = [
            (connected if matrix[r, c] else empty).center(widths[c])
            for c in range(len(ids))
        ]
        lines.append('  '.join([row_id.ljust(label_width)] + cells))
    return '\n'.join(lines)
