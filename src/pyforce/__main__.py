"""
Lay out a graph and write it as SVG.

Starts from the five-node sample graph, applies the requested edits and
runs the simulation until it converges.
"""

from __future__ import annotations

from typing import Optional
import argparse
import logging
import sys

from .app import DEFAULT_HEIGHT, DEFAULT_WIDTH, ForceGraph
from .render import SvgSink, format_matrix


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='pyforce',
        description='Force-directed layout of the sample graph.'
    )
    parser.add_argument('--width', type=float, default=DEFAULT_WIDTH)
    parser.add_argument('--height', type=float, default=DEFAULT_HEIGHT)
    parser.add_argument(
        '--toggle', nargs=2, action='append', default=[], metavar=('A', 'B'),
        help='toggle the edge between two node ids (repeatable)'
    )
    parser.add_argument(
        '--add-node', action='append', default=[], nargs='?', metavar='ID',
        help='add an unconnected node, with a fresh id if ID is omitted (repeatable)'
    )
    parser.add_argument('--max-ticks', type=int, default=None)
    parser.add_argument('-o', '--output', help='SVG file to write (stdout if omitted)')
    parser.add_argument('--matrix', action='store_true', help='print the adjacency matrix')
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s'
    )

    diagram = ForceGraph(width=args.width, height=args.height)
    sink = SvgSink(args.width, args.height)
    diagram.add_sink(sink)

    for node_id in args.add_node:
        try:
            diagram.add_node(node_id)
        except ValueError as e:
            diagram.close()
            parser.error(str(e))
    for a, b in args.toggle:
        diagram.toggle_edge(a, b)

    ticks = diagram.run(args.max_ticks)
    logging.getLogger(__name__).info("layout finished after %d ticks", ticks)
    if sink.svg is None:
        sink.render(diagram.snapshot())

    if args.matrix:
        print(format_matrix(diagram.graph), file=sys.stderr if args.output is None else sys.stdout)

    if args.output:
        sink.save(args.output)
    else:
        sys.stdout.write(sink.svg + '\n')
    diagram.close()
    return 0


if __name__ == '__main__':
    sys.exit(main())
