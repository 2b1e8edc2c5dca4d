"""Arc-node topology from the unique edge graph.

Nodes are junction vertices (three or more distinct incident edges) plus any
vertex flagged as a terminal, normally the endpoints of open paths. Arcs are
maximal edge chains whose interior vertices are non-node degree-2 vertices;
a chain that comes back to its first edge without meeting a node is a
closed arc with no node reference.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import networkx as nx

from .errors import IncompleteTopologyError
from .models import Arc, ArcLinkEdge, ArcLinkVertex, Edge, Node, ObjectLinkArc, Path, Segment
from .unjoin import unjoin

logger = logging.getLogger(__name__)


@dataclass
class ArcResult:
    nodes: list[Node] = field(default_factory=list)
    arcs: list[Arc] = field(default_factory=list)
    arc_edges: list[ArcLinkEdge] = field(default_factory=list)
    arc_vertices: list[ArcLinkVertex] = field(default_factory=list)


def edge_graph(edges: Sequence[Edge]) -> nx.Graph:
    """Undirected vertex graph of the edge table, each link carrying its ``edge_id``."""
    G = nx.Graph()
    for edge in sorted(edges, key=lambda e: e.edge_id):
        G.add_edge(edge.vertex_low, edge.vertex_high, edge_id=edge.edge_id)
    return G


class _ArcTracer:
    def __init__(self, G: nx.Graph, node_vertices: set[int]):
        self.G = G
        self.node_vertices = node_vertices
        self.visited: set[int] = set()

    def is_stop(self, vertex: int) -> bool:
        return vertex in self.node_vertices or self.G.degree(vertex) != 2

    def walk(self, edge_id: int, vertex: int) -> tuple[list[tuple[int, int]], bool]:
        """Follow the chain leaving ``vertex`` away from ``edge_id``.

        Returns the (edge id, vertex reached) steps and whether the walk ran
        into an already visited edge, which for a degree-2 chain can only be
        the edge it started from.
        """
        steps: list[tuple[int, int]] = []
        current = edge_id
        while not self.is_stop(vertex):
            (_, u, first), (_, w, second) = self.G.edges(vertex, data="edge_id")
            following, vertex = (second, w) if first == current else (first, u)
            if following in self.visited:
                return steps, True
            self.visited.add(following)
            steps.append((following, vertex))
            current = following
        return steps, False

    def trace(self, start: Edge) -> tuple[list[int], list[int], bool]:
        """Edge and vertex sequences of the arc containing ``start``."""
        self.visited.add(start.edge_id)
        forward, closed = self.walk(start.edge_id, start.vertex_high)
        if closed:
            edge_ids = [start.edge_id] + [e for e, _ in forward]
            vertex_ids = [start.vertex_low, start.vertex_high] + [v for _, v in forward]
            return edge_ids, vertex_ids, True

        backward, _ = self.walk(start.edge_id, start.vertex_low)
        backward.reverse()
        edge_ids = [e for e, _ in backward] + [start.edge_id] + [e for e, _ in forward]
        vertex_ids = [v for _, v in backward] + [start.vertex_low, start.vertex_high] + [v for _, v in forward]
        return edge_ids, vertex_ids, False


def build_arcs(edges: Sequence[Edge], terminal_vertices: Iterable[int] = ()) -> ArcResult:
    """Derive nodes and arcs from the unique edges.

    Args:
        edges: The unique Edge table.
        terminal_vertices: Vertices that are nodes regardless of degree
            (open-path endpoints).

    Raises:
        IncompleteTopologyError: some edge was not assigned to exactly one arc.
    """
    G = edge_graph(edges)
    terminal = set(terminal_vertices)
    node_vertices = sorted(v for v in G.nodes if G.degree(v) >= 3 or v in terminal)
    nodes = [
        Node(node_id=i, vertex_id=v, degree=G.degree(v), terminal=v in terminal)
        for i, v in enumerate(node_vertices)
    ]
    node_of_vertex = {n.vertex_id: n.node_id for n in nodes}

    tracer = _ArcTracer(G, set(node_vertices))
    result = ArcResult(nodes=nodes)
    for start in sorted(edges, key=lambda e: e.edge_id):
        if start.edge_id in tracer.visited:
            continue
        edge_ids, vertex_ids, closed = tracer.trace(start)
        arc_id = len(result.arcs)
        result.arcs.append(
            Arc(
                arc_id=arc_id,
                closed=closed,
                start_node=None if closed else node_of_vertex.get(vertex_ids[0]),
                end_node=None if closed else node_of_vertex.get(vertex_ids[-1]),
                nedges=len(edge_ids),
            )
        )
        for position, edge_id in enumerate(edge_ids):
            result.arc_edges.append(
                ArcLinkEdge(
                    arc_id=arc_id,
                    position=position,
                    edge_id=edge_id,
                    reversed=vertex_ids[position] > vertex_ids[position + 1],
                )
            )
        result.arc_vertices.extend(
            ArcLinkVertex(arc_id=arc_id, position=position, vertex_id=v) for position, v in enumerate(vertex_ids)
        )

    _check_partition(edges, result.arc_edges)
    logger.info(
        "build_arcs: %d edges -> %d nodes, %d arcs",
        len(edges),
        len(result.nodes),
        len(result.arcs),
    )
    return result


def _check_partition(edges: Sequence[Edge], arc_edges: Sequence[ArcLinkEdge]) -> None:
    counts: dict[int, int] = defaultdict(int)
    for link in arc_edges:
        counts[link.edge_id] += 1
    unassigned = [e.edge_id for e in edges if counts.get(e.edge_id, 0) == 0]
    repeated = [edge_id for edge_id, n in counts.items() if n > 1]
    if unassigned or repeated:
        raise IncompleteTopologyError(
            f"Arc tracing left {len(unassigned)} edge(s) unassigned {unassigned[:10]} "
            f"and {len(repeated)} edge(s) in several arcs {repeated[:10]}"
        )


def object_arc_links(
    paths: Sequence[Path], segments: Sequence[Segment], arc_edges: Sequence[ArcLinkEdge]
) -> list[ObjectLinkArc]:
    """Unique (object, arc) incidences, in order of first use."""
    owner = {p.path_id: p.object_id for p in paths}
    arc_of_edge = {link.edge_id: link.arc_id for link in arc_edges}
    rows = [{"object_id": owner[s.path_id], "arc_id": arc_of_edge[s.edge_id]} for s in segments]
    result = unjoin(rows, ("object_id", "arc_id"), id_column="link_id")
    return [ObjectLinkArc(object_id=row["object_id"], arc_id=row["arc_id"]) for row in result.unique]
