"""Tests for node detection and arc tracing."""

from collections import Counter

import pytest
from shapes import line, ring

from topology_pipeline import Feature, IncompleteTopologyError, build_arc_model
from topology_pipeline.arcs import _check_partition, build_arcs, edge_graph
from topology_pipeline.models import ArcLinkEdge, Edge


def _edges(pairs):
    return [Edge(edge_id=i, vertex_low=min(p), vertex_high=max(p)) for i, p in enumerate(pairs)]


def _vertex_xy(model, vertex_id):
    v = model.vertex[vertex_id]
    return v.x, v.y


def _assert_partition(model):
    counts = Counter(link.edge_id for link in model.arc_link_edge)
    assert set(counts) == {e.edge_id for e in model.edge}
    assert set(counts.values()) == {1}


class TestPolygonTopology:
    def test_two_squares_sharing_an_edge(self, two_squares):
        model = build_arc_model(two_squares)
        assert model.kind == "arc"
        assert len(model.node) == 2
        assert {_vertex_xy(model, n.vertex_id) for n in model.node} == {(1.0, 0.0), (1.0, 1.0)}
        assert len(model.arc) == 3
        assert sorted(a.nedges for a in model.arc) == [1, 3, 3]
        assert not any(a.closed for a in model.arc)
        _assert_partition(model)

    def test_arcs_end_at_nodes(self, two_squares):
        model = build_arc_model(two_squares)
        node_ids = {n.node_id for n in model.node}
        for arc in model.arc:
            assert arc.start_node in node_ids
            assert arc.end_node in node_ids
            assert arc.start_node != arc.end_node

    def test_single_ring_is_one_closed_arc(self, single_ring):
        model = build_arc_model(single_ring)
        assert model.node == []
        [arc] = model.arc
        assert arc.closed
        assert arc.start_node is None and arc.end_node is None
        assert arc.nedges == 4
        vertices = [link.vertex_id for link in model.arc_link_vertex]
        assert len(vertices) == 5
        assert vertices[0] == vertices[-1]
        _assert_partition(model)

    def test_object_links(self, two_squares):
        model = build_arc_model(two_squares)
        links = {(link.object_id, link.arc_id) for link in model.object_link_arc}
        assert len(links) == 4
        shared = [a for a in range(3) if (0, a) in links and (1, a) in links]
        assert len(shared) == 1
        assert model.arc[shared[0]].nedges == 1


class TestOpenPaths:
    def test_line_endpoints_are_nodes(self):
        model = build_arc_model([Feature(paths=[line([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])])])
        assert len(model.node) == 2
        assert all(n.terminal and n.degree == 1 for n in model.node)
        [arc] = model.arc
        assert not arc.closed
        assert arc.nedges == 2
        assert {arc.start_node, arc.end_node} == {0, 1}

    def test_crossing_lines(self, crossing_lines):
        model = build_arc_model(crossing_lines)
        centre = [n for n in model.node if _vertex_xy(model, n.vertex_id) == (0.0, 0.0)]
        assert len(centre) == 1
        assert centre[0].degree == 4
        assert not centre[0].terminal
        assert len(model.node) == 5
        assert len(model.arc) == 4
        assert all(a.nedges == 1 for a in model.arc)
        _assert_partition(model)

    def test_lines_joined_end_to_end_break_at_terminal(self):
        features = [
            Feature(paths=[line([(0.0, 0.0), (1.0, 0.0)])]),
            Feature(paths=[line([(1.0, 0.0), (2.0, 0.0)])]),
        ]
        model = build_arc_model(features)
        joint = [n for n in model.node if _vertex_xy(model, n.vertex_id) == (1.0, 0.0)]
        assert joint[0].degree == 2 and joint[0].terminal
        assert len(model.arc) == 2


class TestNodeDegree:
    def test_nodes_have_degree_three_or_are_terminal(self, two_squares, crossing_lines):
        model = build_arc_model(two_squares + crossing_lines)
        for node in model.node:
            assert node.degree >= 3 or node.terminal

    def test_figure_eight_touching_at_one_vertex(self):
        features = [
            Feature(paths=[ring([(0.0, 0.0), (1.0, 1.0), (0.0, 1.0), (0.0, 0.0)])]),
            Feature(paths=[ring([(0.0, 0.0), (-1.0, -1.0), (0.0, -1.0), (0.0, 0.0)])]),
        ]
        model = build_arc_model(features)
        [node] = model.node
        assert node.degree == 4
        assert len(model.arc) == 2
        for arc in model.arc:
            assert not arc.closed
            assert arc.start_node == arc.end_node == node.node_id
        _assert_partition(model)


class TestBuildArcs:
    def test_arc_edge_order_and_orientation(self):
        # The spur 1-4 makes vertex 1 a junction.
        result = build_arcs(_edges([(0, 1), (1, 2), (2, 3), (1, 4)]), terminal_vertices={0, 3, 4})
        assert [n.vertex_id for n in result.nodes] == [0, 1, 3, 4]
        chains = {}
        for link in result.arc_edges:
            chains.setdefault(link.arc_id, []).append((link.edge_id, link.reversed))
        assert chains == {0: [(0, False)], 1: [(1, False), (2, False)], 2: [(3, False)]}

    def test_arc_vertices_follow_edges(self):
        result = build_arcs(_edges([(0, 1), (1, 2), (2, 0), (2, 3), (3, 4), (4, 2)]))
        for arc in result.arcs:
            vertices = [v.vertex_id for v in result.arc_vertices if v.arc_id == arc.arc_id]
            edges = [e for e in result.arc_edges if e.arc_id == arc.arc_id]
            assert len(vertices) == len(edges) + 1
            assert vertices[0] == vertices[-1]

    def test_isolated_loops(self):
        result = build_arcs(_edges([(0, 1), (1, 2), (0, 2), (3, 4), (4, 5), (3, 5)]))
        assert result.nodes == []
        assert [a.closed for a in result.arcs] == [True, True]
        assert [a.nedges for a in result.arcs] == [3, 3]

    def test_degrees(self):
        G = edge_graph(_edges([(0, 1), (0, 2), (0, 3)]))
        assert G.degree(0) == 3
        assert G.degree(1) == 1

    def test_graph_links_carry_edge_ids(self):
        G = edge_graph(_edges([(2, 5), (0, 2), (5, 0)]))
        assert sorted(G.edges(2, data="edge_id")) == [(2, 0, 1), (2, 5, 0)]
        assert G[0][5]["edge_id"] == 2

    def test_node_degree_from_graph(self):
        result = build_arcs(_edges([(0, 1), (0, 2), (0, 3), (3, 4)]), terminal_vertices={1, 2, 4})
        assert [(n.vertex_id, n.degree, n.terminal) for n in result.nodes] == [
            (0, 3, False),
            (1, 1, True),
            (2, 1, True),
            (4, 1, True),
        ]
        # Vertex 3 has degree 2 and is no terminal, so the chain 0-3-4 is one arc.
        assert sorted(a.nedges for a in result.arcs) == [1, 1, 2]

    def test_unassigned_edge_is_fatal(self):
        edges = _edges([(0, 1), (1, 2)])
        links = [ArcLinkEdge(arc_id=0, position=0, edge_id=0, reversed=False)]
        with pytest.raises(IncompleteTopologyError):
            _check_partition(edges, links)

    def test_edge_in_two_arcs_is_fatal(self):
        edges = _edges([(0, 1)])
        links = [
            ArcLinkEdge(arc_id=0, position=0, edge_id=0, reversed=False),
            ArcLinkEdge(arc_id=1, position=0, edge_id=0, reversed=False),
        ]
        with pytest.raises(IncompleteTopologyError):
            _check_partition(edges, links)
