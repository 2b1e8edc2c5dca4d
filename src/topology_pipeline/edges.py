"""Edge extraction: directed path segments and the unique undirected edges they use."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .models import Diagnostic, Edge, ObjectLinkEdge, Path, PathLinkVertex, Segment
from .paths import path_vertex_ids
from .unjoin import unjoin

logger = logging.getLogger(__name__)


@dataclass
class EdgeResult:
    segments: list[Segment] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def _directed_pairs(
    paths: Sequence[Path], links: Sequence[PathLinkVertex]
) -> tuple[list[dict[str, int]], list[Diagnostic]]:
    """Consecutive vertex pairs of every path, degenerate pairs removed."""
    sequences = path_vertex_ids(links)
    pairs: list[dict[str, int]] = []
    diagnostics: list[Diagnostic] = []
    for path in paths:
        sequence = list(sequences.get(path.path_id, []))
        # A ring whose ends snapped to different vertices still closes on its start.
        if path.closed and len(sequence) > 1 and sequence[0] != sequence[-1]:
            sequence.append(sequence[0])
        for position in range(len(sequence) - 1):
            v0, v1 = sequence[position], sequence[position + 1]
            if v0 == v1:
                diagnostics.append(
                    Diagnostic(
                        code="degenerate_segment",
                        message=f"Dropped zero-length segment at position {position} (vertex {v0})",
                        object_id=path.object_id,
                        path_id=path.path_id,
                    )
                )
                continue
            pairs.append({"path_id": path.path_id, "position": position, "vertex_from": v0, "vertex_to": v1})
    return pairs, diagnostics


def extract_edges(paths: Sequence[Path], links: Sequence[PathLinkVertex]) -> EdgeResult:
    """Build the Segment table and the unique Edge table it references.

    An edge is keyed by its sorted vertex pair, so a segment and its reverse
    share one edge; ``Segment.reversed`` is set when the segment runs from the
    high vertex id to the low one.
    """
    pairs, diagnostics = _directed_pairs(paths, links)
    for diagnostic in diagnostics:
        logger.warning("extract_edges: path %s: %s", diagnostic.path_id, diagnostic.message)

    keyed = [
        {
            "vertex_low": min(p["vertex_from"], p["vertex_to"]),
            "vertex_high": max(p["vertex_from"], p["vertex_to"]),
        }
        for p in pairs
    ]
    result = unjoin(keyed, ("vertex_low", "vertex_high"), id_column="edge_id")
    edges = [Edge(**row) for row in result.unique]
    segments = [
        Segment(
            segment_id=segment_id,
            edge_id=edge_id,
            reversed=pair["vertex_from"] > pair["vertex_to"],
            **pair,
        )
        for segment_id, (pair, edge_id) in enumerate(zip(pairs, result.ids))
    ]
    logger.info("extract_edges: %d segments -> %d edges", len(segments), len(edges))
    return EdgeResult(segments=segments, edges=edges, diagnostics=diagnostics)


def object_edge_links(paths: Sequence[Path], segments: Sequence[Segment]) -> list[ObjectLinkEdge]:
    """Unique (object, edge) incidences, in order of first use."""
    owner = {p.path_id: p.object_id for p in paths}
    rows = [{"object_id": owner[s.path_id], "edge_id": s.edge_id} for s in segments]
    result = unjoin(rows, ("object_id", "edge_id"), id_column="link_id")
    return [ObjectLinkEdge(object_id=row["object_id"], edge_id=row["edge_id"]) for row in result.unique]
