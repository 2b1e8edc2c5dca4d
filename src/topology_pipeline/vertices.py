"""Vertex deduplication: unique coordinate values up to a tolerance."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from itertools import product
from typing import Protocol, Sequence

from .config import default_tolerance
from .models import Vertex
from .unjoin import ToleranceKeyIndex, grid_cell, unjoin

logger = logging.getLogger(__name__)

XYZ_COLUMNS = ("x", "y", "z")


class HasXYZ(Protocol):
    x: float
    y: float
    z: float | None


@dataclass
class VertexResult:
    vertices: list[Vertex]
    coordinate_vertex: list[int]
    tolerance: float


def deduplicate_vertices(coordinates: Sequence[HasXYZ], tolerance: float | None = None) -> VertexResult:
    """Collapse coordinates into unique vertices.

    Two coordinates are the same vertex when each axis differs by at most
    ``tolerance``. Matching is first-seen-wins: a coordinate is compared only
    with vertices already created, never merged retroactively, so a chain of
    points each within tolerance of the next can yield several vertices and
    the result depends on input order.

    ``coordinate_vertex[i]`` is the vertex id of ``coordinates[i]``.
    """
    values = [(c.x, c.y, c.z) for c in coordinates]
    if tolerance is None:
        tolerance = default_tolerance(values)

    rows = [dict(zip(XYZ_COLUMNS, v)) for v in values]
    result = unjoin(rows, XYZ_COLUMNS, id_column="vertex_id", index=ToleranceKeyIndex(tolerance))
    vertices = [Vertex(**row) for row in result.unique]
    logger.info(
        "deduplicate_vertices: %d coordinates -> %d vertices (tolerance %.3g)",
        len(rows),
        len(vertices),
        tolerance,
    )
    return VertexResult(vertices=vertices, coordinate_vertex=result.ids, tolerance=tolerance)


def count_near_vertex_pairs(vertices: Sequence[Vertex], radius: float) -> int:
    """Count distinct vertex pairs lying within ``radius`` of each other on every axis.

    With ``radius`` a few times the dedup tolerance this surfaces near-duplicates
    that stayed separate vertices.
    """
    if radius <= 0 or len(vertices) < 2:
        return 0
    cells: dict[tuple[int, int], list[Vertex]] = defaultdict(list)
    count = 0
    for v in vertices:
        cx, cy = grid_cell(v.x, radius), grid_cell(v.y, radius)
        for dx, dy in product((-1, 0, 1), repeat=2):
            for other in cells.get((cx + dx, cy + dy), ()):
                if abs(v.x - other.x) > radius or abs(v.y - other.y) > radius:
                    continue
                if (v.z is None) != (other.z is None):
                    continue
                if v.z is not None and abs(v.z - other.z) > radius:
                    continue
                count += 1
        cells[(cx, cy)].append(v)
    return count
