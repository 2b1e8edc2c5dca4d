"""Path building: ordered vertex sequences per object path."""

from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from .coordinates import ExtractedPath
from .errors import MalformedPathError
from .models import Coordinate, Path, PathLinkVertex, PathModel, Vertex

MIN_OPEN_COORDS = 2
# Three corners plus the repeated start.
MIN_RING_COORDS = 4


def validate_path(path: ExtractedPath, tolerance: float, path_id: int | None = None) -> None:
    """Reject paths too short to carry an edge, and rings that do not close.

    Closure is taken from the path's ``closed`` flag; it is never inferred from
    the coordinates.
    """
    n = len(path.coordinates)
    if path.closed:
        if n < MIN_RING_COORDS:
            raise MalformedPathError(
                f"Closed ring needs at least {MIN_RING_COORDS} coordinates, got {n}",
                object_id=path.object_id,
                path_id=path_id,
            )
        first, last = path.coordinates[0], path.coordinates[-1]
        if not _same_point(first, last, tolerance):
            raise MalformedPathError(
                f"Closed ring ends at {last}, not at its start {first}",
                object_id=path.object_id,
                path_id=path_id,
            )
    elif n < MIN_OPEN_COORDS:
        raise MalformedPathError(
            f"Path needs at least {MIN_OPEN_COORDS} coordinates, got {n}",
            object_id=path.object_id,
            path_id=path_id,
        )


def _same_point(a: tuple, b: tuple, tolerance: float) -> bool:
    for u, v in zip(a, b):
        if u is None or v is None:
            if u is not v:
                return False
        elif abs(u - v) > tolerance:
            return False
    return True


def build_paths(
    paths: Sequence[ExtractedPath],
    coordinates: Sequence[Coordinate],
    coordinate_vertex: Sequence[int],
) -> tuple[list[Path], list[PathLinkVertex]]:
    """Emit the Path and PathLinkVertex tables.

    ``coordinate_vertex[i]`` is the vertex id of ``coordinates[i]``; path ids are
    indices into ``paths``. Links are ordered by path, then position.
    """
    grouped: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for coord, vertex_id in zip(coordinates, coordinate_vertex):
        grouped[coord.path_id].append((coord.position, vertex_id))

    path_rows: list[Path] = []
    links: list[PathLinkVertex] = []
    for path_id, path in enumerate(paths):
        members = sorted(grouped.get(path_id, ()))
        path_rows.append(
            Path(
                path_id=path_id,
                object_id=path.object_id,
                closed=path.closed,
                hole=path.hole,
                ncoords=len(members),
                auto_closed=path.auto_closed,
            )
        )
        links.extend(
            PathLinkVertex(path_id=path_id, position=position, vertex_id=vertex_id)
            for position, vertex_id in members
        )
    return path_rows, links


def path_vertex_ids(links: Sequence[PathLinkVertex]) -> dict[int, list[int]]:
    """Vertex id sequence of each path, in position order."""
    grouped: dict[int, list[tuple[int, int]]] = defaultdict(list)
    for link in links:
        grouped[link.path_id].append((link.position, link.vertex_id))
    return {path_id: [v for _, v in sorted(members)] for path_id, members in grouped.items()}


def open_path_endpoints(paths: Sequence[Path], links: Sequence[PathLinkVertex]) -> set[int]:
    """First and last vertex of every open path."""
    sequences = path_vertex_ids(links)
    endpoints: set[int] = set()
    for path in paths:
        sequence = sequences.get(path.path_id)
        if path.closed or not sequence:
            continue
        endpoints.add(sequence[0])
        endpoints.add(sequence[-1])
    return endpoints


def path_coordinates(model: PathModel, path_id: int, stored: bool = False) -> list[tuple[float, ...]]:
    """Rebuild a path's coordinate sequence from its links and the vertex table.

    The sequence matches the input path: for an ``auto_closed`` ring the closing
    link added during extraction is dropped. Pass ``stored=True`` to get every
    link, closing one included.
    """
    vertices: dict[int, Vertex] = {v.vertex_id: v for v in model.vertex}
    sequence = path_vertex_ids([link for link in model.path_link_vertex if link.path_id == path_id])
    vertex_ids = sequence.get(path_id, [])
    path = next((p for p in model.path if p.path_id == path_id), None)
    if not stored and path is not None and path.auto_closed:
        vertex_ids = vertex_ids[:-1]
    coords: list[tuple[float, ...]] = []
    for vertex_id in vertex_ids:
        v = vertices[vertex_id]
        coords.append((v.x, v.y) if v.z is None else (v.x, v.y, v.z))
    return coords
