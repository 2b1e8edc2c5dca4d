"""Model builders: the public entry points from features to normal-form tables."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable

from .arcs import build_arcs, object_arc_links
from .config import PipelineConfig, default_tolerance
from .coordinates import as_feature_list, coordinate_rows, extract_features
from .edges import extract_edges, object_edge_links
from .errors import MalformedPathError
from .models import (
    ArcModel,
    Diagnostic,
    Feature,
    FeatureCollection,
    Object,
    Path,
    PathLinkVertex,
    PathModel,
    Triangle,
    TriangulatedModel,
    UniversalModel,
    Vertex,
)
from .paths import build_paths, open_path_endpoints, path_vertex_ids, validate_path
from .triangulate import triangulate_object
from .vertices import count_near_vertex_pairs, deduplicate_vertices

logger = logging.getLogger(__name__)

Features = FeatureCollection | Iterable[Feature | dict[str, Any]]


@dataclass
class _Normalized:
    """Objects, paths and vertices shared by every model."""

    objects: list[Object]
    paths: list[Path]
    links: list[PathLinkVertex]
    vertices: list[Vertex]
    tolerance: float
    diagnostics: list[Diagnostic] = field(default_factory=list)


def _normalize(features: Features, config: PipelineConfig | None) -> _Normalized:
    config = config or PipelineConfig()
    objects, extracted = extract_features(
        as_feature_list(features),
        close_rings=config.close_rings,
        max_workers=config.max_workers,
    )

    tolerance = config.tolerance
    if tolerance is None:
        tolerance = default_tolerance(c for p in extracted for c in p.coordinates)

    diagnostics: list[Diagnostic] = []
    accepted = []
    for path in extracted:
        try:
            validate_path(path, tolerance)
        except MalformedPathError as exc:
            logger.warning("object %d path %d rejected: %s", path.object_id, path.index, exc)
            diagnostics.append(
                Diagnostic(
                    code="malformed_path",
                    message=f"Path {path.index} rejected: {exc}",
                    object_id=path.object_id,
                    path_index=path.index,
                )
            )
            continue
        accepted.append(path)

    coordinates = coordinate_rows(accepted)
    vertex_result = deduplicate_vertices(coordinates, tolerance)
    paths, links = build_paths(accepted, coordinates, vertex_result.coordinate_vertex)

    if config.near_vertex_factor > 0:
        radius = config.near_vertex_factor * tolerance
        near = count_near_vertex_pairs(vertex_result.vertices, radius)
        if near:
            diagnostics.append(
                Diagnostic(
                    level="info",
                    code="near_vertices",
                    message=f"{near} distinct vertex pair(s) lie within {radius:.3g} of each other",
                )
            )

    return _Normalized(
        objects=objects,
        paths=paths,
        links=links,
        vertices=vertex_result.vertices,
        tolerance=tolerance,
        diagnostics=diagnostics,
    )


def build_path_model(features: Features, config: PipelineConfig | None = None) -> PathModel:
    """Objects, their paths as ordered vertex links, and the unique vertices."""
    norm = _normalize(features, config)
    return PathModel(
        object=norm.objects,
        path=norm.paths,
        path_link_vertex=norm.links,
        vertex=norm.vertices,
        diagnostics=norm.diagnostics,
    )


def build_universal_model(features: Features, config: PipelineConfig | None = None) -> UniversalModel:
    """Objects, unique vertices and unique undirected edges."""
    norm = _normalize(features, config)
    edge_result = extract_edges(norm.paths, norm.links)
    return UniversalModel(
        object=norm.objects,
        vertex=norm.vertices,
        edge=edge_result.edges,
        object_link_edge=object_edge_links(norm.paths, edge_result.segments),
        diagnostics=norm.diagnostics + edge_result.diagnostics,
    )


def build_arc_model(features: Features, config: PipelineConfig | None = None) -> ArcModel:
    """Arc-node topology: junction nodes and the edge chains between them."""
    norm = _normalize(features, config)
    edge_result = extract_edges(norm.paths, norm.links)
    arc_result = build_arcs(edge_result.edges, open_path_endpoints(norm.paths, norm.links))
    return ArcModel(
        object=norm.objects,
        vertex=norm.vertices,
        edge=edge_result.edges,
        node=arc_result.nodes,
        arc=arc_result.arcs,
        arc_link_edge=arc_result.arc_edges,
        arc_link_vertex=arc_result.arc_vertices,
        object_link_arc=object_arc_links(norm.paths, edge_result.segments, arc_result.arc_edges),
        diagnostics=norm.diagnostics + edge_result.diagnostics,
    )


def build_triangulation(features: Features, config: PipelineConfig | None = None) -> TriangulatedModel:
    """Ear-clipping triangles for the closed rings of every object."""
    config = config or PipelineConfig()
    norm = _normalize(features, config)
    sequences = path_vertex_ids(norm.links)
    points = {v.vertex_id: (v.x, v.y) for v in norm.vertices}

    rings_by_object: dict[int, list] = defaultdict(list)
    for path in norm.paths:
        rings_by_object[path.object_id].append((path, sequences.get(path.path_id, [])))
    object_ids = [o.object_id for o in norm.objects]
    rings = [rings_by_object.get(object_id, []) for object_id in object_ids]

    def run(object_id: int, object_rings: list):
        return triangulate_object(object_id, object_rings, points)

    if config.max_workers > 1 and len(object_ids) > 1:
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            results = list(executor.map(run, object_ids, rings))
    else:
        results = [run(object_id, object_rings) for object_id, object_rings in zip(object_ids, rings)]

    triangles: list[Triangle] = []
    diagnostics = list(norm.diagnostics)
    for object_id, (object_triangles, object_diagnostics) in zip(object_ids, results):
        for a, b, c, winding in object_triangles:
            triangles.append(
                Triangle(
                    triangle_id=len(triangles),
                    object_id=object_id,
                    vertex_a=a,
                    vertex_b=b,
                    vertex_c=c,
                    winding=winding,
                )
            )
        diagnostics.extend(object_diagnostics)
    logger.info("build_triangulation: %d objects -> %d triangles", len(object_ids), len(triangles))

    return TriangulatedModel(object=norm.objects, triangle=triangles, vertex=norm.vertices, diagnostics=diagnostics)


BUILDERS = {
    "universal": build_universal_model,
    "path": build_path_model,
    "arc": build_arc_model,
    "triangulated": build_triangulation,
}


def build_model(kind: str, features: Features, config: PipelineConfig | None = None):
    """Build the model variant named ``kind``."""
    try:
        builder = BUILDERS[kind]
    except KeyError:
        raise ValueError(f"Unknown model kind {kind!r}; expected one of {', '.join(BUILDERS)}") from None
    return builder(features, config)
