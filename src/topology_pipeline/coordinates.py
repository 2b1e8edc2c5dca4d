"""Coordinate extraction: flatten features into object/path-tagged coordinate rows."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from .models import Coordinate, Feature, FeatureCollection, Object

logger = logging.getLogger(__name__)

XYZ = tuple[float, float, float | None]


@dataclass
class ExtractedPath:
    """One path of one object before it is given a global path id."""

    object_id: int
    index: int
    closed: bool
    hole: bool
    coordinates: list[XYZ] = field(default_factory=list)
    auto_closed: bool = False


def as_feature_list(features: FeatureCollection | Iterable[Feature | dict[str, Any]]) -> list[Feature]:
    """Normalise the accepted input shapes to a list of ``Feature``."""
    if isinstance(features, FeatureCollection):
        return list(features.features)
    if isinstance(features, dict):
        return FeatureCollection.model_validate(features).features
    return [f if isinstance(f, Feature) else Feature.model_validate(f) for f in features]


def extract_object(object_id: int, feature: Feature, close_rings: bool = True) -> list[ExtractedPath]:
    """Extract the paths of a single feature.

    Closed paths that do not repeat their first coordinate get it appended when
    ``close_rings`` is set, so every accepted ring is explicitly closed; such
    paths are marked ``auto_closed``.
    """
    paths: list[ExtractedPath] = []
    for index, feature_path in enumerate(feature.paths):
        coords: list[XYZ] = [
            (c[0], c[1], c[2] if len(c) > 2 else None) for c in feature_path.coordinates
        ]
        auto_closed = feature_path.closed and close_rings and len(coords) > 1 and coords[0] != coords[-1]
        if auto_closed:
            coords.append(coords[0])
        paths.append(
            ExtractedPath(
                object_id=object_id,
                index=index,
                closed=feature_path.closed,
                hole=feature_path.hole,
                coordinates=coords,
                auto_closed=auto_closed,
            )
        )
    return paths


def extract_features(
    features: Sequence[Feature],
    *,
    close_rings: bool = True,
    max_workers: int = 1,
) -> tuple[list[Object], list[ExtractedPath]]:
    """Build the Object table and the per-object path lists, in input order.

    Objects are independent, so with ``max_workers > 1`` they are extracted on a
    thread pool; ``map`` keeps results in object order.
    """
    objects = [
        Object(object_id=i, source_id=f.id, properties=dict(f.properties))
        for i, f in enumerate(features)
    ]
    ids = range(len(features))
    if max_workers > 1 and len(features) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            per_object = list(executor.map(extract_object, ids, features, [close_rings] * len(features)))
    else:
        per_object = [extract_object(i, f, close_rings) for i, f in zip(ids, features)]

    paths = [p for object_paths in per_object for p in object_paths]
    logger.info("extract_features: %d objects, %d paths", len(objects), len(paths))
    return objects, paths


def coordinate_rows(paths: Sequence[ExtractedPath]) -> list[Coordinate]:
    """Flatten paths into Coordinate rows; a path's id is its index in ``paths``."""
    rows: list[Coordinate] = []
    for path_id, path in enumerate(paths):
        for position, (x, y, z) in enumerate(path.coordinates):
            rows.append(
                Coordinate(object_id=path.object_id, path_id=path_id, position=position, x=x, y=y, z=z)
            )
    return rows
