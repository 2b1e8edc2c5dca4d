"""GeoJSON reader: line and polygon geometries to features with paths."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .models import Feature, FeatureCollection, FeaturePath, SourceMetadata


def read_geojson(source: str | Path | bytes | dict[str, Any]) -> tuple[FeatureCollection, SourceMetadata]:
    """Read GeoJSON into features.

    LineString parts become open paths; Polygon rings become closed paths
    with every ring after the first flagged as a hole. Points carry no path
    and are skipped, as are features left with no paths.

    Args:
        source: File path, raw JSON bytes, or an already parsed GeoJSON object.

    Returns:
        Tuple of (FeatureCollection, SourceMetadata).

    Raises:
        ValueError: The GeoJSON type is not supported.
    """
    data = _load(source)
    features: list[Feature] = []
    for geometry, properties, feature_id in _iter_geometries(data):
        paths: list[FeaturePath] = []
        for part in _flatten_multi(geometry):
            paths.extend(_paths_of(part))
        if paths:
            features.append(
                Feature(
                    id=feature_id if feature_id is not None else len(features),
                    properties=properties,
                    paths=paths,
                )
            )

    metadata = SourceMetadata(
        source_type="GeoJSON",
        crs_epsg=4326,
        crs_name="WGS 84",
        is_projected=False,
        num_features=len(features),
        num_paths=sum(len(f.paths) for f in features),
        has_z=any(len(c) > 2 for f in features for p in f.paths for c in p.coordinates),
        fields=sorted({k for f in features for k in f.properties}),
    )
    return FeatureCollection(features=features), metadata


def _load(source: str | Path | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(source, dict):
        return source
    if isinstance(source, bytes):
        data = json.loads(source.decode("utf-8"))
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"GeoJSON file not found: {path}")
        with open(path) as f:
            data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a GeoJSON object, got {type(data).__name__}")
    return data


def _iter_geometries(data: dict[str, Any]) -> list[tuple[dict[str, Any], dict[str, Any], Any]]:
    """Normalise GeoJSON to [(geometry, properties, id), ...]."""
    gtype = data.get("type")

    if gtype == "FeatureCollection":
        results = []
        for feature in data.get("features", []):
            results.extend(_iter_geometries(feature))
        return results

    if gtype == "Feature":
        geom = data.get("geometry")
        if geom is None:
            return []
        return [(geom, data.get("properties") or {}, data.get("id"))]

    if gtype == "GeometryCollection":
        return [(g, {}, None) for g in data.get("geometries", [])]

    if gtype in ("Point", "MultiPoint", "LineString", "MultiLineString", "Polygon", "MultiPolygon"):
        return [(data, {}, None)]

    raise ValueError(f"Unsupported GeoJSON type: {gtype}")


def _flatten_multi(geometry: dict[str, Any]) -> list[dict[str, Any]]:
    gtype = geometry.get("type", "")
    coords = geometry.get("coordinates", [])

    if gtype == "MultiLineString":
        return [{"type": "LineString", "coordinates": c} for c in coords]
    if gtype == "MultiPolygon":
        return [{"type": "Polygon", "coordinates": c} for c in coords]
    if gtype == "GeometryCollection":
        return [part for g in geometry.get("geometries", []) for part in _flatten_multi(g)]
    return [geometry]


def _paths_of(geometry: dict[str, Any]) -> list[FeaturePath]:
    gtype = geometry.get("type")
    coords = geometry.get("coordinates") or []
    if gtype == "LineString":
        return [FeaturePath(coordinates=[tuple(c[:3]) for c in coords], closed=False)] if coords else []
    if gtype == "Polygon":
        return [
            FeaturePath(coordinates=[tuple(c[:3]) for c in ring], closed=True, hole=i > 0)
            for i, ring in enumerate(coords)
            if ring
        ]
    # Points carry no path.
    return []
