"""Shapefile reader: polyline and polygon shapes to features with paths."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO

import shapefile
from pyproj import CRS
from pyproj.exceptions import CRSError

from .models import Feature, FeatureCollection, FeaturePath, SourceMetadata
from .triangulate import signed_area

NO_CRS: tuple[None, None, None] = (None, None, None)


def detect_crs(prj_source: str | Path | None) -> tuple[int | None, str | None, bool | None]:
    """CRS of a .prj, given as WKT text or as a path to the file.

    Returns ``(epsg_code, crs_name, is_projected)``; all three are None when
    the source is missing, empty or not a CRS pyproj understands.
    """
    if isinstance(prj_source, Path):
        prj_source = prj_source.read_text() if prj_source.exists() else None
    if not prj_source or not prj_source.strip():
        return NO_CRS
    try:
        crs = CRS.from_wkt(prj_source)
    except CRSError:
        return NO_CRS
    return crs.to_epsg(), crs.name, crs.is_projected


def _prj_next_to(shp_path: Path) -> Path | None:
    # pyshp also accepts a base name without the .shp extension.
    for candidate in (shp_path.with_suffix(".prj"), Path(f"{shp_path}.prj")):
        if candidate.exists():
            return candidate
    return None


def read_shapefile(
    shp_path: str | Path | None = None,
    *,
    shp_file: BinaryIO | None = None,
    shx_file: BinaryIO | None = None,
    dbf_file: BinaryIO | None = None,
    prj_wkt: str | None = None,
) -> tuple[FeatureCollection, SourceMetadata]:
    """Read a shapefile into features, one per record.

    Pass either ``shp_path`` (companion files and the .prj are found next to
    it) or the ``shp_file``/``shx_file``/``dbf_file`` objects with an optional
    ``prj_wkt``.

    POLYLINE parts become open paths. POLYGON parts become closed rings; a
    part wound counter-clockwise is a hole (shapefile outer rings are clockwise).
    """
    if shp_path is not None:
        shp_path = Path(shp_path)
        reader = shapefile.Reader(str(shp_path))
        crs = detect_crs(_prj_next_to(shp_path))
    elif shp_file is not None:
        reader = shapefile.Reader(shp=shp_file, shx=shx_file, dbf=dbf_file)
        crs = detect_crs(prj_wkt)
    else:
        raise ValueError("Provide either shp_path or shp_file")

    with reader as sf:
        type_name = sf.shapeTypeName
        kind = type_name.upper()
        if "POLYGON" in kind:
            closed = True
        elif "POLYLINE" in kind or kind in ("ARC", "ARCZ", "ARCM"):
            closed = False
        else:
            raise ValueError(f"Unsupported shape type: {type_name}. Only POLYLINE and POLYGON shapes carry paths.")

        # The first field is pyshp's DeletionFlag.
        fields = [f[0] for f in sf.fields[1:]]
        has_z = kind.endswith("Z")
        if fields:
            pairs = [(sr.shape, sr.record.as_dict()) for sr in sf.shapeRecords()]
        else:
            pairs = [(shape, {}) for shape in sf.shapes()]
        features = [
            Feature(id=oid, properties=properties, paths=_shape_paths(shape, closed, has_z))
            for oid, (shape, properties) in enumerate(pairs)
        ]

    epsg, crs_name, is_projected = crs
    metadata = SourceMetadata(
        source_type=type_name,
        crs_epsg=epsg,
        crs_name=crs_name,
        is_projected=is_projected,
        num_features=len(features),
        num_paths=sum(len(f.paths) for f in features),
        has_z=has_z,
        fields=fields,
    )
    return FeatureCollection(features=features), metadata


def _shape_paths(shape: shapefile.Shape, closed: bool, has_z: bool) -> list[FeaturePath]:
    """One path per part of ``shape``."""
    points = shape.points
    z = list(getattr(shape, "z", [])) if has_z else []
    bounds = list(getattr(shape, "parts", [])) + [len(points)]
    paths: list[FeaturePath] = []
    for start, end in zip(bounds, bounds[1:]):
        if start >= end:
            continue
        coords = [
            (points[i][0], points[i][1], z[i]) if i < len(z) else (points[i][0], points[i][1])
            for i in range(start, end)
        ]
        hole = closed and signed_area([c[:2] for c in coords]) > 0
        paths.append(FeaturePath(coordinates=coords, closed=closed, hole=hole))
    return paths
