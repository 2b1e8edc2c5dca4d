"""KMZ/KML reader: one feature per Placemark, paths from its line and ring geometry.

A KMZ file is a zipped KML document. KML positions are WGS84 ``lon,lat[,alt]``
tuples, so the reported CRS is always EPSG:4326.
"""

from __future__ import annotations

import io
import zipfile
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import BinaryIO

from .models import Feature, FeatureCollection, FeaturePath, SourceMetadata

KML_NS = "{http://www.opengis.net/kml/2.2}"
ZIP_MAGIC = b"PK\x03\x04"


def read_kmz(
    file: str | Path | BinaryIO,
) -> tuple[FeatureCollection, SourceMetadata]:
    """Read a KMZ (or plain KML) file and return its placemarks as features.

    Args:
        file: A .kmz/.kml path, or a binary file object holding either.
    """
    root = ET.fromstring(_kml_document(file))
    features = _extract_features(root)
    has_z = any(len(c) > 2 for f in features for p in f.paths for c in p.coordinates)

    metadata = SourceMetadata(
        source_type="KML",
        crs_epsg=4326,
        crs_name="WGS 84",
        is_projected=False,
        num_features=len(features),
        num_paths=sum(len(f.paths) for f in features),
        has_z=has_z,
        fields=sorted({k for f in features for k in f.properties}),
    )
    return FeatureCollection(features=features), metadata


def _kml_document(file: str | Path | BinaryIO) -> str:
    """KML text of ``file``, unzipping it first when it is a KMZ archive."""
    data = Path(file).read_bytes() if isinstance(file, (str, Path)) else file.read()
    if not data.startswith(ZIP_MAGIC):
        return data.decode("utf-8", errors="replace")

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        candidates = [n for n in zf.namelist() if n.lower().endswith(".kml")]
        if not candidates:
            raise ValueError("No .kml file found in KMZ archive")
        # doc.kml is the main document by convention.
        candidates.sort(key=lambda n: n.lower() != "doc.kml")
        return zf.read(candidates[0]).decode("utf-8", errors="replace")


def _tag(elem: ET.Element) -> str:
    return elem.tag.replace(KML_NS, "")


def _extract_features(root: ET.Element) -> list[Feature]:
    """Walk the KML tree; every Placemark with line or polygon geometry is a feature."""
    features: list[Feature] = []
    for placemark in root.iter(f"{KML_NS}Placemark"):
        paths: list[FeaturePath] = []
        for elem in placemark.iter():
            tag = _tag(elem)
            if tag == "LineString":
                coords = _coordinates_of(elem)
                if coords:
                    paths.append(FeaturePath(coordinates=coords, closed=False))
            elif tag == "Polygon":
                paths.extend(_polygon_paths(elem))
        if not paths:
            continue

        name = placemark.find(f"{KML_NS}name")
        properties = {"name": name.text} if name is not None and name.text else {}
        for data in placemark.iter(f"{KML_NS}Data"):
            value = data.find(f"{KML_NS}value")
            properties[data.get("name", "")] = value.text if value is not None else None
        placemark_id = placemark.get("id")
        features.append(
            Feature(id=placemark_id if placemark_id is not None else len(features), properties=properties, paths=paths)
        )
    return features


def _polygon_paths(polygon: ET.Element) -> list[FeaturePath]:
    paths: list[FeaturePath] = []
    for boundary, hole in (("outerBoundaryIs", False), ("innerBoundaryIs", True)):
        for container in polygon.findall(f"{KML_NS}{boundary}"):
            ring = container.find(f"{KML_NS}LinearRing")
            coords = _coordinates_of(ring) if ring is not None else []
            if coords:
                paths.append(FeaturePath(coordinates=coords, closed=True, hole=hole))
    return paths


def _coordinates_of(elem: ET.Element) -> list[tuple[float, ...]]:
    """Positions of a ``<coordinates>`` child: whitespace-separated ``lon,lat[,alt]`` tuples."""
    node = elem.find(f"{KML_NS}coordinates")
    if node is None or not node.text:
        return []
    coords: list[tuple[float, ...]] = []
    for token in node.text.split():
        values = token.split(",")
        # Anything past altitude is not a coordinate.
        if len(values) >= 2:
            coords.append(tuple(float(v) for v in values[:3]))
    return coords
