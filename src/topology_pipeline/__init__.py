"""Relational normal forms and arc-node topology for feature collections."""

from .config import PipelineConfig
from .errors import (
    DegenerateRingError,
    IncompleteTopologyError,
    InvalidKeyError,
    MalformedPathError,
    TopologyError,
)
from .export import read_tables, tables_to_zip, write_tables
from .geojson import read_geojson
from .kml_reader import read_kmz
from .models import (
    ArcModel,
    Feature,
    FeatureCollection,
    FeaturePath,
    Model,
    PathModel,
    SourceMetadata,
    TriangulatedModel,
    UniversalModel,
)
from .paths import path_coordinates
from .pipeline import (
    build_arc_model,
    build_model,
    build_path_model,
    build_triangulation,
    build_universal_model,
)
from .reader import detect_crs, read_shapefile
from .unjoin import ExactKeyIndex, ToleranceKeyIndex, unjoin

__all__ = [
    "ArcModel",
    "DegenerateRingError",
    "ExactKeyIndex",
    "Feature",
    "FeatureCollection",
    "FeaturePath",
    "IncompleteTopologyError",
    "InvalidKeyError",
    "MalformedPathError",
    "Model",
    "PathModel",
    "PipelineConfig",
    "SourceMetadata",
    "ToleranceKeyIndex",
    "TopologyError",
    "TriangulatedModel",
    "UniversalModel",
    "build_arc_model",
    "build_model",
    "build_path_model",
    "build_triangulation",
    "build_universal_model",
    "detect_crs",
    "path_coordinates",
    "read_geojson",
    "read_kmz",
    "read_shapefile",
    "read_tables",
    "tables_to_zip",
    "unjoin",
    "write_tables",
]
