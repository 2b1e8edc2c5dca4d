"""Pydantic data models for the topology pipeline.

Input side: ``FeatureCollection`` of ``Feature`` with ``FeaturePath`` sequences.
Output side: normal-form table rows, joined only by integer ids, grouped into
one tagged ``Model`` variant per representation.
"""

from __future__ import annotations

import math
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


class FeaturePath(BaseModel):
    """One ordered coordinate sequence of a feature."""

    coordinates: list[tuple[float, ...]]
    closed: bool = False
    hole: bool = False

    @field_validator("coordinates")
    @classmethod
    def _check_coordinates(cls, value: list[tuple[float, ...]]) -> list[tuple[float, ...]]:
        for coord in value:
            if len(coord) not in (2, 3):
                raise ValueError(f"Coordinates must have 2 or 3 values, got {len(coord)}")
            if not all(math.isfinite(v) for v in coord):
                raise ValueError(f"Coordinates must be finite, got {coord}")
        return value


class Feature(BaseModel):
    """One source feature: an identifier, opaque attributes and its paths."""

    id: str | int | None = None
    properties: dict[str, Any] = Field(default_factory=dict)
    paths: list[FeaturePath] = Field(default_factory=list)


class FeatureCollection(BaseModel):
    features: list[Feature] = Field(default_factory=list)


class SourceMetadata(BaseModel):
    """Metadata about a parsed input source."""

    source_type: str
    crs_epsg: int | None = None
    crs_name: str | None = None
    is_projected: bool | None = None
    num_features: int
    num_paths: int
    has_z: bool
    fields: list[str]


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class Object(BaseModel):
    object_id: int
    source_id: str | int | None = None
    properties: dict[str, Any] = Field(default_factory=dict)


class Coordinate(BaseModel):
    """A single raw coordinate occurrence."""

    object_id: int
    path_id: int
    position: int
    x: float
    y: float
    z: float | None = None


class Vertex(BaseModel):
    vertex_id: int
    x: float
    y: float
    z: float | None = None


class Path(BaseModel):
    """One path of an object. ``ncoords`` counts its stored vertex links.

    ``auto_closed`` marks a ring whose input did not repeat its start; the
    closing link was added during extraction.
    """

    path_id: int
    object_id: int
    closed: bool
    hole: bool = False
    ncoords: int
    auto_closed: bool = False


class PathLinkVertex(BaseModel):
    path_id: int
    position: int
    vertex_id: int


class Segment(BaseModel):
    """One directed occurrence of an edge inside a path."""

    segment_id: int
    path_id: int
    position: int
    vertex_from: int
    vertex_to: int
    edge_id: int
    reversed: bool


class Edge(BaseModel):
    """A unique unordered vertex pair, stored low id first."""

    edge_id: int
    vertex_low: int
    vertex_high: int


class Node(BaseModel):
    node_id: int
    vertex_id: int
    degree: int
    terminal: bool = False


class Arc(BaseModel):
    """A maximal edge chain between nodes, or a closed loop with none."""

    arc_id: int
    closed: bool
    start_node: int | None = None
    end_node: int | None = None
    nedges: int


class ArcLinkEdge(BaseModel):
    arc_id: int
    position: int
    edge_id: int
    reversed: bool


class ArcLinkVertex(BaseModel):
    arc_id: int
    position: int
    vertex_id: int


class ObjectLinkEdge(BaseModel):
    object_id: int
    edge_id: int


class ObjectLinkArc(BaseModel):
    object_id: int
    arc_id: int


class Triangle(BaseModel):
    triangle_id: int
    object_id: int
    vertex_a: int
    vertex_b: int
    vertex_c: int
    winding: Literal["ccw", "cw"]


class Diagnostic(BaseModel):
    """A non-fatal problem recorded while building a model.

    A rejected path never gets a ``path_id``; ``path_index`` is then its
    position within the source feature's paths.
    """

    level: Literal["warning", "info"] = "warning"
    code: str
    message: str
    object_id: int | None = None
    path_id: int | None = None
    path_index: int | None = None


# ---------------------------------------------------------------------------
# Model variants
# ---------------------------------------------------------------------------


class _ModelBase(BaseModel):
    object: list[Object] = Field(default_factory=list)
    vertex: list[Vertex] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    # Table attributes in export order; subclasses extend.
    TABLES: ClassVar[tuple[str, ...]] = ("object", "vertex")

    def tables(self) -> dict[str, list[dict[str, Any]]]:
        """Return every table as a list of plain row dicts."""
        return {name: [row.model_dump() for row in getattr(self, name)] for name in self.TABLES}


class UniversalModel(_ModelBase):
    """Minimal edge-based representation."""

    kind: Literal["universal"] = "universal"
    edge: list[Edge] = Field(default_factory=list)
    object_link_edge: list[ObjectLinkEdge] = Field(default_factory=list)

    TABLES = ("object", "vertex", "edge", "object_link_edge")


class PathModel(_ModelBase):
    """Path-preserving normal form."""

    kind: Literal["path"] = "path"
    path: list[Path] = Field(default_factory=list)
    path_link_vertex: list[PathLinkVertex] = Field(default_factory=list)

    TABLES = ("object", "path", "path_link_vertex", "vertex")


class ArcModel(_ModelBase):
    """Arc-node topology."""

    kind: Literal["arc"] = "arc"
    edge: list[Edge] = Field(default_factory=list)
    node: list[Node] = Field(default_factory=list)
    arc: list[Arc] = Field(default_factory=list)
    arc_link_edge: list[ArcLinkEdge] = Field(default_factory=list)
    arc_link_vertex: list[ArcLinkVertex] = Field(default_factory=list)
    object_link_arc: list[ObjectLinkArc] = Field(default_factory=list)

    TABLES = (
        "object",
        "vertex",
        "edge",
        "node",
        "arc",
        "arc_link_edge",
        "arc_link_vertex",
        "object_link_arc",
    )


class TriangulatedModel(_ModelBase):
    """Triangulated decomposition of polygonal objects."""

    kind: Literal["triangulated"] = "triangulated"
    triangle: list[Triangle] = Field(default_factory=list)

    TABLES = ("object", "triangle", "vertex")


Model = Annotated[
    Union[UniversalModel, PathModel, ArcModel, TriangulatedModel],
    Field(discriminator="kind"),
]

MODEL_TYPES: dict[str, type[_ModelBase]] = {
    "universal": UniversalModel,
    "path": PathModel,
    "arc": ArcModel,
    "triangulated": TriangulatedModel,
}
