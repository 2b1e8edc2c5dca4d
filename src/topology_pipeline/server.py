"""FastAPI server: build normal-form models from uploaded spatial files."""

from __future__ import annotations

import io
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Literal
from xml.etree.ElementTree import ParseError

from fastapi import Body, FastAPI, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from .config import PipelineConfig
from .export import tables_to_zip
from .geojson import read_geojson
from .kml_reader import read_kmz
from .models import FeatureCollection
from .pipeline import build_model
from .reader import read_shapefile

app = FastAPI(title="Topology Pipeline", version="0.1.0")

ModelKind = Literal["universal", "path", "arc", "triangulated"]

SHAPEFILE_PARTS = (".shp", ".shx", ".dbf", ".prj")

# Reader failures that mean the upload itself is bad.
BAD_INPUT = (ValueError, ValidationError, ParseError, zipfile.BadZipFile)


@app.post("/models/{kind}")
async def build_from_upload(
    kind: ModelKind,
    files: list[UploadFile],
    format: str = Query("json", pattern="^(json|zip)$"),
    tolerance: float | None = Query(None, ge=0),
):
    """Build a model from uploaded file(s).

    Accepts one .geojson/.json, .kmz/.kml or zipped shapefile, or the
    .shp/.shx/.dbf(/.prj) parts of a shapefile as separate files.
    """
    contents = {(f.filename or "").lower(): await f.read() for f in files}
    try:
        collection = _read_upload(contents)
    except BAD_INPUT as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(kind, collection, format, tolerance)


@app.post("/models/{kind}/geojson")
async def build_from_geojson(
    kind: ModelKind,
    geojson: dict[str, Any] = Body(...),
    format: str = Query("json", pattern="^(json|zip)$"),
    tolerance: float | None = Query(None, ge=0),
):
    """Build a model from a GeoJSON request body."""
    try:
        collection, _ = read_geojson(geojson)
    except BAD_INPUT as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _respond(kind, collection, format, tolerance)


def _respond(kind: str, collection: FeatureCollection, format: str, tolerance: float | None):
    model = build_model(kind, collection, PipelineConfig(tolerance=tolerance))
    if format == "json":
        return model
    return StreamingResponse(
        iter([tables_to_zip(model)]),
        media_type="application/zip",
        headers={"Content-Disposition": f"attachment; filename={kind}_model.zip"},
    )


def _read_upload(contents: dict[str, bytes]) -> FeatureCollection:
    """Pick a reader from the uploaded file names (lower-cased) and run it."""
    if len(contents) == 1:
        [(name, data)] = contents.items()
        if name.endswith((".geojson", ".json")):
            return read_geojson(data)[0]
        if name.endswith((".kmz", ".kml")):
            return read_kmz(io.BytesIO(data))[0]
        if name.endswith(".zip"):
            return _read_zipped_shapefile(data)

    parts = {Path(name).suffix: data for name, data in contents.items() if Path(name).suffix in SHAPEFILE_PARTS}
    if ".shp" not in parts:
        raise HTTPException(status_code=400, detail="Missing required .shp file")

    def part(ext: str) -> io.BytesIO | None:
        return io.BytesIO(parts[ext]) if ext in parts else None

    prj = parts.get(".prj")
    collection, _ = read_shapefile(
        shp_file=part(".shp"),
        shx_file=part(".shx"),
        dbf_file=part(".dbf"),
        prj_wkt=prj.decode("utf-8", errors="replace") if prj is not None else None,
    )
    return collection


def _read_zipped_shapefile(data: bytes) -> FeatureCollection:
    # pyshp finds the .prj and companions next to the .shp on disk.
    with tempfile.TemporaryDirectory() as extract_dir:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            zf.extractall(extract_dir)
        shp_files = sorted(Path(extract_dir).rglob("*.shp"))
        if not shp_files:
            raise HTTPException(status_code=400, detail="No .shp file found in zip archive")
        return read_shapefile(shp_files[0])[0]
