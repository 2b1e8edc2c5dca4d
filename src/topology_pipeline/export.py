"""Persisted form: one CSV per table plus a ``model.json`` manifest.

Rows are flat; foreign keys are plain integer columns. Values that are not
scalars (object properties, source ids) are stored as JSON text so that they
read back with their original types.
"""

from __future__ import annotations

import csv
import io
import json
import zipfile
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter

from .models import MODEL_TYPES, Model

MANIFEST = "model.json"
JSON_COLUMNS = frozenset({"properties", "source_id"})

_model_adapter = TypeAdapter(Model)


def _table_csv(rows: list[dict[str, Any]], fieldnames: list[str]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=fieldnames)
    writer.writeheader()
    for row in rows:
        writer.writerow({k: json.dumps(v) if k in JSON_COLUMNS else v for k, v in row.items()})
    return buf.getvalue()


def _fieldnames(model: Model, table: str) -> list[str]:
    row_type = type(model).model_fields[table].annotation.__args__[0]
    return list(row_type.model_fields)


def table_files(model: Model) -> dict[str, str]:
    """File name -> text for every table and the manifest."""
    files = {
        f"{name}.csv": _table_csv(rows, _fieldnames(model, name))
        for name, rows in model.tables().items()
    }
    manifest = {
        "kind": model.kind,
        "tables": list(model.TABLES),
        "diagnostics": [d.model_dump() for d in model.diagnostics],
    }
    files[MANIFEST] = json.dumps(manifest, indent=2)
    return files


def write_tables(model: Model, directory: str | Path) -> list[Path]:
    """Write one CSV per table into ``directory``; returns the written paths."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for name, text in table_files(model).items():
        path = directory / name
        path.write_text(text, newline="")
        written.append(path)
    return written


def tables_to_zip(model: Model) -> bytes:
    """The same files as ``write_tables``, packed into a ZIP archive."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, text in table_files(model).items():
            zf.writestr(name, text)
    return buf.getvalue()


def _parse_csv(text: str) -> list[dict[str, Any]]:
    rows = []
    for row in csv.DictReader(io.StringIO(text, newline="")):
        parsed: dict[str, Any] = {}
        for key, value in row.items():
            if key in JSON_COLUMNS:
                parsed[key] = json.loads(value)
            elif value == "":
                parsed[key] = None
            else:
                parsed[key] = value
        rows.append(parsed)
    return rows


def _read_members(source: str | Path | bytes) -> dict[str, str]:
    if isinstance(source, bytes):
        with zipfile.ZipFile(io.BytesIO(source)) as zf:
            return {name: zf.read(name).decode("utf-8") for name in zf.namelist()}
    source = Path(source)
    if source.is_file():
        with zipfile.ZipFile(source) as zf:
            return {name: zf.read(name).decode("utf-8") for name in zf.namelist()}
    return {p.name: p.read_text() for p in source.iterdir() if p.suffix in (".csv", ".json")}


def read_tables(source: str | Path | bytes) -> Model:
    """Rebuild a model from a table directory, a ZIP file path, or ZIP bytes."""
    members = _read_members(source)
    if MANIFEST not in members:
        raise ValueError(f"No {MANIFEST} manifest found")
    manifest = json.loads(members[MANIFEST])
    kind = manifest.get("kind")
    if kind not in MODEL_TYPES:
        raise ValueError(f"Unknown model kind {kind!r} in manifest")

    data: dict[str, Any] = {"kind": kind, "diagnostics": manifest.get("diagnostics", [])}
    for name in MODEL_TYPES[kind].TABLES:
        text = members.get(f"{name}.csv")
        if text is None:
            raise ValueError(f"Missing table {name}.csv")
        data[name] = _parse_csv(text)
    return _model_adapter.validate_python(data)
