"""Unjoin: split a table into unique key tuples plus a foreign-key back-reference.

The inverse of a relational join. Every normalization step in the package
(vertices from coordinates, edges from segments, object/edge links) goes
through ``unjoin`` so that ids are always assigned the same way: sequential
integers in order of first occurrence.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from itertools import product
from typing import Any, Hashable, Mapping, Protocol, Sequence

from .errors import InvalidKeyError

Key = tuple[Any, ...]

_CELL_LIMIT = 2.0**62


def grid_cell(value: float, size: float) -> int:
    """Index of the grid cell of width ``size`` holding ``value``.

    Quotients past the limit share the end cells, so huge values over a tiny
    size still bucket; callers compare the values themselves.
    """
    return math.floor(min(max(value / size, -_CELL_LIMIT), _CELL_LIMIT))


class KeyIndex(Protocol):
    """Equality predicate for ``unjoin``: finds the id of a key already seen."""

    def find(self, key: Key) -> int | None: ...

    def add(self, key: Key, ident: int) -> None: ...


class ExactKeyIndex:
    """Hash equality on the key tuple."""

    def __init__(self) -> None:
        self._ids: dict[Hashable, int] = {}

    def find(self, key: Key) -> int | None:
        return self._ids.get(key)

    def add(self, key: Key, ident: int) -> None:
        self._ids[key] = ident


class ToleranceKeyIndex:
    """Per-axis tolerance equality for numeric keys.

    Two keys match when every component differs by at most ``tolerance``.
    ``None`` components only match ``None``. Keys are bucketed on a grid of
    cell size ``tolerance`` so a lookup scans the 3**d neighbouring cells.
    When several stored keys match, the one added first (lowest id) wins;
    stored keys are never merged after the fact, so results depend on the
    order keys are offered.
    """

    def __init__(self, tolerance: float) -> None:
        if tolerance < 0:
            raise ValueError(f"tolerance must be >= 0, got {tolerance}")
        self.tolerance = tolerance
        self._exact = ExactKeyIndex() if tolerance == 0 else None
        self._cells: dict[tuple[int, ...], list[tuple[int, Key]]] = defaultdict(list)

    def _cell(self, key: Key) -> tuple[int, ...]:
        return tuple(0 if v is None else grid_cell(v, self.tolerance) for v in key)

    def _matches(self, key: Key, other: Key) -> bool:
        for a, b in zip(key, other):
            if a is None or b is None:
                if a is not b:
                    return False
            elif abs(a - b) > self.tolerance:
                return False
        return True

    def find(self, key: Key) -> int | None:
        if self._exact is not None:
            return self._exact.find(key)
        best: int | None = None
        cell = self._cell(key)
        for offset in product((-1, 0, 1), repeat=len(cell)):
            neighbour = tuple(c + o for c, o in zip(cell, offset))
            for ident, other in self._cells.get(neighbour, ()):
                if best is not None and ident >= best:
                    continue
                if self._matches(key, other):
                    best = ident
        return best

    def add(self, key: Key, ident: int) -> None:
        if self._exact is not None:
            self._exact.add(key, ident)
            return
        self._cells[self._cell(key)].append((ident, key))


@dataclass
class UnjoinResult:
    """Output of ``unjoin``.

    ``unique`` holds one row per distinct key (id column first, then the key
    columns as first seen). ``mapped`` mirrors the input rows one-for-one with
    the key columns replaced by the id column.
    """

    id_column: str = "id"
    unique: list[dict[str, Any]] = field(default_factory=list)
    mapped: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ids(self) -> list[int]:
        """Foreign key of every input row, in input order."""
        return [row[self.id_column] for row in self.mapped]


def unjoin(
    rows: Sequence[Mapping[str, Any]],
    key_columns: Sequence[str],
    *,
    id_column: str = "id",
    index: KeyIndex | None = None,
) -> UnjoinResult:
    """Extract the unique tuples of ``key_columns`` from ``rows``.

    Args:
        rows: Input table as a sequence of mappings.
        key_columns: Columns whose combined value defines identity.
        id_column: Name of the assigned id, both in ``unique`` and as the
            foreign key in ``mapped``.
        index: Equality predicate. Defaults to exact equality.

    Raises:
        InvalidKeyError: ``key_columns`` is empty, names a column some row
            lacks, or ``id_column`` collides with an existing column.
    """
    key_columns = list(key_columns)
    if not key_columns:
        raise InvalidKeyError("unjoin needs at least one key column")
    if id_column in key_columns:
        raise InvalidKeyError(f"id column {id_column!r} cannot also be a key column")
    if index is None:
        index = ExactKeyIndex()

    result = UnjoinResult(id_column=id_column)
    for row_number, row in enumerate(rows):
        missing = [c for c in key_columns if c not in row]
        if missing:
            raise InvalidKeyError(f"Row {row_number} lacks key column(s): {', '.join(missing)}")
        if id_column in row:
            raise InvalidKeyError(f"Row {row_number} already has a {id_column!r} column")

        key = tuple(row[c] for c in key_columns)
        ident = index.find(key)
        if ident is None:
            ident = len(result.unique)
            index.add(key, ident)
            unique_row = {id_column: ident}
            unique_row.update(zip(key_columns, key))
            result.unique.append(unique_row)

        mapped_row = {c: v for c, v in row.items() if c not in key_columns}
        mapped_row[id_column] = ident
        result.mapped.append(mapped_row)

    return result
