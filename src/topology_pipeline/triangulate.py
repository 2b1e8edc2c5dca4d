"""Ear-clipping triangulation of polygon rings over vertex ids.

Holes are merged into their outer ring through a bridge edge (leftmost hole
vertex to a visible outer vertex, holes taken left to right) and the merged
ring is clipped as one simple polygon. Triangles are not quality-shaped;
slivers are expected.
"""

from __future__ import annotations

import logging
import math
from typing import Literal, Mapping, Sequence

from .errors import DegenerateRingError
from .models import Diagnostic, Path

logger = logging.getLogger(__name__)

Point2D = tuple[float, float]
# (vertex id, x, y)
Slot = tuple[int, float, float]
Winding = Literal["ccw", "cw"]


# -----------------------
# Geometry helpers
# -----------------------
def signed_area(points: Sequence[Point2D]) -> float:
    """Shoelace area of an implicitly closed ring, positive when counter-clockwise."""
    total = 0.0
    n = len(points)
    for i in range(n):
        x0, y0 = points[i]
        x1, y1 = points[(i + 1) % n]
        total += x0 * y1 - x1 * y0
    return total / 2.0


def triangle_area(a: Point2D, b: Point2D, c: Point2D) -> float:
    return abs(signed_area((a, b, c)))


def _area(p: Point2D, q: Point2D, r: Point2D) -> float:
    # Negative when p -> q -> r turns left (convex for a counter-clockwise ring).
    return (q[1] - p[1]) * (r[0] - q[0]) - (q[0] - p[0]) * (r[1] - q[1])


def _point_in_triangle(a: Point2D, b: Point2D, c: Point2D, p: Point2D) -> bool:
    return (
        (c[0] - p[0]) * (a[1] - p[1]) >= (a[0] - p[0]) * (c[1] - p[1])
        and (a[0] - p[0]) * (b[1] - p[1]) >= (b[0] - p[0]) * (a[1] - p[1])
        and (b[0] - p[0]) * (c[1] - p[1]) >= (c[0] - p[0]) * (b[1] - p[1])
    )


def point_in_ring(point: Point2D, ring: Sequence[Point2D]) -> bool:
    """Even-odd crossing test."""
    x, y = point
    inside = False
    n = len(ring)
    for i in range(n):
        x0, y0 = ring[i]
        x1, y1 = ring[(i + 1) % n]
        if (y0 > y) != (y1 > y):
            cross_x = x0 + (y - y0) * (x1 - x0) / (y1 - y0)
            if x < cross_x:
                inside = not inside
    return inside


# -----------------------
# Ring preparation
# -----------------------
def _prepare_ring(vertex_ids: Sequence[int], points: Mapping[int, Point2D]) -> list[Slot]:
    """Open the ring and drop consecutive repeats; raise if fewer than 3 corners remain."""
    ids = list(vertex_ids)
    if len(ids) > 1 and ids[0] == ids[-1]:
        ids.pop()
    slots: list[Slot] = []
    for vertex_id in ids:
        x, y = points[vertex_id]
        if slots and (slots[-1][1], slots[-1][2]) == (x, y):
            continue
        slots.append((vertex_id, x, y))
    while len(slots) > 1 and (slots[0][1], slots[0][2]) == (slots[-1][1], slots[-1][2]):
        slots.pop()
    if len(slots) < 3:
        raise DegenerateRingError(f"Ring has {len(slots)} distinct vertices, needs at least 3")
    if signed_area([(s[1], s[2]) for s in slots]) == 0:
        raise DegenerateRingError("Ring has zero area")
    return slots


def _oriented(slots: list[Slot], ccw: bool) -> list[Slot]:
    area = signed_area([(s[1], s[2]) for s in slots])
    if (area > 0) != ccw:
        return slots[::-1]
    return slots


# -----------------------
# Hole bridging
# -----------------------
def _xy(slot: Slot) -> Point2D:
    return slot[1], slot[2]


def _locally_inside(ring: list[Slot], i: int, point: Point2D) -> bool:
    n = len(ring)
    prev, here, nxt = _xy(ring[(i - 1) % n]), _xy(ring[i]), _xy(ring[(i + 1) % n])
    if _area(prev, here, nxt) < 0:
        return _area(here, point, nxt) >= 0 and _area(here, prev, point) >= 0
    return _area(here, point, prev) < 0 or _area(here, nxt, point) < 0


def _sector_contains_sector(ring: list[Slot], m: int, p: int) -> bool:
    n = len(ring)
    return (
        _area(_xy(ring[(m - 1) % n]), _xy(ring[m]), _xy(ring[(p - 1) % n])) < 0
        and _area(_xy(ring[(p + 1) % n]), _xy(ring[m]), _xy(ring[(m + 1) % n])) < 0
    )


def _find_bridge(outer: list[Slot], hole_point: Point2D) -> int | None:
    """Index of an outer vertex visible from ``hole_point`` looking left."""
    hx, hy = hole_point
    n = len(outer)
    qx = -math.inf
    m: int | None = None

    # Closest outer edge crossed by a ray from the hole point towards -x.
    for i in range(n):
        px, py = _xy(outer[i])
        nx, ny = _xy(outer[(i + 1) % n])
        if ny <= hy <= py and ny != py:
            x = px + (hy - py) * (nx - px) / (ny - py)
            if qx < x <= hx:
                qx = x
                m = i if px < nx else (i + 1) % n
                if x == hx:
                    return m
    if m is None:
        return None

    # Reflex vertices inside the triangle (hole point, ray hit, m) can block m;
    # pick the one at the smallest angle to the ray instead.
    mx, my = _xy(outer[m])
    tan_min = math.inf
    start = m
    for k in range(n):
        i = (start + k) % n
        px, py = _xy(outer[i])
        if hx >= px >= mx and hx != px and _point_in_triangle(
            (hx if hy < my else qx, hy), (mx, my), (qx if hy < my else hx, hy), (px, py)
        ):
            tan = abs(hy - py) / (hx - px)
            if _locally_inside(outer, i, hole_point) and (
                tan < tan_min
                or (
                    tan == tan_min
                    and (px > outer[m][1] or (px == outer[m][1] and _sector_contains_sector(outer, m, i)))
                )
            ):
                m = i
                tan_min = tan
    return m


def _merge_hole(outer: list[Slot], hole: list[Slot]) -> list[Slot]:
    h = min(range(len(hole)), key=lambda i: (hole[i][1], hole[i][2]))
    m = _find_bridge(outer, _xy(hole[h]))
    if m is None:
        raise DegenerateRingError("Hole lies outside its outer ring")
    return outer[: m + 1] + hole[h:] + hole[:h] + [hole[h], outer[m]] + outer[m + 1 :]


# -----------------------
# Ear clipping
# -----------------------
class _LinkedRing:
    """Doubly linked view over a slot list; removal only relinks neighbours."""

    def __init__(self, slots: list[Slot]):
        n = len(slots)
        self.slots = slots
        self.prev = [(i - 1) % n for i in range(n)]
        self.next = [(i + 1) % n for i in range(n)]

    def xy(self, i: int) -> Point2D:
        return self.slots[i][1], self.slots[i][2]

    def remove(self, i: int) -> None:
        p, q = self.prev[i], self.next[i]
        self.next[p] = q
        self.prev[q] = p

    def is_ear(self, ear: int) -> bool:
        a, c = self.prev[ear], self.next[ear]
        pa, pb, pc = self.xy(a), self.xy(ear), self.xy(c)
        if _area(pa, pb, pc) >= 0:
            return False
        p = self.next[c]
        while p != a:
            pp = self.xy(p)
            if (
                pp != pa
                and _point_in_triangle(pa, pb, pc, pp)
                and _area(self.xy(self.prev[p]), pp, self.xy(self.next[p])) >= 0
            ):
                return False
            p = self.next[p]
        return True

    def filter_points(self, start: int) -> int:
        """Unlink repeated and collinear vertices; return a surviving vertex."""
        p = end = start
        while True:
            again = False
            q = self.next[p]
            if self.xy(p) == self.xy(q) or _area(self.xy(self.prev[p]), self.xy(p), self.xy(q)) == 0:
                self.remove(p)
                p = end = self.prev[p]
                if p == self.next[p]:
                    break
                again = True
            else:
                p = self.next[p]
            if not again and p == end:
                break
        return end


def _clip(ring: _LinkedRing, ear: int, triangles: list[tuple[int, int, int]], retry: bool = True) -> None:
    stop = ear
    while ring.prev[ear] != ring.next[ear]:
        prev, nxt = ring.prev[ear], ring.next[ear]
        if ring.is_ear(ear):
            triangles.append((prev, ear, nxt))
            ring.remove(ear)
            ear = stop = ring.next[nxt]
            continue
        ear = nxt
        if ear == stop:
            if not retry:
                raise DegenerateRingError("No ear found; ring is self-intersecting")
            _clip(ring, ring.filter_points(ear), triangles, retry=False)
            return


def triangulate_polygon(
    outer: Sequence[int],
    holes: Sequence[Sequence[int]],
    points: Mapping[int, Point2D],
) -> tuple[list[tuple[int, int, int]], Winding]:
    """Triangulate one outer ring with its holes.

    Args:
        outer: Vertex ids of the outer ring (closing repeat optional).
        holes: Vertex id sequences of rings inside ``outer``.
        points: x/y of every referenced vertex id.

    Returns:
        Vertex id triples, wound like the input outer ring, and that winding.

    Raises:
        DegenerateRingError: the outer ring has fewer than 3 distinct
            vertices, zero area, or no ear can be found.
    """
    outer_slots = _prepare_ring(outer, points)
    winding: Winding = "ccw" if signed_area([_xy(s) for s in outer_slots]) > 0 else "cw"
    merged = _oriented(outer_slots, ccw=True)

    prepared = [_oriented(_prepare_ring(hole, points), ccw=False) for hole in holes]
    prepared.sort(key=lambda slots: min((s[1], s[2]) for s in slots))
    for hole_slots in prepared:
        merged = _merge_hole(merged, hole_slots)

    ring = _LinkedRing(merged)
    slot_triangles: list[tuple[int, int, int]] = []
    _clip(ring, 0, slot_triangles)

    triangles = []
    for a, b, c in slot_triangles:
        ids = (merged[a][0], merged[b][0], merged[c][0])
        triangles.append(ids if winding == "ccw" else (ids[0], ids[2], ids[1]))
    return triangles, winding


def triangulate_object(
    object_id: int,
    rings: Sequence[tuple[Path, Sequence[int]]],
    points: Mapping[int, Point2D],
) -> tuple[list[tuple[int, int, int, Winding]], list[Diagnostic]]:
    """Triangulate every closed outer ring of one object, with its holes.

    Open paths are ignored. Each hole goes to the first outer ring that
    contains it. A ring that cannot be clipped is skipped and reported; the
    object's other rings still proceed.
    """
    diagnostics: list[Diagnostic] = []
    outers = [(path, ids) for path, ids in rings if path.closed and not path.hole]
    holes_of: dict[int, list[Sequence[int]]] = {path.path_id: [] for path, _ in outers}

    for hole, hole_ids in (r for r in rings if r[0].closed and r[0].hole):
        owner = _containing_outer(hole_ids, outers, points)
        if owner is None:
            diagnostics.append(
                Diagnostic(
                    code="orphan_hole",
                    message="Hole is not inside any outer ring of its object",
                    object_id=object_id,
                    path_id=hole.path_id,
                )
            )
            continue
        try:
            _prepare_ring(hole_ids, points)
        except DegenerateRingError as exc:
            # A hole with no area removes nothing.
            diagnostics.append(
                Diagnostic(code="degenerate_ring", message=str(exc), object_id=object_id, path_id=hole.path_id)
            )
            continue
        holes_of[owner].append(hole_ids)

    triangles: list[tuple[int, int, int, Winding]] = []
    for path, ids in outers:
        try:
            polygon_triangles, winding = triangulate_polygon(ids, holes_of[path.path_id], points)
        except DegenerateRingError as exc:
            logger.warning("triangulate_object: object %d path %d skipped: %s", object_id, path.path_id, exc)
            diagnostics.append(
                Diagnostic(code="degenerate_ring", message=str(exc), object_id=object_id, path_id=path.path_id)
            )
            continue
        triangles.extend((a, b, c, winding) for a, b, c in polygon_triangles)
    return triangles, diagnostics


def _containing_outer(
    hole_ids: Sequence[int],
    outers: Sequence[tuple[Path, Sequence[int]]],
    points: Mapping[int, Point2D],
) -> int | None:
    for path, ids in outers:
        outer_ids = set(ids)
        ring = [points[v] for v in ids]
        # Test a hole vertex that is not shared with the outer boundary.
        sample = next((v for v in hole_ids if v not in outer_ids), None)
        if sample is not None and point_in_ring(points[sample], ring):
            return path.path_id
    return None
