"""
geometry.py — Polygon geometry kernel for administrative boundary tests.

Point containment uses the ray-casting (even-odd) method: cast a horizontal
ray from the test point eastward to infinity, counting boundary crossings.
An odd count means the point is inside the ring.

All rings are GeoJSON-ordered: lists of [longitude, latitude] pairs. The
public functions take ``lon`` and ``lat`` as separate arguments so the axis
order is explicit at every call site.

Reference:
    W. Randolph Franklin, "PNPOLY – Point Inclusion in Polygon Test"
    https://wrfranklin.org/Research/Short_Notes/pnpoly.html
"""

from __future__ import annotations

import math
from typing import Iterable, Optional

Ring = list[list[float]]
Polygon = list[Ring]
MultiPolygon = list[Polygon]


# ── Containment ──────────────────────────────────────────────────────────────

def is_point_in_ring(lon: float, lat: float, ring: Ring) -> bool:
    """
    Run the ray-casting test for a single linear ring.

    The ring does not need a duplicated closing vertex; the edge from the
    last point back to the first is always tested. Points lying exactly on
    an edge may be reported either way.

    Args:
        lon:  Longitude (x-axis) of the test point.
        lat:  Latitude  (y-axis) of the test point.
        ring: List of [lon, lat] coordinate pairs.

    Returns:
        True if the point is inside the ring, False otherwise.
    """
    inside = False
    n = len(ring)

    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]

        if ((yi > lat) != (yj > lat)) and (lon < (xj - xi) * (lat - yi) / (yj - yi) + xi):
            inside = not inside

        j = i

    return inside


def is_point_in_polygon_with_holes(lon: float, lat: float, rings: Polygon) -> bool:
    """
    Test a point against a single polygon (exterior ring + optional holes).

    Args:
        lon:   Longitude of the test point.
        lat:   Latitude  of the test point.
        rings: List of linear rings — first is exterior, rest are holes.

    Returns:
        True if the point is inside the exterior ring and outside all holes.
    """
    if not rings:
        return False

    if not is_point_in_ring(lon, lat, rings[0]):
        return False

    for hole in rings[1:]:
        if is_point_in_ring(lon, lat, hole):
            return False

    return True


def is_point_in_multipolygon(lon: float, lat: float, polygons: MultiPolygon) -> bool:
    """Return True if any constituent polygon contains the point."""
    return any(is_point_in_polygon_with_holes(lon, lat, polygon) for polygon in polygons)


def point_in_geometry(lon: float, lat: float, geometry: dict) -> bool:
    """
    Test whether a geographic point falls inside a GeoJSON geometry.

    Args:
        lon:      Longitude of the test point.
        lat:      Latitude  of the test point.
        geometry: GeoJSON geometry dict with keys "type" and "coordinates".

    Returns:
        True if the point is inside the geometry, False otherwise.

    Raises:
        ValueError: If the geometry type is not Polygon or MultiPolygon.
    """
    geo_type    = geometry.get("type")
    coordinates = geometry.get("coordinates", [])

    if geo_type == "Polygon":
        return is_point_in_polygon_with_holes(lon, lat, coordinates)

    elif geo_type == "MultiPolygon":
        return is_point_in_multipolygon(lon, lat, coordinates)

    else:
        raise ValueError(f"Unsupported geometry type: {geo_type!r}")


# ── Hull, centre and bounds ──────────────────────────────────────────────────

def _cross(o: list[float], a: list[float], b: list[float]) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points: list[list[float]]) -> Ring:
    """
    Compute the convex hull of a point cloud with Andrew's monotone chain.

    Fewer than three points are returned unchanged (a degenerate hull).
    Collinear points on the hull boundary are dropped. The result is
    counter-clockwise and has no duplicated closing vertex.

    Args:
        points: Unordered list of [lon, lat] pairs.

    Returns:
        The hull as a ring of [lon, lat] pairs.
    """
    if len(points) < 3:
        return list(points)

    ordered = sorted(points, key=lambda p: (p[0], p[1]))

    lower: Ring = []
    for point in ordered:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], point) <= 0:
            lower.pop()
        lower.append(point)

    upper: Ring = []
    for point in reversed(ordered):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], point) <= 0:
            upper.pop()
        upper.append(point)

    # Each half ends where the other begins
    return lower[:-1] + upper[:-1]


def _valid_pairs(points: Iterable) -> Iterable[tuple[float, float]]:
    for point in points:
        try:
            lon, lat = point[0], point[1]
        except (TypeError, IndexError, KeyError):
            continue
        if isinstance(lon, bool) or isinstance(lat, bool):
            continue
        if not isinstance(lon, (int, float)) or not isinstance(lat, (int, float)):
            continue
        if math.isnan(lon) or math.isnan(lat):
            continue
        yield float(lon), float(lat)


def coordinate_center(points: Iterable) -> Optional[dict[str, float]]:
    """
    Arithmetic mean of the valid [lon, lat] pairs.

    This is not a true polygon centroid; it is good enough to pan a map.
    Returns None when no valid pair is found.
    """
    total_lon = total_lat = 0.0
    count = 0
    for lon, lat in _valid_pairs(points):
        total_lon += lon
        total_lat += lat
        count += 1

    if count == 0:
        return None
    return {"lat": total_lat / count, "lng": total_lon / count}


def coordinate_bounds(points: Iterable) -> Optional[dict[str, float]]:
    """Axis-aligned bounding box of the valid [lon, lat] pairs, or None."""
    north = east = -math.inf
    south = west = math.inf
    found = False
    for lon, lat in _valid_pairs(points):
        north = max(north, lat)
        south = min(south, lat)
        east  = max(east, lon)
        west  = min(west, lon)
        found = True

    if not found:
        return None
    return {"north": north, "south": south, "east": east, "west": west}
