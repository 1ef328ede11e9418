"""
conftest.py — Shared pytest fixtures for the pothole geo test suite.

Provides:
    - Small GeoJSON geometries for the ray-casting kernel.
    - Boundary feature collections (a minimal one-district layer and a
      mixed Andhra Pradesh style layer with aliases, holes and bad features).
    - BoundaryIndex instances built from those collections, so no test
      touches the filesystem or network.
    - Sample pothole reports in dict form.
"""

from __future__ import annotations

import pytest

from pothole_geo.boundaries import BoundaryIndex


def _square(west: float, south: float, east: float, north: float) -> list[list[float]]:
    return [[west, south], [east, south], [east, north], [west, north], [west, south]]


# ── Geometry fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def square_polygon_geometry() -> dict:
    """
    Square around Vijayawada (lon 80.50–80.80, lat 16.40–16.70).
    Interior point: (80.6480, 16.5062). Exterior point: (0.0, 0.0).
    """
    return {"type": "Polygon", "coordinates": [_square(80.50, 16.40, 80.80, 16.70)]}


@pytest.fixture
def polygon_with_hole_geometry() -> dict:
    """Outer square 0–10 with a hole 4–6."""
    return {"type": "Polygon", "coordinates": [_square(0, 0, 10, 10), _square(4, 4, 6, 6)]}


@pytest.fixture
def multi_polygon_geometry() -> dict:
    """Two disjoint unit squares at (0,0)-(1,1) and (10,10)-(11,11)."""
    return {
        "type": "MultiPolygon",
        "coordinates": [[_square(0, 0, 1, 1)], [_square(10, 10, 11, 11)]],
    }


# ── Boundary collections ─────────────────────────────────────────────────────

@pytest.fixture
def test_district_collection() -> dict:
    """
    One district-level feature "Test District" covering (0,0)-(10,10) and
    one mandal "Test Mandal" of that district covering (0,0)-(5,5).
    """
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"NAME": "Test District", "boundary_level": "district"},
                "geometry": {"type": "Polygon", "coordinates": [_square(0, 0, 10, 10)]},
            },
            {
                "type": "Feature",
                "properties": {"dtname": "Test District", "sdtname": "Test Mandal"},
                "geometry": {"type": "Polygon", "coordinates": [_square(0, 0, 5, 5)]},
            },
        ],
    }


@pytest.fixture
def ap_collection() -> dict:
    """
    Mixed sub-district / district layer:

        Y.S.R. (alias of "YSR Kadapa")
            Kadapa       lon 78.7–78.9, lat 14.4–14.6
            Pulivendla   lon 78.1–78.3, lat 14.3–14.5
        Krishna
            Vijayawada (Urban)  MultiPolygon: lon 80.5–80.8 / lat 16.4–16.7
                                with a hole lon 80.6–80.7 / lat 16.5–16.6,
                                plus lon 81.0–81.1 / lat 16.4–16.5
        NTR (district-level)    lon 80.0–81.5, lat 16.0–17.0

    plus three features that must be skipped: Guntur / Tenali with no
    geometry, Guntur / Bapatla with a two-point ring, and one feature with
    no district name.
    """
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"dtname": "Y.S.R.", "sdtname": "Kadapa"},
                "geometry": {"type": "Polygon", "coordinates": [_square(78.7, 14.4, 78.9, 14.6)]},
            },
            {
                "type": "Feature",
                "properties": {"dtname": "Y.S.R.", "sdtname": "Pulivendla"},
                "geometry": {"type": "Polygon", "coordinates": [_square(78.1, 14.3, 78.3, 14.5)]},
            },
            {
                "type": "Feature",
                "properties": {"dtname": "Krishna", "sdtname": "Vijayawada (Urban)"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [
                        [_square(80.5, 16.4, 80.8, 16.7), _square(80.6, 16.5, 80.7, 16.6)],
                        [_square(81.0, 16.4, 81.1, 16.5)],
                    ],
                },
            },
            {
                "type": "Feature",
                "properties": {"NAME": "NTR", "boundary_level": "district"},
                "geometry": {"type": "Polygon", "coordinates": [_square(80.0, 16.0, 81.5, 17.0)]},
            },
            {
                "type": "Feature",
                "properties": {"dtname": "Guntur", "sdtname": "Tenali"},
                "geometry": None,
            },
            {
                "type": "Feature",
                "properties": {"dtname": "Guntur", "sdtname": "Bapatla"},
                "geometry": {"type": "Polygon", "coordinates": [[[80.0, 15.0], [80.1, 15.0]]]},
            },
            {
                "type": "Feature",
                "properties": {"OBJECTID": 7},
                "geometry": {"type": "Polygon", "coordinates": [_square(70, 10, 71, 11)]},
            },
        ],
    }


# ── Index fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def test_index(test_district_collection) -> BoundaryIndex:
    return BoundaryIndex.from_feature_collection(test_district_collection)


@pytest.fixture
def ap_index(ap_collection) -> BoundaryIndex:
    return BoundaryIndex.from_feature_collection(ap_collection)


# ── Report fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def test_reports() -> list[dict]:
    """Inside the mandal, inside the district only, and outside everything."""
    return [
        {"id": "r1", "lat": 2.0, "lng": 2.0, "severity_label": "high"},
        {"id": "r2", "lat": 7.0, "lng": 7.0, "severity_label": "low"},
        {"id": "r3", "lat": 20.0, "lng": 20.0, "severity_label": "medium"},
    ]


@pytest.fixture
def ap_reports() -> list[dict]:
    return [
        {"id": "kadapa-1",   "lat": 14.50, "lng": 78.80, "severity_label": "high"},
        {"id": "kadapa-2",   "lat": 14.45, "lng": 78.75, "severity_label": "HIGH"},
        {"id": "pulivendla", "lat": 14.40, "lng": 78.20, "severity_label": "medium"},
        {"id": "vijayawada", "lat": 16.45, "lng": 80.55, "severity_label": "low"},
        {"id": "ntr-hole",   "lat": 16.55, "lng": 80.65, "severity_label": None},
        {"id": "offshore",   "lat": 15.00, "lng": 85.00, "severity_label": "low"},
    ]
