"""
main.py — FastAPI application entry point for the pothole geo service.

Exposes:
    GET  /                                              — health check (root)
    GET  /health                                        — detailed health info
    GET  /api/v1/classify                               — district / mandal for lat/lng
    GET  /api/v1/districts                              — all indexed districts
    GET  /api/v1/districts/{district}/mandals           — mandals of a district
    GET  /api/v1/districts/{district}/outline           — convex-hull outline
    GET  /api/v1/districts/{district}/boundary          — district GeoJSON
    GET  /api/v1/districts/{district}/center            — district centre + bounds
    GET  /api/v1/districts/{district}/mandals/{mandal}/center — mandal centre + bounds
    POST /api/v1/reports/filter                         — filter reports by location
    POST /api/v1/reports/annotate                       — attach district / mandal
    POST /api/v1/reports/summary                        — counts per district / mandal
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from pothole_geo.boundaries import BoundaryIndex
from pothole_geo.config import Settings
from pothole_geo.loader import BoundaryIndexLoader
from pothole_geo.schemas import (
    ClassificationResponse,
    ReportsRequest,
    ReportsResponse,
    SummaryRow,
)
from pothole_geo.services import annotate, filter_by_location, summarize_by_location

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# ── Boundary index (loaded once at startup) ───────────────────────────────────
# Built from the environment on first startup; see _load_boundaries.
boundary_loader: BoundaryIndexLoader | None = None
boundary_index: BoundaryIndex | None = None


async def _load_boundaries() -> BoundaryIndex:
    global boundary_loader
    if boundary_loader is None:
        try:
            settings = Settings.from_env()
        except ValueError as exc:
            logger.error("Invalid boundary configuration: %s", exc)
            return BoundaryIndex.empty(load_error=f"Invalid configuration: {exc}")
        boundary_loader = BoundaryIndexLoader.from_settings(settings)
    return await boundary_loader.load()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the boundary GeoJSON before accepting requests."""
    global boundary_index
    boundary_index = await _load_boundaries()
    if boundary_index.load_error:
        logger.warning("Starting without boundary data; location filters are disabled.")
    else:
        logger.info("Loaded %d boundary features in %d districts",
                    len(boundary_index), len(boundary_index.list_districts()))
    yield
    logger.info("Shutting down — releasing boundary index.")


# ── FastAPI app ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="Pothole Geo API",
    description=(
        "Classify pothole report coordinates into districts and mandals, "
        "and filter or summarise reports by administrative boundary."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


def _require_index() -> BoundaryIndex:
    if boundary_index is None:
        raise HTTPException(status_code=503, detail="Boundary index not initialised.")
    return boundary_index


# ── Routes ────────────────────────────────────────────────────────────────────

@app.get("/", tags=["health"])
def root():
    """Root health-check endpoint."""
    return {"status": "ok", "message": "Pothole Geo API is running."}


@app.get("/health", tags=["health"])
def health():
    """Detailed health check: boundary counts and any load error."""
    index = _require_index()
    return {
        "status": "degraded" if index.load_error else "ok",
        "boundary_features_loaded": len(index),
        "districts_loaded": len(index.list_districts()),
        "load_error": index.load_error,
    }


@app.get("/api/v1/classify", tags=["lookup"], response_model=ClassificationResponse)
def classify(
    lat: float = Query(..., ge=-90, le=90, description="Latitude in WGS84"),
    lng: float = Query(..., ge=-180, le=180, description="Longitude in WGS84"),
):
    """
    Return the district and mandal containing the supplied coordinate.

    A point outside every boundary is a normal outcome and comes back with
    null district and mandal, not a 404.
    """
    result = _require_index().classify(lon=lng, lat=lat)
    logger.info("Classify (%.4f, %.4f) → %s / %s", lat, lng, result.district, result.mandal)
    return ClassificationResponse(
        latitude=lat, longitude=lng, district=result.district, mandal=result.mandal,
    )


@app.get("/api/v1/districts", tags=["metadata"])
def list_districts():
    """Return every indexed district name, sorted."""
    return {"districts": _require_index().list_districts()}


@app.get("/api/v1/districts/{district}/mandals", tags=["metadata"])
def list_mandals(district: str):
    """Return the mandals of a district; empty for an unknown district."""
    index = _require_index()
    return {"district": index.display_name(district) or district,
            "mandals": index.list_mandals(district)}


@app.get("/api/v1/districts/{district}/outline", tags=["boundaries"])
def get_district_outline(district: str):
    """
    Return the district's convex-hull outline as a GeoJSON Feature.

    The hull is an approximation and covers more area than the district.
    """
    index = _require_index()
    outline = index.district_outer_boundary(district)
    if outline is None:
        raise HTTPException(status_code=404, detail=f"District '{district}' not found.")
    return {
        "type": "Feature",
        "properties": {"district": index.display_name(district), "approximation": "convex_hull"},
        "geometry": {"type": "Polygon", "coordinates": outline},
    }


@app.get("/api/v1/districts/{district}/boundary", tags=["boundaries"])
def get_district_boundary(district: str):
    """Return the GeoJSON FeatureCollection for one district."""
    collection = _require_index().district_boundary(district)
    if collection is None:
        raise HTTPException(status_code=404, detail=f"District '{district}' not found.")
    return collection


def _center_response(index: BoundaryIndex, district: str, mandal: Optional[str]) -> dict:
    center = index.center_of(district, mandal)
    bounds = index.bounds_of(district, mandal)
    if center is None or bounds is None:
        name = f"{district} / {mandal}" if mandal else district
        raise HTTPException(status_code=404, detail=f"No location available for '{name}'.")
    return {"district": index.display_name(district), "mandal": mandal,
            "center": center, "bounds": bounds}


@app.get("/api/v1/districts/{district}/center", tags=["boundaries"])
def get_district_center(district: str):
    """Return a district's mean-coordinate centre and bounding box."""
    return _center_response(_require_index(), district, None)


@app.get("/api/v1/districts/{district}/mandals/{mandal}/center", tags=["boundaries"])
def get_mandal_center(district: str, mandal: str):
    """Return a mandal's mean-coordinate centre and bounding box."""
    return _center_response(_require_index(), district, mandal)


@app.post("/api/v1/reports/filter", tags=["reports"], response_model=ReportsResponse)
def filter_reports(request: ReportsRequest):
    """Filter the posted reports by the selected district and / or mandal."""
    reports = filter_by_location(request.reports, _require_index(),
                                 request.district, request.mandal)
    return ReportsResponse(count=len(reports), reports=list(reports))


@app.post("/api/v1/reports/annotate", tags=["reports"], response_model=ReportsResponse)
def annotate_reports(request: ReportsRequest):
    """Return the posted reports with their computed district and mandal."""
    reports = annotate(request.reports, _require_index())
    return ReportsResponse(count=len(reports), reports=reports)


@app.post("/api/v1/reports/summary", tags=["reports"], response_model=list[SummaryRow])
def summarize_reports(request: ReportsRequest):
    """Return report counts per district and mandal, by severity."""
    return summarize_by_location(request.reports, _require_index(),
                                 request.district, request.mandal)
