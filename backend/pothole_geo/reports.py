"""
reports.py — Mapping raw database report rows to the display schema.

Severity and status vocabularies differ between the ingestion backend and
the dashboard; the tables below are the single place to update when the
database schema changes.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Union

from pothole_geo.boundaries import BoundaryIndex
from pothole_geo.schemas import SEVERITY_LABELS, UNKNOWN, DatabasePotholeReport, PotholeReport

logger = logging.getLogger(__name__)

STATUS_MAP: dict[str, str] = {
    "new":         "new",
    "pending":     "triaged",
    "triaged":     "triaged",
    "in_progress": "assigned",
    "assigned":    "assigned",
    "resolved":    "fixed",
    "fixed":       "fixed",
    "completed":   "fixed",
}

Row = Union[DatabasePotholeReport, Mapping]


def map_severity_label(label: Optional[str]) -> str:
    if not label:
        return "unknown"
    normalized = label.strip().lower()
    return normalized if normalized in SEVERITY_LABELS else "unknown"


def map_status(status: Optional[str]) -> str:
    return STATUS_MAP.get((status or "").strip().lower(), "new")


def _location(row: DatabasePotholeReport, index: Optional[BoundaryIndex]) -> tuple[str, str]:
    """District and mandal from the row, else from the index, else "Unknown"."""
    if row.district and row.mandal:
        return row.district, row.mandal

    if index is not None:
        result = index.classify(lon=row.longitude, lat=row.latitude)
        return (
            row.district or result.district or UNKNOWN,
            row.mandal or result.mandal or UNKNOWN,
        )

    return row.district or UNKNOWN, row.mandal or UNKNOWN


def map_database_report(row: Row, index: Optional[BoundaryIndex] = None) -> PotholeReport:
    """
    Convert one database row into a PotholeReport.

    Args:
        row:   DatabasePotholeReport or a raw row mapping.
        index: Boundary index used to fill in a missing district / mandal.

    Returns:
        The report in display form.
    """
    if not isinstance(row, DatabasePotholeReport):
        row = DatabasePotholeReport.model_validate(row)

    severity = row.severity_score
    if severity is None:
        severity = row.confidence if row.confidence is not None else 0.5

    district, mandal = _location(row, index)
    confidence_pct = round((row.confidence or 0) * 100)

    return PotholeReport(
        id=str(row.id),
        lat=row.latitude,
        lng=row.longitude,
        severity=min(max(severity, 0.0), 1.0),
        severity_label=map_severity_label(row.severity),
        impact_score=row.impact_score,
        timestamp=row.created_at,
        images=[row.image_url] if row.image_url else [],
        description=f"Pothole detected with {confidence_pct}% confidence",
        status=map_status(row.status),
        reporter_phone=row.user_phone,
        district=district,
        mandal=mandal,
        location=f"{row.latitude:.6f}, {row.longitude:.6f}",
        address=row.address,
        road_name=row.road_name,
        road_type=row.road_type,
        detection_count=row.detection_count,
    )


def map_database_reports(
    rows: Iterable[Row],
    index: Optional[BoundaryIndex] = None,
) -> list[PotholeReport]:
    """Map rows, keeping only confirmed potholes with at least one detection."""
    reports = []
    for row in rows:
        if not isinstance(row, DatabasePotholeReport):
            row = DatabasePotholeReport.model_validate(row)
        if not row.is_pothole or row.detection_count <= 0:
            continue
        reports.append(map_database_report(row, index))

    logger.debug("Mapped %d pothole reports.", len(reports))
    return reports
