"""
services.py — Report filtering and aggregation by administrative boundary.

Responsibilities:
    - Classifying each report's coordinate against a BoundaryIndex.
    - Filtering report collections by selected district and / or mandal.
    - Attaching the computed district and mandal to copies of reports.
    - Grouping and counting reports per district and mandal.

Reports are any mapping with "lat" / "lng" keys or any object with ``lat`` /
``lng`` attributes (such as PotholeReport). They are never modified.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from pydantic import BaseModel

from pothole_geo.boundaries import (
    UNCLASSIFIED,
    BoundaryIndex,
    Classification,
    normalize_district_name,
)
from pothole_geo.geometry import Polygon, is_point_in_polygon_with_holes
from pothole_geo.schemas import SEVERITY_LABELS, UNKNOWN

logger = logging.getLogger(__name__)

R = TypeVar("R")


# ── Report access ────────────────────────────────────────────────────────────

def _field(report: Any, name: str, default: Any = None) -> Any:
    if isinstance(report, dict):
        return report.get(name, default)
    return getattr(report, name, default)


def _classify_report(report: Any, index: BoundaryIndex) -> Classification:
    lat, lng = _field(report, "lat"), _field(report, "lng")
    if lat is None or lng is None:
        logger.warning("Report %r has no coordinates; treating as unclassified.",
                       _field(report, "id"))
        return UNCLASSIFIED
    return index.classify(lon=lng, lat=lat)


def _with_location(report: R, district: str, mandal: str) -> R:
    if isinstance(report, dict):
        return {**report, "district": district, "mandal": mandal}
    if isinstance(report, BaseModel):
        return report.model_copy(update={"district": district, "mandal": mandal})
    if dataclasses.is_dataclass(report) and not isinstance(report, type):
        names = {f.name for f in dataclasses.fields(report) if f.init}
        if {"district", "mandal"} <= names:
            return dataclasses.replace(report, district=district, mandal=mandal)
    located = copy.copy(report)
    located.district = district
    located.mandal = mandal
    return located


def _location_matcher(
    index: Optional[BoundaryIndex],
    district: Optional[str],
    mandal: Optional[str],
) -> Optional[Callable[[Classification], bool]]:
    """Predicate over classifications, or None when no filtering applies."""
    if not district and not mandal:
        return None
    if index is None or index.is_empty:
        logger.debug("No boundary data; location selection ignored.")
        return None

    wanted_district = index.district_key(district) if district else None
    wanted_mandal   = normalize_district_name(mandal) if mandal else None

    def matches(result: Classification) -> bool:
        if result.district is None:
            return False
        if wanted_district and index.district_key(result.district) != wanted_district:
            return False
        if wanted_mandal and (
            result.mandal is None or normalize_district_name(result.mandal) != wanted_mandal
        ):
            return False
        return True

    return matches


# ── Public API ────────────────────────────────────────────────────────────────

def filter_by_location(
    reports: Sequence[R],
    index: Optional[BoundaryIndex],
    district: Optional[str] = None,
    mandal: Optional[str] = None,
) -> Sequence[R]:
    """
    Keep the reports that fall in the selected district and / or mandal.

    Rules:
        - Nothing selected: ``reports`` is returned as-is.
        - No boundary data (missing or empty index): ``reports`` is returned
          unfiltered, so a failed load never hides reports.
        - District selected: the classified district must canonicalise to
          the same key as ``district``.
        - Mandal selected: the classified mandal must match (case and
          punctuation insensitive), and so must the district if one is
          also selected.
        - Reports outside every boundary never match a filter.

    Args:
        reports:  Reports to filter.
        index:    Loaded boundary index (or None if not yet available).
        district: Selected district name, any known spelling.
        mandal:   Selected mandal name.

    Returns:
        A new list referencing the matching input reports.
    """
    matches = _location_matcher(index, district, mandal)
    if matches is None:
        return reports

    matched = [report for report in reports if matches(_classify_report(report, index))]

    logger.debug("Location filter (%s / %s) kept %d of %d reports.",
                 district, mandal, len(matched), len(reports))
    return matched


def annotate(reports: Iterable[R], index: BoundaryIndex) -> list[R]:
    """
    Return copies of the reports with "district" and "mandal" filled in.

    Each report is classified once; parts that cannot be resolved are set
    to "Unknown". Dict reports are copied into new dicts, pydantic models
    through ``model_copy``, dataclasses with district / mandal fields through
    ``dataclasses.replace``; any other object is shallow-copied and the two
    attributes are set on the copy.
    """
    annotated = []
    for report in reports:
        result = _classify_report(report, index)
        annotated.append(_with_location(
            report,
            district=result.district or UNKNOWN,
            mandal=result.mandal or UNKNOWN,
        ))
    return annotated


def filter_reports_in_boundary(reports: Iterable[R], polygon: Polygon) -> list[R]:
    """Reports whose coordinate lies inside ``polygon`` (outer ring + holes)."""
    return [
        report for report in reports
        if _field(report, "lat") is not None and _field(report, "lng") is not None
        and is_point_in_polygon_with_holes(_field(report, "lng"), _field(report, "lat"), polygon)
    ]


def filter_by_district_outline(
    reports: Iterable[R],
    index: BoundaryIndex,
    district: str,
) -> list[R]:
    """
    Reports inside a district's convex-hull outline.

    The outline covers more ground than the district, so this can include
    reports that ``filter_by_location`` would assign to a neighbour.
    """
    outline = index.district_outer_boundary(district)
    if outline is None:
        logger.debug("No outline for district %r.", district)
        return []
    return filter_reports_in_boundary(reports, outline)


def group_by_location(
    reports: Iterable[R],
    index: BoundaryIndex,
    district: Optional[str] = None,
    mandal: Optional[str] = None,
) -> dict[str, dict[str, list[R]]]:
    """
    Bucket reports as {district: {mandal: [reports]}} with "Unknown" buckets.

    An optional district / mandal selection is applied with the same rules
    as ``filter_by_location``, reusing each report's single classification.
    """
    matches = _location_matcher(index, district, mandal)
    groups: dict[str, dict[str, list[R]]] = {}
    for report in reports:
        result = _classify_report(report, index)
        if matches is not None and not matches(result):
            continue
        by_mandal = groups.setdefault(result.district or UNKNOWN, {})
        by_mandal.setdefault(result.mandal or UNKNOWN, []).append(report)
    return groups


def _severity_label(report: Any) -> str:
    label = _field(report, "severity_label")
    if isinstance(label, str) and label.strip().lower() in SEVERITY_LABELS:
        return label.strip().lower()
    return "unknown"


def summarize_by_location(
    reports: Iterable[Any],
    index: BoundaryIndex,
    district: Optional[str] = None,
    mandal: Optional[str] = None,
) -> list[dict]:
    """
    Per-district, per-mandal report counts for tabular display.

    ``district`` / ``mandal`` restrict the rows exactly as
    ``filter_by_location`` would restrict the reports.

    Returns:
        Rows of {"district", "mandal", "total", "severity": {low, medium,
        high, unknown}}, sorted by district then mandal.
    """
    rows = []
    groups = group_by_location(reports, index, district, mandal)
    for district_name, mandals in groups.items():
        for mandal_name, bucket in mandals.items():
            severity = {label: 0 for label in (*SEVERITY_LABELS, "unknown")}
            for report in bucket:
                severity[_severity_label(report)] += 1
            rows.append({
                "district": district_name,
                "mandal": mandal_name,
                "total": len(bucket),
                "severity": severity,
            })

    rows.sort(key=lambda row: (row["district"].casefold(), row["mandal"].casefold()))
    return rows
