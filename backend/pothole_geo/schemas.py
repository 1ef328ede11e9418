"""
schemas.py — Pydantic models shared by the report mapper and the HTTP API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

SeverityLabel = Literal["low", "medium", "high", "unknown"]
ReportStatus  = Literal["new", "triaged", "assigned", "fixed"]

# Placeholder for a district / mandal that could not be resolved
UNKNOWN = "Unknown"
SEVERITY_LABELS: tuple[str, ...] = ("low", "medium", "high")


class DatabasePotholeReport(BaseModel):
    """A pothole report row as stored by the ingestion backend."""
    model_config = ConfigDict(extra="ignore")

    id: int
    user_phone: Optional[str] = None
    image_url: Optional[str] = None
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    confidence: Optional[float] = None
    is_pothole: bool = True
    severity: Optional[str] = None
    severity_score: Optional[float] = None
    impact_score: Optional[float] = None
    status: str = "new"
    created_at: str
    address: Optional[str] = None
    road_name: Optional[str] = None
    road_type: Optional[str] = None
    detection_count: int = 0
    district: Optional[str] = None
    mandal: Optional[str] = None


class PotholeReport(BaseModel):
    """A pothole report in the dashboard's display schema."""
    model_config = ConfigDict(extra="allow")

    id: str
    lat: float = Field(..., ge=-90, le=90, description="Latitude in WGS84")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in WGS84")
    severity: float = Field(0.5, ge=0, le=1)
    severity_label: SeverityLabel = "unknown"
    impact_score: Optional[float] = None
    timestamp: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    description: str = ""
    status: ReportStatus = "new"
    reporter_phone: Optional[str] = None
    district: Optional[str] = None
    mandal: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    road_name: Optional[str] = None
    road_type: Optional[str] = None
    detection_count: Optional[int] = None


class ClassificationResponse(BaseModel):
    latitude: float
    longitude: float
    district: Optional[str]
    mandal: Optional[str]


class ReportsRequest(BaseModel):
    reports: list[PotholeReport]
    district: Optional[str] = None
    mandal: Optional[str] = None


class ReportsResponse(BaseModel):
    count: int
    reports: list[PotholeReport]


class SeverityCounts(BaseModel):
    low: int = 0
    medium: int = 0
    high: int = 0
    unknown: int = 0


class SummaryRow(BaseModel):
    district: str
    mandal: str
    total: int
    severity: SeverityCounts
