"""
boundaries.py — In-memory index of district and mandal boundaries.

Responsibilities:
    - Turning a GeoJSON FeatureCollection into validated BoundaryFeature
      records, skipping features with unusable geometry or no district name.
    - Canonicalising district names (alias table, then slug normalisation).
    - Answering name queries (districts, mandals, boundaries, centres, bounds)
      and point queries (which district / mandal contains a coordinate).

District outlines are convex hulls of the district's mandal coordinates.
A hull over-includes area wherever the real district boundary is concave or
split into several parts, so it is only an approximation of the district.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Mapping, NamedTuple, Optional

from pothole_geo.config import AUTO_DETECT, BoundarySourceConfig
from pothole_geo.geometry import (
    MultiPolygon,
    Polygon,
    convex_hull,
    coordinate_bounds,
    coordinate_center,
    is_point_in_multipolygon,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")


def normalize_district_name(name: str) -> str:
    """
    Turn a district (or mandal) name into a comparison key.

    Lowercases, collapses whitespace runs into a single hyphen and drops
    anything outside [a-z0-9-]. "Sri Potti Sriramulu Nellore" becomes
    "sri-potti-sriramulu-nellore". Applying it twice changes nothing.
    """
    return _NON_SLUG.sub("", _WHITESPACE.sub("-", name.lower()))


class Classification(NamedTuple):
    """Result of a point lookup; both fields are None when nothing matched."""
    district: Optional[str]
    mandal:   Optional[str]


UNCLASSIFIED = Classification(None, None)


# ── Features ─────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class BoundaryFeature:
    """
    One administrative unit's shape.

    Attributes:
        district_name: Raw district name as stored in the source.
        mandal_name:   Mandal name, or None for a district-level feature.
        geometry_type: "Polygon" or "MultiPolygon".
        coordinates:   Raw GeoJSON coordinates for that geometry type.
        properties:    The source feature's properties bag.
    """
    district_name: str
    mandal_name:   Optional[str]
    geometry_type: str
    coordinates:   list
    properties:    Mapping = field(default_factory=dict, compare=False)

    @property
    def is_mandal(self) -> bool:
        return self.mandal_name is not None

    @property
    def polygons(self) -> MultiPolygon:
        """The geometry as a MultiPolygon (a Polygon becomes a one-item list)."""
        if self.geometry_type == "Polygon":
            return [self.coordinates]
        return self.coordinates

    def contains(self, lon: float, lat: float) -> bool:
        return is_point_in_multipolygon(lon, lat, self.polygons)

    def iter_coordinates(self, outer_only: bool = False) -> Iterator[list[float]]:
        for polygon in self.polygons:
            rings = polygon[:1] if outer_only else polygon
            for ring in rings:
                yield from ring

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "properties": dict(self.properties),
            "geometry": {"type": self.geometry_type, "coordinates": self.coordinates},
        }


def _is_position(value) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in value[:2])
    )


def _validate_polygon(rings) -> None:
    if not isinstance(rings, list) or not rings:
        raise ValueError("polygon has no rings")
    for ring in rings:
        if not isinstance(ring, list) or len(ring) < 3:
            raise ValueError("ring has fewer than 3 positions")
        if not all(_is_position(p) for p in ring):
            raise ValueError("ring contains a non-numeric position")


def _validate_geometry(geometry) -> tuple[str, list]:
    """
    Check a GeoJSON geometry and return (type, coordinates).

    Raises:
        ValueError: For a missing, unsupported or degenerate geometry.
    """
    if not isinstance(geometry, Mapping):
        raise ValueError("missing geometry")

    geo_type    = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if geo_type == "Polygon":
        _validate_polygon(coordinates)
    elif geo_type == "MultiPolygon":
        if not isinstance(coordinates, list) or not coordinates:
            raise ValueError("multipolygon has no polygons")
        for polygon in coordinates:
            _validate_polygon(polygon)
    else:
        raise ValueError(f"Unsupported geometry type: {geo_type!r}")

    return geo_type, coordinates


def parse_features(
    features: Iterable,
    config: BoundarySourceConfig = AUTO_DETECT,
) -> list[BoundaryFeature]:
    """
    Convert raw GeoJSON features into BoundaryFeature records.

    Features without a resolvable district name or with malformed geometry
    are skipped with a warning; the rest are returned in source order.
    """
    parsed: list[BoundaryFeature] = []
    skipped = 0

    for position, feature in enumerate(features):
        if not isinstance(feature, Mapping):
            logger.warning("Skipping feature #%d: not an object", position)
            skipped += 1
            continue

        properties = feature.get("properties")
        if properties is None:
            properties = {}
        elif not isinstance(properties, Mapping):
            logger.warning("Skipping feature #%d: properties is a %s, not an object",
                           position, type(properties).__name__)
            skipped += 1
            continue
        district = config.district_name(properties)
        if district is None:
            logger.warning("Skipping feature #%d: no district name under %s",
                           position, list(config.district_keys))
            skipped += 1
            continue

        try:
            geo_type, coordinates = _validate_geometry(feature.get("geometry"))
        except (ValueError, TypeError) as exc:
            logger.warning("Skipping malformed feature #%d (%s): %s", position, district, exc)
            skipped += 1
            continue

        parsed.append(BoundaryFeature(
            district_name=district,
            mandal_name=config.mandal_name(properties),
            geometry_type=geo_type,
            coordinates=coordinates,
            properties=properties,
        ))

    if skipped:
        logger.info("Parsed %d boundary features, skipped %d", len(parsed), skipped)
    return parsed


# ── Index ────────────────────────────────────────────────────────────────────
class BoundaryIndex:
    """
    Query structure over a fixed set of boundary features.

    Built once and never mutated, so it can be shared freely between callers.
    Lookups by district accept any spelling that canonicalises to the same
    key: raw source names, alias-table names or the normalised slug.
    """

    def __init__(
        self,
        features: Iterable[BoundaryFeature] = (),
        aliases: Optional[Mapping[str, str]] = None,
        load_error: Optional[str] = None,
    ):
        self._aliases: Mapping[str, str] = (
            AUTO_DETECT.district_aliases if aliases is None else aliases
        )
        self.load_error = load_error

        self.features: tuple[BoundaryFeature, ...] = tuple(features)
        self.features_by_district: dict[str, list[BoundaryFeature]] = {}
        self.district_features:    dict[str, list[BoundaryFeature]] = {}
        self._display_names:       dict[str, str] = {}

        for feature in self.features:
            key = self.district_key(feature.district_name)
            self._display_names.setdefault(key, self.canonical_district_name(feature.district_name))
            bucket = self.features_by_district if feature.is_mandal else self.district_features
            bucket.setdefault(key, []).append(feature)

        # Mandal features are more specific, so they are tested first
        self._search_order: tuple[BoundaryFeature, ...] = tuple(
            [f for f in self.features if f.is_mandal]
            + [f for f in self.features if not f.is_mandal]
        )

        self._outer_boundaries: dict[str, Polygon] = {}
        for key, mandals in self.features_by_district.items():
            points = [p for m in mandals for p in m.iter_coordinates(outer_only=True)]
            self._outer_boundaries[key] = [convex_hull(points)]

    @classmethod
    def from_feature_collection(
        cls,
        collection: Mapping,
        config: BoundarySourceConfig = AUTO_DETECT,
    ) -> "BoundaryIndex":
        """Build an index from a parsed GeoJSON FeatureCollection dict."""
        features = parse_features(collection.get("features") or [], config)
        index = cls(features, aliases=config.district_aliases)
        logger.info("Indexed %d boundary features across %d districts",
                    len(index.features), len(index._display_names))
        return index

    @classmethod
    def empty(cls, load_error: Optional[str] = None) -> "BoundaryIndex":
        """An index with no boundaries; every lookup misses."""
        return cls((), load_error=load_error)

    def __len__(self) -> int:
        return len(self.features)

    @property
    def is_empty(self) -> bool:
        return not self.features

    # ── Names ──

    def canonical_district_name(self, name: str) -> str:
        """Resolve an old or alternate spelling through the alias table."""
        name = name.strip()
        return self._aliases.get(name, name)

    def district_key(self, name: str) -> str:
        return normalize_district_name(self.canonical_district_name(name))

    def display_name(self, district: str) -> Optional[str]:
        """Current display name of an indexed district, or None."""
        return self._display_names.get(self.district_key(district))

    def list_districts(self) -> list[str]:
        """Indexed district names, one per canonical key, sorted."""
        return sorted(self._display_names.values(), key=str.casefold)

    def list_mandals(self, district: str) -> list[str]:
        """Mandal names in a district, sorted; empty for an unknown district."""
        mandals = self.features_by_district.get(self.district_key(district), [])
        return sorted({f.mandal_name for f in mandals}, key=str.casefold)

    # ── Point lookup ──

    def classify(self, lon: float, lat: float) -> Classification:
        """
        Find the district and mandal containing a coordinate.

        Mandal features are tested before district-level features and the
        first hit wins. Cost is linear in the number of features.

        Returns:
            Classification with the district display name and the mandal
            name (None for a district-level hit), or UNCLASSIFIED.
        """
        for feature in self._search_order:
            try:
                if feature.contains(lon, lat):
                    logger.debug("(%.6f, %.6f) matched %s / %s",
                                 lat, lon, feature.district_name, feature.mandal_name)
                    return Classification(
                        self.canonical_district_name(feature.district_name),
                        feature.mandal_name,
                    )
            except (ValueError, TypeError, ZeroDivisionError) as exc:
                logger.warning("Skipping malformed boundary %s / %s: %s",
                               feature.district_name, feature.mandal_name, exc)

        return UNCLASSIFIED

    # ── Shapes ──

    def district_outer_boundary(self, district: str) -> Optional[Polygon]:
        """
        Convex-hull outline of a district's mandals, or None.

        This is an approximation and covers more ground than the district
        itself wherever the true boundary is concave.
        """
        return self._outer_boundaries.get(self.district_key(district))

    def _mandal_features(self, mandal: str, district: Optional[str]) -> list[BoundaryFeature]:
        if district is not None:
            candidates = self.features_by_district.get(self.district_key(district), [])
        else:
            candidates = [f for f in self.features if f.is_mandal]
        wanted = normalize_district_name(mandal)
        return [f for f in candidates if normalize_district_name(f.mandal_name) == wanted]

    def _unit_features(self, district: str, mandal: Optional[str]) -> list[BoundaryFeature]:
        if mandal is not None:
            return self._mandal_features(mandal, district)
        key = self.district_key(district)
        return self.district_features.get(key, []) + self.features_by_district.get(key, [])

    def district_boundary(self, district: str) -> Optional[dict]:
        """
        FeatureCollection of a district's shape.

        District-level features are preferred; when the source has none the
        district's mandal features are returned instead.
        """
        key = self.district_key(district)
        features = self.district_features.get(key) or self.features_by_district.get(key)
        if not features:
            logger.debug("No boundary features for district %r", district)
            return None
        return {"type": "FeatureCollection", "features": [f.to_geojson() for f in features]}

    def mandal_boundary(self, mandal: str, district: Optional[str] = None) -> Optional[dict]:
        """FeatureCollection of a mandal; ``district`` disambiguates shared names."""
        features = self._mandal_features(mandal, district)
        if not features:
            return None
        return {"type": "FeatureCollection", "features": [f.to_geojson() for f in features]}

    def center_of(self, district: str, mandal: Optional[str] = None) -> Optional[dict[str, float]]:
        """
        Mean of all ring coordinates of a mandal, or of a whole district.

        Returns None for an unknown unit. A known unit with no usable
        coordinates also returns None and logs a warning; callers must not
        treat None as (0, 0).
        """
        features = self._unit_features(district, mandal)
        if not features:
            return None
        center = coordinate_center(p for f in features for p in f.iter_coordinates())
        if center is None:
            logger.warning("No valid coordinates for %s / %s", district, mandal)
        return center

    def bounds_of(self, district: str, mandal: Optional[str] = None) -> Optional[dict[str, float]]:
        """Bounding box (north/south/east/west) of a mandal or district, or None."""
        features = self._unit_features(district, mandal)
        if not features:
            return None
        bounds = coordinate_bounds(p for f in features for p in f.iter_coordinates())
        if bounds is None:
            logger.warning("No valid coordinates for %s / %s", district, mandal)
        return bounds
