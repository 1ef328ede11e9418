"""
config.py — Configuration for boundary sources and the lookup service.

Responsible for:
    - Describing which GeoJSON property keys hold district and mandal names.
    - The district alias table (old / alternate spelling → current name).
    - Service settings read from the environment by the FastAPI entry point.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

# ── Paths ─────────────────────────────────────────────────────────────────────
_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

DEFAULT_BOUNDARY_SOURCE = _DATA_DIR / "subdistricts.geojson"
DEFAULT_TIMEOUT_SECONDS = 30.0


# ── District aliases ──────────────────────────────────────────────────────────
# Sub-district sources name districts by their pre-2022 spelling (`dtname`),
# district-level sources by the current one (`NAME`). Identity entries are
# kept so the table lists every district the sub-district source is known to
# use; a name missing here passes through unchanged.
DISTRICT_ALIASES: Mapping[str, str] = MappingProxyType({
    "Anantapur":                   "Anantapur",
    "Sri Potti Sriramulu Nellore": "sri potti sriramulu Nellore",
    "Y.S.R.":                      "YSR Kadapa",
    "East Godavari":               "East Godavari",
    "West Godavari":               "West Godavari",
    "Srikakulam":                  "Srikakulam",
    "Vizianagaram":                "Vizianagaram",
    "Visakhapatnam":               "Visakhapatnam",
    "Krishna":                     "Krishna",
    "Guntur":                      "Guntur",
    "Prakasam":                    "Prakasam",
    "Kurnool":                     "Kurnool",
    "Chittoor":                    "Chittoor",
})


# ── Boundary source description ──────────────────────────────────────────────
@dataclass(frozen=True)
class BoundarySourceConfig:
    """
    Property-key layout of one boundary source.

    Attributes:
        district_keys:    Property keys probed in order for the district name.
        mandal_keys:      Property keys probed in order for the mandal name.
                          A feature with no mandal name is district-level.
        district_aliases: Raw district name → current display name.
    """
    district_keys:    tuple[str, ...] = ("dtname", "DNAME", "NAME")
    mandal_keys:      tuple[str, ...] = ("sdtname", "MNAME")
    district_aliases: Mapping[str, str] = field(default_factory=lambda: DISTRICT_ALIASES)

    def district_name(self, properties: Mapping) -> str | None:
        return _first_name(properties, self.district_keys)

    def mandal_name(self, properties: Mapping) -> str | None:
        return _first_name(properties, self.mandal_keys)


def _first_name(properties: Mapping, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = properties.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


# Census sub-district layers: dtname / sdtname
SUBDISTRICT_SOURCE = BoundarySourceConfig(district_keys=("dtname",), mandal_keys=("sdtname",))
# District-level layers carrying only the current NAME
DISTRICT_SOURCE = BoundarySourceConfig(district_keys=("NAME",), mandal_keys=())
# Mandal layers: district under DNAME, mandal under MNAME (or sdtname)
MANDAL_SOURCE = BoundarySourceConfig(district_keys=("DNAME",), mandal_keys=("MNAME", "sdtname"))
# Probes every known key per feature; handles mixed collections
AUTO_DETECT = BoundarySourceConfig()

PRESETS: Mapping[str, BoundarySourceConfig] = MappingProxyType({
    "auto":        AUTO_DETECT,
    "subdistrict": SUBDISTRICT_SOURCE,
    "district":    DISTRICT_SOURCE,
    "mandal":      MANDAL_SOURCE,
})


def get_preset(name: str) -> BoundarySourceConfig:
    """
    Look up a named source preset.

    Raises:
        ValueError: If the preset name is unknown.
    """
    try:
        return PRESETS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown boundary preset {name!r}; expected one of {sorted(PRESETS)}"
        ) from None


# ── Service settings ─────────────────────────────────────────────────────────
@dataclass
class Settings:
    """Deployment settings for the lookup service."""
    boundary_source: str = str(DEFAULT_BOUNDARY_SOURCE)
    source_config:   BoundarySourceConfig = AUTO_DETECT
    timeout:         float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from POTHOLE_BOUNDARY_SOURCE, POTHOLE_BOUNDARY_PRESET
        and POTHOLE_BOUNDARY_TIMEOUT, falling back to the defaults.

        Raises:
            ValueError: If the preset is unknown or the timeout is not a number.
        """
        raw_timeout = os.getenv("POTHOLE_BOUNDARY_TIMEOUT")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            raise ValueError(
                f"POTHOLE_BOUNDARY_TIMEOUT must be a number of seconds, got {raw_timeout!r}"
            ) from None
        return cls(
            boundary_source=os.getenv("POTHOLE_BOUNDARY_SOURCE") or str(DEFAULT_BOUNDARY_SOURCE),
            source_config=get_preset(os.getenv("POTHOLE_BOUNDARY_PRESET") or "auto"),
            timeout=timeout,
        )
