"""
loader.py — Boundary data loading for the pothole geo index.

Responsible for:
    - Reading a GeoJSON FeatureCollection from disk or over HTTP.
    - Building a BoundaryIndex from it exactly once per loader, with every
      concurrent caller sharing the same in-flight load.
    - Degrading to an empty index (and logging the failure once) when the
      source is unreachable or malformed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Union

import requests

from pothole_geo.boundaries import BoundaryIndex
from pothole_geo.config import (
    AUTO_DETECT,
    DEFAULT_TIMEOUT_SECONDS,
    BoundarySourceConfig,
    Settings,
)

logger = logging.getLogger(__name__)

Source = Union[str, Path]


class BoundaryLoadError(Exception):
    """The boundary source could not be fetched or parsed."""


# ── Readers ──────────────────────────────────────────────────────────────────

def _is_url(source: Source) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def _fetch_url(url: str, timeout: float) -> object:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.Timeout as exc:
        raise BoundaryLoadError(f"Timed out after {timeout}s fetching {url}") from exc
    except requests.exceptions.RequestException as exc:
        raise BoundaryLoadError(f"Failed to fetch {url}: {exc}") from exc

    try:
        return response.json()
    except ValueError as exc:
        raise BoundaryLoadError(f"Invalid JSON from {url}: {exc}") from exc


def _read_file(path: Path) -> object:
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError as exc:
        raise BoundaryLoadError(f"GeoJSON file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise BoundaryLoadError(f"Invalid JSON in {path.name}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise BoundaryLoadError(f"Could not read {path}: {exc}") from exc


def read_feature_collection(source: Source, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> dict:
    """
    Load and parse a GeoJSON FeatureCollection.

    Args:
        source:  Filesystem path, or an http(s) URL.
        timeout: Network timeout in seconds (URLs only).

    Returns:
        The parsed collection dict.

    Raises:
        BoundaryLoadError: If the source is unreachable, not JSON, or has
            no "features" list.
    """
    data = _fetch_url(source, timeout) if _is_url(source) else _read_file(Path(source))

    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise BoundaryLoadError(f"{source} is not a GeoJSON FeatureCollection")

    logger.info("Loaded %d features from %s", len(data["features"]), source)
    return data


def load_boundary_index(
    source: Source,
    config: BoundarySourceConfig = AUTO_DETECT,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> BoundaryIndex:
    """
    Synchronously build a BoundaryIndex from a source.

    Returns an empty index carrying ``load_error`` on failure rather than
    raising, so callers fall back to unfiltered results.
    """
    try:
        collection = read_feature_collection(source, timeout)
    except BoundaryLoadError as exc:
        logger.error("Boundary data unavailable: %s", exc)
        return BoundaryIndex.empty(load_error=str(exc))
    return _build_index(collection, config, source)


def _build_index(collection: dict, config: BoundarySourceConfig, source: Source) -> BoundaryIndex:
    try:
        return BoundaryIndex.from_feature_collection(collection, config)
    except Exception as exc:
        logger.exception("Could not index boundaries from %s", source)
        return BoundaryIndex.empty(load_error=f"Could not index {source}: {exc}")


# ── Load-once loader ─────────────────────────────────────────────────────────

class BoundaryIndexLoader:
    """
    Loads one boundary source into a BoundaryIndex, once.

    The first ``await load()`` starts a task; every caller that arrives
    before it finishes awaits that same task. Afterwards the finished index
    is returned directly. A failed load is memoised too (as an empty index);
    call ``reload()`` to try again.
    """

    def __init__(
        self,
        source: Source,
        config: BoundarySourceConfig = AUTO_DETECT,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.source  = source
        self.config  = config
        self.timeout = timeout
        self._task:  Optional[asyncio.Task] = None
        self._index: Optional[BoundaryIndex] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "BoundaryIndexLoader":
        return cls(settings.boundary_source, settings.source_config, settings.timeout)

    @property
    def index(self) -> Optional[BoundaryIndex]:
        """The loaded index, or None before the first load completes."""
        return self._index

    @property
    def error(self) -> Optional[str]:
        return self._index.load_error if self._index is not None else None

    async def load(self) -> BoundaryIndex:
        if self._index is not None:
            return self._index
        if self._task is None:
            self._task = asyncio.ensure_future(self._load())
        return await self._task

    def reload(self) -> None:
        """Forget the memoised result so the next ``load()`` reads the source again."""
        self._task = None
        self._index = None

    async def _load(self) -> BoundaryIndex:
        try:
            collection = await asyncio.to_thread(read_feature_collection, self.source, self.timeout)
        except BoundaryLoadError as exc:
            logger.error("Boundary data unavailable: %s", exc)
            index = BoundaryIndex.empty(load_error=str(exc))
        else:
            index = _build_index(collection, self.config, self.source)
        self._index = index
        return index
