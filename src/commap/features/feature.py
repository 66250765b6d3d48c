"""Feature, FeatureCollection and SelectedFeature for the community map.

All coordinates are stored in GeoJSON convention: [lng, lat].
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator

GEOMETRY_TYPES = ("Point", "LineString", "Polygon")

# Nesting depth of the coordinate structure for each geometry type.
_DEPTH = {"Point": 1, "LineString": 2, "Polygon": 3}


@dataclass
class Feature:
    """A single drawn or ingested feature.

    Attributes:
        feature_id: Unique identifier within the session.
        geometry_type: One of "Point", "LineString", "Polygon".
        coordinates: GeoJSON-style coordinate arrays.
            Point: [lng, lat]
            LineString: [[lng, lat], [lng, lat], ...]
            Polygon: [[[lng, lat], [lng, lat], ...]]  (list of rings)
        properties: Arbitrary key-value metadata.
    """

    feature_id: str
    geometry_type: str
    coordinates: Any
    properties: dict = field(default_factory=dict)

    def is_well_formed(self) -> bool:
        """True when the type is known and the coordinate depth matches it."""
        expected = _DEPTH.get(self.geometry_type)
        if expected is None:
            return False
        return _depth(self.coordinates) == expected

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "id": self.feature_id,
            "geometry": {
                "type": self.geometry_type,
                "coordinates": self.coordinates,
            },
            "properties": dict(self.properties),
        }

    @classmethod
    def from_geojson(cls, raw: Any, feature_id: str) -> Feature:
        """Build a Feature from a GeoJSON Feature (or bare geometry) dict.

        Nothing is validated; missing pieces become empty values so that
        malformed input can still be carried and exported.
        """
        if not isinstance(raw, dict):
            return cls(feature_id=feature_id, geometry_type="", coordinates=[])

        if raw.get("type") in GEOMETRY_TYPES and "coordinates" in raw:
            geometry = raw
            properties = {}
        else:
            geometry = raw.get("geometry")
            properties = raw.get("properties")
        if not isinstance(geometry, dict):
            geometry = {}
        if not isinstance(properties, dict):
            properties = {}

        geom_type = geometry.get("type", "")
        if not isinstance(geom_type, str):
            geom_type = str(geom_type)

        return cls(
            feature_id=feature_id,
            geometry_type=geom_type,
            coordinates=geometry.get("coordinates", []),
            properties=dict(properties),
        )


def _depth(value: Any) -> int:
    """Uniform nesting depth of a coordinate structure, or -1 if ragged.

    A position (innermost list) must hold at least two finite numbers.
    """
    if not isinstance(value, (list, tuple)) or not value:
        return -1
    if all(_is_finite_number(v) for v in value):
        return 1 if len(value) >= 2 else -1
    depths = {_depth(v) for v in value}
    if len(depths) != 1:
        return -1
    inner = depths.pop()
    return -1 if inner < 0 else inner + 1


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class FeatureCollection:
    """Ordered set of all features currently on the map.

    Drawn features come first, in drawing-layer order, followed by ingested
    features in upload order. The reconciler replaces the drawn part as a
    whole; ingestion only ever appends to the ingested part.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._drawn: list[Feature] = []
        self._ingested: list[Feature] = []

    def replace_drawn(self, features: Iterable[Feature]) -> None:
        fresh = list(features)
        with self._lock:
            self._drawn = fresh

    def extend(self, features: Iterable[Feature]) -> int:
        added = list(features)
        with self._lock:
            self._ingested = self._ingested + added
        return len(added)

    def snapshot(self) -> list[Feature]:
        with self._lock:
            return self._drawn + self._ingested

    def ingested(self) -> list[Feature]:
        with self._lock:
            return list(self._ingested)

    def count(self, geometry_type: str) -> int:
        return sum(1 for f in self.snapshot() if f.geometry_type == geometry_type)

    def get(self, feature_id: str) -> Feature | None:
        for feature in self.snapshot():
            if feature.feature_id == feature_id:
                return feature
        return None

    def clear(self) -> None:
        with self._lock:
            self._drawn = []
            self._ingested = []

    def to_geojson(self) -> dict:
        return {
            "type": "FeatureCollection",
            "features": [f.to_geojson() for f in self.snapshot()],
        }

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._drawn) + len(self._ingested)


@dataclass
class SelectedFeature:
    """Weak reference (by id) to the feature whose comment panel is open."""

    feature_id: str
    coordinates: Any = None
    geometry: dict | None = None

    def as_comment_target(self) -> dict:
        return {
            "feature_id": self.feature_id,
            "feature_coordinates": self.coordinates,
            "feature_geometry": self.geometry,
        }
