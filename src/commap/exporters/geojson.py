"""Export features to GeoJSON and arbitrary data to indented JSON.

GeoJSON coordinates are [lng, lat] (already the internal storage
convention).
"""

from __future__ import annotations

import json
from typing import Any, Iterable

from commap.features import Feature


def to_geojson(features: Iterable[Feature]) -> dict:
    """Export features to a GeoJSON FeatureCollection dict."""
    return {
        "type": "FeatureCollection",
        "features": [feature.to_geojson() for feature in features],
    }


def to_json(data: Any) -> str:
    """Serialize chart config or feature data with stable 2-space indentation."""
    return json.dumps(data, indent=2, ensure_ascii=False)
