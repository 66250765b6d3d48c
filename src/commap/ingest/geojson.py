"""Parse GeoJSON uploads into features using stdlib json.

A FeatureCollection contributes its features; any other object is taken as
a single feature. Geometry is passed through unvalidated. Features without
an id get one synthesized so they can still be selected later.
"""

from __future__ import annotations

import json
import uuid

from commap.errors import MalformedJson
from commap.features import Feature


def parse_geojson(geojson_string: str) -> list[Feature]:
    """Parse a GeoJSON string into features.

    Args:
        geojson_string: Raw GeoJSON content (string).

    Returns:
        Features in document order.

    Raises:
        MalformedJson: If the text is not JSON, is not an object, or is a
            FeatureCollection without a features list.
    """
    try:
        data = json.loads(geojson_string)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedJson(f"Invalid GeoJSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedJson("Invalid GeoJSON: expected an object")

    if data.get("type") == "FeatureCollection":
        raw_features = data.get("features")
        if not isinstance(raw_features, list):
            raise MalformedJson("Invalid GeoJSON: FeatureCollection has no features list")
    else:
        raw_features = [data]

    batch = uuid.uuid4().hex[:8]
    return [
        Feature.from_geojson(raw, _feature_id(raw, f"geojson-{batch}-{idx}"))
        for idx, raw in enumerate(raw_features)
    ]


def _feature_id(raw, fallback: str) -> str:
    if isinstance(raw, dict) and raw.get("id") is not None:
        return str(raw["id"])
    return fallback
