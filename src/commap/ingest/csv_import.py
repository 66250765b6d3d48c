"""Parse CSV uploads with latitude/longitude columns into Point features.

Uses stdlib csv. Coordinate columns are probed case-sensitively in priority
order; every spelling variant is stripped from the resulting properties.
Coordinates stored as [lng, lat] (GeoJSON convention).

A coordinate must parse as a whole finite number: "12abc" is rejected rather
than read as 12 the way a numeric-prefix parser would read it.
"""

from __future__ import annotations

import csv
import io
import math
import uuid

from loguru import logger

from commap.errors import RowRejected
from commap.features import Feature

LAT_KEYS = ("lat", "latitude", "Latitude")
LNG_KEYS = ("lng", "lon", "longitude", "Longitude")


def parse_csv(csv_string: str) -> list[Feature]:
    """Parse a CSV string with a header row into Point features.

    Rows whose latitude or longitude does not resolve to a finite number
    are dropped silently.

    Args:
        csv_string: Raw CSV content with headers.

    Returns:
        Point features in input row order.
    """
    reader = csv.DictReader(io.StringIO(csv_string))
    batch = uuid.uuid4().hex[:8]

    features: list[Feature] = []
    rejected = 0
    for row_number, row in enumerate(reader, start=1):
        try:
            features.append(_row_to_feature(row, row_number, f"csv-{batch}-{len(features)}"))
        except RowRejected as e:
            rejected += 1
            logger.debug(f"CSV import: {e}")

    if rejected:
        logger.info(f"CSV import: kept {len(features)} rows, dropped {rejected}")
    return features


def _row_to_feature(row: dict, row_number: int, feature_id: str) -> Feature:
    lat = _to_finite(_first_present(row, LAT_KEYS))
    lng = _to_finite(_first_present(row, LNG_KEYS))
    if lat is None or lng is None:
        raise RowRejected(row_number)

    properties = {
        key: value
        for key, value in row.items()
        # None keys/values come from ragged rows
        if key is not None and value is not None
        and key not in LAT_KEYS and key not in LNG_KEYS
    }
    return Feature(
        feature_id=feature_id,
        geometry_type="Point",
        coordinates=[lng, lat],
        properties=properties,
    )


def _first_present(row: dict, keys: tuple[str, ...]):
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _to_finite(value) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
