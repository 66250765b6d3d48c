"""Export features to CSV text.

One row per feature: ``id`` (1-based row number, not the feature id),
``type``, ``coordinates`` (compact JSON), then the feature's properties.
Properties with the same name as a base column replace its value. The header
is widened to every key seen, in first-seen order.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Iterable

from commap.features import Feature

BASE_COLUMNS = ("id", "type", "coordinates")


def to_csv(features: Iterable[Feature]) -> str:
    """Export features to a CSV string.

    An empty input yields the header line only.
    """
    rows = [_row(idx, feature) for idx, feature in enumerate(features, start=1)]

    fieldnames: list[str] = list(BASE_COLUMNS)
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=fieldnames, restval="")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


def _row(idx: int, feature: Feature) -> dict:
    row: dict = {
        "id": idx,
        "type": feature.geometry_type,
        "coordinates": json.dumps(feature.coordinates, separators=(",", ":")),
    }
    for key, value in feature.properties.items():
        row[str(key)] = _cell(value)
    return row


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return value
