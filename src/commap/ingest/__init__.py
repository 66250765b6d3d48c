"""Geometry ingestion — turn uploaded CSV/GeoJSON files into features.

Ingestion is additive: callers append the returned features to the session
collection, never replace it.
"""

from __future__ import annotations

import os

from commap.errors import UnsupportedFormat
from commap.features import Feature
from commap.ingest.csv_import import parse_csv
from commap.ingest.geojson import parse_geojson

ACCEPTED_EXTENSIONS = (".csv", ".geojson", ".json")


def detect_format(file_name: str) -> str:
    """Map a file name to "csv" or "geojson" by extension.

    Raises:
        UnsupportedFormat: For any other extension.
    """
    ext = os.path.splitext(file_name)[1].lower()
    if ext in (".geojson", ".json"):
        return "geojson"
    if ext == ".csv":
        return "csv"
    raise UnsupportedFormat(file_name)


def ingest(content: str, file_name: str) -> list[Feature]:
    """Parse an uploaded file into features.

    Args:
        content: The file's text content.
        file_name: Original file name; its extension selects the parser.

    Returns:
        Parsed features in input order.

    Raises:
        UnsupportedFormat: Unknown extension.
        MalformedJson: GeoJSON that does not parse.
    """
    if detect_format(file_name) == "geojson":
        return parse_geojson(content)
    return parse_csv(content)


__all__ = ["ACCEPTED_EXTENSIONS", "detect_format", "ingest", "parse_csv", "parse_geojson"]
