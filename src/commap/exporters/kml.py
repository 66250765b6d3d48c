"""Export features to a KML 2.2 XML string.

Uses only xml.etree.ElementTree (stdlib).
KML coordinates are in "lng,lat,0" order; altitude is always 0.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Iterable

from loguru import logger

from commap.features import Feature

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def to_kml(features: Iterable[Feature]) -> str:
    """Export features to a KML XML string with a single Document.

    Args:
        features: Features in export order.

    Returns:
        KML XML string.
    """
    kml = ET.Element("kml")
    kml.set("xmlns", KML_NAMESPACE)
    doc = ET.SubElement(kml, "Document")

    for idx, feature in enumerate(features, start=1):
        pm = ET.SubElement(doc, "Placemark")
        _write_placemark(pm, feature, idx)

    return XML_DECLARATION + ET.tostring(kml, encoding="unicode")


def _write_placemark(pm: ET.Element, feature: Feature, idx: int) -> None:
    """Write a Feature as a KML Placemark element."""
    name_elem = ET.SubElement(pm, "name")
    name_elem.text = str(feature.properties.get("name") or f"Feature {idx}")

    writer = _GEOMETRY_WRITERS.get(feature.geometry_type)
    if writer is None:
        return

    # Build detached so malformed coordinates leave the Placemark empty
    try:
        geometry = writer(feature.coordinates)
    except (TypeError, IndexError, KeyError) as e:
        logger.warning(f"KML export: skipping geometry of {feature.feature_id}: {e}")
        return
    pm.append(geometry)


def _format_number(value) -> str:
    """Render a coordinate without a trailing '.0' on whole numbers."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _coords_to_string(coord: list) -> str:
    """Convert a single [lng, lat] to 'lng,lat,0'."""
    return f"{_format_number(coord[0])},{_format_number(coord[1])},0"


def _coordinates_element(parent: ET.Element, coords: list) -> None:
    coords_elem = ET.SubElement(parent, "coordinates")
    coords_elem.text = " ".join(_coords_to_string(c) for c in coords)


def _point(coordinates: list) -> ET.Element:
    point = ET.Element("Point")
    coords_elem = ET.SubElement(point, "coordinates")
    coords_elem.text = _coords_to_string(coordinates)
    return point


def _linestring(coordinates: list) -> ET.Element:
    ls = ET.Element("LineString")
    _coordinates_element(ls, coordinates)
    return ls


def _polygon(coordinates: list) -> ET.Element:
    """One LinearRing per ring; ring order is the only outer/hole signal."""
    polygon = ET.Element("Polygon")
    for ring_coords in coordinates:
        ring = ET.SubElement(polygon, "LinearRing")
        _coordinates_element(ring, ring_coords)
    return polygon


_GEOMETRY_WRITERS = {
    "Point": _point,
    "LineString": _linestring,
    "Polygon": _polygon,
}
