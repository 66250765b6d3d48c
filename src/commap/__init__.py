"""Community map core — feature synchronization, ingestion and export.

Drawn shapes are mirrored into a canonical FeatureCollection by the
reconciler, uploads are appended by ingestion, and exporters serialize the
collection to CSV, KML, GeoJSON, PNG and PDF behind a tier gate.
"""

from commap.features import Feature, FeatureCollection, SelectedFeature
from commap.session import MapSession

__all__ = ["Feature", "FeatureCollection", "MapSession", "SelectedFeature"]
