"""Canonical feature model shared by ingestion, drawing and exporters."""

from commap.features.feature import (
    GEOMETRY_TYPES,
    Feature,
    FeatureCollection,
    SelectedFeature,
)

__all__ = ["GEOMETRY_TYPES", "Feature", "FeatureCollection", "SelectedFeature"]
