"""Format exporters — pure transforms from features to files.

The ``*_download`` helpers wrap an exporter's output in a ``Download`` with
the file name and media type the browser should save it under.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from commap.exporters.csv_export import to_csv
from commap.exporters.geojson import to_geojson, to_json
from commap.exporters.kml import to_kml
from commap.exporters.pdf import compose_pdf
from commap.exporters.raster import (
    FeatureMapRenderer,
    MapRegion,
    RenderBackend,
    RenderGuard,
    rasterize,
    render_png,
)
from commap.features import Feature

DASHBOARD_PDF_NAME = "ai-analytics-dashboard.pdf"


@dataclass
class Download:
    """A file ready to hand to the user."""

    filename: str
    media_type: str
    content: bytes | str

    def as_bytes(self) -> bytes:
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")


def csv_download(features: Iterable[Feature]) -> Download:
    return Download("features.csv", "text/csv; charset=utf-8", to_csv(features))


def kml_download(features: Iterable[Feature]) -> Download:
    return Download("features.kml", "application/vnd.google-earth.kml+xml", to_kml(features))


def json_download(data: Any, file_base: str) -> Download:
    return Download(f"{file_base}.json", "application/json", to_json(data))


def png_download(
    region: Any,
    backend: RenderBackend,
    file_base: str,
    scale: float = 2.0,
) -> Download:
    return Download(f"{file_base}.png", "image/png", render_png(region, backend, scale))


def pdf_download(
    region: Any,
    backend: RenderBackend,
    scale: float = 2.0,
    margin_mm: float = 10.0,
    filename: str = DASHBOARD_PDF_NAME,
) -> Download:
    image = rasterize(region, backend, scale)
    return Download(filename, "application/pdf", compose_pdf(image, margin_mm=margin_mm))


__all__ = [
    "DASHBOARD_PDF_NAME",
    "Download",
    "FeatureMapRenderer",
    "MapRegion",
    "RenderBackend",
    "RenderGuard",
    "compose_pdf",
    "csv_download",
    "json_download",
    "kml_download",
    "pdf_download",
    "png_download",
    "rasterize",
    "render_png",
    "to_csv",
    "to_geojson",
    "to_json",
    "to_kml",
]
