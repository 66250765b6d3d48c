"""Raster (PNG) export of a rendered region.

A rendering backend turns a region into a Pillow image at a given scale.
``render_png`` drives the backend at 2x, flattens the result onto an opaque
white background and encodes it as PNG. ``FeatureMapRenderer`` is the
built-in backend for the map panel: it draws the feature collection
itself, skipping any feature whose geometry is malformed.
"""

from __future__ import annotations

import io
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol

from loguru import logger
from PIL import Image, ImageDraw

from commap.errors import RenderBusy, RenderFailure
from commap.features import Feature

DEFAULT_SCALE = 2.0
BACKGROUND = "#ffffff"


class RenderBackend(Protocol):
    def render(self, region: Any, scale: float, background: str) -> Image.Image:
        """Rasterize ``region`` at ``scale`` times its logical size."""


@dataclass
class MapRegion:
    """The on-screen map panel: its features and logical pixel size."""

    features: list[Feature]
    width: int = 800
    height: int = 600
    key: str = "map"
    padding: int = 20
    styles: dict = field(default_factory=lambda: {
        "Point": "#d7263d",
        "LineString": "#1b98e0",
        "Polygon": "#2e933c",
    })


class FeatureMapRenderer:
    """Pillow backend that draws a MapRegion in lng/lat space."""

    def render(self, region: MapRegion, scale: float, background: str) -> Image.Image:
        width = max(1, int(region.width * scale))
        height = max(1, int(region.height * scale))
        image = Image.new("RGB", (width, height), background)
        draw = ImageDraw.Draw(image)

        drawable = [f for f in region.features if f.is_well_formed()]
        skipped = len(region.features) - len(drawable)
        if skipped:
            logger.warning(f"Map render: skipped {skipped} malformed features")
        if not drawable:
            return image

        project = _projector(drawable, width, height, region.padding * scale)
        radius = max(2, int(4 * scale))
        line_width = max(1, int(2 * scale))

        for feature in drawable:
            color = region.styles.get(feature.geometry_type, "#333333")
            if feature.geometry_type == "Point":
                x, y = project(feature.coordinates)
                draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=color)
            elif feature.geometry_type == "LineString" and len(feature.coordinates) >= 2:
                draw.line([project(c) for c in feature.coordinates], fill=color, width=line_width)
            elif feature.geometry_type == "Polygon":
                for ring in feature.coordinates:
                    if len(ring) >= 3:
                        draw.polygon([project(c) for c in ring], outline=color)
        return image


def _projector(features: list[Feature], width: int, height: int, padding: float):
    """Equirectangular fit of every position into the padded canvas."""
    positions = list(_positions(features))
    lngs = [p[0] for p in positions]
    lats = [p[1] for p in positions]
    min_lng, max_lng = min(lngs), max(lngs)
    min_lat, max_lat = min(lats), max(lats)
    span_lng = (max_lng - min_lng) or 1.0
    span_lat = (max_lat - min_lat) or 1.0
    usable_w = max(1.0, width - 2 * padding)
    usable_h = max(1.0, height - 2 * padding)
    k = min(usable_w / span_lng, usable_h / span_lat)
    off_x = padding + (usable_w - span_lng * k) / 2
    off_y = padding + (usable_h - span_lat * k) / 2

    def project(coord) -> tuple[float, float]:
        x = off_x + (coord[0] - min_lng) * k
        y = off_y + (max_lat - coord[1]) * k
        return (x, y)

    return project


def _positions(features: list[Feature]) -> Iterator[list]:
    for feature in features:
        if feature.geometry_type == "Point":
            yield feature.coordinates
        elif feature.geometry_type == "LineString":
            yield from feature.coordinates
        elif feature.geometry_type == "Polygon":
            for ring in feature.coordinates:
                yield from ring


class RenderGuard:
    """Allows at most one in-flight render per region key."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @contextmanager
    def exclusive(self, key: str):
        with self._lock:
            if key in self._in_flight:
                raise RenderBusy(key)
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)


def rasterize(region: Any, backend: RenderBackend, scale: float = DEFAULT_SCALE) -> Image.Image:
    """Render a region and flatten it onto an opaque white RGB image.

    Raises:
        RenderFailure: If the backend raises or returns something unusable.
    """
    try:
        image = backend.render(region, scale, BACKGROUND)
    except Exception as e:
        raise RenderFailure(f"Rendering failed: {e}") from e
    if not isinstance(image, Image.Image):
        raise RenderFailure("Rendering backend returned no image")

    if image.mode in ("RGBA", "LA") or "transparency" in image.info:
        rgba = image.convert("RGBA")
        flat = Image.new("RGB", rgba.size, BACKGROUND)
        flat.paste(rgba, mask=rgba.getchannel("A"))
        return flat
    return image.convert("RGB")


def render_png(region: Any, backend: RenderBackend, scale: float = DEFAULT_SCALE) -> bytes:
    """Render a region to PNG bytes at ``scale`` (2x by default)."""
    image = rasterize(region, backend, scale)
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
