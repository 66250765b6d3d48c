"""MapSession — the session-scoped owner of the canonical feature collection.

Created empty when the map view mounts and discarded when it unmounts.
Only two paths write the collection: the reconciler (replacing the drawn
features) and uploads (appending ingested ones). Every recoverable error is
caught here and turned into a notice.
"""

from __future__ import annotations

import threading
from typing import Any, Callable

from loguru import logger

from commap.drawing import DrawingGroup, Reconciler, ShapeHandle, timer_scheduler
from commap.drawing.reconciler import DEFAULT_CREATE_DELAY, Scheduler
from commap.errors import (
    AuthorizationDenied,
    CommapError,
    IngestError,
    RenderBusy,
    UnsupportedFormat,
)
from commap.exporters import (
    Download,
    FeatureMapRenderer,
    MapRegion,
    RenderBackend,
    RenderGuard,
    csv_download,
    json_download,
    kml_download,
    pdf_download,
    png_download,
)
from commap.features import Feature, FeatureCollection, SelectedFeature
from commap.gate import ExportGate
from commap.ingest import detect_format, ingest
from commap.notices import NoticeBus
from commap.quota import FREE_POINT_LIMIT, FREE_TIER, can_add_point, drawing_tools, limit_notice

EXPORT_FORMATS = ("csv", "kml", "json", "png", "pdf")

_EXPORT_TITLES = {
    "csv": ("Exported CSV", "Your data has been downloaded."),
    "kml": ("Exported KML", "KML ready for Google Earth/Maps."),
    "json": ("Exported JSON", "Your data has been downloaded."),
    "png": ("Exported image", "Your map image has been downloaded."),
    "pdf": ("Exported PDF", "Your report has been downloaded."),
}


class MapSession:
    """One user's live map: drawing group, collection, selection and exports."""

    def __init__(
        self,
        tier: str = FREE_TIER,
        notices: NoticeBus | None = None,
        point_limit: int = FREE_POINT_LIMIT,
        create_delay: float = DEFAULT_CREATE_DELAY,
        scheduler: Scheduler = timer_scheduler,
        backend: RenderBackend | None = None,
        render_scale: float = 2.0,
        pdf_margin_mm: float = 10.0,
        map_size: tuple[int, int] = (800, 600),
        file_base: str = "community-map",
    ) -> None:
        self.tier = tier
        self.notices = notices or NoticeBus()
        self.point_limit = point_limit
        self.collection = FeatureCollection()
        self.group = DrawingGroup()
        self.selected: SelectedFeature | None = None
        self.backend = backend or FeatureMapRenderer()
        self.render_guard = RenderGuard()
        self._draw_lock = threading.Lock()
        self.render_scale = render_scale
        self.pdf_margin_mm = pdf_margin_mm
        self.map_size = map_size
        self.file_base = file_base
        self.reconciler = Reconciler(
            self.group,
            self.collection,
            on_select=self._on_select,
            create_delay=create_delay,
            scheduler=scheduler,
        )

    # -- Reading ------------------------------------------------------------

    @property
    def features(self) -> list[Feature]:
        return self.collection.snapshot()

    def counts(self) -> dict[str, int]:
        features = self.features
        return {
            "total": len(features),
            "point": sum(1 for f in features if f.geometry_type == "Point"),
            "line": sum(1 for f in features if f.geometry_type == "LineString"),
            "poly": sum(1 for f in features if f.geometry_type == "Polygon"),
        }

    def quota_features(self) -> list[Feature]:
        """Features the point quota counts.

        Drawn shapes are derived straight from the drawing group, so a shape
        counts from the moment it is drawn rather than after the deferred
        rebuild.
        """
        return self.reconciler.derive() + self.collection.ingested()

    def can_add_point(self, tier: str | None = None) -> bool:
        return can_add_point(self.quota_features(), tier or self.tier, self.point_limit)

    def drawing_tools(self, tier: str | None = None) -> dict[str, bool]:
        return drawing_tools(self.quota_features(), tier or self.tier, self.point_limit)

    def limit_message(self, tier: str | None = None) -> str | None:
        """Upgrade hint to show under the map, once the cap is reached."""
        if self.can_add_point(tier):
            return None
        return limit_notice(self.point_limit)

    # -- Uploads ------------------------------------------------------------

    def load(self, content: str, file_name: str) -> int:
        """Ingest an uploaded file and append its features.

        Returns:
            Number of features added.

        Raises:
            IngestError: Unsupported extension or malformed GeoJSON; the
                collection is left untouched.
        """
        fmt = detect_format(file_name)
        features = ingest(content, file_name)
        added = self.collection.extend(features)
        logger.info(f"Upload {file_name}: {added} features added")
        if fmt == "csv":
            self.notices.publish("CSV loaded", f"{added} points added.")
        else:
            self.notices.publish("GeoJSON loaded", f"{added} features added.")
        return added

    def upload(self, content: str, file_name: str) -> int:
        """Like ``load`` but reports ingestion errors as notices.

        Returns:
            Number of features added (0 on any ingestion error).
        """
        try:
            return self.load(content, file_name)
        except IngestError as e:
            self.notify_ingest_error(e)
            return 0

    def notify_ingest_error(self, error: IngestError) -> None:
        if isinstance(error, UnsupportedFormat):
            self.notices.publish("Unsupported file", "Use CSV or GeoJSON for now.", "error")
        else:
            logger.info(f"Rejected upload: {error}")
            self.notices.publish("Invalid GeoJSON", "Please check the file format.", "error")

    # -- Drawing ------------------------------------------------------------

    def draw(
        self,
        geometry: dict,
        properties: dict | None = None,
        stable_id: str | None = None,
        tier: str | None = None,
    ) -> ShapeHandle | None:
        """Add a user-drawn shape; the collection catches up after the delay.

        The handle's stable id is assigned here, so the caller can address
        the shape before the rebuild runs.

        Returns:
            The new handle, or None if a point was refused by the quota.
        """
        with self._draw_lock:
            if geometry.get("type") == "Point" and not self.can_add_point(tier):
                self.notices.publish(
                    "Marker limit reached", limit_notice(self.point_limit), "upgrade"
                )
                return None
            handle = ShapeHandle(geometry, properties, stable_id)
            self.group.add(handle)
            self.reconciler.stable_id(handle)
        self.reconciler.on_created()
        return handle

    def edit(self, feature_id: str, coordinates: Any) -> bool:
        handle = self.group.find(feature_id)
        if handle is None or not isinstance(handle, ShapeHandle):
            return False
        handle.move_to(coordinates)
        self.reconciler.on_edited()
        return True

    def delete(self, feature_id: str) -> bool:
        handle = self.group.find(feature_id)
        if handle is None:
            return False
        self.group.remove(handle)
        if self.selected is not None and self.selected.feature_id == feature_id:
            self.selected = None
        self.reconciler.on_deleted()
        return True

    def click(self, feature_id: str) -> SelectedFeature | None:
        handle = self.group.find(feature_id)
        if handle is None or not isinstance(handle, ShapeHandle):
            return None
        if handle.listener_count == 0:
            # Drawn, but the deferred rebuild has not wired it yet
            return self.reconciler.select(handle)
        handle.click()
        return self.selected

    def clear_selection(self) -> None:
        self.selected = None

    def _on_select(self, selected: SelectedFeature) -> None:
        self.selected = selected

    # -- Exports ------------------------------------------------------------

    def map_region(self) -> MapRegion:
        width, height = self.map_size
        return MapRegion(features=self.features, width=width, height=height)

    def produce(
        self,
        fmt: str,
        tier: str | None = None,
        data: Any = None,
        file_base: str | None = None,
    ) -> Download:
        """Run a gated export.

        Args:
            fmt: One of EXPORT_FORMATS.
            tier: Caller tier; defaults to the session tier.
            data: Payload for the "json" format; defaults to the collection
                as GeoJSON.
            file_base: Base name for png/json downloads.

        Raises:
            ValueError: If the format is not supported.
            AuthorizationDenied: Non-pro tier; nothing is exported.
            RenderBusy: A png/pdf render of the map is already running.
            RenderFailure: The rendering backend failed.
        """
        base = file_base or self.file_base
        producers: dict[str, Callable[[], Download]] = {
            "csv": lambda: csv_download(self.features),
            "kml": lambda: kml_download(self.features),
            "json": lambda: json_download(
                self.collection.to_geojson() if data is None else data, base
            ),
            "png": lambda: self._export_png(base),
            "pdf": self._export_pdf,
        }
        producer = producers.get(fmt)
        if producer is None:
            raise ValueError(f"Unsupported export format: {fmt}")

        download = ExportGate(tier or self.tier).run(producer)
        title, description = _EXPORT_TITLES[fmt]
        self.notices.publish(title, description)
        logger.info(f"Exported {download.filename}")
        return download

    def export(self, fmt: str, tier: str | None = None, data: Any = None) -> Download | None:
        """Like ``produce`` but reports refusals and failures as notices.

        Returns:
            The download, or None if the export was refused or failed.
        """
        try:
            return self.produce(fmt, tier, data)
        except CommapError as e:
            self.notify_export_error(e, fmt)
            return None

    def notify_export_error(self, error: CommapError, fmt: str = "") -> None:
        if isinstance(error, AuthorizationDenied):
            self.notices.publish("Pro feature", error.prompt, "upgrade")
        elif isinstance(error, RenderBusy):
            self.notices.publish("Export in progress", "Please wait for the current render.", "error")
        else:
            logger.warning(f"{fmt.upper()} export failed: {error}")
            self.notices.publish("Export failed", "The image could not be rendered.", "error")

    def _export_png(self, file_base: str) -> Download:
        region = self.map_region()
        with self.render_guard.exclusive(region.key):
            return png_download(region, self.backend, file_base, self.render_scale)

    def _export_pdf(self) -> Download:
        region = self.map_region()
        with self.render_guard.exclusive(region.key):
            return pdf_download(region, self.backend, self.render_scale, self.pdf_margin_mm)
