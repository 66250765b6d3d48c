"""Reconciler — keeps the canonical collection in step with the drawing layer.

Every structural change (create, edit, delete) triggers a full rebuild from
the drawing group rather than an incremental patch, so the collection can
never drift from the handles. Rebuilding also re-wires click-to-select,
since handlers attached before the rebuild may no longer be valid.
"""

from __future__ import annotations

import itertools
import threading
import time
from typing import Callable

from loguru import logger

from commap.drawing.handle import DrawingGroup, DrawingHandle
from commap.features import Feature, FeatureCollection, SelectedFeature

Scheduler = Callable[[float, Callable[[], None]], None]

DEFAULT_CREATE_DELAY = 0.1

_synth_counter = itertools.count()


def timer_scheduler(delay: float, fn: Callable[[], None]) -> None:
    """Run ``fn`` once after ``delay`` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()


def synthesize_id() -> str:
    """Timestamp-based id for handles the drawing library left unnamed."""
    millis = int(time.time() * 1000)
    return f"feature_{millis}_{next(_synth_counter)}"


class Reconciler:
    """Derives the drawn part of a FeatureCollection from a DrawingGroup.

    Args:
        group: The drawing group whose handles are authoritative.
        collection: The canonical collection to replace on rebuild.
        on_select: Called with a SelectedFeature when a shape is clicked.
        on_change: Called after each rebuild with the fresh feature list.
        create_delay: Seconds to wait after a create event before rebuilding,
            giving the drawing library time to finish the new handle.
        scheduler: ``(delay, fn)`` callable used for the deferred rebuild.
    """

    def __init__(
        self,
        group: DrawingGroup,
        collection: FeatureCollection,
        on_select: Callable[[SelectedFeature], None] | None = None,
        on_change: Callable[[list[Feature]], None] | None = None,
        create_delay: float = DEFAULT_CREATE_DELAY,
        scheduler: Scheduler = timer_scheduler,
    ) -> None:
        self._group = group
        self._collection = collection
        self._on_select = on_select
        self._on_change = on_change
        self._create_delay = create_delay
        self._scheduler = scheduler
        self._rebuild_lock = threading.Lock()
        self._id_lock = threading.Lock()

    # -- Drawing events -----------------------------------------------------

    def on_created(self) -> None:
        self._scheduler(self._create_delay, self.rebuild)

    def on_edited(self) -> None:
        self.rebuild()

    def on_deleted(self) -> None:
        self.rebuild()

    # -- Rebuild ------------------------------------------------------------

    def rebuild(self) -> list[Feature]:
        """Replace the drawn features with a fresh derivation of every handle.

        Handles whose geometry conversion fails are skipped. Rebuilds are
        serialized: the one that lists the handles last is the one whose
        result lands in the collection last.

        Returns:
            The derived features, in handle order.
        """
        with self._rebuild_lock:
            handles = self._group.handles()
            derived = self.derive(handles)
            self._collection.replace_drawn(derived)
            self._wire_selection(handles)
        logger.debug(f"Rebuilt {len(derived)} drawn features from {len(handles)} handles")

        if self._on_change is not None:
            self._on_change(derived)
        return derived

    def derive(self, handles: list[DrawingHandle] | None = None) -> list[Feature]:
        """Features for the given handles (default: the whole group).

        Does not touch the collection.
        """
        if handles is None:
            handles = self._group.handles()
        derived: list[Feature] = []
        for handle in handles:
            try:
                derived.extend(self._features_for(handle))
            except Exception as e:
                logger.warning(f"Skipping drawing handle during rebuild: {e}")
        return derived

    def stable_id(self, handle: DrawingHandle) -> str:
        """The handle's identifier, assigning a synthesized one if missing."""
        with self._id_lock:
            current = handle.get_stable_id()
            if current is None or current == "":
                current = synthesize_id()
                handle.assign_stable_id(current)
        return str(current)

    def _features_for(self, handle: DrawingHandle) -> list[Feature]:
        geo = handle.to_geometry()
        if not isinstance(geo, dict) or not geo.get("type"):
            raise ValueError("handle produced no geometry")

        base_id = self.stable_id(handle)
        if geo["type"] == "FeatureCollection":
            return [
                Feature.from_geojson(member, f"{base_id}-{idx}")
                for idx, member in enumerate(geo.get("features") or [])
            ]
        return [Feature.from_geojson(geo, base_id)]

    # -- Selection ----------------------------------------------------------

    def _wire_selection(self, handles: list[DrawingHandle]) -> None:
        for handle in handles:
            handle.clear_click_listeners()
            handle.attach_click_listener(self._click_handler(handle))

    def _click_handler(self, handle: DrawingHandle) -> Callable[[], None]:
        def on_click() -> None:
            self.select(handle)
        return on_click

    def select(self, handle: DrawingHandle) -> SelectedFeature | None:
        """Build the selection for a clicked handle and hand it to on_select."""
        try:
            geo = handle.to_geometry()
            geometry = geo.get("geometry") if geo.get("type") == "Feature" else geo
        except Exception as e:
            logger.warning(f"Cannot select drawing handle: {e}")
            return None

        coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
        selected = SelectedFeature(
            feature_id=self.stable_id(handle),
            coordinates=coordinates,
            geometry=geometry,
        )
        if self._on_select is not None:
            self._on_select(selected)
        return selected
