"""Drawing-layer handles and the group that owns them.

Handles are opaque, host-owned objects. The rest of the system only talks
to them through the narrow ``DrawingHandle`` protocol and never stores them
inside the canonical model.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class DrawingHandle(Protocol):
    """Capability interface of a live on-map shape."""

    def to_geometry(self) -> dict:
        """GeoJSON Feature or FeatureCollection for the shape."""

    def get_stable_id(self) -> str | None:
        """Internal identifier, or None if the library never assigned one."""

    def assign_stable_id(self, value: str) -> None:
        """Pin an identifier onto a handle that had none."""

    def attach_click_listener(self, callback: Callable[[], None]) -> None: ...

    def clear_click_listeners(self) -> None: ...


class ShapeHandle:
    """In-memory drawing handle backed by a GeoJSON geometry.

    Stands in for a drawing library's layer object in the HTTP service and
    in tests.
    """

    def __init__(
        self,
        geometry: dict,
        properties: dict | None = None,
        stable_id: str | None = None,
    ) -> None:
        self.geometry = geometry
        self.properties = dict(properties or {})
        self._stable_id = stable_id
        self._listeners: list[Callable[[], None]] = []

    def to_geometry(self) -> dict:
        if self.geometry.get("type") == "FeatureCollection":
            return copy.deepcopy(self.geometry)
        return {
            "type": "Feature",
            "geometry": copy.deepcopy(self.geometry),
            "properties": dict(self.properties),
        }

    def get_stable_id(self) -> str | None:
        return self._stable_id

    def assign_stable_id(self, value: str) -> None:
        self._stable_id = value

    def attach_click_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def clear_click_listeners(self) -> None:
        self._listeners.clear()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def click(self) -> None:
        """Simulate a user click on the shape."""
        for callback in list(self._listeners):
            callback()

    def move_to(self, coordinates: Any) -> None:
        """Apply an edit-drag result to the shape."""
        self.geometry = {**self.geometry, "coordinates": coordinates}


class DrawingGroup:
    """The authoritative set of live drawing handles, in draw order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handles: list[DrawingHandle] = []

    def add(self, handle: DrawingHandle) -> DrawingHandle:
        with self._lock:
            self._handles.append(handle)
        return handle

    def remove(self, handle: DrawingHandle) -> bool:
        with self._lock:
            try:
                self._handles.remove(handle)
            except ValueError:
                return False
        return True

    def find(self, stable_id: str) -> DrawingHandle | None:
        for handle in self.handles():
            if handle.get_stable_id() == stable_id:
                return handle
        return None

    def handles(self) -> list[DrawingHandle]:
        with self._lock:
            return list(self._handles)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
