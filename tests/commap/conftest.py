"""Shared fixtures for the community map core tests."""

from __future__ import annotations

from typing import Callable

import pytest

from commap.features import Feature


class ManualScheduler:
    """Records deferred calls instead of starting timers.

    Tests call ``run_pending()`` to play the "tick" the drawing library
    needs before a new handle is ready.
    """

    def __init__(self) -> None:
        self.pending: list[tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, fn: Callable[[], None]) -> None:
        self.pending.append((delay, fn))

    def run_pending(self) -> int:
        calls, self.pending = self.pending, []
        for _, fn in calls:
            fn()
        return len(calls)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def point_geometry():
    return {"type": "Point", "coordinates": [12.5, 41.9]}


@pytest.fixture
def line_geometry():
    return {"type": "LineString", "coordinates": [[12.5, 41.9], [12.6, 42.0]]}


@pytest.fixture
def polygon_geometry():
    return {
        "type": "Polygon",
        "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]],
    }


@pytest.fixture
def mixed_features():
    return [
        Feature("a", "Point", [12.5, 41.9], {"name": "Rome"}),
        Feature("b", "LineString", [[0.0, 0.0], [1.5, 2.25]], {}),
        Feature("c", "Polygon", [[[0, 0], [1, 0], [1, 1], [0, 0]]], {"kind": "zone"}),
    ]
