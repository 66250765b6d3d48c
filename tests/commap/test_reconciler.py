"""Tests for the Reconciler — rebuild, identity, selection wiring, debounce."""

from __future__ import annotations

import threading

import pytest

from commap.drawing import DrawingGroup, Reconciler, ShapeHandle
from commap.features import Feature, FeatureCollection


class BrokenHandle(ShapeHandle):
    """A handle whose geometry conversion always fails."""

    def to_geometry(self) -> dict:
        raise RuntimeError("layer not initialized")


@pytest.fixture
def group():
    return DrawingGroup()


@pytest.fixture
def collection():
    return FeatureCollection()


@pytest.fixture
def selections():
    return []


@pytest.fixture
def reconciler(group, collection, selections, scheduler):
    return Reconciler(group, collection, on_select=selections.append, scheduler=scheduler)


@pytest.mark.unit
class TestRebuild:
    """rebuild() derives the drawn features from every handle."""

    def test_rebuild_empty_group(self, reconciler, collection):
        assert reconciler.rebuild() == []
        assert len(collection) == 0

    def test_rebuild_converts_each_handle(self, group, reconciler, collection,
                                         point_geometry, line_geometry):
        group.add(ShapeHandle(point_geometry, stable_id="p1"))
        group.add(ShapeHandle(line_geometry, {"name": "road"}, stable_id="l1"))
        reconciler.rebuild()
        features = collection.snapshot()
        assert [f.feature_id for f in features] == ["p1", "l1"]
        assert features[0].geometry_type == "Point"
        assert features[0].coordinates == [12.5, 41.9]
        assert features[1].properties == {"name": "road"}

    def test_rebuild_flattens_feature_collections(self, group, reconciler, collection):
        fc = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]}},
                {"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 1]}},
            ],
        }
        group.add(ShapeHandle(fc, stable_id="grp"))
        reconciler.rebuild()
        assert [f.feature_id for f in collection] == ["grp-0", "grp-1"]

    def test_rebuild_skips_failing_handles(self, group, reconciler, collection, point_geometry):
        group.add(BrokenHandle(point_geometry, stable_id="bad"))
        group.add(ShapeHandle(point_geometry, stable_id="good"))
        reconciler.rebuild()
        assert [f.feature_id for f in collection] == ["good"]

    def test_rebuild_is_full_replacement(self, group, reconciler, collection, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p1"))
        reconciler.rebuild()
        group.remove(h)
        reconciler.rebuild()
        assert len(collection) == 0

    def test_rebuild_keeps_ingested_features(self, group, reconciler, collection, point_geometry):
        collection.extend([Feature("up-1", "Point", [5, 5])])
        group.add(ShapeHandle(point_geometry, stable_id="p1"))
        reconciler.rebuild()
        assert [f.feature_id for f in collection] == ["p1", "up-1"]

    def test_rebuild_is_idempotent(self, group, reconciler, collection,
                                   point_geometry, polygon_geometry):
        """Two rebuilds of an unchanged group give equal collections."""
        group.add(ShapeHandle(point_geometry))
        group.add(ShapeHandle(polygon_geometry))
        first = reconciler.rebuild()
        second = reconciler.rebuild()
        assert first == second
        assert collection.snapshot() == second

    def test_on_change_receives_features(self, group, collection, point_geometry):
        seen = []
        rec = Reconciler(group, collection, on_change=seen.append)
        group.add(ShapeHandle(point_geometry, stable_id="p"))
        rec.rebuild()
        assert [f.feature_id for f in seen[0]] == ["p"]


@pytest.mark.unit
class TestIdentity:
    """Handles without an id get a synthesized one, exactly once."""

    def test_missing_id_is_assigned(self, group, reconciler, point_geometry):
        h = group.add(ShapeHandle(point_geometry))
        reconciler.rebuild()
        assert h.get_stable_id().startswith("feature_")

    def test_synthesized_ids_are_unique(self, group, reconciler, point_geometry):
        handles = [group.add(ShapeHandle(point_geometry)) for _ in range(5)]
        reconciler.rebuild()
        ids = {h.get_stable_id() for h in handles}
        assert len(ids) == 5

    def test_existing_id_is_kept(self, group, reconciler, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="42"))
        reconciler.rebuild()
        assert h.get_stable_id() == "42"


@pytest.mark.unit
class TestSelection:
    """Each handle carries exactly one click listener after a rebuild."""

    def test_single_listener_after_repeated_rebuilds(self, group, reconciler, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.rebuild()
        reconciler.rebuild()
        reconciler.rebuild()
        assert h.listener_count == 1

    def test_click_selects_feature(self, group, reconciler, selections, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.rebuild()
        h.click()
        assert len(selections) == 1
        sel = selections[0]
        assert sel.feature_id == "p"
        assert sel.coordinates == [12.5, 41.9]
        assert sel.geometry == point_geometry

    def test_click_fires_once(self, group, reconciler, selections, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.rebuild()
        reconciler.rebuild()
        h.click()
        assert len(selections) == 1

    def test_click_on_unnamed_handle(self, group, reconciler, selections, point_geometry):
        h = group.add(ShapeHandle(point_geometry))
        reconciler.rebuild()
        h.click()
        assert selections[0].feature_id == h.get_stable_id()

    def test_select_failure_is_not_fatal(self, group, reconciler, selections, point_geometry):
        h = BrokenHandle(point_geometry, stable_id="bad")
        assert reconciler.select(h) is None
        assert selections == []


@pytest.mark.unit
class TestDrawingEvents:
    """Create is deferred; edit and delete rebuild immediately."""

    def test_create_is_deferred(self, group, reconciler, collection, scheduler, point_geometry):
        group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.on_created()
        assert len(collection) == 0
        assert scheduler.pending[0][0] == pytest.approx(0.1)
        scheduler.run_pending()
        assert len(collection) == 1

    def test_edit_rebuilds_synchronously(self, group, reconciler, collection, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.rebuild()
        h.move_to([1.0, 2.0])
        reconciler.on_edited()
        assert collection.get("p").coordinates == [1.0, 2.0]

    def test_delete_rebuilds_synchronously(self, group, reconciler, collection, point_geometry):
        h = group.add(ShapeHandle(point_geometry, stable_id="p"))
        reconciler.rebuild()
        group.remove(h)
        reconciler.on_deleted()
        assert len(collection) == 0

    def test_default_scheduler_uses_timer(self, group, collection, point_geometry):
        done = threading.Event()
        rec = Reconciler(group, collection, on_change=lambda _: done.set(), create_delay=0.01)
        group.add(ShapeHandle(point_geometry, stable_id="p"))
        rec.on_created()
        assert done.wait(timeout=2.0)
        assert len(collection) == 1


class SlowHandle(ShapeHandle):
    """Blocks its first geometry conversion until released."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def to_geometry(self) -> dict:
        if not self.entered.is_set():
            self.entered.set()
            self.release.wait(timeout=2.0)
        return super().to_geometry()


@pytest.mark.unit
class TestConcurrentRebuilds:
    """A rebuild that started first never lands last."""

    def test_delete_during_slow_rebuild_stays_deleted(self, group, collection,
                                                      point_geometry, line_geometry):
        rec = Reconciler(group, collection)
        slow = group.add(SlowHandle(point_geometry, stable_id="a"))
        other = group.add(ShapeHandle(line_geometry, stable_id="b"))

        timer_rebuild = threading.Thread(target=rec.rebuild)
        timer_rebuild.start()
        assert slow.entered.wait(timeout=2.0)

        group.remove(other)
        delete_rebuild = threading.Thread(target=rec.on_deleted)
        delete_rebuild.start()
        slow.release.set()
        timer_rebuild.join(timeout=2.0)
        delete_rebuild.join(timeout=2.0)

        assert [f.feature_id for f in collection.snapshot()] == ["a"]
        assert slow.listener_count == 1

    def test_parallel_rebuilds_leave_one_listener(self, group, collection, point_geometry):
        rec = Reconciler(group, collection)
        handles = [group.add(ShapeHandle(point_geometry, stable_id=f"p{i}")) for i in range(5)]
        threads = [threading.Thread(target=rec.rebuild) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=2.0)
        assert all(h.listener_count == 1 for h in handles)
        assert len(collection) == 5


@pytest.mark.unit
class TestDerive:

    def test_derive_leaves_collection_alone(self, group, reconciler, collection, point_geometry):
        group.add(ShapeHandle(point_geometry))
        features = reconciler.derive()
        assert len(features) == 1
        assert len(collection) == 0
        assert features[0].feature_id.startswith("feature_")
