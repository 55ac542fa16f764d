"""PlanningSession: end-to-end editing, cluster/schedule consistency, optimistic naming."""

from datetime import date

import pytest

from conftest import LNG, make_place
from modules.editing.errors import InvalidReference
from modules.observability.logger import StructuredLogger
from modules.planning.session import PlanningSession, compute_plan_hash
from modules.sync.models import SyncKind, SyncPatch
from schemas.planning import Coordinate, Slot


class EchoBackend:
    """Answers every add with a fixed server name, echoing the new-cluster flag."""

    def __init__(self, name="Old Port"):
        self.name = name
        self.requests = []

    def send(self, request):
        self.requests.append(request)
        if request.temp_id is None:
            return None
        return SyncPatch(
            temp_id=request.temp_id,
            server_id=f"srv-{len(self.requests)}",
            cluster_name=self.name,
            is_new_cluster=request.payload["is_new_cluster"],
        )


@pytest.fixture
def session(marseille):
    s = PlanningSession.new("plan-s", [(date(2026, 5, 1), marseille), (date(2026, 5, 2), marseille)])
    yield s
    s.close()


@pytest.fixture
def synced(marseille):
    backend = EchoBackend()
    s = PlanningSession.new("plan-sync", [(date(2026, 5, 1), marseille)], sync_backend=backend)
    s.backend = backend
    yield s
    s.close()


def slot_ids(session, day_index, slot):
    return [i.place.place_id for i in session.get_slot_items(day_index, slot)]


def assert_filed_once(session, city_id="marseille"):
    """Each scheduled item of the city sits in exactly one cluster or in unclustered."""
    city = session.plan.city_plans[city_id]
    filed = [i for c in city.clusters for i in c.item_ids] + list(city.unclustered)
    scheduled = [i.item_id for d in session.plan.days if d.city.city_id == city_id for i in d.all_items()]
    assert sorted(filed) == sorted(scheduled)


# ── End to end ────────────────────────────────────────────────────────────────

def test_add_reorder_then_undo_back_to_empty(session, places):
    x = session.add_item(places["vieux_port"], 0, Slot.MORNING)
    y = session.add_item(places["panier"], 0, Slot.MORNING)
    assert x.success and y.success
    assert x.description == "Added Vieux Port to Day 1 morning"
    assert slot_ids(session, 0, Slot.MORNING) == ["vieux_port", "panier"]
    assert session.get_total_duration(0, Slot.MORNING) == 105

    assert session.reorder_item(y.item_id, 0).success
    assert slot_ids(session, 0, Slot.MORNING) == ["panier", "vieux_port"]
    assert [i.order_in_slot for i in session.get_slot_items(0, Slot.MORNING)] == [0, 1]

    # reorder is itself undoable, so three steps back to an empty slot
    for _ in range(3):
        assert session.undo().success

    assert session.get_slot_items(0, Slot.MORNING) == []
    assert session.undo_depth == 0
    assert session.redo_depth == 3
    assert session.list_clusters("marseille") == []
    assert session.undo().error == "Nothing to undo"


def test_redo_replays_the_edits(session, places):
    session.add_item(places["vieux_port"], 0, Slot.MORNING)
    session.add_item(places["panier"], 0, Slot.MORNING)
    full = session.plan
    session.undo()
    session.undo()

    assert session.redo().success
    assert session.redo().success
    assert session.plan == full
    assert not session.can_redo()


def test_new_plan_rejects_bad_dates(marseille):
    with pytest.raises(InvalidReference):
        PlanningSession.new("p", [])
    with pytest.raises(InvalidReference):
        PlanningSession.new("p", [(date(2026, 5, 2), marseille), (date(2026, 5, 1), marseille)])


class TestRejections:
    def test_duplicate_place(self, session, places):
        assert session.add_item(places["vieux_port"], 0, Slot.MORNING).success
        again = session.add_item(places["vieux_port"], 1, Slot.EVENING)
        assert not again.success
        assert "already in the itinerary" in again.error
        assert session.undo_depth == 1

    def test_invalid_place(self, session):
        result = session.add_item(make_place("nowhere", 0.0, lng=0.0), 0, Slot.MORNING)
        assert not result.success
        assert "lat=0.0" in result.error
        assert session.undo_depth == 0

    def test_unknown_day(self, session, places):
        result = session.add_item(places["vieux_port"], 7, Slot.MORNING)
        assert not result.success
        assert "Day 7" in result.error

    def test_reorder_out_of_range(self, session, places):
        added = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        assert not session.reorder_item(added.item_id, 1).success
        assert session.undo_depth == 1


# ── Clusters follow the schedule ─────────────────────────────────────────────

class TestClusters:
    def test_nearby_places_share_a_cluster(self, session, places):
        a = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        b = session.add_item(places["panier"], 0, Slot.AFTERNOON)
        c = session.add_item(places["garde"], 1, Slot.MORNING)

        assert a.cluster_id == b.cluster_id
        assert c.cluster_id != a.cluster_id

        port = session.get_cluster("marseille", a.cluster_id)
        assert set(port.item_ids) == {a.item_id, b.item_id}
        assert port.total_duration_minutes == 105
        assert port.name == "Vieux Port"
        assert session.get_cluster("marseille", c.cluster_id).name == "Notre-Dame"

    def test_remove_strips_the_item_and_undo_restores_it(self, session, places):
        a = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        b = session.add_item(places["panier"], 0, Slot.MORNING)

        assert session.remove_item(b.item_id).success
        port = session.get_cluster("marseille", a.cluster_id)
        assert port.item_ids == (a.item_id,)
        assert port.total_duration_minutes == 60

        session.undo()
        assert set(session.get_cluster("marseille", a.cluster_id).item_ids) == {a.item_id, b.item_id}

    def test_unclustered_add(self, session, places):
        added = session.add_item(places["vieux_port"], 0, Slot.MORNING, auto_cluster=False)
        assert added.cluster_id is None
        assert session.plan.city_plans["marseille"].unclustered == (added.item_id,)
        session.undo()
        assert session.plan.city_plans["marseille"].unclustered == ()

    def test_move_to_another_city(self, marseille, lyon, places):
        s = PlanningSession.new("plan-x", [(date(2026, 5, 1), marseille), (date(2026, 5, 2), lyon)])
        added = s.add_item(places["vieux_port"], 0, Slot.MORNING)

        assert s.move_item(added.item_id, 1, Slot.MORNING).success
        assert s.get_cluster("marseille", added.cluster_id).item_ids == ()
        assert [c.item_ids for c in s.list_clusters("lyon")] == [(added.item_id,)]

        s.undo()
        assert s.get_cluster("marseille", added.cluster_id).item_ids == (added.item_id,)
        assert s.list_clusters("lyon") == []
        s.close()

    def test_delete_cluster_keeps_items_scheduled(self, session, places):
        a = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        b = session.add_item(places["panier"], 0, Slot.MORNING)

        deleted = session.delete_cluster("marseille", a.cluster_id)
        assert deleted.success
        assert deleted.description == "Deleted Vieux Port"
        assert session.list_clusters("marseille") == []
        assert session.plan.city_plans["marseille"].unclustered == (a.item_id, b.item_id)
        assert len(session.get_slot_items(0, Slot.MORNING)) == 2
        # cluster edits are not part of undo history
        assert session.undo_depth == 2

        # undoing the second add still works with its cluster gone
        assert session.undo().success
        assert session.plan.city_plans["marseille"].unclustered == (a.item_id,)

    def test_move_item_between_clusters(self, session, places):
        a = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        c = session.add_item(places["garde"], 0, Slot.AFTERNOON)

        assert session.move_item_to_cluster("marseille", c.item_id, a.cluster_id).success
        assert set(session.get_cluster("marseille", a.cluster_id).item_ids) == {a.item_id, c.item_id}
        assert session.get_cluster("marseille", c.cluster_id).item_ids == ()

        assert session.move_item_to_cluster("marseille", c.item_id, None).success
        assert session.plan.city_plans["marseille"].unclustered == (c.item_id,)

    def test_undo_keeps_an_item_moved_into_the_cluster(self, session, places):
        x = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        z = session.add_item(places["garde"], 0, Slot.AFTERNOON, auto_cluster=False)
        y = session.add_item(places["panier"], 0, Slot.MORNING)
        assert y.cluster_id == x.cluster_id
        assert session.move_item_to_cluster("marseille", z.item_id, x.cluster_id).success

        assert session.undo().success
        port = session.get_cluster("marseille", x.cluster_id)
        assert set(port.item_ids) == {x.item_id, z.item_id}
        assert port.total_duration_minutes == 150
        assert session.plan.city_plans["marseille"].unclustered == ()
        assert_filed_once(session)

        assert session.redo().success
        assert set(session.get_cluster("marseille", x.cluster_id).item_ids) == {x.item_id, y.item_id, z.item_id}
        assert_filed_once(session)

    def test_undo_leaves_an_item_moved_out_of_the_cluster(self, session, places):
        x = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        y = session.add_item(places["panier"], 0, Slot.MORNING)
        assert session.move_item_to_cluster("marseille", x.item_id, None).success

        assert session.undo().success
        assert session.get_cluster("marseille", x.cluster_id).item_ids == ()
        assert session.plan.city_plans["marseille"].unclustered == (x.item_id,)
        assert_filed_once(session)

        assert session.redo().success
        assert session.get_cluster("marseille", x.cluster_id).item_ids == (y.item_id,)
        assert session.plan.city_plans["marseille"].unclustered == (x.item_id,)
        assert_filed_once(session)

    def test_create_and_rename(self, session):
        created = session.create_cluster("marseille", "Beaches")
        assert created.success
        assert session.rename_cluster("marseille", created.cluster_id, "Plages").success
        assert session.get_cluster("marseille", created.cluster_id).name == "Plages"
        assert not session.rename_cluster("marseille", "cluster-missing", "x").success


# ── Optimistic naming ─────────────────────────────────────────────────────────

class TestSyncPatches:
    def test_new_cluster_takes_the_server_name(self, synced, places):
        added = synced.add_item(places["vieux_port"], 0, Slot.MORNING)
        assert synced.get_cluster("marseille", added.cluster_id).name == "Vieux Port"

        assert synced.sync.drain(timeout=5)
        cluster = synced.get_cluster("marseille", added.cluster_id)
        assert cluster.name == "Old Port"
        assert cluster.server_id == "srv-1"

        request = synced.backend.requests[0]
        assert request.kind is SyncKind.ADD_ITEM
        assert request.temp_id == added.cluster_id
        assert request.suggested_name == "Vieux Port"
        assert request.payload["is_new_cluster"] is True

    def test_existing_cluster_keeps_its_name(self, synced, places):
        added = synced.add_item(places["vieux_port"], 0, Slot.MORNING)
        synced.sync.drain(timeout=5)
        synced.rename_cluster("marseille", added.cluster_id, "My Harbour")

        synced.add_item(places["panier"], 0, Slot.MORNING)
        synced.sync.drain(timeout=5)
        assert synced.get_cluster("marseille", added.cluster_id).name == "My Harbour"

    def test_server_name_survives_undo_and_redo(self, synced, places):
        added = synced.add_item(places["vieux_port"], 0, Slot.MORNING)
        synced.add_item(places["panier"], 0, Slot.MORNING)
        synced.sync.drain(timeout=5)

        synced.undo()
        assert synced.get_cluster("marseille", added.cluster_id).name == "Old Port"
        synced.undo()
        assert synced.get_cluster("marseille", added.cluster_id) is None
        synced.redo()
        assert synced.get_cluster("marseille", added.cluster_id).name == "Old Port"

    def test_stale_patch_is_ignored(self, session, places):
        added = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        session.undo()
        before = session.plan

        patch = SyncPatch(temp_id=added.cluster_id, server_id="srv-9", cluster_name="Late", is_new_cluster=True)
        assert session.apply_sync_patch(patch) is False
        assert session.plan is before

    def test_patch_is_logged(self, session, places):
        added = session.add_item(places["vieux_port"], 0, Slot.MORNING)
        patch = SyncPatch(temp_id=added.cluster_id, server_id="srv-2", cluster_name="Quai", is_new_cluster=True)
        assert session.apply_sync_patch(patch)

        events = StructuredLogger().read("plan-s", "SYNC_PATCH")
        assert events[-1]["payload"]["old_name"] == "Vieux Port"
        assert events[-1]["payload"]["new_name"] == "Quai"

    def test_save_requires_a_backend(self, session):
        assert session.save().error == "No sync backend configured"

    def test_save_is_queued(self, synced):
        assert synced.save().success
        synced.sync.drain(timeout=5)
        assert synced.backend.requests[-1].kind is SyncKind.SAVE_PLAN
        assert synced.backend.requests[-1].payload["plan_id"] == "plan-sync"


# ── Queries, filters, observers ───────────────────────────────────────────────

class TestFilters:
    @pytest.fixture
    def candidates(self, places):
        return [
            places["vieux_port"],
            make_place("pricey", 43.3100, price_level=4, rating=4.8),
            make_place("cheap", 43.3000, price_level=1, rating=3.9),
            make_place("unknown", 43.2900),
        ]

    def test_scheduled_and_expensive_places_drop_out(self, session, places, candidates):
        session.add_item(places["vieux_port"], 0, Slot.MORNING)
        assert session.set_filters(price_max=2, sort_by="rating").success

        got = session.filter_search_results(candidates)
        assert [p.place_id for p in got] == ["cheap", "unknown"]

    def test_proximity_sort(self, session, candidates):
        session.set_filters(sort_by="proximity")
        got = session.filter_search_results(candidates[1:], near=Coordinate(43.3100, LNG))
        assert [p.place_id for p in got] == ["pricey", "cheap", "unknown"]

    def test_unknown_sort_is_rejected(self, session):
        assert not session.set_filters(sort_by="stars").success
        assert session.plan.filters.sort_by == "proximity"


class TestQueries:
    def test_insertion_preview_and_optimal_add(self, session, places):
        session.add_item(places["vieux_port"], 0, Slot.MORNING)
        session.add_item(places["garde"], 0, Slot.MORNING)
        between = make_place("between", 43.2900)

        assert session.insertion_preview(0, Slot.MORNING, between).index == 1
        added = session.add_item_optimally(between, 0, Slot.MORNING)
        assert added.success
        assert slot_ids(session, 0, Slot.MORNING) == ["vieux_port", "between", "garde"]

    def test_detour_preview(self, marseille, lyon):
        s = PlanningSession.new("plan-trip", [(date(2026, 5, 1), marseille), (date(2026, 5, 2), lyon)])
        assert [w.waypoint_id for w in s.road_trip_route()] == ["marseille", "lyon"]
        detour = s.detour_preview(make_place("avignon", 43.9493, lng=4.8055))
        assert detour.insert_after_index == 0
        assert detour.detour_km >= 0
        s.close()

    def test_total_duration_for_day(self, session, places):
        session.add_item(places["vieux_port"], 0, Slot.MORNING)
        session.add_item(places["garde"], 0, Slot.EVENING)
        assert session.get_total_duration(0) == 150
        assert session.get_total_duration(5) == 0

    def test_observers(self, session, places):
        seen = []
        unsubscribe = session.subscribe(seen.append)
        session.add_item(places["vieux_port"], 0, Slot.MORNING)
        assert seen == [session.plan]

        unsubscribe()
        session.add_item(places["panier"], 0, Slot.MORNING)
        assert len(seen) == 1

    def test_mutations_are_logged_with_hashes(self, session, places):
        before = compute_plan_hash(session.plan)
        session.add_item(places["vieux_port"], 0, Slot.MORNING)

        events = StructuredLogger().read("plan-s", "PLAN_MUTATION")
        assert len(events) == 1
        payload = events[0]["payload"]
        assert payload["command"] == "add_item"
        assert payload["before_hash"] == before
        assert payload["after_hash"] == compute_plan_hash(session.plan)
        assert payload["undo_depth"] == 1
