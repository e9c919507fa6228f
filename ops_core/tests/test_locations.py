# ops_core/tests/test_locations.py

import pytest

from ops_core.exceptions import Conflict, NotFound
from ops_core.models import ActivityLog, CompletedItem, Item, ItemHistory, Location, LocationHistory
from ops_core.services.outbox import dispatch_pending_events
from ops_core.workflows.locations import (
    auto_assign_to_stage_location,
    candidate_locations,
    get_available_locations_for_stage,
    get_item_location_history,
    get_locations_by_stage,
    move_to_location,
    recount_occupancy,
)
from ops_core.workflows.transition_service import advance_stage


def _line(*sew_location_ids):
    return [
        {"id": "cut", "name": "Cut"},
        {"id": "sew", "name": "Sew", "assigned_location_ids": list(sew_location_ids)},
        {"id": "pack", "name": "Pack"},
    ]


def _occupy(location, item):
    Item.objects.filter(pk=item.pk).update(current_location=location)
    recount_occupancy(location)


# ===============================================================
# Auto-assignment on advance
# ===============================================================

@pytest.mark.django_db
def test_advance_places_item_in_assigned_location(workflow_factory, item_factory, location_factory):
    bench = location_factory(name="Sew bench", capacity=3)
    workflow = workflow_factory(stages=_line(bench.pk))
    item = item_factory(workflow=workflow)

    result = advance_stage(item.pk, user_id="operator")

    assert result.location == bench
    item.refresh_from_db()
    assert item.current_location_id == bench.pk
    bench.refresh_from_db()
    assert bench.current_occupancy == 1

    move = LocationHistory.objects.get(item_id=item.item_id)
    assert move.from_location is None
    assert move.to_location == bench
    assert move.stage_id == "sew"
    assert move.metadata == {"autoAssigned": True}

    dispatch_pending_events()
    assert ActivityLog.objects.filter(action="item_auto_assigned_location", entity_id=item.item_id).exists()


@pytest.mark.django_db
def test_full_location_leaves_item_unplaced_without_error(workflow_factory, item_factory, location_factory):
    l1 = location_factory(name="L1", capacity=1)
    workflow = workflow_factory(stages=_line(l1.pk))
    occupant = item_factory(workflow=workflow)
    _occupy(l1, occupant)
    item = item_factory(workflow=workflow)

    result = advance_stage(item.pk)

    assert result.status == "advanced"
    assert result.location is None
    item.refresh_from_db()
    assert item.current_stage_id == "sew"
    assert item.current_location is None
    l1.refresh_from_db()
    assert l1.current_occupancy == 1


@pytest.mark.django_db
def test_stale_occupancy_does_not_overfill(workflow_factory, item_factory, location_factory):
    l1 = location_factory(name="L1", capacity=1)
    workflow = workflow_factory(stages=_line(l1.pk))
    occupant = item_factory(workflow=workflow)
    Item.objects.filter(pk=occupant.pk).update(current_location=l1)
    # Stored counter lags behind the real occupant
    Location.objects.filter(pk=l1.pk).update(current_occupancy=0)
    item = item_factory(workflow=workflow)

    advance_stage(item.pk)

    item.refresh_from_db()
    assert item.current_location is None
    assert Item.objects.filter(current_location=l1).count() == 1


@pytest.mark.django_db
def test_first_free_assigned_location_wins(workflow_factory, item_factory, location_factory):
    full = location_factory(name="A", capacity=1)
    inactive = location_factory(name="B", is_active=False)
    free = location_factory(name="C", capacity=2)
    workflow = workflow_factory(stages=_line(full.pk, inactive.pk, free.pk))
    _occupy(full, item_factory(workflow=workflow))
    item = item_factory(workflow=workflow)

    sew = workflow.stages.get(stage_id="sew")
    assert candidate_locations(sew) == [free]

    assert advance_stage(item.pk).location == free


@pytest.mark.django_db
def test_fallback_to_locations_naming_the_stage(workflow_factory, item_factory, location_factory):
    rack = location_factory(name="Sew rack", assigned_stage_id="sew")
    workflow = workflow_factory(stages=_line())
    item = item_factory(workflow=workflow)

    assert advance_stage(item.pk).location == rack


@pytest.mark.django_db
def test_fallback_is_not_used_when_stage_has_its_own_locations(workflow_factory, item_factory, location_factory):
    l1 = location_factory(name="L1", capacity=1)
    location_factory(name="Spare", assigned_stage_id="sew")
    workflow = workflow_factory(stages=_line(l1.pk))
    _occupy(l1, item_factory(workflow=workflow))
    item = item_factory(workflow=workflow)

    assert advance_stage(item.pk).location is None


@pytest.mark.django_db
def test_stage_without_any_location_is_fine(cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    result = advance_stage(item.pk)

    assert result.location is None
    assert LocationHistory.objects.count() == 0


# ===============================================================
# Explicit moves
# ===============================================================

@pytest.mark.django_db
def test_move_recounts_both_locations_and_records_history(cut_sew_pack, item_factory, location_factory):
    a = location_factory(name="A")
    b = location_factory(name="B", capacity=5)
    item = item_factory(workflow=cut_sew_pack)

    move_to_location(item.pk, a.pk, "operator")
    move_to_location(item.pk, b.pk, "operator", notes="to pressing")

    a.refresh_from_db()
    b.refresh_from_db()
    assert (a.current_occupancy, b.current_occupancy) == (0, 1)

    latest = get_item_location_history(item.item_id).first()
    assert latest.from_location == a
    assert latest.to_location == b
    assert latest.notes == "to pressing"

    changed = ItemHistory.objects.filter(item=item, action="location_changed").order_by("id").last()
    assert changed.metadata == {"fromLocationId": a.pk, "toLocationId": b.pk}


@pytest.mark.django_db
def test_move_into_full_location_is_conflict(cut_sew_pack, item_factory, location_factory):
    l1 = location_factory(name="L1", capacity=1)
    _occupy(l1, item_factory(workflow=cut_sew_pack))
    item = item_factory(workflow=cut_sew_pack)

    with pytest.raises(Conflict) as exc:
        move_to_location(item.pk, l1.pk, "operator")

    assert str(exc.value) == "Location L1 is at capacity"
    item.refresh_from_db()
    assert item.current_location is None


@pytest.mark.django_db
def test_move_into_inactive_location_is_conflict(cut_sew_pack, item_factory, location_factory):
    closed = location_factory(name="Closed", is_active=False)
    item = item_factory(workflow=cut_sew_pack)

    with pytest.raises(Conflict):
        move_to_location(item.pk, closed.pk, "operator")


@pytest.mark.django_db
def test_move_to_current_location_is_a_no_op(cut_sew_pack, item_factory, location_factory):
    a = location_factory(name="A", capacity=1)
    item = item_factory(workflow=cut_sew_pack)
    move_to_location(item.pk, a.pk, "operator")

    move_to_location(item.pk, a.pk, "operator")

    assert LocationHistory.objects.filter(item_id=item.item_id).count() == 1


@pytest.mark.django_db
def test_move_unknown_item_or_location_is_not_found(cut_sew_pack, item_factory, location_factory):
    item = item_factory(workflow=cut_sew_pack)
    a = location_factory(name="A")

    with pytest.raises(NotFound):
        move_to_location(424242, a.pk, "operator")
    with pytest.raises(NotFound):
        move_to_location(item.pk, 424242, "operator")


@pytest.mark.django_db
def test_explicit_auto_assign_fails_loudly_when_nothing_is_free(cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    with pytest.raises(NotFound):
        auto_assign_to_stage_location(item.pk, "cut", "operator")


@pytest.mark.django_db
def test_explicit_auto_assign_places_item(workflow_factory, item_factory, location_factory):
    rack = location_factory(name="Cut rack", assigned_stage_id="cut")
    workflow = workflow_factory(stages=_line())
    item = item_factory(workflow=workflow)

    assert auto_assign_to_stage_location(item.pk, "cut", "operator") == rack
    item.refresh_from_db()
    assert item.current_location == rack


# ===============================================================
# Queries and occupancy
# ===============================================================

@pytest.mark.django_db
def test_locations_by_stage_union_and_availability(workflow_factory, item_factory, location_factory):
    listed = location_factory(name="Listed", capacity=1)
    named = location_factory(name="Named", assigned_stage_id="sew")
    off = location_factory(name="Off", assigned_stage_id="sew", is_active=False)
    location_factory(name="Elsewhere", assigned_stage_id="cut")
    workflow = workflow_factory(stages=_line(listed.pk, named.pk))
    _occupy(listed, item_factory(workflow=workflow))

    assert get_locations_by_stage("sew") == [listed, named, off]
    assert get_available_locations_for_stage("sew") == [named]


@pytest.mark.django_db
def test_recount_overwrites_drifted_counter(cut_sew_pack, item_factory, location_factory):
    a = location_factory(name="A")
    _occupy(a, item_factory(workflow=cut_sew_pack))
    Location.objects.filter(pk=a.pk).update(current_occupancy=7)

    assert recount_occupancy(a) == 1
    a.refresh_from_db()
    assert a.current_occupancy == 1


@pytest.mark.django_db
def test_completion_releases_the_location(workflow_factory, item_factory, location_factory):
    dock = location_factory(name="Dock", capacity=5)
    workflow = workflow_factory(
        stages=[{"id": "sew", "name": "Sew"}, {"id": "pack", "name": "Pack", "assigned_location_ids": [dock.pk]}]
    )
    staying = item_factory(workflow=workflow)
    leaving = item_factory(workflow=workflow)
    advance_stage(staying.pk)
    advance_stage(leaving.pk)
    dock.refresh_from_db()
    assert dock.current_occupancy == 2

    advance_stage(leaving.pk)

    dock.refresh_from_db()
    assert dock.current_occupancy == 1
    assert CompletedItem.objects.get(item_id=leaving.item_id).final_location == dock
