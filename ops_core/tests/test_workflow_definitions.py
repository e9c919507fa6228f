# ops_core/tests/test_workflow_definitions.py

import pytest

from ops_core.exceptions import Conflict, NotFound, ValidationError
from ops_core.models import ActivityLog, CompletedItem, Stage, StageAction, Workflow
from ops_core.services.outbox import dispatch_pending_events
from ops_core.services.workflow_definitions import (
    create_workflow,
    delete_workflow,
    get_workflow,
    toggle_workflow_active,
    update_workflow,
    workflow_usage,
)
from ops_core.tests.stage_data import plain_stages
from ops_core.workflows import (
    find_stage,
    first_stage,
    is_terminal,
    next_stage,
    ordered_stages,
    validate_stage_ordering,
    workflow_definition,
)
from ops_core.workflows.transition_service import advance_stage


# ===============================================================
# Creation
# ===============================================================

@pytest.mark.django_db
@pytest.mark.parametrize("count", [1, 2, 3, 7, 12])
def test_stage_orders_are_dense_from_zero(count):
    workflow = create_workflow(name="Line", stages=plain_stages(count))

    orders = list(workflow.stages.order_by("order").values_list("order", flat=True))
    assert orders == list(range(count))


@pytest.mark.django_db
def test_stage_ids_are_generated_when_missing_and_kept_when_given():
    workflow = create_workflow(
        name="Line",
        stages=[{"name": "Cut"}, {"id": "sew", "name": "Sew"}],
    )

    cut, sew = ordered_stages(workflow)
    assert cut.stage_id.startswith("stage-0-")
    assert sew.stage_id == "sew"


@pytest.mark.django_db
def test_actions_are_stored_with_their_config(cut_sew_pack):
    action = StageAction.objects.get(stage__workflow=cut_sew_pack, action_id="measure-seam")

    assert action.action_type == "measurement"
    assert action.required is True
    assert action.config == {"measurementUnit": "mm", "minValue": 10, "maxValue": 20}


@pytest.mark.django_db
def test_duplicate_stage_ids_are_rejected():
    with pytest.raises(ValidationError):
        create_workflow(name="Line", stages=[{"id": "a", "name": "A"}, {"id": "a", "name": "B"}])

    assert Workflow.objects.count() == 0


@pytest.mark.django_db
def test_duplicate_action_ids_are_rejected():
    stages = [
        {
            "name": "Cut",
            "actions": [
                {"id": "x", "type": "note", "label": "One"},
                {"id": "x", "type": "photo", "label": "Two"},
            ],
        }
    ]
    with pytest.raises(ValidationError):
        create_workflow(name="Line", stages=stages)


@pytest.mark.django_db
def test_workflow_needs_at_least_one_stage():
    with pytest.raises(ValidationError):
        create_workflow(name="Empty", stages=[])


@pytest.mark.django_db
def test_invalid_action_config_is_rejected_at_definition_time():
    stages = [
        {
            "name": "Sew",
            "actions": [
                {"type": "measurement", "label": "Seam", "config": {"minValue": 5, "maxValue": 1}},
            ],
        }
    ]
    with pytest.raises(ValidationError):
        create_workflow(name="Line", stages=stages)


@pytest.mark.django_db
def test_unknown_assigned_location_is_not_found():
    with pytest.raises(NotFound):
        create_workflow(name="Line", stages=[{"name": "Cut", "assigned_location_ids": [987654]}])

    assert Workflow.objects.count() == 0


@pytest.mark.django_db
def test_entry_stage_must_belong_to_the_workflow():
    with pytest.raises(ValidationError):
        create_workflow(name="Line", stages=plain_stages(2), entry_stage_id="nowhere")


def test_validate_stage_ordering_rejects_gaps_and_duplicates():
    validate_stage_ordering([2, 0, 1])

    with pytest.raises(ValidationError):
        validate_stage_ordering([0, 2])
    with pytest.raises(ValidationError):
        validate_stage_ordering([0, 1, 1])


# ===============================================================
# Stage graph
# ===============================================================

@pytest.mark.django_db
def test_stage_graph_accessors(cut_sew_pack):
    cut = first_stage(cut_sew_pack)
    sew = next_stage(cut_sew_pack, cut)
    pack = next_stage(cut_sew_pack, sew)

    assert [cut.stage_id, sew.stage_id, pack.stage_id] == ["cut", "sew", "pack"]
    assert next_stage(cut_sew_pack, pack) is None
    assert is_terminal(cut_sew_pack, pack)
    assert not is_terminal(cut_sew_pack, cut)
    assert find_stage(cut_sew_pack, "sew") == sew

    with pytest.raises(NotFound):
        find_stage(cut_sew_pack, "iron")


@pytest.mark.django_db
def test_first_stage_missing_is_not_found():
    workflow = Workflow.objects.create(name="Bare")

    with pytest.raises(NotFound):
        first_stage(workflow)


@pytest.mark.django_db
def test_duplicate_order_tie_break_picks_first_inserted_stage():
    workflow = create_workflow(name="Line", stages=[{"id": "a", "name": "A"}, {"id": "b", "name": "B"}])
    # Only reachable by writing around the definition service
    Stage.objects.create(workflow=workflow, stage_id="b-late", name="B late", order=1)

    assert next_stage(workflow, find_stage(workflow, "a")).stage_id == "b"


@pytest.mark.django_db
def test_workflow_definition_snapshot(cut_sew_pack):
    snapshot = workflow_definition(cut_sew_pack)

    assert snapshot["entry_stage_id"] == "cut"
    assert snapshot["terminal_stage_id"] == "pack"
    assert [s["id"] for s in snapshot["stages"]] == ["cut", "sew", "pack"]
    assert snapshot["stages"][0]["actions"][0]["config"]["expectedValue"] == "FAB-001"


# ===============================================================
# Update / delete / toggle / usage
# ===============================================================

@pytest.mark.django_db
def test_update_replaces_stage_list_and_rederives_order(workflow_factory):
    workflow = workflow_factory(stages=[{"id": "a", "name": "A"}, {"id": "b", "name": "B"}])

    update_workflow(
        workflow.pk,
        name="Renamed",
        stages=[{"id": "b", "name": "B"}, {"id": "a", "name": "A"}, {"id": "c", "name": "C"}],
    )

    workflow.refresh_from_db()
    assert workflow.name == "Renamed"
    assert [(s.stage_id, s.order) for s in ordered_stages(workflow)] == [("b", 0), ("a", 1), ("c", 2)]


@pytest.mark.django_db
def test_update_refuses_to_strand_live_items(cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    with pytest.raises(Conflict) as exc:
        update_workflow(cut_sew_pack.pk, stages=[{"id": "sew", "name": "Sew"}])

    assert exc.value.details["item_ids"] == [item.item_id]
    assert find_stage(cut_sew_pack, "cut")


@pytest.mark.django_db
def test_update_missing_workflow_is_not_found():
    with pytest.raises(NotFound):
        update_workflow(424242, name="Nope")


@pytest.mark.django_db
def test_delete_in_use_workflow_is_conflict(cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    with pytest.raises(Conflict) as exc:
        delete_workflow(cut_sew_pack.pk)

    assert exc.value.details["item_ids"] == [item.item_id]
    assert Workflow.objects.filter(pk=cut_sew_pack.pk).exists()


@pytest.mark.django_db
def test_delete_unused_workflow_removes_it_and_keeps_archive_names(workflow_factory, item_factory):
    workflow = workflow_factory(name="Scarves", stages=plain_stages(1))
    item = item_factory(workflow=workflow)
    advance_stage(item.pk, user_id="operator")

    delete_workflow(workflow.pk)

    assert not Workflow.objects.filter(pk=workflow.pk).exists()
    assert not Stage.objects.filter(workflow_id=workflow.pk).exists()
    completed = CompletedItem.objects.get(item_id=item.item_id)
    assert completed.workflow is None
    assert completed.workflow_name == "Scarves"


@pytest.mark.django_db
def test_delete_missing_workflow_is_not_found():
    with pytest.raises(NotFound):
        delete_workflow(424242)


@pytest.mark.django_db
def test_toggle_workflow_active(cut_sew_pack):
    assert toggle_workflow_active(cut_sew_pack.pk).is_active is False
    assert toggle_workflow_active(cut_sew_pack.pk).is_active is True


@pytest.mark.django_db
def test_workflow_usage_counts(workflow_factory, item_factory):
    workflow = workflow_factory(stages=plain_stages(1))
    done = item_factory(workflow=workflow)
    item_factory(workflow=workflow)
    advance_stage(done.pk)

    usage = workflow_usage(workflow.pk)

    assert usage == {
        "workflow_id": workflow.pk,
        "active_items": 1,
        "completed_items": 1,
        "can_delete": False,
    }


@pytest.mark.django_db
def test_get_workflow_not_found():
    with pytest.raises(NotFound):
        get_workflow(424242)


@pytest.mark.django_db
def test_workflow_crud_is_audited(workflow_factory):
    workflow = workflow_factory(stages=plain_stages(1))
    delete_workflow(workflow.pk)
    dispatch_pending_events()

    actions = set(
        ActivityLog.objects.filter(entity_type="workflow", entity_id=str(workflow.pk)).values_list("action", flat=True)
    )
    assert {"workflow_created", "workflow_deleted"} <= actions
