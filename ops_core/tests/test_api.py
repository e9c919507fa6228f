# ops_core/tests/test_api.py

import pytest

from ops_core.models import Item, Location, Notification, Workflow
from ops_core.services.outbox import dispatch_pending_events
from ops_core.tests.stage_data import CUT_SEW_PACK


# ===============================================================
# Access
# ===============================================================

@pytest.mark.django_db
def test_health_is_public(api_client):
    res = api_client.get("/ops/health/")

    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


@pytest.mark.django_db
def test_endpoints_require_authentication(api_client):
    res = api_client.get("/ops/items/")

    assert res.status_code in (401, 403)


# ===============================================================
# Workflows
# ===============================================================

@pytest.mark.django_db
def test_create_workflow(operator_client):
    res = operator_client.post("/ops/workflows/", {"name": "Shirts", "stages": CUT_SEW_PACK}, format="json")

    assert res.status_code == 201, res.content
    body = res.json()
    assert body["created_by"] == "operator"
    assert [(s["id"], s["order"]) for s in body["stages"]] == [("cut", 0), ("sew", 1), ("pack", 2)]
    assert body["stages"][0]["actions"][0]["type"] == "scan"


@pytest.mark.django_db
def test_create_workflow_with_duplicate_stage_ids_is_400(operator_client):
    stages = [{"id": "a", "name": "A"}, {"id": "a", "name": "B"}]

    res = operator_client.post("/ops/workflows/", {"name": "Bad", "stages": stages}, format="json")

    assert res.status_code == 400
    assert res.json()["violations"][0]["code"] == "duplicate_stage_id"


@pytest.mark.django_db
def test_patch_workflow_name_keeps_stages(operator_client, cut_sew_pack):
    res = operator_client.patch(f"/ops/workflows/{cut_sew_pack.pk}/", {"name": "Polos"}, format="json")

    assert res.status_code == 200, res.content
    assert res.json()["name"] == "Polos"
    assert len(res.json()["stages"]) == 3


@pytest.mark.django_db
def test_delete_in_use_workflow_is_409(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    res = operator_client.delete(f"/ops/workflows/{cut_sew_pack.pk}/")

    assert res.status_code == 409
    assert res.json()["item_ids"] == [item.item_id]
    assert Workflow.objects.filter(pk=cut_sew_pack.pk).exists()


@pytest.mark.django_db
def test_delete_unused_workflow_is_204(operator_client, cut_sew_pack):
    res = operator_client.delete(f"/ops/workflows/{cut_sew_pack.pk}/")

    assert res.status_code == 204
    assert not Workflow.objects.filter(pk=cut_sew_pack.pk).exists()


@pytest.mark.django_db
def test_workflow_usage_toggle_and_definition(operator_client, cut_sew_pack):
    usage = operator_client.get(f"/ops/workflows/{cut_sew_pack.pk}/usage/")
    toggled = operator_client.post(f"/ops/workflows/{cut_sew_pack.pk}/toggle-active/")
    definition = operator_client.get(f"/ops/workflows/{cut_sew_pack.pk}/definition/")

    assert usage.json()["can_delete"] is True
    assert toggled.json()["is_active"] is False
    assert definition.json()["terminal_stage_id"] == "pack"


@pytest.mark.django_db
def test_missing_workflow_is_404_with_resource(operator_client):
    res = operator_client.get("/ops/workflows/424242/usage/")

    assert res.status_code == 404
    assert res.json()["resource"] == "Workflow"


# ===============================================================
# Items
# ===============================================================

@pytest.mark.django_db
def test_create_and_list_items(operator_client, cut_sew_pack):
    res = operator_client.post(
        "/ops/items/",
        {"item_id": "SHIRT-001", "workflow": cut_sew_pack.pk, "assigned_to": "operator"},
        format="json",
    )

    assert res.status_code == 201, res.content
    assert res.json()["current_stage_id"] == "cut"
    assert res.json()["workflow_name"] == "Shirts"

    listing = operator_client.get("/ops/items/", {"stage": "cut"})
    assert [row["item_id"] for row in listing.json()["results"]] == ["SHIRT-001"]


@pytest.mark.django_db
def test_create_duplicate_item_is_409(operator_client, cut_sew_pack, item_factory):
    item_factory(workflow=cut_sew_pack, item_id="SHIRT-001")

    res = operator_client.post("/ops/items/", {"item_id": "SHIRT-001", "workflow": cut_sew_pack.pk}, format="json")

    assert res.status_code == 409


@pytest.mark.django_db
def test_item_lifecycle_actions(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)
    base = f"/ops/items/{item.pk}"

    assert operator_client.post(f"{base}/pause/", {"notes": "break"}, format="json").json()["status"] == "paused"
    assert operator_client.post(f"{base}/resume/", {}, format="json").json()["status"] == "active"
    flagged = operator_client.post(f"{base}/flag-defective/", {"defect_notes": "hole"}, format="json").json()
    assert flagged["is_defective"] is True
    assert flagged["flagged_by"] == "operator"
    assigned = operator_client.post(f"{base}/assign/", {"assigned_to": "supervisor"}, format="json").json()
    assert assigned["assigned_to"] == "supervisor"

    history = operator_client.get(f"{base}/history/").json()
    assert [row["action"] for row in history] == ["started", "paused", "resumed"]


@pytest.mark.django_db
def test_advance_missing_item_is_404(operator_client):
    res = operator_client.post("/ops/items/424242/advance/", {"expected_version": 0}, format="json")

    assert res.status_code == 404
    assert res.json()["resource"] == "Item"


@pytest.mark.django_db
def test_advance_validated_reports_every_violation(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)
    operator_client.post(f"/ops/items/{item.pk}/advance/", {"expected_version": 0}, format="json")

    res = operator_client.post(
        f"/ops/items/{item.pk}/advance-validated/",
        {"completed_actions": [{"id": "measure-seam", "data": {"value": 3}}], "expected_version": 1},
        format="json",
    )

    assert res.status_code == 400
    body = res.json()
    assert body["violations"][0]["message"] == "Measurement too low. Minimum: 10"
    assert Item.objects.get(pk=item.pk).current_stage_id == "sew"


@pytest.mark.django_db
def test_advance_requires_expected_version(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    res = operator_client.post(f"/ops/items/{item.pk}/advance/", {}, format="json")

    assert res.status_code == 400
    assert "expected_version" in res.json()
    assert Item.objects.get(pk=item.pk).current_stage_id == "cut"


@pytest.mark.django_db
def test_stale_version_is_409(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)
    url = f"/ops/items/{item.pk}/advance/"

    assert operator_client.post(url, {"expected_version": 0}, format="json").status_code == 200
    res = operator_client.post(url, {"expected_version": 0}, format="json")

    assert res.status_code == 409
    assert res.json()["current_version"] == 1


@pytest.mark.django_db
def test_full_validated_run_ends_in_archive(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack, item_id="SHIRT-777")
    url = f"/ops/items/{item.pk}/advance-validated/"
    steps = [
        [{"id": "scan-fabric", "data": {"scannedValue": "FAB-001"}}],
        [{"id": "measure-seam", "data": {"value": 12}}],
        [{"id": "final-approval", "data": {"approved": True}}],
    ]

    bodies = [
        operator_client.post(url, {"completed_actions": s, "expected_version": v}, format="json").json()
        for v, s in enumerate(steps)
    ]

    assert [b["status"] for b in bodies] == ["advanced", "advanced", "completed"]
    assert bodies[0]["next_stage"]["id"] == "sew"
    assert bodies[-1]["completed_item"]["final_stage_id"] == "pack"

    archived = operator_client.get("/ops/completed-items/SHIRT-777/")
    assert archived.status_code == 200
    assert archived.json()["completed_by"] == "operator"
    history = operator_client.get("/ops/completed-items/SHIRT-777/history/").json()
    assert len(history) == 6

    assert operator_client.get(f"/ops/items/{item.pk}/").status_code == 404


@pytest.mark.django_db
def test_advance_to_stage(operator_client, cut_sew_pack, item_factory):
    item = item_factory(workflow=cut_sew_pack)

    res = operator_client.post(
        f"/ops/items/{item.pk}/advance-to/", {"to_stage_id": "pack", "expected_version": 0}, format="json"
    )

    assert res.status_code == 200
    assert res.json()["status"] == "completed"


@pytest.mark.django_db
def test_unknown_completed_item_is_404(operator_client):
    res = operator_client.get("/ops/completed-items/NOPE-1/")

    assert res.status_code == 404


# ===============================================================
# Locations
# ===============================================================

@pytest.mark.django_db
def test_create_location_sets_creator_and_rejects_occupancy(operator_client):
    ok = operator_client.post("/ops/locations/", {"name": "Bin A", "capacity": 2}, format="json")
    bad = operator_client.post("/ops/locations/", {"name": "Bin B", "current_occupancy": 5}, format="json")

    assert ok.status_code == 201, ok.content
    assert ok.json()["created_by"] == "operator"
    assert ok.json()["current_occupancy"] == 0
    assert bad.status_code == 400
    assert not Location.objects.filter(name="Bin B").exists()


@pytest.mark.django_db
def test_move_into_full_location_is_409(operator_client, cut_sew_pack, item_factory, location_factory):
    l1 = location_factory(name="L1", capacity=1)
    first = item_factory(workflow=cut_sew_pack)
    second = item_factory(workflow=cut_sew_pack)

    assert operator_client.post(f"/ops/items/{first.pk}/move/", {"location_id": l1.pk}, format="json").status_code == 200
    res = operator_client.post(f"/ops/items/{second.pk}/move/", {"location_id": l1.pk}, format="json")

    assert res.status_code == 409
    assert res.json()["capacity"] == 1


@pytest.mark.django_db
def test_locations_by_stage(operator_client, location_factory):
    location_factory(name="Cut table", assigned_stage_id="cut")
    location_factory(name="Cut overflow", assigned_stage_id="cut", is_active=False)

    every = operator_client.get("/ops/locations/by-stage/cut/").json()
    available = operator_client.get("/ops/locations/by-stage/cut/", {"available": "true"}).json()

    assert [row["name"] for row in every] == ["Cut table", "Cut overflow"]
    assert [row["name"] for row in available] == ["Cut table"]


# ===============================================================
# Notifications
# ===============================================================

@pytest.mark.django_db
def test_notifications_are_scoped_to_the_caller(operator_client, cut_sew_pack, item_factory):
    item_factory(workflow=cut_sew_pack, assigned_to="operator")
    item_factory(workflow=cut_sew_pack, assigned_to="supervisor")
    dispatch_pending_events()

    listing = operator_client.get("/ops/notifications/").json()["results"]
    assert [row["user_id"] for row in listing] == ["operator"]
    assert operator_client.get("/ops/notifications/unread-count/").json() == {"count": 1}

    note_id = listing[0]["id"]
    assert operator_client.post(f"/ops/notifications/{note_id}/read/").json()["is_read"] is True
    assert operator_client.get("/ops/notifications/unread-count/").json() == {"count": 0}

    other = Notification.objects.get(user_id="supervisor")
    assert operator_client.post(f"/ops/notifications/{other.pk}/read/").status_code == 404
