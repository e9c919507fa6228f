# ops_core/services/items.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from ops_core.exceptions import Conflict, NotFound
from ops_core.models import CompletedItem, HistoryAction, Item, ItemHistory, Notification, Workflow
from ops_core.services.outbox import log_activity, notify
from ops_core.workflows import find_stage, first_stage
from ops_core.workflows.locations import lock_for_placement, place_item

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------

def get_item(pk: int) -> Item:
    item = Item.objects.select_related("workflow", "current_location").filter(pk=pk).first()
    if item is None:
        raise NotFound("Item", pk)
    return item


def get_item_by_item_id(item_id: str) -> Item:
    item = Item.objects.select_related("workflow", "current_location").filter(item_id=item_id).first()
    if item is None:
        raise NotFound("Item", item_id)
    return item


def get_item_history(pk: int):
    get_item(pk)
    return ItemHistory.objects.filter(item_id=pk).order_by("timestamp", "id")


def _lock(pk: int) -> Item:
    item = Item.objects.select_for_update().filter(pk=pk).first()
    if item is None:
        raise NotFound("Item", pk)
    return item


# ---------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------

def create_item(
    *,
    item_id: str,
    workflow_id: int,
    metadata: Optional[Dict[str, Any]] = None,
    assigned_to: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Item:
    """
    Start an item in its workflow's first stage (order 0).
    """
    workflow = Workflow.objects.filter(pk=workflow_id).first()
    if workflow is None:
        raise NotFound("Workflow", workflow_id)
    stage = first_stage(workflow)

    if CompletedItem.objects.filter(item_id=item_id).exists():
        raise Conflict(f"Item {item_id} has already been completed", {"item_id": item_id})

    try:
        with transaction.atomic():
            item = Item.objects.create(
                item_id=item_id,
                workflow=workflow,
                current_stage_id=stage.stage_id,
                status=Item.Status.ACTIVE,
                metadata=metadata or {},
                assigned_to=assigned_to or "",
            )
            ItemHistory.objects.create(
                item=item,
                stage_id=stage.stage_id,
                stage_name=stage.name,
                action=HistoryAction.STARTED,
                timestamp=item.started_at,
                user_id=created_by or "",
                metadata={"stageOrder": stage.order},
            )
            if assigned_to:
                notify(
                    user_id=assigned_to,
                    notification_type="item_assigned",
                    title="New Item Assigned",
                    message=f"Item {item_id} has been assigned to you in workflow {workflow.name}",
                    item_id=item_id,
                    workflow_id=workflow.pk,
                    stage_id=stage.stage_id,
                    sender_id=created_by or "",
                )
            log_activity(
                action="item_created",
                entity_type="item",
                entity_id=item_id,
                user_id=created_by,
                description=f"Item {item_id} started in workflow {workflow.name}",
                metadata={"workflowId": workflow.pk, "stageId": stage.stage_id},
            )
    except IntegrityError:
        raise Conflict(f"Item {item_id} already exists", {"item_id": item_id})

    logger.info("Item %s created in workflow %s", item_id, workflow.pk)
    return item


# ---------------------------------------------------------------------
# Pause / resume
# ---------------------------------------------------------------------

def _set_status(pk: int, status: str, action: str, user_id: Optional[str], notes: Optional[str]) -> Item:
    with transaction.atomic():
        item = _lock(pk)
        stage = find_stage(item.workflow, item.current_stage_id)

        item.status = status
        item.save(update_fields=["status", "updated_at"])

        ItemHistory.objects.create(
            item=item,
            stage_id=stage.stage_id,
            stage_name=stage.name,
            action=action,
            user_id=user_id or "",
            notes=notes or "",
        )
        log_activity(
            action=f"item_{action}",
            entity_type="item",
            entity_id=item.item_id,
            user_id=user_id,
            description=f"Item {item.item_id} {action} at stage {stage.name}",
        )
    return item


def pause_item(pk: int, user_id: Optional[str] = None, notes: Optional[str] = None) -> Item:
    return _set_status(pk, Item.Status.PAUSED, HistoryAction.PAUSED, user_id, notes)


def resume_item(pk: int, user_id: Optional[str] = None, notes: Optional[str] = None) -> Item:
    return _set_status(pk, Item.Status.ACTIVE, HistoryAction.RESUMED, user_id, notes)


# ---------------------------------------------------------------------
# Flags and assignment
# ---------------------------------------------------------------------

def flag_item_as_defective(pk: int, defect_notes: str, flagged_by: str) -> Item:
    """
    Mark an item defective. Reporting only: the item keeps its status and
    can still advance.
    """
    with transaction.atomic():
        item = _lock(pk)
        item.is_defective = True
        item.defect_notes = defect_notes or ""
        item.flagged_by = flagged_by or ""
        item.flagged_at = timezone.now()
        item.save(update_fields=["is_defective", "defect_notes", "flagged_by", "flagged_at", "updated_at"])

        if item.assigned_to:
            notify(
                user_id=item.assigned_to,
                notification_type="item_defective",
                title="Item Flagged as Defective",
                message=f"Item {item.item_id} has been flagged as defective",
                item_id=item.item_id,
                workflow_id=item.workflow_id,
                stage_id=item.current_stage_id,
                sender_id=flagged_by,
                priority=Notification.Priority.HIGH,
                metadata={"defectNotes": defect_notes},
            )
        log_activity(
            action="item_flagged_defective",
            entity_type="item",
            entity_id=item.item_id,
            user_id=flagged_by,
            description=f"Item {item.item_id} flagged as defective",
            metadata={"defectNotes": defect_notes},
        )
    return item


def flag_item(pk: int, flag_notes: str, flagged_by: str) -> Item:
    with transaction.atomic():
        item = _lock(pk)
        item.flag_notes = flag_notes or ""
        item.flagged_by = flagged_by or ""
        item.flagged_at = timezone.now()
        item.save(update_fields=["flag_notes", "flagged_by", "flagged_at", "updated_at"])

        if item.assigned_to:
            notify(
                user_id=item.assigned_to,
                notification_type="item_flagged",
                title="Item Flagged",
                message=f"Item {item.item_id} has been flagged for attention",
                item_id=item.item_id,
                workflow_id=item.workflow_id,
                stage_id=item.current_stage_id,
                sender_id=flagged_by,
                metadata={"flagNotes": flag_notes},
            )
        log_activity(
            action="item_flagged",
            entity_type="item",
            entity_id=item.item_id,
            user_id=flagged_by,
            description=f"Item {item.item_id} flagged",
            metadata={"flagNotes": flag_notes},
        )
    return item


def assign_item(pk: int, assigned_to: str, assigned_by: Optional[str] = None) -> Item:
    with transaction.atomic():
        item = _lock(pk)
        previous = item.assigned_to
        item.assigned_to = assigned_to or ""
        item.save(update_fields=["assigned_to", "updated_at"])

        if assigned_to:
            notify(
                user_id=assigned_to,
                notification_type="item_assigned",
                title="Item Assigned",
                message=f"Item {item.item_id} has been assigned to you",
                item_id=item.item_id,
                workflow_id=item.workflow_id,
                stage_id=item.current_stage_id,
                sender_id=assigned_by or "",
            )
        log_activity(
            action="item_assigned",
            entity_type="item",
            entity_id=item.item_id,
            user_id=assigned_by,
            description=f"Item {item.item_id} assigned to {assigned_to or 'nobody'}",
            metadata={"previousAssignee": previous, "assignedTo": assigned_to},
        )
    return item


def enter_stage(
    pk: int,
    stage_id: str,
    entered_by: str,
    location_id: Optional[int] = None,
    assigned_to: Optional[str] = None,
) -> Item:
    """
    Record a floor scan that puts an item into a stage directly. No
    completion row is written for the stage it leaves.
    """
    with transaction.atomic():
        item = _lock(pk)
        stage = find_stage(item.workflow, stage_id)

        location = None
        if location_id is not None and item.current_location_id != location_id:
            location = lock_for_placement(location_id)

        item.current_stage_id = stage.stage_id
        item.version += 1
        fields = ["current_stage_id", "version", "updated_at"]
        if assigned_to is not None:
            item.assigned_to = assigned_to
            fields.append("assigned_to")
        item.save(update_fields=fields)

        if location is not None:
            place_item(
                item,
                location,
                moved_by=entered_by,
                stage_id=stage.stage_id,
                notes=f"Entered stage {stage.name}",
            )

        if assigned_to:
            notify(
                user_id=assigned_to,
                notification_type="item_assigned",
                title="New Item Assigned",
                message=f"Item {item.item_id} has been assigned to you at stage: {stage.name}",
                item_id=item.item_id,
                workflow_id=item.workflow_id,
                stage_id=stage.stage_id,
                sender_id=entered_by or "",
                metadata={"stageName": stage.name, "locationId": location_id},
            )

        ItemHistory.objects.create(
            item=item,
            stage_id=stage.stage_id,
            stage_name=stage.name,
            action=HistoryAction.STAGE_ENTERED,
            user_id=entered_by or "",
            metadata={"stageOrder": stage.order, "locationId": location_id},
        )
        log_activity(
            action="item_entered_stage",
            entity_type="item",
            entity_id=item.item_id,
            user_id=entered_by,
            description=f"Item {item.item_id} entered stage {stage.name}",
            metadata={"stageId": stage.stage_id, "locationId": location_id},
        )
    return item
