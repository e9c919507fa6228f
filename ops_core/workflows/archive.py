# ops_core/workflows/archive.py
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from ops_core.exceptions import NotFound
from ops_core.models import (
    CompletedItem,
    CompletedItemHistory,
    HistoryAction,
    Item,
    ItemHistory,
    Location,
)
from ops_core.services.outbox import log_activity, notify

logger = logging.getLogger(__name__)


def complete_item(item: Item, final_stage, user_id: Optional[str] = None, notes: Optional[str] = None) -> CompletedItem:
    """
    Move an item into the completed archive.

    Steps, in one transaction:
      1) upsert CompletedItem keyed by item_id
      2) copy live history into CompletedItemHistory
      3) append the final "completed" row
      4) completion notification for the assignee
      5) occupancy of the held location = max(0, count - 1)
      6) delete the live item and its history

    Every step is guarded so a retry after a partial run converges on the
    same end state instead of duplicating rows.
    """
    now = timezone.now()
    location_id = item.current_location_id

    with transaction.atomic():
        # 1) Archive record
        completed, created = CompletedItem.objects.get_or_create(
            item_id=item.item_id,
            defaults={
                "workflow_id": item.workflow_id,
                "workflow_name": item.workflow.name,
                "final_stage_id": final_stage.stage_id,
                "final_stage_name": final_stage.name,
                "metadata": item.metadata or {},
                "started_at": item.started_at,
                "completed_at": now,
                "assigned_to": item.assigned_to,
                "qr_code": item.qr_code,
                "final_location_id": location_id,
                "completion_notes": notes or "",
                "completed_by": user_id or "",
                "is_defective": item.is_defective,
            },
        )
        if not created:
            logger.warning("Completed record for %s already existed; resuming archive", item.item_id)

        archived = CompletedItemHistory.objects.filter(item_id=item.item_id)

        # 2) Copy history, once
        if not archived.exists():
            CompletedItemHistory.objects.bulk_create(
                [
                    CompletedItemHistory(
                        item_id=item.item_id,
                        stage_id=h.stage_id,
                        stage_name=h.stage_name,
                        action=h.action,
                        timestamp=h.timestamp,
                        user_id=h.user_id,
                        notes=h.notes,
                        metadata=h.metadata,
                    )
                    for h in ItemHistory.objects.filter(item=item).order_by("timestamp", "id")
                ]
            )

        # 3) Final row, once
        final_exists = archived.filter(
            action=HistoryAction.COMPLETED,
            stage_id=final_stage.stage_id,
            metadata__final=True,
        ).exists()
        if not final_exists:
            CompletedItemHistory.objects.create(
                item_id=item.item_id,
                stage_id=final_stage.stage_id,
                stage_name=final_stage.name,
                action=HistoryAction.COMPLETED,
                timestamp=now,
                user_id=user_id or "",
                notes=notes or "",
                metadata={"stageOrder": final_stage.order, "final": True},
            )

        # 4) Notify
        if created and item.assigned_to:
            notify(
                user_id=item.assigned_to,
                notification_type="item_completed",
                title="Item Completed",
                message=f"Item {item.item_id} has completed the workflow",
                item_id=item.item_id,
                workflow_id=item.workflow_id,
                stage_id=final_stage.stage_id,
                sender_id=user_id or "",
                metadata={"finalStageName": final_stage.name},
            )
        if created:
            log_activity(
                action="item_completed",
                entity_type="item",
                entity_id=item.item_id,
                user_id=user_id,
                description=f"Item {item.item_id} completed at stage {final_stage.name}",
                metadata={"workflowId": item.workflow_id, "finalStageId": final_stage.stage_id},
            )

        # 5) Occupancy as if the item had already left
        if location_id:
            remaining = Item.objects.filter(current_location_id=location_id).count() - 1
            Location.objects.filter(pk=location_id).update(
                current_occupancy=max(0, remaining),
                updated_at=now,
            )

        # 6) Drop the live rows
        ItemHistory.objects.filter(item=item).delete()
        Item.objects.filter(pk=item.pk).delete()

    logger.info("Item %s archived at stage %s", item.item_id, final_stage.stage_id)
    return completed


def get_completed_item(item_id: str) -> CompletedItem:
    completed = CompletedItem.objects.select_related("workflow", "final_location").filter(item_id=item_id).first()
    if completed is None:
        raise NotFound("CompletedItem", item_id)
    return completed


def get_completed_item_history(item_id: str):
    return CompletedItemHistory.objects.filter(item_id=item_id).order_by("timestamp", "id")


def list_completed_items(workflow_id: Optional[int] = None):
    qs = CompletedItem.objects.select_related("workflow", "final_location")
    if workflow_id is not None:
        qs = qs.filter(workflow_id=workflow_id)
    return qs.order_by("-completed_at", "-id")
