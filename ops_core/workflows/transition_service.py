# ops_core/workflows/transition_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from ops_core.exceptions import Conflict, NotFound
from ops_core.models import CompletedItem, HistoryAction, Item, ItemHistory, Location, Stage
from ops_core.services.outbox import log_activity, notify
from ops_core.workflows import find_stage, next_stage
from ops_core.workflows.archive import complete_item
from ops_core.workflows.locations import auto_assign_for_stage
from ops_core.workflows.runtime import enforce_stage_actions

logger = logging.getLogger(__name__)


@dataclass
class AdvanceResult:
    status: str  # "advanced" | "completed"
    item_id: str
    from_stage: Stage
    next_stage: Optional[Stage] = None
    item: Optional[Item] = None
    completed_item: Optional[CompletedItem] = None
    location: Optional[Location] = None
    history: List[ItemHistory] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status,
            "item_id": self.item_id,
            "from_stage_id": self.from_stage.stage_id,
        }
        if self.next_stage is not None:
            out["next_stage"] = {
                "id": self.next_stage.stage_id,
                "name": self.next_stage.name,
                "order": self.next_stage.order,
            }
        if self.item is not None:
            out["version"] = self.item.version
        if self.location is not None:
            out["location_id"] = self.location.pk
        return out


# ===============================================================
# Loading
# ===============================================================

def _lock_item(pk: int, expected_version: Optional[int]) -> Item:
    item = (
        Item.objects.select_for_update()
        .filter(pk=pk)
        .first()
    )
    if item is None:
        raise NotFound("Item", pk)

    if expected_version is not None and item.version != int(expected_version):
        raise Conflict(
            f"Item {item.item_id} changed since version {expected_version}",
            {"current_version": item.version, "expected_version": int(expected_version)},
        )
    return item


def _current_stage(item: Item) -> Stage:
    workflow = item.workflow
    if workflow is None:
        raise NotFound("Workflow", item.workflow_id)
    return find_stage(workflow, item.current_stage_id)


# ===============================================================
# Shared move logic
# ===============================================================

def _move(
    item: Item,
    current: Stage,
    target: Stage,
    *,
    user_id: Optional[str],
    notes: Optional[str],
    completed_meta: Dict[str, Any],
) -> AdvanceResult:
    now = timezone.now()
    item.current_stage_id = target.stage_id
    item.version += 1
    item.save(update_fields=["current_stage_id", "version", "updated_at"])

    rows = [
        ItemHistory.objects.create(
            item=item,
            stage_id=current.stage_id,
            stage_name=current.name,
            action=HistoryAction.COMPLETED,
            timestamp=now,
            user_id=user_id or "",
            notes=notes or "",
            metadata={"stageOrder": current.order, **completed_meta},
        ),
        ItemHistory.objects.create(
            item=item,
            stage_id=target.stage_id,
            stage_name=target.name,
            action=HistoryAction.STARTED,
            timestamp=now,
            user_id=user_id or "",
            metadata={"stageOrder": target.order},
        ),
    ]

    location = auto_assign_for_stage(item, target, user_id)

    if item.assigned_to:
        notify(
            user_id=item.assigned_to,
            notification_type="stage_completed",
            title="Stage Completed",
            message=f"Item {item.item_id} completed stage {current.name} and moved to {target.name}",
            item_id=item.item_id,
            workflow_id=item.workflow_id,
            stage_id=current.stage_id,
            sender_id=user_id or "",
            metadata={"nextStageId": target.stage_id},
        )
    log_activity(
        action="item_advanced",
        entity_type="item",
        entity_id=item.item_id,
        user_id=user_id,
        description=f"Item {item.item_id} moved from {current.name} to {target.name}",
        metadata={"fromStageId": current.stage_id, "toStageId": target.stage_id},
    )

    logger.info(
        "Item %s advanced %s -> %s (v%s)",
        item.item_id,
        current.stage_id,
        target.stage_id,
        item.version,
    )
    return AdvanceResult(
        status="advanced",
        item_id=item.item_id,
        from_stage=current,
        next_stage=target,
        item=item,
        location=location,
        history=rows,
    )


def _finish(item: Item, current: Stage, final: Stage, *, user_id, notes) -> AdvanceResult:
    completed = complete_item(item, final, user_id=user_id, notes=notes)
    return AdvanceResult(
        status="completed",
        item_id=completed.item_id,
        from_stage=current,
        completed_item=completed,
    )


# ===============================================================
# Entry points
# ===============================================================

def advance_stage(
    pk: int,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    action_data: Any = None,
    expected_version: Optional[int] = None,
) -> AdvanceResult:
    """
    Unchecked advance to order + 1. Required actions are not enforced;
    action_data is stored on the "completed" history row as-is.
    """
    with transaction.atomic():
        item = _lock_item(pk, expected_version)
        current = _current_stage(item)
        successor = next_stage(item.workflow, current)

        if successor is None:
            return _finish(item, current, current, user_id=user_id, notes=notes)

        meta = {"actionData": action_data} if action_data is not None else {}
        return _move(item, current, successor, user_id=user_id, notes=notes, completed_meta=meta)


def advance_item_with_validation(
    pk: int,
    user_id: Optional[str],
    completed_actions: List[Dict[str, Any]],
    notes: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> AdvanceResult:
    """
    Checked advance. Every required action of the current stage must be
    among completed_actions and every submitted action must pass its type
    check. On failure nothing is written and the ValidationError lists
    all violations.
    """
    completed_actions = list(completed_actions or [])

    with transaction.atomic():
        item = _lock_item(pk, expected_version)
        current = _current_stage(item)

        enforce_stage_actions(current, completed_actions)

        successor = next_stage(item.workflow, current)
        if successor is None:
            return _finish(item, current, current, user_id=user_id, notes=notes)

        return _move(
            item,
            current,
            successor,
            user_id=user_id,
            notes=notes,
            completed_meta={"completedActions": completed_actions},
        )


def advance_to_stage(
    pk: int,
    to_stage_id: str,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    action_data: Any = None,
    expected_version: Optional[int] = None,
) -> AdvanceResult:
    """
    Manual jump to any stage of the item's workflow. A target without a
    successor completes the item with the target as its final stage.
    """
    with transaction.atomic():
        item = _lock_item(pk, expected_version)
        current = _current_stage(item)
        target = find_stage(item.workflow, to_stage_id)

        if next_stage(item.workflow, target) is None:
            return _finish(item, current, target, user_id=user_id, notes=notes)

        meta = {"actionData": action_data} if action_data is not None else {}
        meta["manual"] = True
        return _move(item, current, target, user_id=user_id, notes=notes, completed_meta=meta)
