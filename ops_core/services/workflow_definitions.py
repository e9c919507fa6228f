# ops_core/services/workflow_definitions.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from django.db import transaction

from ops_core.exceptions import Conflict, NotFound, ValidationError
from ops_core.models import CompletedItem, Item, Location, Stage, StageAction, Workflow
from ops_core.workflows import validate_entry_stage, validate_stage_ordering
from ops_core.workflows.action_config import parse_action_config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Input normalisation
# ---------------------------------------------------------------------

def _new_id(prefix: str, n: Optional[int] = None) -> str:
    suffix = uuid.uuid4().hex[:8]
    return f"{prefix}-{n}-{suffix}" if n is not None else f"{prefix}-{suffix}"


def _normalise_actions(raw_actions: List[Dict[str, Any]], stage_label: str) -> List[Dict[str, Any]]:
    seen = set()
    out = []
    for raw in raw_actions or []:
        action_type = str(raw.get("type") or "").strip().lower()
        parse_action_config(action_type, raw.get("config"))

        action_id = str(raw.get("id") or _new_id("action"))
        if action_id in seen:
            raise ValidationError(
                f"Duplicate action id {action_id!r} in stage {stage_label}",
                [{"field": "actions", "code": "duplicate_action_id", "message": f"Duplicate action id {action_id}"}],
            )
        seen.add(action_id)

        out.append(
            {
                "action_id": action_id,
                "action_type": action_type,
                "label": str(raw.get("label") or action_type.title()),
                "description": raw.get("description") or "",
                "required": bool(raw.get("required", False)),
                "config": raw.get("config") or {},
            }
        )
    return out


def _normalise_stages(raw_stages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not raw_stages:
        raise ValidationError(
            "A workflow needs at least one stage",
            [{"field": "stages", "code": "required", "message": "At least one stage is required"}],
        )

    seen = set()
    stages = []
    for position, raw in enumerate(raw_stages):
        name = str(raw.get("name") or "").strip()
        if not name:
            raise ValidationError(
                f"Stage at position {position} has no name",
                [{"field": "stages", "code": "required", "message": f"Stage {position} needs a name"}],
            )

        stage_id = str(raw.get("id") or _new_id("stage", position))
        if stage_id in seen:
            raise ValidationError(
                f"Duplicate stage id {stage_id!r}",
                [{"field": "stages", "code": "duplicate_stage_id", "message": f"Duplicate stage id {stage_id}"}],
            )
        seen.add(stage_id)

        stages.append(
            {
                "stage_id": stage_id,
                "name": name,
                "description": raw.get("description") or "",
                # Order always comes from array position.
                "order": position,
                "estimated_duration": raw.get("estimated_duration"),
                "is_active": bool(raw.get("is_active", True)),
                "assigned_location_ids": list(raw.get("assigned_location_ids") or []),
                "actions": _normalise_actions(raw.get("actions") or [], name),
            }
        )

    validate_stage_ordering([s["order"] for s in stages])
    return stages


def _write_stages(workflow: Workflow, stages: List[Dict[str, Any]]) -> None:
    location_ids = {lid for s in stages for lid in s["assigned_location_ids"]}
    known = set(Location.objects.filter(pk__in=location_ids).values_list("pk", flat=True))
    missing = sorted(location_ids - known)
    if missing:
        raise NotFound("Location", missing[0])

    for entry in stages:
        stage = Stage.objects.create(
            workflow=workflow,
            stage_id=entry["stage_id"],
            name=entry["name"],
            description=entry["description"],
            order=entry["order"],
            estimated_duration=entry["estimated_duration"],
            is_active=entry["is_active"],
        )
        if entry["assigned_location_ids"]:
            stage.assigned_locations.set(entry["assigned_location_ids"])
        StageAction.objects.bulk_create(
            [StageAction(stage=stage, **action) for action in entry["actions"]]
        )


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def get_workflow(workflow_id: int) -> Workflow:
    workflow = Workflow.objects.filter(pk=workflow_id).first()
    if workflow is None:
        raise NotFound("Workflow", workflow_id)
    return workflow


def list_workflows(active_only: bool = False):
    qs = Workflow.objects.all()
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.order_by("-created_at", "-id")


def create_workflow(
    *,
    name: str,
    stages: List[Dict[str, Any]],
    description: str = "",
    entry_stage_id: str = "",
    is_active: bool = True,
    created_by: str = "",
) -> Workflow:
    """
    Create a workflow and its stage line. Stage ids are kept when given and
    generated otherwise; order is the stage's position in the list.
    """
    normalised = _normalise_stages(stages)
    validate_entry_stage(entry_stage_id, [s["stage_id"] for s in normalised])

    with transaction.atomic():
        workflow = Workflow.objects.create(
            name=name,
            description=description or "",
            entry_stage_id=entry_stage_id or "",
            is_active=is_active,
            created_by=created_by or "",
        )
        _write_stages(workflow, normalised)

    logger.info("Workflow %s created with %s stages", workflow.pk, len(normalised))
    return workflow


def update_workflow(
    workflow_id: int,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    stages: Optional[List[Dict[str, Any]]] = None,
    entry_stage_id: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Workflow:
    """
    Update fields; a given stage list replaces the existing one entirely
    and order is re-derived from position.
    """
    with transaction.atomic():
        workflow = Workflow.objects.select_for_update().filter(pk=workflow_id).first()
        if workflow is None:
            raise NotFound("Workflow", workflow_id)

        if name is not None:
            workflow.name = name
        if description is not None:
            workflow.description = description
        if is_active is not None:
            workflow.is_active = is_active

        if stages is not None:
            normalised = _normalise_stages(stages)
            new_ids = {s["stage_id"] for s in normalised}

            stranded = list(
                Item.objects.filter(workflow=workflow)
                .exclude(current_stage_id__in=new_ids)
                .values_list("item_id", flat=True)
            )
            if stranded:
                raise Conflict(
                    "Stages still hold items",
                    {"item_ids": stranded},
                )

            workflow.stages.all().delete()
            _write_stages(workflow, normalised)
            current_ids = [s["stage_id"] for s in normalised]
        else:
            current_ids = list(workflow.stages.values_list("stage_id", flat=True))

        if entry_stage_id is not None:
            workflow.entry_stage_id = entry_stage_id
        validate_entry_stage(workflow.entry_stage_id, current_ids)

        workflow.save()

    return workflow


def delete_workflow(workflow_id: int) -> None:
    """
    Refused with Conflict while any live item references the workflow.
    """
    with transaction.atomic():
        workflow = Workflow.objects.select_for_update().filter(pk=workflow_id).first()
        if workflow is None:
            raise NotFound("Workflow", workflow_id)

        in_use = list(workflow.items.values_list("item_id", flat=True)[:50])
        if in_use:
            raise Conflict(
                f"Cannot delete workflow {workflow.name}: {len(in_use)} active item(s) use it",
                {"item_ids": in_use},
            )

        workflow.delete()

    logger.info("Workflow %s deleted", workflow_id)


def toggle_workflow_active(workflow_id: int) -> Workflow:
    with transaction.atomic():
        workflow = Workflow.objects.select_for_update().filter(pk=workflow_id).first()
        if workflow is None:
            raise NotFound("Workflow", workflow_id)
        workflow.is_active = not workflow.is_active
        workflow.save(update_fields=["is_active", "updated_at"])
    return workflow


def workflow_usage(workflow_id: int) -> Dict[str, Any]:
    workflow = get_workflow(workflow_id)
    active = workflow.items.count()
    return {
        "workflow_id": workflow.pk,
        "active_items": active,
        "completed_items": CompletedItem.objects.filter(workflow=workflow).count(),
        "can_delete": active == 0,
    }
