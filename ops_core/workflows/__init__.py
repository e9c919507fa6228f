# ops_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from ops_core.exceptions import NotFound, ValidationError


# ===============================================================
# Stage graph
# ===============================================================
#
# A workflow's stages form a line ordered by Stage.order. The successor of
# a stage is the stage with order + 1; a stage without one is terminal.
# Duplicate orders can only come from writes that bypass the definition
# service; lookups then pick the lowest primary key.


def ordered_stages(workflow) -> List[Any]:
    return list(workflow.stages.order_by("order", "id"))


def first_stage(workflow):
    """
    Stage new items start in: the one with order 0.
    """
    stage = workflow.stages.filter(order=0).order_by("id").first()
    if stage is None:
        raise NotFound("Stage", f"{workflow.pk}:order=0")
    return stage


def find_stage(workflow, stage_id: str):
    stage = workflow.stages.filter(stage_id=stage_id).order_by("id").first()
    if stage is None:
        raise NotFound("Stage", stage_id)
    return stage


def next_stage(workflow, stage) -> Optional[Any]:
    return (
        workflow.stages.filter(order=stage.order + 1)
        .order_by("id")
        .first()
    )


def is_terminal(workflow, stage) -> bool:
    return next_stage(workflow, stage) is None


# ===============================================================
# Definition validation
# ===============================================================

def validate_stage_ordering(orders: List[int]) -> None:
    """
    Orders must be exactly 0..n-1 with no gaps or duplicates.
    """
    if sorted(orders) != list(range(len(orders))):
        raise ValidationError(
            "Stage orders must be dense and start at 0",
            [{"field": "order", "code": "invalid_order", "message": f"Got orders {sorted(orders)}"}],
        )


def validate_entry_stage(entry_stage_id: str, stage_ids: List[str]) -> None:
    if entry_stage_id and entry_stage_id not in stage_ids:
        raise ValidationError(
            "entryStageId must reference a stage of the same workflow",
            [{"field": "entry_stage_id", "code": "unknown_stage", "message": f"No stage {entry_stage_id!r}"}],
        )


# ===============================================================
# Introspection
# ===============================================================

def stage_definition(stage) -> Dict[str, Any]:
    return {
        "id": stage.stage_id,
        "name": stage.name,
        "description": stage.description,
        "order": stage.order,
        "estimated_duration": stage.estimated_duration,
        "is_active": stage.is_active,
        "assigned_location_ids": [
            loc.pk for loc in stage.assigned_locations.order_by("id")
        ],
        "actions": [
            {
                "id": a.action_id,
                "type": a.action_type,
                "label": a.label,
                "description": a.description,
                "required": a.required,
                "config": a.config,
            }
            for a in stage.actions.order_by("id")
        ],
    }


def workflow_definition(workflow) -> Dict[str, Any]:
    """
    JSON-serialisable snapshot of a workflow and its stage line.
    """
    stages = ordered_stages(workflow)
    return {
        "id": workflow.pk,
        "name": workflow.name,
        "description": workflow.description,
        "is_active": workflow.is_active,
        "entry_stage_id": workflow.entry_stage_id or (stages[0].stage_id if stages else None),
        "terminal_stage_id": stages[-1].stage_id if stages else None,
        "stages": [stage_definition(s) for s in stages],
    }


__all__ = [
    "ordered_stages",
    "first_stage",
    "find_stage",
    "next_stage",
    "is_terminal",
    "validate_stage_ordering",
    "validate_entry_stage",
    "stage_definition",
    "workflow_definition",
]
