# ops_core/workflows/locations.py
from __future__ import annotations

import logging
from typing import List, Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from ops_core.exceptions import Conflict, NotFound
from ops_core.models import HistoryAction, Item, ItemHistory, Location, LocationHistory, Stage
from ops_core.services.outbox import log_activity

logger = logging.getLogger(__name__)


# ===============================================================
# Occupancy
# ===============================================================

def count_occupants(location_id: int) -> int:
    return Item.objects.filter(current_location_id=location_id).count()


def recount_occupancy(location: Location) -> int:
    """
    Overwrite current_occupancy with a fresh count of items pointing at
    the location. Never incremented in place.
    """
    count = count_occupants(location.pk)
    Location.objects.filter(pk=location.pk).update(current_occupancy=count, updated_at=timezone.now())
    location.current_occupancy = count
    return count


def _has_room(location: Location) -> bool:
    if location.capacity is None:
        return True
    return count_occupants(location.pk) < location.capacity


# ===============================================================
# Candidate resolution
# ===============================================================

def _with_room(qs):
    return qs.filter(is_active=True).filter(
        Q(capacity__isnull=True) | Q(current_occupancy__lt=F("capacity"))
    ).order_by("id")


def candidate_locations(stage: Stage) -> List[Location]:
    """
    Locations an item entering `stage` may be placed in, best first.

    The stage's own location list wins. Only when that list is empty do
    locations that name the stage through assigned_stage_id apply.
    """
    if stage.assigned_locations.exists():
        qs = stage.assigned_locations.all()
    else:
        qs = Location.objects.filter(assigned_stage_id=stage.stage_id)
    return list(_with_room(qs))


def get_locations_by_stage(stage_id: str) -> List[Location]:
    """
    Every location bound to a stage id, directly or through a stage's list.
    """
    return list(
        Location.objects.filter(
            Q(assigned_stage_id=stage_id) | Q(assigned_stages__stage_id=stage_id)
        )
        .distinct()
        .order_by("id")
    )


def get_available_locations_for_stage(stage_id: str) -> List[Location]:
    return [
        loc
        for loc in get_locations_by_stage(stage_id)
        if loc.is_active and loc.has_capacity
    ]


# ===============================================================
# Assignment
# ===============================================================

def place_item(item: Item, location: Location, *, moved_by: str, stage_id: str, notes: str = "", metadata=None) -> None:
    previous_id = item.current_location_id

    Item.objects.filter(pk=item.pk).update(current_location=location, updated_at=timezone.now())
    item.current_location = location

    recount_occupancy(location)
    if previous_id and previous_id != location.pk:
        previous = Location.objects.filter(pk=previous_id).first()
        if previous is not None:
            recount_occupancy(previous)

    LocationHistory.objects.create(
        item_id=item.item_id,
        from_location_id=previous_id,
        to_location=location,
        moved_by=moved_by or "",
        stage_id=stage_id,
        notes=notes or "",
        metadata=metadata or {},
    )


def lock_for_placement(location_id: int) -> Location:
    """
    Lock a target location for an explicit placement. NotFound when it is
    missing, Conflict when it is inactive or full.
    """
    location = Location.objects.select_for_update().filter(pk=location_id).first()
    if location is None:
        raise NotFound("Location", location_id)
    if not location.is_active:
        raise Conflict(f"Location {location.name} is inactive", {"location_id": location.pk})
    if not _has_room(location):
        raise Conflict(
            f"Location {location.name} is at capacity",
            {"location_id": location.pk, "capacity": location.capacity},
        )
    return location


def _pick_locked(candidates: List[Location]) -> Optional[Location]:
    for candidate in candidates:
        locked = Location.objects.select_for_update().get(pk=candidate.pk)
        if locked.is_active and _has_room(locked):
            return locked
    return None


def auto_assign_for_stage(item: Item, stage: Stage, user_id: Optional[str] = None) -> Optional[Location]:
    """
    Best-effort placement after a stage change.

    Runs in a savepoint. Any failure is logged and recorded as an activity
    entry, then swallowed: the caller's advancement stands either way.
    """
    try:
        with transaction.atomic():
            location = _pick_locked(candidate_locations(stage))
            if location is None:
                logger.info(
                    "No free location for item %s entering stage %s",
                    item.item_id,
                    stage.stage_id,
                )
                return None

            place_item(
                item,
                location,
                moved_by=user_id or "system",
                stage_id=stage.stage_id,
                notes=f"Auto-assigned to {location.name} for stage {stage.name}",
                metadata={"autoAssigned": True},
            )
            log_activity(
                action="item_auto_assigned_location",
                entity_type="item",
                entity_id=item.item_id,
                user_id=user_id or "system",
                description=f"Item {item.item_id} auto-assigned to {location.name} for stage {stage.name}",
                metadata={"locationId": location.pk, "stageId": stage.stage_id},
            )
            return location
    except Exception as exc:
        logger.warning(
            "Location auto-assignment failed for item %s stage %s: %s",
            item.item_id,
            stage.stage_id,
            exc,
        )
        log_activity(
            action="location_auto_assign_failed",
            entity_type="item",
            entity_id=item.item_id,
            user_id=user_id or "system",
            description=f"Auto-assignment failed for stage {stage.name}",
            metadata={"stageId": stage.stage_id, "error": str(exc)},
        )
        return None


def move_to_location(pk: int, location_id: int, moved_by: str, notes: Optional[str] = None) -> Item:
    """
    Explicit move. Conflict when the target is inactive or full.
    """
    with transaction.atomic():
        item = Item.objects.select_for_update().filter(pk=pk).first()
        if item is None:
            raise NotFound("Item", pk)

        if item.current_location_id == location_id:
            return item

        location = lock_for_placement(location_id)

        previous = item.current_location
        place_item(item, location, moved_by=moved_by, stage_id=item.current_stage_id, notes=notes or "")

        ItemHistory.objects.create(
            item=item,
            stage_id=item.current_stage_id,
            stage_name=_stage_name(item),
            action=HistoryAction.LOCATION_CHANGED,
            user_id=moved_by or "",
            notes=notes or "",
            metadata={
                "fromLocationId": previous.pk if previous else None,
                "toLocationId": location.pk,
            },
        )
        log_activity(
            action="item_moved",
            entity_type="item",
            entity_id=item.item_id,
            user_id=moved_by,
            description=(
                f"Item {item.item_id} moved from "
                f"{previous.name if previous else 'no location'} to {location.name}"
            ),
            metadata={"fromLocationId": previous.pk if previous else None, "toLocationId": location.pk},
        )
        return item


def auto_assign_to_stage_location(pk: int, stage_id: str, assigned_by: str) -> Location:
    """
    Explicit variant of auto-assignment. Unlike the advancement path it
    fails loudly when nothing is free.
    """
    with transaction.atomic():
        item = Item.objects.select_for_update().select_related("workflow").filter(pk=pk).first()
        if item is None:
            raise NotFound("Item", pk)

        stage = item.workflow.stages.filter(stage_id=stage_id).order_by("id").first()
        if stage is None:
            raise NotFound("Stage", stage_id)

        location = _pick_locked(candidate_locations(stage))
        if location is None:
            raise NotFound("Available location for stage", stage_id)

        place_item(
            item,
            location,
            moved_by=assigned_by,
            stage_id=stage.stage_id,
            notes=f"Assigned to {location.name} for stage {stage.name}",
            metadata={"autoAssigned": True},
        )
        log_activity(
            action="item_auto_assigned_location",
            entity_type="item",
            entity_id=item.item_id,
            user_id=assigned_by,
            description=f"Item {item.item_id} assigned to {location.name} for stage {stage.name}",
            metadata={"locationId": location.pk, "stageId": stage.stage_id},
        )
        return location


def get_item_location_history(item_id: str):
    return LocationHistory.objects.filter(item_id=item_id).order_by("-moved_at", "-id")


def get_location_history(location_id: int):
    return LocationHistory.objects.filter(
        Q(from_location_id=location_id) | Q(to_location_id=location_id)
    ).order_by("-moved_at", "-id")


def _stage_name(item: Item) -> str:
    stage = item.workflow.stages.filter(stage_id=item.current_stage_id).order_by("id").first()
    return stage.name if stage else item.current_stage_id
