# ops_core/services/outbox.py

"""
Transactional outbox for notifications and activity entries.

State-changing services call notify()/log_activity() inside their own
transaction. That only writes an OutboxEvent row; delivery into the
Notification and ActivityLog tables happens after commit, through Celery,
with its own retry budget. A failed delivery never touches item state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ops_core.models import ActivityLog, Notification, OutboxEvent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Emit
# ---------------------------------------------------------------------

def _schedule_delivery(event_id: int) -> None:
    from ops_core.tasks import deliver_outbox_event

    try:
        deliver_outbox_event.delay(event_id)
    except Exception as exc:
        # Broker down: the periodic sweep picks the row up later
        logger.warning("Outbox event %s not queued: %s", event_id, exc)


def emit_event(event_type: str, payload: Dict[str, Any]) -> OutboxEvent:
    event = OutboxEvent.objects.create(event_type=event_type, payload=payload)
    transaction.on_commit(lambda: _schedule_delivery(event.pk))
    return event


def notify(
    *,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    item_id: str = "",
    workflow_id: Optional[int] = None,
    stage_id: str = "",
    sender_id: str = "",
    priority: str = Notification.Priority.MEDIUM,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[OutboxEvent]:
    if not user_id:
        return None
    return emit_event(
        f"notification.{notification_type}",
        {
            "notification": {
                "user_id": user_id,
                "notification_type": notification_type,
                "title": title,
                "message": message,
                "item_id": item_id,
                "workflow_id": workflow_id,
                "stage_id": stage_id,
                "sender_id": sender_id or "",
                "priority": priority,
                "metadata": metadata or {},
            }
        },
    )


def log_activity(
    *,
    action: str,
    entity_type: str,
    entity_id,
    description: str = "",
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> OutboxEvent:
    return emit_event(
        f"activity.{action}",
        {
            "activity": {
                "user_id": user_id or "",
                "action": action,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "description": description,
                "metadata": metadata or {},
                "timestamp": timezone.now().isoformat(),
            }
        },
    )


# ---------------------------------------------------------------------
# Deliver
# ---------------------------------------------------------------------

def _apply(payload: Dict[str, Any]) -> None:
    note = payload.get("notification")
    if note:
        Notification.objects.create(
            user_id=note["user_id"],
            notification_type=note["notification_type"],
            title=note.get("title", ""),
            message=note.get("message", ""),
            item_id=note.get("item_id") or "",
            workflow_id=note.get("workflow_id"),
            stage_id=note.get("stage_id") or "",
            sender_id=note.get("sender_id") or "",
            priority=note.get("priority") or Notification.Priority.MEDIUM,
            metadata=note.get("metadata") or {},
        )

    entry = payload.get("activity")
    if entry:
        fields = {
            "user_id": entry.get("user_id") or "",
            "action": entry["action"],
            "entity_type": entry["entity_type"],
            "entity_id": entry["entity_id"],
            "description": entry.get("description", ""),
            "metadata": entry.get("metadata") or {},
        }
        stamp = entry.get("timestamp")
        if stamp:
            fields["timestamp"] = stamp
        ActivityLog.objects.create(**fields)


def deliver_event(event_id: int) -> bool:
    """
    Deliver one pending event. Returns True when delivered now.
    """
    max_attempts = getattr(settings, "OUTBOX_MAX_ATTEMPTS", 5)

    with transaction.atomic():
        event = (
            OutboxEvent.objects.select_for_update()
            .filter(pk=event_id, status=OutboxEvent.Status.PENDING)
            .first()
        )
        if event is None:
            return False

        event.attempts += 1
        try:
            with transaction.atomic():
                _apply(event.payload)
        except Exception as exc:
            logger.exception("Outbox event %s (%s) failed", event.pk, event.event_type)
            event.last_error = str(exc)
            if event.attempts >= max_attempts:
                event.status = OutboxEvent.Status.FAILED
            event.save(update_fields=["attempts", "last_error", "status", "updated_at"])
            return False

        event.status = OutboxEvent.Status.DELIVERED
        event.delivered_at = timezone.now()
        event.last_error = ""
        event.save(update_fields=["attempts", "status", "delivered_at", "last_error", "updated_at"])
        return True


def dispatch_pending_events(limit: int = 200) -> int:
    ids = list(
        OutboxEvent.objects.filter(status=OutboxEvent.Status.PENDING)
        .order_by("id")
        .values_list("id", flat=True)[:limit]
    )
    delivered = 0
    for event_id in ids:
        if deliver_event(event_id):
            delivered += 1
    if ids:
        logger.info("Outbox sweep delivered %s of %s events", delivered, len(ids))
    return delivered
