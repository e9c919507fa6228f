# ops_core/services/notifications.py
from __future__ import annotations

from typing import Optional

from django.utils import timezone

from ops_core.exceptions import NotFound
from ops_core.models import ActivityLog, Notification


def get_notifications(user_id: str, unread_only: bool = False):
    qs = Notification.objects.filter(user_id=user_id)
    if unread_only:
        qs = qs.filter(is_read=False)
    return qs.order_by("-created_at", "-id")


def unread_notification_count(user_id: str) -> int:
    return Notification.objects.filter(user_id=user_id, is_read=False).count()


def mark_notification_read(notification_id: int, user_id: str) -> Notification:
    notification = Notification.objects.filter(pk=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFound("Notification", notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=["is_read", "read_at", "updated_at"])
    return notification


def mark_all_notifications_read(user_id: str) -> int:
    now = timezone.now()
    return Notification.objects.filter(user_id=user_id, is_read=False).update(
        is_read=True,
        read_at=now,
        updated_at=now,
    )


def get_activity_log(
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    user_id: Optional[str] = None,
):
    qs = ActivityLog.objects.all()
    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=str(entity_id))
    if user_id:
        qs = qs.filter(user_id=user_id)
    return qs.order_by("-timestamp", "-id")
