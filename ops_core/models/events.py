# ops_core/models/events.py

from django.db import models
from django.utils import timezone

from .core import TimeStampedModel, Workflow


class Notification(TimeStampedModel):
    class Type(models.TextChoices):
        ITEM_ASSIGNED = "item_assigned", "Item assigned"
        ITEM_COMPLETED = "item_completed", "Item completed"
        ITEM_DEFECTIVE = "item_defective", "Item defective"
        ITEM_FLAGGED = "item_flagged", "Item flagged"
        STAGE_COMPLETED = "stage_completed", "Stage completed"
        SYSTEM_ALERT = "system_alert", "System alert"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        URGENT = "urgent", "Urgent"

    user_id = models.CharField(max_length=150, db_index=True)
    notification_type = models.CharField(max_length=32, choices=Type.choices)
    title = models.CharField(max_length=255)
    message = models.TextField()

    # Item ids are kept as strings so notifications survive archiving
    item_id = models.CharField(max_length=128, blank=True)
    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="notifications",
    )
    stage_id = models.CharField(max_length=64, blank=True)
    sender_id = models.CharField(max_length=150, blank=True)

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    priority = models.CharField(
        max_length=16,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.user_id}: {self.title}"


class ActivityLog(models.Model):
    """
    Who did what to which entity. Written by the outbox dispatcher and by
    the CRUD audit signals.
    """

    class EntityType(models.TextChoices):
        ITEM = "item", "Item"
        WORKFLOW = "workflow", "Workflow"
        LOCATION = "location", "Location"
        NOTIFICATION = "notification", "Notification"

    user_id = models.CharField(max_length=150, blank=True, db_index=True)
    action = models.CharField(max_length=64, db_index=True)
    entity_type = models.CharField(max_length=16, choices=EntityType.choices)
    entity_id = models.CharField(max_length=128)
    description = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-timestamp", "-id"]

    def __str__(self):
        return self.action


class OutboxEvent(TimeStampedModel):
    """
    Domain event written in the same transaction as the state change it
    describes. Delivered into Notification / ActivityLog rows afterwards.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        DELIVERED = "delivered", "Delivered"
        FAILED = "failed", "Failed"

    event_type = models.CharField(max_length=64, db_index=True)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.event_type} [{self.status}]"
