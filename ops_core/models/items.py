# ops_core/models/items.py

from django.db import models
from django.utils import timezone

from .core import Location, TimeStampedModel, Workflow


class HistoryAction(models.TextChoices):
    STARTED = "started", "Started"
    COMPLETED = "completed", "Completed"
    PAUSED = "paused", "Paused"
    RESUMED = "resumed", "Resumed"
    STAGE_ENTERED = "stage_entered", "Stage entered"
    LOCATION_CHANGED = "location_changed", "Location changed"


# ============================================================
# Active item
# ============================================================
class Item(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        PAUSED = "paused", "Paused"
        COMPLETED = "completed", "Completed"

    item_id = models.CharField(max_length=128, unique=True)
    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.PROTECT,
        related_name="items",
    )
    current_stage_id = models.CharField(max_length=64, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True,
    )
    metadata = models.JSONField(default=dict, blank=True)
    current_location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    qr_code = models.CharField(max_length=255, blank=True)

    assigned_to = models.CharField(max_length=150, blank=True, db_index=True)

    is_defective = models.BooleanField(default=False, db_index=True)
    defect_notes = models.TextField(blank=True)
    flagged_by = models.CharField(max_length=150, blank=True)
    flag_notes = models.TextField(blank=True)
    flagged_at = models.DateTimeField(null=True, blank=True)

    # Bumped on every stage change; callers may pass it back as expected_version
    version = models.PositiveIntegerField(default=0)

    started_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-started_at", "-id"]

    def __str__(self):
        return self.item_id

    def save(self, *args, **kwargs):
        if not self.qr_code and self.item_id:
            self.qr_code = f"item:{self.item_id}"
        super().save(*args, **kwargs)


class ItemHistory(models.Model):
    """
    Append-only log of an active item's stage transitions.
    """

    item = models.ForeignKey(
        Item,
        on_delete=models.CASCADE,
        related_name="history",
    )
    stage_id = models.CharField(max_length=64)
    stage_name = models.CharField(max_length=255)
    action = models.CharField(max_length=32, choices=HistoryAction.choices)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)
    user_id = models.CharField(max_length=150, blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["timestamp", "id"]
        verbose_name_plural = "item history"

    def __str__(self):
        return f"{self.item_id} {self.action} {self.stage_id}"


# ============================================================
# Completed archive
# ============================================================
class CompletedItem(models.Model):
    item_id = models.CharField(max_length=128, unique=True)
    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="completed_items",
    )
    workflow_name = models.CharField(max_length=255, blank=True)
    final_stage_id = models.CharField(max_length=64)
    final_stage_name = models.CharField(max_length=255)
    metadata = models.JSONField(default=dict, blank=True)
    started_at = models.DateTimeField()
    completed_at = models.DateTimeField(default=timezone.now, db_index=True)
    assigned_to = models.CharField(max_length=150, blank=True)
    qr_code = models.CharField(max_length=255, blank=True)
    final_location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="completed_items",
    )
    completion_notes = models.TextField(blank=True)
    completed_by = models.CharField(max_length=150, blank=True)
    is_defective = models.BooleanField(default=False)

    class Meta:
        ordering = ["-completed_at", "-id"]

    def __str__(self):
        return self.item_id


class CompletedItemHistory(models.Model):
    item_id = models.CharField(max_length=128, db_index=True)
    stage_id = models.CharField(max_length=64)
    stage_name = models.CharField(max_length=255)
    action = models.CharField(max_length=32, choices=HistoryAction.choices)
    timestamp = models.DateTimeField(db_index=True)
    user_id = models.CharField(max_length=150, blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["timestamp", "id"]
        verbose_name_plural = "completed item history"

    def __str__(self):
        return f"{self.item_id} {self.action} {self.stage_id}"


# ============================================================
# Location movements
# ============================================================
class LocationHistory(TimeStampedModel):
    item_id = models.CharField(max_length=128, db_index=True)
    from_location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="moves_out",
    )
    to_location = models.ForeignKey(
        Location,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="moves_in",
    )
    moved_by = models.CharField(max_length=150, blank=True)
    moved_at = models.DateTimeField(default=timezone.now, db_index=True)
    stage_id = models.CharField(max_length=64, blank=True)
    notes = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-moved_at", "-id"]
        verbose_name_plural = "location history"

    def __str__(self):
        return f"{self.item_id}: {self.from_location_id} -> {self.to_location_id}"
