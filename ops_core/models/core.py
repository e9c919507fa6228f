# ops_core/models/core.py

from django.db import models


# ============================================================
# Base
# ============================================================
class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# ============================================================
# Location (bins, shelves, racks, areas, zones)
# ============================================================
class Location(TimeStampedModel):
    class LocationType(models.TextChoices):
        BIN = "bin", "Bin"
        SHELF = "shelf", "Shelf"
        RACK = "rack", "Rack"
        AREA = "area", "Area"
        ZONE = "zone", "Zone"

    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    location_type = models.CharField(
        max_length=16,
        choices=LocationType.choices,
        default=LocationType.BIN,
    )
    qr_code = models.CharField(max_length=255, blank=True)
    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="children",
    )

    # Fallback binding used when a stage has no explicit location list
    assigned_stage_id = models.CharField(max_length=64, blank=True, db_index=True)

    capacity = models.PositiveIntegerField(null=True, blank=True)
    current_occupancy = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.CharField(max_length=150, blank=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.name

    @property
    def has_capacity(self) -> bool:
        return self.capacity is None or self.current_occupancy < self.capacity


# ============================================================
# Workflow
# ============================================================
class Workflow(TimeStampedModel):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    # Optional explicit entry point; must name a stage of this workflow
    entry_stage_id = models.CharField(max_length=64, blank=True)

    created_by = models.CharField(max_length=150, blank=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name


# ============================================================
# Stage
# ============================================================
class Stage(models.Model):
    """
    One step of a workflow. Stages are linear: the successor of a stage is
    the stage whose order is exactly one higher.
    """

    workflow = models.ForeignKey(
        Workflow,
        on_delete=models.CASCADE,
        related_name="stages",
    )
    stage_id = models.CharField(max_length=64)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(db_index=True)
    estimated_duration = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Expected minutes spent in this stage.",
    )
    is_active = models.BooleanField(default=True)
    assigned_locations = models.ManyToManyField(
        Location,
        blank=True,
        related_name="assigned_stages",
    )

    class Meta:
        ordering = ["order", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["workflow", "stage_id"],
                name="stage_id_unique_per_workflow",
            ),
        ]

    def __str__(self):
        return f"{self.workflow_id}:{self.stage_id} ({self.name})"


# ============================================================
# Stage actions
# ============================================================
class StageAction(models.Model):
    class ActionType(models.TextChoices):
        SCAN = "scan", "Scan"
        PHOTO = "photo", "Photo"
        NOTE = "note", "Note"
        APPROVAL = "approval", "Approval"
        MEASUREMENT = "measurement", "Measurement"
        INSPECTION = "inspection", "Inspection"

    stage = models.ForeignKey(
        Stage,
        on_delete=models.CASCADE,
        related_name="actions",
    )
    action_id = models.CharField(max_length=64)
    action_type = models.CharField(max_length=16, choices=ActionType.choices)
    label = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    required = models.BooleanField(default=False)
    config = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(
                fields=["stage", "action_id"],
                name="action_id_unique_per_stage",
            ),
        ]

    def __str__(self):
        return f"{self.action_id} ({self.action_type})"
