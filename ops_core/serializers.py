# ops_core/serializers.py
from __future__ import annotations

from rest_framework import serializers

from .models import (
    ActivityLog,
    CompletedItem,
    CompletedItemHistory,
    Item,
    ItemHistory,
    Location,
    LocationHistory,
    Notification,
    Stage,
    StageAction,
    Workflow,
)
from .workflows.action_config import ACTION_TYPES


# ===============================================================
# Workflow definitions (read)
# ===============================================================

class StageActionSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="action_id", read_only=True)
    type = serializers.CharField(source="action_type", read_only=True)

    class Meta:
        model = StageAction
        fields = ("id", "type", "label", "description", "required", "config")
        read_only_fields = fields


class StageSerializer(serializers.ModelSerializer):
    id = serializers.CharField(source="stage_id", read_only=True)
    actions = StageActionSerializer(many=True, read_only=True)
    assigned_location_ids = serializers.PrimaryKeyRelatedField(
        source="assigned_locations",
        many=True,
        read_only=True,
    )

    class Meta:
        model = Stage
        fields = (
            "id",
            "name",
            "description",
            "order",
            "estimated_duration",
            "is_active",
            "assigned_location_ids",
            "actions",
        )
        read_only_fields = fields


class WorkflowSerializer(serializers.ModelSerializer):
    stages = serializers.SerializerMethodField()

    class Meta:
        model = Workflow
        fields = (
            "id",
            "name",
            "description",
            "is_active",
            "entry_stage_id",
            "created_by",
            "stages",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_stages(self, obj):
        return StageSerializer(obj.stages.order_by("order", "id"), many=True).data


# ===============================================================
# Workflow definitions (write)
# ===============================================================

class StageActionInputSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=False, max_length=64)
    type = serializers.ChoiceField(choices=ACTION_TYPES)
    label = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    required = serializers.BooleanField(required=False, default=False)
    config = serializers.DictField(required=False, default=dict)


class StageInputSerializer(serializers.Serializer):
    id = serializers.CharField(required=False, allow_blank=False, max_length=64)
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    estimated_duration = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    is_active = serializers.BooleanField(required=False, default=True)
    assigned_location_ids = serializers.ListField(
        child=serializers.IntegerField(),
        required=False,
        default=list,
    )
    actions = StageActionInputSerializer(many=True, required=False, default=list)


class WorkflowWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    is_active = serializers.BooleanField(required=False, default=True)
    entry_stage_id = serializers.CharField(required=False, allow_blank=True, default="")
    stages = StageInputSerializer(many=True)


class WorkflowPatchSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)
    entry_stage_id = serializers.CharField(required=False, allow_blank=True)
    stages = StageInputSerializer(many=True, required=False)


# ===============================================================
# Items
# ===============================================================

class ItemSerializer(serializers.ModelSerializer):
    workflow_name = serializers.CharField(source="workflow.name", read_only=True)
    current_location_name = serializers.CharField(source="current_location.name", read_only=True, default=None)

    class Meta:
        model = Item
        fields = (
            "id",
            "item_id",
            "workflow",
            "workflow_name",
            "current_stage_id",
            "status",
            "metadata",
            "current_location",
            "current_location_name",
            "qr_code",
            "assigned_to",
            "is_defective",
            "defect_notes",
            "flagged_by",
            "flag_notes",
            "flagged_at",
            "version",
            "started_at",
            "updated_at",
        )
        read_only_fields = fields


class ItemCreateSerializer(serializers.Serializer):
    item_id = serializers.CharField(max_length=128)
    workflow = serializers.IntegerField()
    metadata = serializers.DictField(required=False, default=dict)
    assigned_to = serializers.CharField(required=False, allow_blank=True, default="")


class ItemHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ItemHistory
        fields = ("id", "stage_id", "stage_name", "action", "timestamp", "user_id", "notes", "metadata")
        read_only_fields = fields


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class FlagDefectiveSerializer(serializers.Serializer):
    defect_notes = serializers.CharField(allow_blank=True)


class FlagSerializer(serializers.Serializer):
    flag_notes = serializers.CharField(allow_blank=True)


class AssignSerializer(serializers.Serializer):
    assigned_to = serializers.CharField(allow_blank=True)


class MoveSerializer(serializers.Serializer):
    location_id = serializers.IntegerField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class AutoAssignSerializer(serializers.Serializer):
    stage_id = serializers.CharField(required=False, allow_blank=True, default="")


class EnterStageSerializer(serializers.Serializer):
    stage_id = serializers.CharField()
    location_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    assigned_to = serializers.CharField(required=False, allow_null=True, default=None)


# ===============================================================
# Advancement
# ===============================================================

class AdvanceSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    action_data = serializers.JSONField(required=False, default=None)
    expected_version = serializers.IntegerField(min_value=0)


class AdvanceToSerializer(AdvanceSerializer):
    to_stage_id = serializers.CharField()


class CompletedActionSerializer(serializers.Serializer):
    id = serializers.CharField()
    type = serializers.ChoiceField(choices=ACTION_TYPES, required=False)
    label = serializers.CharField(required=False, allow_blank=True)
    data = serializers.JSONField(required=False, default=dict)


class AdvanceValidatedSerializer(serializers.Serializer):
    completed_actions = CompletedActionSerializer(many=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(min_value=0)


# ===============================================================
# Completed archive
# ===============================================================

class CompletedItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = CompletedItem
        fields = (
            "id",
            "item_id",
            "workflow",
            "workflow_name",
            "final_stage_id",
            "final_stage_name",
            "metadata",
            "started_at",
            "completed_at",
            "assigned_to",
            "qr_code",
            "final_location",
            "completion_notes",
            "completed_by",
            "is_defective",
        )
        read_only_fields = fields


class CompletedItemHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = CompletedItemHistory
        fields = ("id", "item_id", "stage_id", "stage_name", "action", "timestamp", "user_id", "notes", "metadata")
        read_only_fields = fields


# ===============================================================
# Locations
# ===============================================================

class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = (
            "id",
            "name",
            "description",
            "location_type",
            "qr_code",
            "parent",
            "assigned_stage_id",
            "capacity",
            "current_occupancy",
            "is_active",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("id", "current_occupancy", "created_by", "created_at", "updated_at")


class LocationHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = LocationHistory
        fields = (
            "id",
            "item_id",
            "from_location",
            "to_location",
            "moved_by",
            "moved_at",
            "stage_id",
            "notes",
            "metadata",
        )
        read_only_fields = fields


# ===============================================================
# Notifications / activity
# ===============================================================

class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = (
            "id",
            "user_id",
            "notification_type",
            "title",
            "message",
            "item_id",
            "workflow",
            "stage_id",
            "sender_id",
            "is_read",
            "read_at",
            "priority",
            "metadata",
            "created_at",
        )
        read_only_fields = fields


class ActivityLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActivityLog
        fields = ("id", "user_id", "action", "entity_type", "entity_id", "description", "metadata", "timestamp")
        read_only_fields = fields
