# ops_core/admin.py

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    ActivityLog,
    CompletedItem,
    CompletedItemHistory,
    Item,
    ItemHistory,
    Location,
    LocationHistory,
    Notification,
    OutboxEvent,
    Stage,
    StageAction,
    Workflow,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    """
    Append-only tables: viewable, never edited through the admin.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Workflow definitions
# =============================================================

class StageInline(admin.TabularInline):
    model = Stage
    extra = 0
    fields = ("order", "stage_id", "name", "estimated_duration", "is_active")
    ordering = ("order", "id")
    show_change_link = True


class StageActionInline(admin.TabularInline):
    model = StageAction
    extra = 0
    fields = ("action_id", "action_type", "label", "required", "config")


@admin.register(Workflow)
class WorkflowAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "stage_count", "created_by", "created_at")
    list_filter = ("is_active",)
    search_fields = ("name",)
    inlines = [StageInline]

    def stage_count(self, obj):
        return obj.stages.count()

    stage_count.short_description = "Stages"


@admin.register(Stage)
class StageAdmin(admin.ModelAdmin):
    list_display = ("workflow", "order", "stage_id", "name", "is_active")
    list_filter = ("workflow", "is_active")
    search_fields = ("stage_id", "name")
    ordering = ("workflow", "order", "id")
    filter_horizontal = ("assigned_locations",)
    inlines = [StageActionInline]


# =============================================================
# Items
# =============================================================

@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = (
        "item_id",
        "workflow",
        "current_stage_id",
        "status",
        "defect_badge",
        "current_location",
        "assigned_to",
        "version",
        "started_at",
    )
    list_filter = ("workflow", "status", "is_defective")
    search_fields = ("item_id", "assigned_to")
    ordering = ("-started_at",)

    # Stage and location only change through the services
    readonly_fields = ("current_stage_id", "current_location", "version", "started_at", "updated_at")

    def defect_badge(self, obj):
        if obj.is_defective:
            return format_html('<span style="color:#c62828;font-weight:bold;">DEFECTIVE</span>')
        return ""

    defect_badge.short_description = "Defect"


@admin.register(ItemHistory)
class ItemHistoryAdmin(ReadOnlyAdmin):
    list_display = ("item", "stage_name", "action", "user_id", "timestamp")
    list_filter = ("action",)
    search_fields = ("item__item_id", "stage_id")
    ordering = ("-timestamp",)


@admin.register(CompletedItem)
class CompletedItemAdmin(ReadOnlyAdmin):
    list_display = ("item_id", "workflow_name", "final_stage_name", "completed_by", "completed_at")
    list_filter = ("workflow", "is_defective")
    search_fields = ("item_id",)
    ordering = ("-completed_at",)


@admin.register(CompletedItemHistory)
class CompletedItemHistoryAdmin(ReadOnlyAdmin):
    list_display = ("item_id", "stage_name", "action", "user_id", "timestamp")
    list_filter = ("action",)
    search_fields = ("item_id",)
    ordering = ("-timestamp",)


# =============================================================
# Locations
# =============================================================

@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ("name", "location_type", "assigned_stage_id", "current_occupancy", "capacity", "is_active")
    list_filter = ("location_type", "is_active")
    search_fields = ("name", "assigned_stage_id")
    readonly_fields = ("current_occupancy",)


@admin.register(LocationHistory)
class LocationHistoryAdmin(ReadOnlyAdmin):
    list_display = ("item_id", "from_location", "to_location", "moved_by", "moved_at")
    search_fields = ("item_id",)
    ordering = ("-moved_at",)


# =============================================================
# Notifications / activity / outbox
# =============================================================

@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user_id", "notification_type", "priority", "title", "is_read", "created_at")
    list_filter = ("notification_type", "priority", "is_read")
    search_fields = ("user_id", "item_id", "title")


@admin.register(ActivityLog)
class ActivityLogAdmin(ReadOnlyAdmin):
    list_display = ("timestamp", "user_id", "action", "entity_type", "entity_id")
    list_filter = ("entity_type", "action")
    search_fields = ("entity_id", "user_id", "description")
    ordering = ("-timestamp",)


@admin.register(OutboxEvent)
class OutboxEventAdmin(ReadOnlyAdmin):
    list_display = ("id", "event_type", "status", "attempts", "created_at", "delivered_at")
    list_filter = ("status", "event_type")
    search_fields = ("event_type", "last_error")
    ordering = ("-id",)
