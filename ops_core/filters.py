# ops_core/filters.py
import django_filters as df

from .models import ActivityLog, CompletedItem, Item, Location, Workflow


class WorkflowFilter(df.FilterSet):
    name = df.CharFilter(field_name="name", lookup_expr="icontains")

    class Meta:
        model = Workflow
        fields = ["name", "is_active"]


class ItemFilter(df.FilterSet):
    workflow = df.NumberFilter(field_name="workflow_id")
    item_id = df.CharFilter(field_name="item_id", lookup_expr="icontains")
    stage = df.CharFilter(field_name="current_stage_id")
    location = df.NumberFilter(field_name="current_location_id")
    without_location = df.BooleanFilter(field_name="current_location", lookup_expr="isnull")
    flagged = df.BooleanFilter(method="filter_flagged")
    started_at = df.DateFromToRangeFilter()

    class Meta:
        model = Item
        fields = [
            "workflow",
            "item_id",
            "stage",
            "status",
            "assigned_to",
            "is_defective",
            "location",
            "without_location",
            "flagged",
            "started_at",
        ]

    def filter_flagged(self, queryset, name, value):
        if value is None:
            return queryset
        if value:
            return queryset.exclude(flagged_by="")
        return queryset.filter(flagged_by="")


class CompletedItemFilter(df.FilterSet):
    workflow = df.NumberFilter(field_name="workflow_id")
    item_id = df.CharFilter(field_name="item_id", lookup_expr="icontains")
    completed_at = df.DateFromToRangeFilter()

    class Meta:
        model = CompletedItem
        fields = ["workflow", "item_id", "final_stage_id", "is_defective", "completed_at"]


class LocationFilter(df.FilterSet):
    name = df.CharFilter(field_name="name", lookup_expr="icontains")

    class Meta:
        model = Location
        fields = ["name", "location_type", "assigned_stage_id", "is_active"]


class ActivityLogFilter(df.FilterSet):
    timestamp = df.DateFromToRangeFilter()

    class Meta:
        model = ActivityLog
        fields = ["entity_type", "entity_id", "user_id", "action", "timestamp"]
