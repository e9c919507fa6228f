# ops_core/views.py
from __future__ import annotations

from django.db import connection
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import (
    ActivityLogFilter,
    CompletedItemFilter,
    ItemFilter,
    LocationFilter,
    WorkflowFilter,
)
from .mixins import ActorMixin, ServerControlledFieldsMixin
from .models import ActivityLog, CompletedItem, Item, Location, Notification, Workflow
from .serializers import (
    ActivityLogSerializer,
    AdvanceSerializer,
    AdvanceToSerializer,
    AdvanceValidatedSerializer,
    AssignSerializer,
    AutoAssignSerializer,
    CompletedItemHistorySerializer,
    CompletedItemSerializer,
    EnterStageSerializer,
    FlagDefectiveSerializer,
    FlagSerializer,
    ItemCreateSerializer,
    ItemHistorySerializer,
    ItemSerializer,
    LocationHistorySerializer,
    LocationSerializer,
    MoveSerializer,
    NotesSerializer,
    NotificationSerializer,
    WorkflowPatchSerializer,
    WorkflowSerializer,
    WorkflowWriteSerializer,
)
from .services import items as item_service
from .services import notifications as notification_service
from .services import workflow_definitions as definitions
from .workflows import archive, locations, transition_service, workflow_definition


# ===============================================================
# Utilities
# ===============================================================

def _validated(serializer_cls, request):
    serializer = serializer_cls(data=request.data)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


def _advance_response(result) -> Response:
    body = result.as_dict()
    if result.item is not None:
        body["item"] = ItemSerializer(result.item).data
    if result.completed_item is not None:
        body["completed_item"] = CompletedItemSerializer(result.completed_item).data
    return Response(body, status=status.HTTP_200_OK)


# ===============================================================
# Health
# ===============================================================

class HealthCheckView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        return Response({"status": "ok"})


# ===============================================================
# Workflows
# ===============================================================

class WorkflowViewSet(ActorMixin, viewsets.ModelViewSet):
    lookup_value_regex = r"\d+"
    queryset = Workflow.objects.prefetch_related("stages__actions", "stages__assigned_locations")
    serializer_class = WorkflowSerializer
    filterset_class = WorkflowFilter

    @extend_schema(request=WorkflowWriteSerializer, responses=WorkflowSerializer)
    def create(self, request, *args, **kwargs):
        data = _validated(WorkflowWriteSerializer, request)
        workflow = definitions.create_workflow(
            name=data["name"],
            description=data["description"],
            entry_stage_id=data["entry_stage_id"],
            is_active=data["is_active"],
            stages=data["stages"],
            created_by=self.actor(),
        )
        return Response(WorkflowSerializer(workflow).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=WorkflowWriteSerializer, responses=WorkflowSerializer)
    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        serializer_cls = WorkflowPatchSerializer if partial else WorkflowWriteSerializer
        data = _validated(serializer_cls, request)
        workflow = definitions.update_workflow(
            int(kwargs["pk"]),
            name=data.get("name"),
            description=data.get("description"),
            stages=data.get("stages"),
            entry_stage_id=data.get("entry_stage_id"),
            is_active=data.get("is_active"),
        )
        return Response(WorkflowSerializer(workflow).data)

    def destroy(self, request, *args, **kwargs):
        definitions.delete_workflow(int(kwargs["pk"]))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def usage(self, request, pk=None):
        return Response(definitions.workflow_usage(int(pk)))

    @action(detail=True, methods=["post"], url_path="toggle-active")
    def toggle_active(self, request, pk=None):
        workflow = definitions.toggle_workflow_active(int(pk))
        return Response(WorkflowSerializer(workflow).data)

    @action(detail=True, methods=["get"])
    def definition(self, request, pk=None):
        return Response(workflow_definition(definitions.get_workflow(int(pk))))


# ===============================================================
# Items
# ===============================================================

class ItemViewSet(
    ActorMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    lookup_value_regex = r"\d+"
    queryset = Item.objects.select_related("workflow", "current_location")
    serializer_class = ItemSerializer
    filterset_class = ItemFilter

    @extend_schema(request=ItemCreateSerializer, responses=ItemSerializer)
    def create(self, request, *args, **kwargs):
        data = _validated(ItemCreateSerializer, request)
        item = item_service.create_item(
            item_id=data["item_id"],
            workflow_id=data["workflow"],
            metadata=data["metadata"],
            assigned_to=data["assigned_to"] or None,
            created_by=self.actor(),
        )
        return Response(ItemSerializer(item_service.get_item(item.pk)).data, status=status.HTTP_201_CREATED)

    def _item_response(self, pk) -> Response:
        return Response(ItemSerializer(item_service.get_item(int(pk))).data)

    # -----------------------------------------------------------
    # History
    # -----------------------------------------------------------
    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        rows = item_service.get_item_history(int(pk))
        return Response(ItemHistorySerializer(rows, many=True).data)

    @action(detail=True, methods=["get"], url_path="location-history")
    def location_history(self, request, pk=None):
        item = item_service.get_item(int(pk))
        rows = locations.get_item_location_history(item.item_id)
        return Response(LocationHistorySerializer(rows, many=True).data)

    # -----------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------
    @extend_schema(request=NotesSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"])
    def pause(self, request, pk=None):
        data = _validated(NotesSerializer, request)
        item_service.pause_item(int(pk), user_id=self.actor(), notes=data["notes"])
        return self._item_response(pk)

    @extend_schema(request=NotesSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"])
    def resume(self, request, pk=None):
        data = _validated(NotesSerializer, request)
        item_service.resume_item(int(pk), user_id=self.actor(), notes=data["notes"])
        return self._item_response(pk)

    @extend_schema(request=FlagDefectiveSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"], url_path="flag-defective")
    def flag_defective(self, request, pk=None):
        data = _validated(FlagDefectiveSerializer, request)
        item_service.flag_item_as_defective(int(pk), data["defect_notes"], self.actor())
        return self._item_response(pk)

    @extend_schema(request=FlagSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"])
    def flag(self, request, pk=None):
        data = _validated(FlagSerializer, request)
        item_service.flag_item(int(pk), data["flag_notes"], self.actor())
        return self._item_response(pk)

    @extend_schema(request=AssignSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"])
    def assign(self, request, pk=None):
        data = _validated(AssignSerializer, request)
        item_service.assign_item(int(pk), data["assigned_to"], self.actor())
        return self._item_response(pk)

    @extend_schema(request=EnterStageSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"], url_path="enter-stage")
    def enter_stage(self, request, pk=None):
        data = _validated(EnterStageSerializer, request)
        item_service.enter_stage(
            int(pk),
            data["stage_id"],
            self.actor(),
            location_id=data["location_id"],
            assigned_to=data["assigned_to"],
        )
        return self._item_response(pk)

    # -----------------------------------------------------------
    # Locations
    # -----------------------------------------------------------
    @extend_schema(request=MoveSerializer, responses=ItemSerializer)
    @action(detail=True, methods=["post"])
    def move(self, request, pk=None):
        data = _validated(MoveSerializer, request)
        locations.move_to_location(int(pk), data["location_id"], self.actor(), notes=data["notes"])
        return self._item_response(pk)

    @extend_schema(request=AutoAssignSerializer, responses=LocationSerializer)
    @action(detail=True, methods=["post"], url_path="auto-assign-location")
    def auto_assign_location(self, request, pk=None):
        data = _validated(AutoAssignSerializer, request)
        stage_id = data["stage_id"] or item_service.get_item(int(pk)).current_stage_id
        location = locations.auto_assign_to_stage_location(int(pk), stage_id, self.actor())
        return Response(LocationSerializer(location).data)

    # -----------------------------------------------------------
    # Advancement
    # -----------------------------------------------------------
    @extend_schema(request=AdvanceSerializer)
    @action(detail=True, methods=["post"])
    def advance(self, request, pk=None):
        data = _validated(AdvanceSerializer, request)
        result = transition_service.advance_stage(
            int(pk),
            user_id=self.actor(),
            notes=data["notes"],
            action_data=data["action_data"],
            expected_version=data["expected_version"],
        )
        return _advance_response(result)

    @extend_schema(request=AdvanceToSerializer)
    @action(detail=True, methods=["post"], url_path="advance-to")
    def advance_to(self, request, pk=None):
        data = _validated(AdvanceToSerializer, request)
        result = transition_service.advance_to_stage(
            int(pk),
            data["to_stage_id"],
            user_id=self.actor(),
            notes=data["notes"],
            action_data=data["action_data"],
            expected_version=data["expected_version"],
        )
        return _advance_response(result)

    @extend_schema(request=AdvanceValidatedSerializer)
    @action(detail=True, methods=["post"], url_path="advance-validated")
    def advance_validated(self, request, pk=None):
        data = _validated(AdvanceValidatedSerializer, request)
        result = transition_service.advance_item_with_validation(
            int(pk),
            self.actor(),
            [dict(a) for a in data["completed_actions"]],
            notes=data["notes"],
            expected_version=data["expected_version"],
        )
        return _advance_response(result)


# ===============================================================
# Completed archive
# ===============================================================

class CompletedItemViewSet(ActorMixin, viewsets.ReadOnlyModelViewSet):
    queryset = CompletedItem.objects.select_related("workflow", "final_location")
    serializer_class = CompletedItemSerializer
    filterset_class = CompletedItemFilter
    lookup_field = "item_id"
    lookup_value_regex = r"[^/]+"

    def retrieve(self, request, *args, **kwargs):
        completed = archive.get_completed_item(kwargs["item_id"])
        return Response(CompletedItemSerializer(completed).data)

    @action(detail=True, methods=["get"])
    def history(self, request, item_id=None):
        archive.get_completed_item(item_id)
        rows = archive.get_completed_item_history(item_id)
        return Response(CompletedItemHistorySerializer(rows, many=True).data)


# ===============================================================
# Locations
# ===============================================================

class LocationViewSet(ActorMixin, ServerControlledFieldsMixin, viewsets.ModelViewSet):
    queryset = Location.objects.all()
    serializer_class = LocationSerializer
    filterset_class = LocationFilter
    server_controlled_fields = ("current_occupancy",)

    def perform_create(self, serializer):
        serializer.save(created_by=self.actor())

    @action(detail=False, methods=["get"], url_path=r"by-stage/(?P<stage_id>[^/.]+)")
    def by_stage(self, request, stage_id=None):
        available_only = request.query_params.get("available") in {"1", "true", "yes"}
        if available_only:
            rows = locations.get_available_locations_for_stage(stage_id)
        else:
            rows = locations.get_locations_by_stage(stage_id)
        return Response(LocationSerializer(rows, many=True).data)

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        location = self.get_object()
        rows = locations.get_location_history(location.pk)
        return Response(LocationHistorySerializer(rows, many=True).data)

    @action(detail=True, methods=["post"])
    def recount(self, request, pk=None):
        location = self.get_object()
        locations.recount_occupancy(location)
        return Response(LocationSerializer(location).data)


# ===============================================================
# Notifications / activity
# ===============================================================

class NotificationViewSet(ActorMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = NotificationSerializer
    queryset = Notification.objects.none()

    def get_queryset(self):
        unread_only = self.request.query_params.get("unread") in {"1", "true", "yes"}
        return notification_service.get_notifications(self.actor(), unread_only=unread_only)

    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        notification = notification_service.mark_notification_read(int(pk), self.actor())
        return Response(NotificationSerializer(notification).data)

    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        return Response({"updated": notification_service.mark_all_notifications_read(self.actor())})

    @action(detail=False, methods=["get"], url_path="unread-count")
    def unread_count(self, request):
        return Response({"count": notification_service.unread_notification_count(self.actor())})


class ActivityLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = ActivityLog.objects.all().order_by("-timestamp", "-id")
    serializer_class = ActivityLogSerializer
    filterset_class = ActivityLogFilter
