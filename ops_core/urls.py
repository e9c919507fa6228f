# ops_core/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    ActivityLogViewSet,
    CompletedItemViewSet,
    HealthCheckView,
    ItemViewSet,
    LocationViewSet,
    NotificationViewSet,
    WorkflowViewSet,
)

router = DefaultRouter()
router.register(r"workflows", WorkflowViewSet, basename="workflow")
router.register(r"items", ItemViewSet, basename="item")
router.register(r"completed-items", CompletedItemViewSet, basename="completed-item")
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"notifications", NotificationViewSet, basename="notification")
router.register(r"activity", ActivityLogViewSet, basename="activity")

urlpatterns = [
    path("health/", HealthCheckView.as_view(), name="health"),
    path("", include(router.urls)),
]
