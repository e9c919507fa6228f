# ops_core/models/__init__.py

from .core import Location, Stage, StageAction, TimeStampedModel, Workflow
from .items import (
    CompletedItem,
    CompletedItemHistory,
    HistoryAction,
    Item,
    ItemHistory,
    LocationHistory,
)
from .events import ActivityLog, Notification, OutboxEvent

__all__ = [
    "TimeStampedModel",
    "Workflow",
    "Stage",
    "StageAction",
    "Location",
    "Item",
    "ItemHistory",
    "HistoryAction",
    "CompletedItem",
    "CompletedItemHistory",
    "LocationHistory",
    "Notification",
    "ActivityLog",
    "OutboxEvent",
]
