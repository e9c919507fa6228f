# ops_core/tasks.py
from __future__ import annotations

from celery import shared_task
from django.conf import settings

from ops_core.services.outbox import deliver_event, dispatch_pending_events


@shared_task(ignore_result=True)
def deliver_outbox_event(event_id: int) -> bool:
    return deliver_event(event_id)


@shared_task
def sweep_outbox(limit: int | None = None) -> int:
    return dispatch_pending_events(limit or getattr(settings, "OUTBOX_SWEEP_BATCH", 200))
