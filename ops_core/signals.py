# ops_core/signals.py
from __future__ import annotations

from threading import local

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from ops_core.models import ActivityLog, Location, Workflow
from ops_core.services.outbox import log_activity

# ===============================================================
# Thread-local user storage
# ===============================================================
_state = local()


def set_current_user(user):
    _state.user = user


def get_current_user():
    return getattr(_state, "user", None)


# ===============================================================
# Utilities
# ===============================================================
AUDITED = {
    Workflow: ActivityLog.EntityType.WORKFLOW,
    Location: ActivityLog.EntityType.LOCATION,
}


def _safe_username(user) -> str:
    if not user:
        return "system"
    try:
        return user.get_username()
    except Exception:
        return getattr(user, "username", "system")


def _log(action: str, instance, details: dict | None = None):
    entity_type = AUDITED[instance.__class__]
    log_activity(
        action=f"{entity_type}_{action}",
        entity_type=entity_type,
        entity_id=instance.pk,
        description=f"{instance.__class__.__name__} {instance} {action}",
        user_id=_safe_username(get_current_user()),
        metadata=details or {"name": getattr(instance, "name", "")},
    )


# ===============================================================
# CREATE / UPDATE / DELETE audit (definitions and locations)
# ===============================================================
@receiver(post_save)
def audit_create_update(sender, instance, created, raw=False, **kwargs):
    if sender not in AUDITED or raw:
        return

    _log("created" if created else "updated", instance)


@receiver(post_delete)
def audit_delete(sender, instance, **kwargs):
    if sender not in AUDITED:
        return

    _log("deleted", instance)
