# ops_core/mixins.py
from __future__ import annotations

from rest_framework.exceptions import ValidationError

from .signals import set_current_user


# ===============================================================
# Utilities
# ===============================================================

def _deny_if_payload_has(request, fields: list[str], message: str):
    """
    Reject requests that attempt to mutate server-controlled fields.
    Makes violations noisy and testable.
    """
    incoming = getattr(request, "data", {}) or {}
    present = [f for f in fields if f in incoming]
    if present:
        raise ValidationError({f: message for f in present})


# ===============================================================
# Actor resolution
# ===============================================================

class ActorMixin:
    """
    Exposes the authenticated user as a plain string id for the services
    and pushes it to the audit signals once DRF has authenticated.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        user = getattr(request, "user", None)
        set_current_user(user if user is not None and user.is_authenticated else None)

    def actor(self) -> str:
        user = getattr(self.request, "user", None)
        if not user or not user.is_authenticated:
            return ""
        return user.get_username()


# ===============================================================
# Server-controlled fields
# ===============================================================

class ServerControlledFieldsMixin:
    server_controlled_fields: tuple[str, ...] = ()

    def create(self, request, *args, **kwargs):
        _deny_if_payload_has(request, list(self.server_controlled_fields), "This field is server-controlled.")
        return super().create(request, *args, **kwargs)

    def update(self, request, *args, **kwargs):
        _deny_if_payload_has(request, list(self.server_controlled_fields), "This field is server-controlled.")
        return super().update(request, *args, **kwargs)
