# ops_core/tests/conftest.py

from __future__ import annotations

import copy
import uuid
from typing import Any, Callable, Dict, List, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from ops_core.models import Item, Location, Workflow
from ops_core.services.items import create_item
from ops_core.services.workflow_definitions import create_workflow
from ops_core.tests.stage_data import CUT_SEW_PACK


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # force_authenticate(user=None) would recurse into logout()
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


@pytest.fixture
def user_operator(db):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username="operator", defaults={"is_staff": False})
    user.set_password("pass123")
    user.save(update_fields=["password"])
    return user


@pytest.fixture
def user_supervisor(db):
    User = get_user_model()
    user, _ = User.objects.get_or_create(username="supervisor", defaults={"is_staff": True})
    user.set_password("pass123")
    user.is_staff = True
    user.save(update_fields=["password", "is_staff"])
    return user


@pytest.fixture
def operator_client(api_client, user_operator) -> AuthAPIClient:
    assert api_client.login(username="operator", password="pass123")
    return api_client


@pytest.fixture
def workflow_factory(db) -> Callable[..., Workflow]:
    """
    Factory for workflows built through the definition service, so orders
    and action configs go through the same validation as the API.
    """

    def _factory(
        *,
        stages: Optional[List[Dict[str, Any]]] = None,
        name: Optional[str] = None,
        **extra: Any,
    ) -> Workflow:
        extra.setdefault("created_by", "planner")
        return create_workflow(
            name=name or _rand("Line"),
            stages=copy.deepcopy(stages if stages is not None else CUT_SEW_PACK),
            **extra,
        )

    return _factory


@pytest.fixture
def cut_sew_pack(workflow_factory) -> Workflow:
    return workflow_factory(name="Shirts")


@pytest.fixture
def location_factory(db) -> Callable[..., Location]:
    def _factory(
        *,
        name: Optional[str] = None,
        capacity: Optional[int] = None,
        assigned_stage_id: str = "",
        is_active: bool = True,
        **extra: Any,
    ) -> Location:
        return Location.objects.create(
            name=name or _rand("BIN"),
            capacity=capacity,
            assigned_stage_id=assigned_stage_id,
            is_active=is_active,
            **extra,
        )

    return _factory


@pytest.fixture
def item_factory(db) -> Callable[..., Item]:
    def _factory(
        *,
        workflow: Workflow,
        item_id: Optional[str] = None,
        assigned_to: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Item:
        return create_item(
            item_id=item_id or _rand("SHIRT"),
            workflow_id=workflow.pk,
            metadata=metadata,
            assigned_to=assigned_to,
            created_by="planner",
        )

    return _factory
