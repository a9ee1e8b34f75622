"""HTTP-level tests for the assignment endpoints (dependencies overridden)."""

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from uuid import uuid4

from app.api.deps import (
    get_assignment_service,
    get_customer_repo,
    get_event_repo,
    get_user_repo,
)
from app.main import app
from app.schemas.common import Role

from conftest import build_service, make_user


@pytest_asyncio.fixture
async def wired(store):
    """Point every repository dependency at the in-memory store."""
    service = build_service()

    async def _store():
        return store

    async def _service():
        return service

    app.dependency_overrides[get_customer_repo] = _store
    app.dependency_overrides[get_user_repo] = _store
    app.dependency_overrides[get_event_repo] = _store
    app.dependency_overrides[get_assignment_service] = _service
    yield store
    app.dependency_overrides.clear()


def _as(user) -> dict:
    return {"X-User-Id": str(user.user_id), "User-Agent": "pytest-client"}


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_health_returns_ok(self, async_client):
        response = await async_client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestActorResolution:
    @pytest.mark.asyncio
    async def test_missing_header_is_401(self, async_client, wired):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim"
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user_is_401(self, async_client, wired):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers={"X-User-Id": str(uuid4())},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_deactivated_user_is_403(self, async_client, wired):
        user = wired.add_user(make_user(is_active=False))
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim", headers=_as(user)
        )
        assert response.status_code == 403


class TestTransitionEndpoint:
    @pytest.mark.asyncio
    async def test_claim_returns_success_body(self, async_client, wired, assistant_a):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers=_as(assistant_a),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["assigned_to"] == str(assistant_a.user_id)
        assert body["assignment_status"] == "assigned"
        assert body["audit_event_id"]
        assert wired.events[0].request_metadata["userAgent"] == "pytest-client"

    @pytest.mark.asyncio
    async def test_conflict_maps_to_409(
        self, async_client, wired, assistant_a, assistant_b
    ):
        customer_id = wired.add_customer(assigned_to=assistant_b.user_id)
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers=_as(assistant_a),
        )
        assert response.status_code == 409
        assert response.json()["error_kind"] == "Conflict"

    @pytest.mark.asyncio
    async def test_forbidden_maps_to_403(self, async_client, wired, assistant_a):
        customer_user = wired.add_user(make_user(role=Role.customer))
        customer_id = wired.add_customer(assigned_to=assistant_a.user_id)
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/transfer",
            headers=_as(customer_user),
            json={"recipient_id": str(uuid4())},
        )
        assert response.status_code == 403
        body = response.json()
        assert body["success"] is False
        assert body["error_kind"] == "Forbidden"

    @pytest.mark.asyncio
    async def test_capacity_maps_to_400(self, async_client, wired, admin):
        full = wired.add_user(make_user(max_customers_limit=0))
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/assign",
            headers=_as(admin),
            json={"recipient_id": str(full.user_id)},
        )
        assert response.status_code == 400
        assert response.json()["error_kind"] == "CapacityExceeded"

    @pytest.mark.asyncio
    async def test_unknown_customer_maps_to_404(self, async_client, wired, admin):
        response = await async_client.post(
            f"/api/v1/customers/{uuid4()}/assignment/unassign", headers=_as(admin)
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_transition_maps_to_409(self, async_client, wired, admin):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/unassign", headers=_as(admin)
        )
        assert response.status_code == 409
        assert response.json()["error_kind"] == "InvalidTransition"

    @pytest.mark.asyncio
    async def test_missing_recipient_maps_to_422(self, async_client, wired, admin):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/assign",
            headers=_as(admin),
            json={"reason": "no recipient"},
        )
        assert response.status_code == 422
        assert response.json()["error_kind"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_store_unavailable_maps_to_503(self, async_client, wired, admin):
        customer_id = wired.add_customer()

        async def find_ownership_down(_customer_id):
            raise OperationalError("SELECT", {}, ConnectionRefusedError())

        # only the ownership read fails; the actor lookup still works
        wired.find_ownership = find_ownership_down
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/unassign", headers=_as(admin)
        )
        assert response.status_code == 503
        assert response.json()["error_kind"] == "StoreUnavailable"

    @pytest.mark.asyncio
    async def test_unknown_action_is_422(self, async_client, wired, admin):
        customer_id = wired.add_customer()
        response = await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/steal", headers=_as(admin)
        )
        assert response.status_code == 422
        assert response.json()["type"] == "validation_error"


class TestReadEndpoints:
    @pytest.mark.asyncio
    async def test_owner_reads_assignment(self, async_client, wired, assistant_a):
        customer_id = wired.add_customer(assigned_to=assistant_a.user_id)
        response = await async_client.get(
            f"/api/v1/customers/{customer_id}/assignment", headers=_as(assistant_a)
        )
        assert response.status_code == 200
        assert response.json()["assignment_status"] == "assigned"

    @pytest.mark.asyncio
    async def test_non_owner_cannot_read(
        self, async_client, wired, assistant_a, assistant_b
    ):
        customer_id = wired.add_customer(assigned_to=assistant_a.user_id)
        response = await async_client.get(
            f"/api/v1/customers/{customer_id}/assignment", headers=_as(assistant_b)
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_history_after_claim(
        self, async_client, wired, supervisor, assistant_a
    ):
        customer_id = wired.add_customer()
        await async_client.post(
            f"/api/v1/customers/{customer_id}/assignment/claim",
            headers=_as(assistant_a),
        )
        response = await async_client.get(
            f"/api/v1/customers/{customer_id}/assignment/history",
            headers=_as(supervisor),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["events"][0]["action"] == "claimed"

    @pytest.mark.asyncio
    async def test_workload(self, async_client, wired, supervisor):
        assistant = wired.add_user(make_user(max_customers_limit=5))
        wired.add_customer(assigned_to=assistant.user_id)
        response = await async_client.get(
            f"/api/v1/assistants/{assistant.user_id}/workload",
            headers=_as(supervisor),
        )
        assert response.status_code == 200
        assert response.json() == {
            "assistant_id": str(assistant.user_id),
            "current_count": 1,
            "limit": 5,
            "available": 4,
        }
