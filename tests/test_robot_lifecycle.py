from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.clients.graph import GraphAPIError
from app.clients.keyed_store import StoreError
from app.core.config import SubscriptionSettings
from app.schemas.graph import GraphSubscription, SubscriptionRequest
from app.services.robot_lifecycle import (
    DEACTIVATED_MESSAGE,
    NOT_ACTIVATED_MESSAGE,
    SubscriptionLifecycleManager,
)
from app.services.subscription_store import SubscriptionRecordStore


class StubIdentityProvider:
    def __init__(self, token: str | None = "access-token", error: Exception | None = None) -> None:
        self.token = token
        self.error = error
        self.calls: list[str] = []

    async def acquire_token_silently(self, *, user_id: str) -> str | None:
        self.calls.append(user_id)
        if self.error is not None:
            raise self.error
        return self.token


class StubGraphClient:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.requests: list[SubscriptionRequest] = []
        self._ids = iter(f"S{index}" for index in range(1, 100))
        self._cursors = iter(f"cursor-{index}" for index in range(100))
        self.fail_update = False
        self.fail_create = False
        self.fail_delete = False
        self.fail_delta = False
        self.errors: dict[str, Exception] = {}

    def _maybe_raise(self, operation: str) -> None:
        if operation in self.errors:
            raise self.errors[operation]

    async def create_subscription(
        self, access_token: str, request: SubscriptionRequest
    ) -> GraphSubscription:
        await asyncio.sleep(0)
        self._maybe_raise("create")
        if self.fail_create:
            raise GraphAPIError("create rejected", status_code=400)
        subscription_id = next(self._ids)
        self.calls.append(("create", subscription_id))
        self.requests.append(request)
        return GraphSubscription(
            id=subscription_id, expiration_date_time=request.expiration_date_time
        )

    async def update_subscription(
        self, access_token: str, subscription_id: str, *, expiration: datetime
    ) -> GraphSubscription:
        await asyncio.sleep(0)
        self.calls.append(("update", subscription_id))
        self._maybe_raise("update")
        if self.fail_update:
            raise GraphAPIError("subscription expired", status_code=404)
        return GraphSubscription(id=subscription_id, expiration_date_time=expiration)

    async def delete_subscription(self, access_token: str, subscription_id: str) -> None:
        await asyncio.sleep(0)
        self.calls.append(("delete", subscription_id))
        self._maybe_raise("delete")
        if self.fail_delete:
            raise GraphAPIError("network unreachable")

    async def get_latest_delta_link(self, access_token: str, resource: str) -> str:
        await asyncio.sleep(0)
        self.calls.append(("delta", resource))
        self._maybe_raise("delta")
        if self.fail_delta:
            raise GraphAPIError("delta unavailable", status_code=503)
        return next(self._cursors)


def _settings() -> SubscriptionSettings:
    return SubscriptionSettings(
        NOTIFICATION_URL="https://robot.example.com/api/notifications",
        SUBSCRIPTION_RESOURCE="/me/drive/root",
        SUBSCRIPTION_CHANGE_TYPE="updated",
        SUBSCRIPTION_EXPIRATION_DAYS=3,
        SUBSCRIPTION_CLIENT_STATE="secret-state",
    )


@pytest.fixture
def graph() -> StubGraphClient:
    return StubGraphClient()


@pytest.fixture
def records(memory_store) -> SubscriptionRecordStore:
    return SubscriptionRecordStore(memory_store)


def _manager(graph, records, identity=None) -> SubscriptionLifecycleManager:
    return SubscriptionLifecycleManager(
        identity_provider=identity or StubIdentityProvider(),
        graph_client=graph,
        record_store=records,
        settings=_settings(),
    )


def _assert_about_three_days_out(expiration: datetime) -> None:
    expected = datetime.now(timezone.utc) + timedelta(days=3)
    assert abs(expiration - expected) < timedelta(minutes=1)


@pytest.mark.asyncio
async def test_first_activation_creates_subscription_and_record(graph, records) -> None:
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is True
    assert result.subscription_id == "S1"
    assert result.error_message is None
    _assert_about_three_days_out(result.expiration)
    assert graph.calls == [("create", "S1"), ("delta", "/me/drive/root")]

    request = graph.requests[0]
    assert request.change_type == "updated"
    assert request.resource == "/me/drive/root"
    assert request.client_state == "secret-state"
    assert request.notification_url == "https://robot.example.com/api/notifications"

    record = await records.find_by_user_id("U1")
    assert record.subscription_id == "S1"
    assert record.delta_link == "cursor-0"


@pytest.mark.asyncio
async def test_second_activation_renews_and_refreshes_cursor(graph, records, memory_store) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")

    result = await manager.activate("U1")

    assert result.success is True
    assert result.subscription_id == "S1"
    _assert_about_three_days_out(result.expiration)
    assert graph.calls[2:] == [("update", "S1"), ("delta", "/me/drive/root")]
    assert len(memory_store.partition("subscription")) == 1
    record = await records.find_by_user_id("U1")
    assert record.subscription_id == "S1"
    assert record.delta_link == "cursor-1"


@pytest.mark.asyncio
async def test_failed_renewal_falls_back_to_new_subscription(graph, records, memory_store) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    graph.fail_update = True

    result = await manager.activate("U1")

    assert result.success is True
    assert result.subscription_id == "S2"
    assert graph.calls[2:] == [
        ("update", "S1"),
        ("create", "S2"),
        ("delta", "/me/drive/root"),
    ]
    stored = memory_store.partition("subscription")
    assert [item["subscription_id"] for item in stored] == ["S2"]
    assert stored[0]["delta_link"] == "cursor-1"


@pytest.mark.asyncio
async def test_activation_fails_closed_without_token(graph, records, memory_store) -> None:
    manager = _manager(graph, records, StubIdentityProvider(token=None))

    result = await manager.activate("U1")

    assert result.success is False
    assert result.subscription_id is None
    assert result.error_message
    assert graph.calls == []
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_token_write_back_failure_is_reported(graph, records) -> None:
    identity = StubIdentityProvider(error=StoreError("write refused"))
    manager = _manager(graph, records, identity)

    result = await manager.activate("U1")

    assert result.success is False
    assert "write refused" in result.error_message
    assert graph.calls == []


@pytest.mark.asyncio
async def test_activation_does_not_touch_existing_record_without_token(graph, records) -> None:
    await _manager(graph, records).activate("U1")
    manager = _manager(graph, records, StubIdentityProvider(token=None))

    result = await manager.activate("U1")

    assert result.success is False
    record = await records.find_by_user_id("U1")
    assert record.delta_link == "cursor-0"


@pytest.mark.asyncio
async def test_create_failure_writes_nothing(graph, records, memory_store) -> None:
    graph.fail_create = True
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is False
    assert "create rejected" in result.error_message
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_delta_failure_discards_new_subscription(graph, records, memory_store) -> None:
    graph.fail_delta = True
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is False
    assert graph.calls == [("create", "S1"), ("delta", "/me/drive/root"), ("delete", "S1")]
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_store_failure_is_reported(graph, records, memory_store) -> None:
    memory_store.fail_writes = True
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is False
    assert "write refused" in result.error_message


@pytest.mark.asyncio
async def test_concurrent_activations_share_one_subscription(graph, records, memory_store) -> None:
    manager = _manager(graph, records)

    first, second = await asyncio.gather(manager.activate("U1"), manager.activate("U1"))

    assert first.success and second.success
    assert first.subscription_id == second.subscription_id == "S1"
    assert [call for call in graph.calls if call[0] == "create"] == [("create", "S1")]
    assert len(memory_store.partition("subscription")) == 1


@pytest.mark.asyncio
async def test_users_get_separate_subscriptions(graph, records) -> None:
    manager = _manager(graph, records)

    first = await manager.activate("U1")
    second = await manager.activate("U2")

    assert first.subscription_id != second.subscription_id
    assert (await records.find_by_user_id("U2")).subscription_id == second.subscription_id


@pytest.mark.asyncio
async def test_deactivate_removes_record_even_when_remote_delete_fails(
    graph, records, memory_store
) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    graph.fail_delete = True

    result = await manager.deactivate("U1")

    assert result.success is True
    assert result.message == DEACTIVATED_MESSAGE
    assert ("delete", "S1") in graph.calls
    assert memory_store.partition("subscription") == []


@pytest.mark.asyncio
async def test_deactivate_without_record_skips_remote_delete(graph, records) -> None:
    manager = _manager(graph, records)

    result = await manager.deactivate("U1")

    assert result.success is True
    assert result.message == NOT_ACTIVATED_MESSAGE
    assert graph.calls == []


@pytest.mark.asyncio
async def test_deactivate_without_token_has_no_side_effects(graph, records, memory_store) -> None:
    await _manager(graph, records).activate("U1")
    manager = _manager(graph, records, StubIdentityProvider(token=None))

    result = await manager.deactivate("U1")

    assert result.success is False
    assert ("delete", "S1") not in graph.calls
    assert len(memory_store.partition("subscription")) == 1


@pytest.mark.asyncio
async def test_deactivate_reports_local_delete_failure(graph, records, memory_store) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    memory_store.fail_writes = True

    result = await manager.deactivate("U1")

    assert result.success is False
    assert "delete refused" in result.message


@pytest.mark.asyncio
async def test_activate_after_deactivate_starts_over(graph, records) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    await manager.deactivate("U1")

    result = await manager.activate("U1")

    assert result.subscription_id == "S2"
    assert ("update", "S1") not in graph.calls


@pytest.mark.asyncio
async def test_identity_provider_crash_is_reported(graph, records, memory_store) -> None:
    identity = StubIdentityProvider(error=ConnectionError("instance discovery failed"))
    manager = _manager(graph, records, identity)

    activated = await manager.activate("U1")
    deactivated = await manager.deactivate("U1")

    assert activated.success is False
    assert "instance discovery failed" in activated.error_message
    assert deactivated.success is False
    assert graph.calls == []
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_unexpected_renewal_error_falls_back_to_create(graph, records, memory_store) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    graph.errors["update"] = ValueError("renewal body was not JSON")

    result = await manager.activate("U1")

    assert result.success is True
    assert result.subscription_id == "S2"
    stored = memory_store.partition("subscription")
    assert [item["subscription_id"] for item in stored] == ["S2"]


@pytest.mark.asyncio
async def test_unexpected_create_error_is_reported(graph, records, memory_store) -> None:
    graph.errors["create"] = RuntimeError("subscription body incomplete")
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is False
    assert "subscription body incomplete" in result.error_message
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_unexpected_delta_error_discards_new_subscription(graph, records, memory_store) -> None:
    graph.errors["delta"] = RuntimeError("connection reset")
    manager = _manager(graph, records)

    result = await manager.activate("U1")

    assert result.success is False
    assert ("delete", "S1") in graph.calls
    assert memory_store.writes == []


@pytest.mark.asyncio
async def test_unexpected_remote_delete_error_still_deactivates(
    graph, records, memory_store
) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    graph.errors["delete"] = OSError("socket closed")

    result = await manager.deactivate("U1")

    assert result.success is True
    assert result.message == DEACTIVATED_MESSAGE
    assert memory_store.partition("subscription") == []


@pytest.mark.asyncio
async def test_superseded_record_left_behind_still_reports_success(
    graph, records, memory_store
) -> None:
    manager = _manager(graph, records)
    await manager.activate("U1")
    graph.fail_update = True
    memory_store.fail_deletes = True

    result = await manager.activate("U1")

    assert result.success is True
    assert result.subscription_id == "S2"
    stored = memory_store.partition("subscription")
    assert sorted(item["subscription_id"] for item in stored) == ["S1", "S2"]
    assert (await records.find_by_subscription_id("S2")).delta_link == "cursor-1"
