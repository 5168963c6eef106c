from urllib.parse import parse_qs, urlparse

import pytest
from firebase_admin import messaging

from apps.api.device.schema import AllResidents, FlatResidents
from apps.api.notification.schema import ActionType, NotificationPayload
from apps.api.notification.service import NotificationDispatcher
from apps.api.residency.models import Residency
from apps.api.visitor.schema import VisitorStatus
from apps.settings import settings
from core.exceptions.request import InvalidRequestException
from core.notifications.firebase_cloud_messaging.core import FirebaseCloudMessagingCore
from core.notifications.gateway import PushErrorCode

BASE_URL = "https://gate.example.com"


def general(title="Water outage", body="No water 2-4pm"):
    return NotificationPayload(title=title, body=body)


async def test_visitor_request_goes_to_flat_and_admin(dispatcher, gateway, make_request):
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert result.success_count == 2
    assert result.failure_count == 0
    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T1"]

    message = gateway.calls[0]["message"]
    assert message.notification.title == "New Visitor Request"
    assert message.notification.body == "John is requesting entry."
    assert message.data["actionType"] == "VISITOR_REQUEST"
    assert message.data["requestId"] == request.id
    assert message.data["block"] == "Block A"
    assert message.data["flat"] == "101"
    assert message.android.channel_id == "visitor_requests"
    assert message.apns.headers == {"apns-priority": "10"}
    assert message.webpush.headers == {"Urgency": "high"}
    assert message.webpush.link == BASE_URL + "/"
    assert [a["action"] for a in message.webpush.actions] == ["approve", "reject"]


async def test_action_urls_carry_the_approval_token(dispatcher, gateway, make_request):
    request = await make_request()
    await dispatcher.dispatch_visitor_request("R1", request.id)

    data = gateway.calls[0]["message"].data
    for action in ("approve", "reject"):
        url = urlparse(data[f"actionUrl{action.capitalize()}"])
        assert f"{url.scheme}://{url.netloc}" == BASE_URL
        assert url.path == "/action"
        query = parse_qs(url.query)
        assert query == {
            "action": [action],
            "residencyId": ["R1"],
            "requestId": [request.id],
            "approvalToken": [request.approval_token],
        }


async def test_request_is_notified_at_most_once(dispatcher, gateway, store, make_request):
    request = await make_request()

    first = await dispatcher.dispatch_visitor_request("R1", request.id)
    second = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert first.success_count == 2
    assert second.skipped_reason == "already_sent"
    assert len(gateway.calls) == 1
    assert (await store.read("R1", request.id)).notification_sent is True


async def test_decided_request_is_not_notified(dispatcher, gateway, store, make_request):
    request = await make_request()
    await store.transition("R1", request.id, VisitorStatus.REJECTED, actor="alice")

    result = await dispatcher.dispatch_visitor_request("R1", request.id)
    assert result.skipped_reason == "not_pending"
    assert gateway.calls == []


async def test_failed_delivery_leaves_request_unsent(dispatcher, gateway, store, make_request):
    gateway.failures = {
        "T1": PushErrorCode.QUOTA_EXCEEDED,
        "ADMIN-T": PushErrorCode.QUOTA_EXCEEDED,
    }
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert result.success_count == 0
    assert result.failure_count == 2
    assert result.invalidated_count == 0
    assert (await store.read("R1", request.id)).notification_sent is False


async def test_visitor_request_payload_needs_request_id(dispatcher, residency):
    payload = NotificationPayload(
        title="New Visitor Request",
        body="Someone is at the gate",
        action_type=ActionType.VISITOR_REQUEST,
    )
    with pytest.raises(InvalidRequestException):
        await dispatcher.dispatch("R1", FlatResidents(flat_id="F1"), payload)


async def test_no_tokens(dispatcher, gateway, session, residency):
    residency.admin_fcm_token = None
    await session.commit()

    result = await dispatcher.dispatch("R1", FlatResidents(flat_id="F1"), general())
    # alice still has T1
    assert result.success_count == 1

    result = await dispatcher.dispatch("R1", FlatResidents(flat_id="missing"), general())
    assert result.skipped_reason == "no_tokens"
    assert len(gateway.calls) == 1


async def test_admin_tokens_are_deduplicated(dispatcher, gateway, session, residency):
    row = await session.get(Residency, "R1")
    row.admin_fcm_tokens = ["T1"]
    await session.commit()

    await dispatcher.dispatch("R1", AllResidents(), general())
    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T-CAROL", "T1"]


async def test_permanent_failures_are_pruned(dispatcher, gateway, directory, make_request):
    gateway.failures = {"T1": PushErrorCode.NOT_REGISTERED}
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert result.success_count == 1
    assert result.failure_count == 1
    assert result.invalidated_count == 1
    assert len(gateway.calls) == 1
    assert await directory.resolve_tokens("R1", FlatResidents(flat_id="F1")) == set()


async def test_transient_failures_are_retried_a_bounded_number_of_times(
    dispatcher, gateway, directory, make_request
):
    gateway.failures = {"T1": PushErrorCode.SERVER_UNAVAILABLE}
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert len(gateway.calls) == settings.PUSH_MAX_RETRIES + 1
    assert [call["tokens"] for call in gateway.calls[1:]] == [["T1"]] * settings.PUSH_MAX_RETRIES
    assert result.success_count == 1
    assert result.failure_count == 1
    # Transient failures never prune
    assert result.invalidated_count == 0
    assert await directory.resolve_tokens("R1", FlatResidents(flat_id="F1")) == {"T1"}


async def test_transient_then_success(dispatcher, gateway, make_request):
    gateway.failures = {"T1": [PushErrorCode.INTERNAL_ERROR, None]}
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert len(gateway.calls) == 2
    assert result.success_count == 2
    assert result.failure_count == 0


async def test_no_retries_when_disabled(dispatcher, gateway, make_request, monkeypatch):
    monkeypatch.setattr(settings, "PUSH_MAX_RETRIES", 0)
    gateway.failures = {"T1": PushErrorCode.INTERNAL_ERROR}
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)
    assert len(gateway.calls) == 1
    assert result.failure_count == 1


async def test_bad_payload_is_not_blamed_on_tokens(dispatcher, gateway, directory, make_request):
    gateway.failures = {
        "T1": PushErrorCode.INVALID_ARGUMENT,
        "ADMIN-T": PushErrorCode.INVALID_ARGUMENT,
    }
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert result.failure_count == 2
    assert result.invalidated_count == 0
    assert await directory.resolve_tokens("R1", FlatResidents(flat_id="F1")) == {"T1"}
    assert await directory.admin_tokens("R1") == {"ADMIN-T"}


async def test_refused_payload_raises_and_keeps_tokens(
    dispatcher, gateway, directory, store, make_request
):
    gateway.refusals = [PushErrorCode.INVALID_ARGUMENT]
    request = await make_request()

    with pytest.raises(InvalidRequestException) as exc:
        await dispatcher.dispatch_visitor_request("R1", request.id)

    assert exc.value.error_code == "PUSH_PAYLOAD_REJECTED"
    assert len(gateway.calls) == 1
    assert await directory.resolve_tokens("R1", FlatResidents(flat_id="F1")) == {"T1"}
    assert await directory.admin_tokens("R1") == {"ADMIN-T"}
    assert (await store.read("R1", request.id)).notification_sent is False


async def test_refused_send_during_outage_is_retried(dispatcher, gateway, make_request):
    gateway.refusals = [PushErrorCode.SERVER_UNAVAILABLE]
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert len(gateway.calls) == 2
    assert gateway.calls[1]["tokens"] == gateway.calls[0]["tokens"]
    assert result.success_count == 2


async def test_refused_send_counts_every_token_as_failed(
    dispatcher, gateway, directory, make_request
):
    gateway.refusals = [PushErrorCode.QUOTA_EXCEEDED]
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert len(gateway.calls) == 1
    assert result.success_count == 0
    assert result.failure_count == 2
    assert result.invalidated_count == 0
    assert await directory.admin_tokens("R1") == {"ADMIN-T"}


async def test_large_residency_keeps_every_token(
    session, directory, store, residency, make_request, monkeypatch
):
    """More devices than one FCM call accepts are delivered without pruning."""
    admin_tokens = [f"ADMIN-{i:04d}" for i in range(600)]
    row = await session.get(Residency, "R1")
    row.admin_fcm_tokens = admin_tokens
    await session.commit()

    def fake_send_each(messages, dry_run=False, app=None):
        if len(messages) > 500:
            raise ValueError("messages must not contain more than 500 elements")
        return messaging.BatchResponse(
            [messaging.SendResponse({"name": m.token}, None) for m in messages]
        )

    monkeypatch.setattr(messaging, "send_each", fake_send_each)
    dispatcher = NotificationDispatcher(
        session=session,
        directory=directory,
        store=store,
        gateway=FirebaseCloudMessagingCore(),
        base_url=BASE_URL,
    )
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)

    assert result.failure_count == 0
    assert result.invalidated_count == 0
    assert result.success_count == len(admin_tokens) + 2
    assert set(admin_tokens) <= await directory.admin_tokens("R1")
    assert await directory.resolve_tokens("R1", FlatResidents(flat_id="F1")) == {"T1"}


async def test_missing_gateway_degrades(session, directory, store, make_request):
    dispatcher = NotificationDispatcher(
        session=session, directory=directory, store=store, gateway=None, base_url=BASE_URL
    )
    request = await make_request()

    result = await dispatcher.dispatch_visitor_request("R1", request.id)
    assert result.skipped_reason == "push_unavailable"
    assert (await store.read("R1", request.id)).notification_sent is False


async def test_webpush_link_needs_https(session, directory, store, gateway, make_request):
    dispatcher = NotificationDispatcher(
        session=session,
        directory=directory,
        store=store,
        gateway=gateway,
        base_url="http://localhost:8000/",
    )
    request = await make_request()
    await dispatcher.dispatch_visitor_request("R1", request.id)

    message = gateway.calls[0]["message"]
    assert message.webpush.link is None
    assert message.data["actionUrlApprove"].startswith("http://localhost:8000/action?")


async def test_approval_notifies_the_gate(dispatcher, gateway, store, make_request):
    request = await make_request()
    request = await store.transition("R1", request.id, VisitorStatus.APPROVED, actor="alice")

    result = await dispatcher.notify_status_change("R1", request, "approved", actor="alice")

    assert result.success_count == 2
    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T-GUARD"]
    message = gateway.calls[0]["message"]
    assert message.notification.title == "Visitor Approved"
    assert message.notification.body == "John was approved for flat 101."
    assert message.data["actionBy"] == "alice"
    assert message.data["actionType"] == "STATUS_UPDATE"
    assert message.webpush.actions is None


async def test_gate_events_notify_the_flat(dispatcher, gateway, make_request):
    request = await make_request()

    await dispatcher.notify_status_change("R1", request, "arrived", actor="gary")

    assert sorted(gateway.sent_tokens) == ["ADMIN-T", "T1"]
    assert gateway.calls[0]["message"].notification.body == "John has arrived at the gate."
