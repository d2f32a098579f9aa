import json

import pytest

from tests.conftest import FakeClients, FakeNotification, FakeNotifier, FakeWindow
from wassel.models.domain.push_domain import NotificationData
from wassel.worker.push_bridge import PushBridge, build_deep_link, parse_push_payload

APP = "https://app.test"


def test_deep_links_per_notification_type():
    assert build_deep_link(NotificationData(type="trip_update", tripId="T1")) == "/?page=live-trip&tripId=T1"
    assert (
        build_deep_link(NotificationData(type="message", conversationId="C9"))
        == "/?page=messages&conversationId=C9"
    )
    assert build_deep_link(NotificationData(type="payment")) == "/?page=payments"
    assert build_deep_link(NotificationData()) == "/"


def test_view_action_uses_data_url():
    data = NotificationData(type="trip_update", tripId="T1", url="/?page=receipt")
    assert build_deep_link(data, "view") == "/?page=receipt"
    assert build_deep_link(NotificationData(), "view") == "/"


def test_plain_text_payload_becomes_body():
    payload = parse_push_payload(b"Your driver is here")

    assert payload.body == "Your driver is here"
    assert payload.title == "Wassel"


def test_non_object_json_becomes_body():
    assert parse_push_payload(b"[1, 2]").body == "[1, 2]"
    assert parse_push_payload(None).body == "New notification"


@pytest.mark.asyncio
async def test_push_renders_notification_with_deep_link(notifier, clients):
    bridge = PushBridge(notifier, clients, APP)
    raw = json.dumps(
        {"title": "Trip update", "body": "Driver arriving", "data": {"type": "trip_update", "tripId": "T1"}}
    ).encode()

    shown = await bridge.handle_push(raw)

    assert shown is True
    title, options = notifier.shown[0]
    assert title == "Trip update"
    assert options["body"] == "Driver arriving"
    assert options["icon"] == "/icon-192x192.png"
    assert options["badge"] == "/icon-72x72.png"
    assert options["tag"] == "default"
    assert options["data"]["deepLink"] == "/?page=live-trip&tripId=T1"


@pytest.mark.asyncio
async def test_push_is_silent_without_permission(clients):
    notifier = FakeNotifier(permission="denied")
    bridge = PushBridge(notifier, clients, APP)

    assert await bridge.handle_push(b'{"title": "x"}') is False
    assert notifier.shown == []


@pytest.mark.asyncio
async def test_click_focuses_open_window_and_navigates(notifier):
    window = FakeWindow(f"{APP}/?page=home")
    clients = FakeClients([FakeWindow("https://elsewhere.test/"), window])
    bridge = PushBridge(notifier, clients, APP)
    notification = FakeNotification({"type": "trip_update", "tripId": "T1"})

    outcome = await bridge.handle_notification_click(notification)

    assert notification.closed is True
    assert outcome.result == "focused"
    assert window.focused is True
    assert window.messages == [{"type": "NAVIGATE", "url": "/?page=live-trip&tripId=T1"}]
    assert clients.opened == []


@pytest.mark.asyncio
async def test_click_opens_window_when_none_open(notifier, clients):
    bridge = PushBridge(notifier, clients, APP)
    notification = FakeNotification({"type": "message", "conversationId": "C9"})

    outcome = await bridge.handle_notification_click(notification)

    assert outcome.result == "opened"
    assert clients.opened == ["/?page=messages&conversationId=C9"]


@pytest.mark.asyncio
async def test_push_event_is_kept_alive_until_shown(notifier, clients):
    bridge = PushBridge(notifier, clients, APP)

    bridge.on_push(b'{"title": "Payment received", "data": {"type": "payment"}}')
    assert notifier.shown == []
    await bridge.lifecycle.drain()

    assert notifier.shown[0][1]["data"]["deepLink"] == "/?page=payments"


@pytest.mark.asyncio
async def test_unknown_type_keeps_title_and_body(notifier, clients):
    bridge = PushBridge(notifier, clients, APP)

    await bridge.handle_push(b'{"title":"Driver nearby","body":"2 min away","data":{"type":"ride_request"}}')

    title, options = notifier.shown[0]
    assert title == "Driver nearby"
    assert options["body"] == "2 min away"
    assert options["data"]["type"] == "ride_request"
    assert options["data"]["deepLink"] == "/"


@pytest.mark.asyncio
async def test_numeric_trip_id_builds_deep_link(notifier, clients):
    bridge = PushBridge(notifier, clients, APP)

    await bridge.handle_push(b'{"title":"Trip update","data":{"type":"trip_update","tripId":42}}')

    title, options = notifier.shown[0]
    assert title == "Trip update"
    assert options["data"]["deepLink"] == "/?page=live-trip&tripId=42"


def test_invalid_data_field_keeps_other_fields():
    payload = parse_push_payload(b'{"title":"Payment received","body":"JOD 5","data":["x"]}')

    assert payload.title == "Payment received"
    assert payload.body == "JOD 5"
    assert payload.data.type is None


@pytest.mark.asyncio
async def test_click_ignores_window_on_lookalike_host(notifier):
    lookalike = FakeWindow("https://app.test.evil.com/")
    clients = FakeClients([lookalike])
    bridge = PushBridge(notifier, clients, APP)

    outcome = await bridge.handle_notification_click(FakeNotification({"type": "payment"}))

    assert outcome.result == "opened"
    assert lookalike.focused is False
    assert lookalike.messages == []
    assert clients.opened == ["/?page=payments"]
