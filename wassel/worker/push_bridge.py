# wassel/worker/push_bridge.py
"""
Push/notification bridge.

Turns push payloads into rendered notifications carrying a deep link, and
routes notification clicks back into an open window (or a new one).

The platform surfaces (notification display, window clients) are injected
as protocols so the bridge runs the same under tests and in the runtime.
"""

import asyncio
import json
from typing import Any, Protocol
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.push_domain import (
    ClickOutcome,
    NavigateMessage,
    NotificationData,
    PushPayload,
)
from wassel.worker.lifecycle import Lifecycle

logger = get_logger(__name__)

DEEP_LINK_KEY = "deepLink"


class Notifier(Protocol):
    """Displays notifications. `permission` mirrors the platform grant."""

    permission: str

    async def show_notification(self, title: str, options: dict[str, Any]) -> None: ...


class ShownNotification(Protocol):
    data: dict[str, Any]

    def close(self) -> None: ...


class WindowClient(Protocol):
    url: str

    async def post_message(self, message: dict[str, Any]) -> None: ...

    async def focus(self) -> None: ...


class ClientRegistry(Protocol):
    async def match_all(self) -> list[WindowClient]: ...

    async def open_window(self, url: str) -> WindowClient | None: ...


def build_deep_link(data: NotificationData, action: str | None = None) -> str:
    """Path that restores the view a notification is about."""
    if action == "view":
        return data.url or "/"

    if data.type == "trip_update":
        return "/?" + urlencode({"page": "live-trip", "tripId": data.trip_id or ""})
    if data.type == "message":
        return "/?" + urlencode({"page": "messages", "conversationId": data.conversation_id or ""})
    if data.type == "payment":
        return "/?" + urlencode({"page": "payments"})
    return "/"


def parse_push_payload(raw: bytes | str | None) -> PushPayload:
    """JSON object -> PushPayload; anything else becomes the body text."""
    if raw is None:
        return PushPayload()

    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return PushPayload(body=text) if text else PushPayload()

    if not isinstance(decoded, dict):
        return PushPayload(body=text)

    try:
        return PushPayload.model_validate(decoded)
    except ValidationError as e:
        invalid = {error["loc"][0] for error in e.errors() if error["loc"]}
        logger.warning("Push payload fields failed validation, using defaults", fields=sorted(map(str, invalid)))

    # Fields that failed validation fall back to their defaults; the rest are kept
    return PushPayload.model_validate({k: v for k, v in decoded.items() if k not in invalid})


class PushBridge:
    def __init__(
        self,
        notifier: Notifier,
        clients: ClientRegistry,
        app_origin: str,
        lifecycle: Lifecycle | None = None,
    ):
        self.notifier = notifier
        self.clients = clients
        self.app_origin = httpx.URL(app_origin)
        self.lifecycle = lifecycle or Lifecycle()

    def _same_origin(self, url: str) -> bool:
        candidate = httpx.URL(url)
        return (candidate.scheme, candidate.host, candidate.port) == (
            self.app_origin.scheme,
            self.app_origin.host,
            self.app_origin.port,
        )

    def on_push(self, raw: bytes | str | None) -> asyncio.Task:
        """Event entry point; keeps the display alive until it completes."""
        return self.lifecycle.wait_until(self.handle_push(raw), name="push")

    def on_notification_click(self, notification: ShownNotification, action: str | None = None) -> asyncio.Task:
        return self.lifecycle.wait_until(
            self.handle_notification_click(notification, action), name="notification-click"
        )

    async def handle_push(self, raw: bytes | str | None) -> bool:
        """Render a notification for `raw`. Returns False when nothing was shown."""
        if self.notifier.permission != "granted":
            logger.info("Notification permission not granted, dropping push")
            return False

        payload = parse_push_payload(raw)
        options = payload.notification_options()
        options["data"][DEEP_LINK_KEY] = build_deep_link(payload.data)

        await self.notifier.show_notification(payload.title, options)
        logger.info("Notification shown", tag=payload.tag, type=payload.data.type)
        return True

    async def handle_notification_click(
        self, notification: ShownNotification, action: str | None = None
    ) -> ClickOutcome:
        notification.close()

        data = NotificationData.model_validate(notification.data or {})
        if action == "view":
            url = build_deep_link(data, action)
        else:
            url = (notification.data or {}).get(DEEP_LINK_KEY) or build_deep_link(data)

        for client in await self.clients.match_all():
            if self._same_origin(client.url):
                await client.post_message(NavigateMessage(url=url).model_dump())
                await client.focus()
                logger.info("Notification click focused window", url=url)
                return ClickOutcome(url=url, result="focused")

        opened = await self.clients.open_window(url)
        logger.info("Notification click opened window", url=url, opened=opened is not None)
        return ClickOutcome(url=url, result="opened" if opened is not None else "none")
