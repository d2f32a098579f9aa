# models/domain/push_domain.py
"""
Push payload and notification domain models.

Payloads arrive from the push service as JSON. Unknown fields are kept in
`data` because the deep-link builder only needs the type discriminator plus
the related identifiers.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TITLE = "Wassel"
DEFAULT_BODY = "New notification"
DEFAULT_ICON = "/icon-192x192.png"
DEFAULT_BADGE = "/icon-72x72.png"
DEFAULT_TAG = "default"
VIBRATE_PATTERN = [100, 50, 100]


class NotificationData(BaseModel):
    """
    Opaque notification data carrying the deep-link discriminator.

    `type` is free-form: values other than trip_update, message and payment
    deep-link to the root. Numeric ids are accepted as strings.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    type: str | None = None
    trip_id: str | None = Field(default=None, alias="tripId")
    conversation_id: str | None = Field(default=None, alias="conversationId")
    url: str | None = None


class NotificationAction(BaseModel):
    action: str
    title: str
    icon: str | None = None


class PushPayload(BaseModel):
    """Server-pushed message; every field falls back to a display default."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = DEFAULT_TITLE
    body: str = DEFAULT_BODY
    icon: str = DEFAULT_ICON
    badge: str = DEFAULT_BADGE
    tag: str = DEFAULT_TAG
    data: NotificationData = Field(default_factory=NotificationData)
    actions: list[NotificationAction] = Field(default_factory=list)
    require_interaction: bool = Field(default=False, alias="requireInteraction")

    def notification_options(self) -> dict[str, Any]:
        """Options handed to the notifier alongside the title."""
        return {
            "body": self.body,
            "icon": self.icon,
            "badge": self.badge,
            "tag": self.tag,
            "vibrate": list(VIBRATE_PATTERN),
            "data": self.data.model_dump(by_alias=True, exclude_none=True),
            "actions": [a.model_dump(exclude_none=True) for a in self.actions],
            "requireInteraction": self.require_interaction,
        }


class NavigateMessage(BaseModel):
    """Worker -> page message asking an open window to route to `url`."""

    type: Literal["NAVIGATE"] = "NAVIGATE"
    url: str


class ClickOutcome(BaseModel):
    """What a notification click ended up doing."""

    url: str
    result: Literal["focused", "opened", "none"]
