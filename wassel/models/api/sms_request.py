# wassel/models/api/sms_request.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

E164_PATTERN = r"^\+[1-9]\d{1,14}$"


class SmsSendRequest(BaseModel):
    """Outbound SMS; `to` must be E.164 (e.g. +1234567890)."""

    to: str = Field(..., pattern=E164_PATTERN)
    message: str = Field(..., min_length=1, max_length=1600)
    type: str = "notification"


class SmsSendResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message_sid: str
    status: str | None = None
