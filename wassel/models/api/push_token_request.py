# models/api/push_token_request.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RegisterPushTokenRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str = Field(..., min_length=1)
    user_id: str | None = None


class UnregisterPushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)
