# wassel/worker/messages.py
"""
Control messages exchanged between the page and the worker context.

Each message is a serializable record tagged by `type`; nothing else crosses
the context boundary.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class SkipWaitingMessage(BaseModel):
    """Activate a freshly installed worker version right away."""

    type: Literal["SKIP_WAITING"]


class ClearCacheMessage(BaseModel):
    """Delete every managed cache group."""

    type: Literal["CLEAR_CACHE"]


class CacheUrlsMessage(BaseModel):
    """Force-populate the runtime cache group with `urls`."""

    type: Literal["CACHE_URLS"]
    urls: list[str] = Field(default_factory=list)


class GetCacheSizeMessage(BaseModel):
    """Acknowledged with a placeholder size; never actually computed."""

    type: Literal["GET_CACHE_SIZE"]


ControlMessage = Annotated[
    Union[SkipWaitingMessage, ClearCacheMessage, CacheUrlsMessage, GetCacheSizeMessage],
    Field(discriminator="type"),
]

control_message_adapter: TypeAdapter[ControlMessage] = TypeAdapter(ControlMessage)


class CacheSizeReply(BaseModel):
    type: Literal["CACHE_SIZE"] = "CACHE_SIZE"
    size: str = "calculating..."


class CacheUrlsReply(BaseModel):
    type: Literal["CACHE_URLS_DONE"] = "CACHE_URLS_DONE"
    cached: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
