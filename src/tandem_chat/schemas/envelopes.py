"""Realtime protocol envelopes exchanged over the WebSocket.

Inbound envelopes are parsed through :data:`inbound_adapter`, which
discriminates on ``type`` and rejects unknown types and malformed fields
before the relay acts on them. Outbound envelopes are rendered with
:func:`dump` so every frame uses the same camelCase keys.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, Field, TypeAdapter

from tandem_chat.core.settings import settings

from .common import CamelModel
from .message import MessageResponse


# Client -> server

class ConnectEnvelope(CamelModel):
    """Authentication handshake; must be the first envelope on a connection."""

    type: Literal["connect"]
    token: str = Field(..., min_length=1)


class ChatEnvelope(CamelModel):
    """A message addressed to ``to_user_id`` inside ``conversation_id``."""

    type: Literal["message"]
    conversation_id: str = Field(..., min_length=1, max_length=36)
    to_user_id: str = Field(..., min_length=1, max_length=36)
    # Older clients send the text under "message".
    body: str = Field(
        ...,
        min_length=1,
        max_length=settings.max_message_length,
        validation_alias=AliasChoices("body", "message"),
    )


class PingEnvelope(CamelModel):
    """Keepalive probe; answered with a pong. Sent by either side."""

    type: Literal["ping"] = "ping"


InboundEnvelope = Annotated[
    Union[ConnectEnvelope, ChatEnvelope, PingEnvelope],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter[Any] = TypeAdapter(InboundEnvelope)


# Server -> client

class ConnectedEnvelope(CamelModel):
    type: Literal["connected"] = "connected"
    user_id: str


class UserStatusEnvelope(CamelModel):
    type: Literal["user_status"] = "user_status"
    user_id: str
    online: bool


class DeliveryEnvelope(MessageResponse):
    """Message as delivered to the recipient and echoed to the sender."""

    type: Literal["message"] = "message"


class PongEnvelope(CamelModel):
    type: Literal["pong"] = "pong"


class ErrorEnvelope(CamelModel):
    """Recoverable failure reported to the sender; the connection stays open.

    A ``persistence_error`` caused by a timeout does not mean the write was
    abandoned: the row can still be committed after the relay stops waiting,
    so a client that retries may store the message twice.
    """

    type: Literal["error"] = "error"
    code: Literal["validation_error", "persistence_error"]
    detail: str


def dump(envelope: CamelModel) -> dict[str, Any]:
    """Render an outbound envelope as a JSON-ready dict."""
    return envelope.model_dump(mode="json", by_alias=True)
