"""Realtime message relay.

Each WebSocket runs a small state machine::

    UNAUTHENTICATED --connect(valid token)--> AUTHENTICATED --disconnect--> CLOSED
           |                                                                  ^
           +---------------- anything else / bad token ----------------------+

Frames from one connection are handled strictly in arrival order: the next
frame is not read until the previous one (including its database write) has
finished. Frames from different connections interleave freely on the event
loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from fastapi import WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.types import Message as ASGIMessage

from tandem_chat.core.errors import AuthError, PersistenceError
from tandem_chat.core.settings import settings
from tandem_chat.db.time import utcnow
from tandem_chat.models import Message
from tandem_chat.models.user import new_id
from tandem_chat.schemas.envelopes import (
    ChatEnvelope,
    ConnectedEnvelope,
    ConnectEnvelope,
    DeliveryEnvelope,
    ErrorEnvelope,
    PingEnvelope,
    PongEnvelope,
    dump,
    inbound_adapter,
)
from tandem_chat.services.auth import AuthGateway
from tandem_chat.services.sessions import ConnectionHandle, SessionRegistry

logger = logging.getLogger(__name__)

SessionScope = Callable[[], AbstractContextManager[Session]]


class RelayWebSocket(ConnectionHandle, Protocol):
    """The subset of ``starlette.websockets.WebSocket`` the relay drives."""

    async def accept(self) -> None: ...

    async def receive(self) -> ASGIMessage: ...


class ConnectionState(Enum):
    """Lifecycle of one realtime connection."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass
class RelayConnection:
    """Per-connection state owned by :meth:`MessageRelay.serve`."""

    websocket: RelayWebSocket
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    user_id: str | None = None
    username: str | None = None


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


class MessageRelay:
    """Drives realtime connections against the registry, auth and storage.

    Args:
        registry: Presence registry shared by every connection of the app.
        gateway: Verifies the token presented in the ``connect`` envelope.
        session_scope: Factory of context-managed database sessions used for
            each message write.
        idle_timeout: Seconds of inbound silence before the server pings; the
            connection is closed after a second silent interval.
        persistence_timeout: Upper bound in seconds on waiting for one write.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        gateway: AuthGateway,
        session_scope: SessionScope,
        *,
        idle_timeout: float | None = None,
        persistence_timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.gateway = gateway
        self._session_scope = session_scope
        self.idle_timeout = idle_timeout or settings.ws_idle_timeout_seconds
        self.persistence_timeout = persistence_timeout or settings.persistence_timeout_seconds

    async def serve(self, websocket: RelayWebSocket) -> None:
        """Run one connection from accept until it is closed."""
        await websocket.accept()
        conn = RelayConnection(websocket=websocket)
        try:
            while conn.state is not ConnectionState.CLOSED:
                frame = await self._receive(conn)
                if frame is None:
                    logger.info("Closing idle connection for user %s", conn.user_id)
                    await self._close(conn, status.WS_1001_GOING_AWAY)
                    break
                await self.handle_frame(conn, frame)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("Realtime connection for user %s failed", conn.user_id)
            await self._close(conn, status.WS_1011_INTERNAL_ERROR)
        finally:
            await self._on_disconnect(conn)

    async def handle_frame(self, conn: RelayConnection, raw: Any) -> None:
        """Validate one inbound frame and dispatch it by envelope type."""
        data = None
        if isinstance(raw, str):
            try:
                data = json.loads(raw)
            except ValueError:
                pass
        if not isinstance(data, dict):
            logger.warning("Closing connection after non-JSON-object frame")
            await self._close(conn, status.WS_1003_UNSUPPORTED_DATA)
            return

        if conn.state is ConnectionState.UNAUTHENTICATED:
            await self._handle_handshake(conn, data)
            return

        try:
            envelope = inbound_adapter.validate_python(data)
        except PydanticValidationError as exc:
            await self._send(conn, ErrorEnvelope(code="validation_error", detail=_describe(exc)))
            return

        if isinstance(envelope, ChatEnvelope):
            await self._relay_message(conn, envelope)
        elif isinstance(envelope, PingEnvelope):
            await self._send(conn, PongEnvelope())
        else:
            logger.info("Ignoring repeated connect from user %s", conn.user_id)

    async def _handle_handshake(self, conn: RelayConnection, data: dict[str, Any]) -> None:
        if data.get("type") != "connect":
            await self._close(conn, status.WS_1008_POLICY_VIOLATION)
            return
        try:
            envelope = ConnectEnvelope.model_validate(data)
            claims = self.gateway.verify_token(envelope.token)
        except (PydanticValidationError, AuthError) as exc:
            logger.warning("Rejected realtime handshake: %s", type(exc).__name__)
            await self._close(conn, status.WS_1008_POLICY_VIOLATION)
            return

        conn.user_id = claims.user_id
        conn.username = claims.username
        conn.state = ConnectionState.AUTHENTICATED
        async with self.registry.exclusive():
            await self.registry.register(claims.user_id, conn.websocket, claims.username)
            await self._send(conn, ConnectedEnvelope(user_id=claims.user_id))
            await self.registry.broadcast_presence(claims.user_id, True)
        logger.info("User %s (%s) connected", claims.username, claims.user_id)

    async def _relay_message(self, conn: RelayConnection, envelope: ChatEnvelope) -> None:
        try:
            delivery = await self._persist(conn, envelope)
        except PersistenceError as err:
            await self._send(conn, ErrorEnvelope(code="persistence_error", detail=err.detail))
            return

        payload = dump(delivery)
        recipient = self.registry.get(envelope.to_user_id)
        if recipient is not None and recipient is not conn.websocket:
            try:
                await recipient.send_json(payload)
            except Exception as exc:
                logger.warning("Delivery to %s failed: %s", envelope.to_user_id, exc)
        await conn.websocket.send_json(payload)

    async def _persist(self, conn: RelayConnection, envelope: ChatEnvelope) -> DeliveryEnvelope:
        assert conn.user_id is not None
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    self._store_message,
                    envelope.conversation_id,
                    conn.user_id,
                    conn.username,
                    envelope.body,
                ),
                timeout=self.persistence_timeout,
            )
        except TimeoutError as err:
            logger.warning("Timed out saving message from %s", conn.user_id)
            raise PersistenceError("Timed out saving message; it may still have been stored") from err
        except SQLAlchemyError as err:
            logger.warning("Failed to save message from %s: %s", conn.user_id, err)
            raise PersistenceError("Message could not be saved") from err

    def _store_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str | None,
        body: str,
    ) -> DeliveryEnvelope:
        message_id = new_id()
        created_at = utcnow()
        with self._session_scope() as db:
            message = Message(
                id=message_id,
                conversation_id=conversation_id,
                from_user_id=sender_id,
                body=body,
                created_at=created_at,
            )
            try:
                db.add(message)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
        return DeliveryEnvelope(
            id=message_id,
            conversation_id=conversation_id,
            from_user_id=sender_id,
            from_username=sender_name,
            body=body,
            created_at=created_at,
        )

    async def _receive(self, conn: RelayConnection) -> Any:
        """Return the next frame, or None once the peer stays silent after a ping."""
        try:
            return await asyncio.wait_for(self._next_frame(conn), self.idle_timeout)
        except TimeoutError:
            pass
        await self._send(conn, PingEnvelope())
        try:
            return await asyncio.wait_for(self._next_frame(conn), self.idle_timeout)
        except TimeoutError:
            return None

    @staticmethod
    async def _next_frame(conn: RelayConnection) -> str | bytes:
        """Read one frame; binary payloads are returned as bytes for rejection."""
        message = await conn.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(
                code=message.get("code", status.WS_1000_NORMAL_CLOSURE),
                reason=message.get("reason"),
            )
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def _on_disconnect(self, conn: RelayConnection) -> None:
        conn.state = ConnectionState.CLOSED
        if conn.user_id is None:
            return
        async with self.registry.exclusive():
            if self.registry.unregister(conn.user_id, conn.websocket):
                await self.registry.broadcast_presence(conn.user_id, False)
        logger.info("User %s disconnected", conn.user_id)

    @staticmethod
    async def _send(conn: RelayConnection, envelope: Any) -> None:
        await conn.websocket.send_json(dump(envelope))

    @staticmethod
    async def _close(conn: RelayConnection, code: int) -> None:
        conn.state = ConnectionState.CLOSED
        try:
            await conn.websocket.close(code=code)
        except Exception as exc:  # peer already gone
            logger.debug("Close after failure raised: %s", exc)
