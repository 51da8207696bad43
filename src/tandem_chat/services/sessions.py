"""Registry of live realtime connections; the single source of presence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from tandem_chat.db.time import utcnow
from tandem_chat.schemas.envelopes import UserStatusEnvelope, dump

logger = logging.getLogger(__name__)

# Close code sent to a connection replaced by a newer one for the same user.
CLOSE_SUPERSEDED = 4000


class ConnectionHandle(Protocol):
    """The subset of ``starlette.websockets.WebSocket`` the registry relies on."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


@dataclass
class LiveSession:
    """A user's authenticated connection."""

    handle: ConnectionHandle
    username: str
    connected_at: datetime = field(default_factory=utcnow)


class SessionRegistry:
    """Maps online user ids to their live connection.

    One connection per user: registering a second handle closes the first.
    The registry is owned by the application instance rather than being a
    module global. Callers that pair a table update with its presence
    broadcast hold :meth:`exclusive` so no other update interleaves with
    the pair.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, LiveSession] = {}
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the registry lock across an update and its broadcast."""
        async with self._lock:
            yield

    async def register(self, user_id: str, handle: ConnectionHandle, username: str = "") -> None:
        """Install ``handle`` as the user's live connection.

        A different handle already registered for the user is closed first.
        """
        previous = self._sessions.get(user_id)
        if previous is not None and previous.handle is not handle:
            logger.info("Closing superseded connection for user %s", user_id)
            try:
                await previous.handle.close(code=CLOSE_SUPERSEDED)
            except Exception as exc:  # already gone
                logger.debug("Superseded connection for %s was not closable: %s", user_id, exc)
        self._sessions[user_id] = LiveSession(handle=handle, username=username)

    def unregister(self, user_id: str, handle: ConnectionHandle | None = None) -> bool:
        """Remove the user's mapping; no-op if absent.

        When ``handle`` is given, the mapping is only removed if it still
        points at that handle, so a superseded connection cannot evict its
        replacement. Returns True if an entry was removed.
        """
        current = self._sessions.get(user_id)
        if current is None:
            return False
        if handle is not None and current.handle is not handle:
            return False
        del self._sessions[user_id]
        return True

    def is_online(self, user_id: str) -> bool:
        return user_id in self._sessions

    def get(self, user_id: str) -> ConnectionHandle | None:
        session = self._sessions.get(user_id)
        return session.handle if session else None

    def session(self, user_id: str) -> LiveSession | None:
        return self._sessions.get(user_id)

    def online_user_ids(self) -> set[str]:
        return set(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    async def broadcast_presence(self, user_id: str, online: bool) -> None:
        """Send a ``user_status`` event to every registered connection.

        Includes the subject's own connection when it is registered. A
        failing send is logged and does not stop the broadcast.
        """
        payload = dump(UserStatusEnvelope(user_id=user_id, online=online))
        # Snapshot: a send may suspend while another task mutates the table.
        for target_id, session in list(self._sessions.items()):
            try:
                await session.handle.send_json(payload)
            except Exception as exc:
                logger.warning("Presence update to %s failed: %s", target_id, exc)
