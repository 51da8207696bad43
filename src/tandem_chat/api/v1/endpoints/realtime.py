"""WebSocket entry point for the realtime relay."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from tandem_chat.api.v1.dependencies import RelayDep

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, relay: RelayDep) -> None:
    """Authenticate with a ``connect`` envelope, then exchange messages."""
    await relay.serve(websocket)
