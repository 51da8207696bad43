# src/tandem_chat/main.py
"""Main entry point for the Tandem Chat application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from tandem_chat.api.v1 import (
    auth_router,
    conversations_router,
    messages_router,
    realtime_router,
    system_router,
    users_router,
)
from tandem_chat.core.errors import PersistenceError
from tandem_chat.core.settings import settings
from tandem_chat.db.session import create_tables, session_scope
from tandem_chat.services.auth import get_auth_gateway
from tandem_chat.services.relay import MessageRelay
from tandem_chat.services.sessions import SessionRegistry

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Tandem Chat API",
    description="Two-party chat with realtime presence",
    version=settings.app_version,
)

# Presence and relay are owned by this app instance.
app.state.registry = SessionRegistry()
app.state.relay = MessageRelay(app.state.registry, get_auth_gateway(), session_scope)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(conversations_router, prefix="/api/v1")
app.include_router(messages_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")
app.include_router(realtime_router, prefix="/api/v1")


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Report storage failures on request paths without leaking driver details."""
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    error = PersistenceError()
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_create_tables:
        create_tables()
    logger.info("%s %s started", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    registry: SessionRegistry = app.state.registry
    for user_id in registry.online_user_ids():
        handle = registry.get(user_id)
        if handle is None:
            continue
        try:
            await handle.close(code=status.WS_1001_GOING_AWAY)
        except Exception as exc:
            logger.debug("Closing connection of %s on shutdown failed: %s", user_id, exc)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Two-party chat with realtime presence",
        "docs": "/docs",
        "realtime": "/api/v1/ws",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tandem_chat.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
