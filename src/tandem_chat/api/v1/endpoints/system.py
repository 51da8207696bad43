"""Operational endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from tandem_chat.api.v1.dependencies import RegistryDep
from tandem_chat.core.settings import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status")
async def system_status(registry: RegistryDep) -> dict[str, object]:
    """Report the running version and the number of live connections."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "online_users": len(registry),
    }
