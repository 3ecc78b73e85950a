"""
HTTP routes for the EchoWorld API.
"""

from __future__ import annotations

from fastapi import APIRouter

from echoworld.routes import (
    account,
    auth,
    echoes,
    feed,
    map,
    messages,
    notifications,
    profiles,
    realtime,
    search,
)

router = APIRouter()

for module in (
    auth,
    account,
    profiles,
    echoes,
    map,
    feed,
    search,
    messages,
    notifications,
    realtime,
):
    router.include_router(module.router)
