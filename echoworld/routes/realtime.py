"""
Realtime websocket, presence heartbeats and typing indicators.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from echoworld.db import Database
from echoworld.dependencies import (
    get_current_user_id,
    get_db,
    get_presence_tracker,
    get_realtime_hub,
    get_typing_tracker,
    get_websocket_user_id,
)
from echoworld.messages import fetch_conversation_members
from echoworld.presence import PresenceTracker, TypingTracker, format_last_seen
from echoworld.realtime import RealtimeHub, messages_channel, notifications_channel
from echoworld.schemas import OkResponse, PresenceRequest, TypingRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

UNAUTHORIZED_CLOSE_CODE = 4401


async def _pump(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await websocket.send_json(event)


@router.websocket("/realtime/ws")
async def realtime_socket(
    websocket: WebSocket,
    user_id: Optional[str] = Depends(get_websocket_user_id),
    hub: RealtimeHub = Depends(get_realtime_hub),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Streams the user's message and notification inserts.

    Any frame the client sends counts as a presence heartbeat.
    """
    if not user_id:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE)
        return
    await websocket.accept()

    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def forward(event: dict) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, event)

    unsubscribers = [
        hub.subscribe(messages_channel(user_id), forward),
        hub.subscribe(notifications_channel(user_id), forward),
    ]
    presence.connect(user_id)
    sender = asyncio.create_task(_pump(websocket, queue))
    try:
        while True:
            await websocket.receive_text()
            presence.heartbeat(user_id)
    except WebSocketDisconnect:
        logger.debug("Realtime socket closed for %s", user_id)
    finally:
        sender.cancel()
        for unsubscribe in unsubscribers:
            unsubscribe()
        presence.disconnect(user_id)


@router.post("/presence/heartbeat", response_model=OkResponse)
def heartbeat(
    user_id: str = Depends(get_current_user_id),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    presence.heartbeat(user_id)
    return OkResponse()


@router.post("/presence/leave", response_model=OkResponse)
def leave(
    user_id: str = Depends(get_current_user_id),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    presence.leave(user_id)
    return OkResponse()


@router.post("/presence")
def presence_snapshot(
    payload: PresenceRequest,
    user_id: str = Depends(get_current_user_id),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    states = presence.snapshot(payload.user_ids)
    return {
        "presence": {
            uid: {
                "online": state.online,
                "last_seen": state.last_seen,
                "last_seen_label": format_last_seen(state.last_seen),
            }
            for uid, state in states.items()
        }
    }


@router.post("/conversations/{conversation_id}/typing", response_model=OkResponse)
def set_typing(
    conversation_id: str,
    payload: TypingRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    typing: TypingTracker = Depends(get_typing_tracker),
):
    fetch_conversation_members(db, conversation_id, user_id)
    if payload.typing:
        typing.start(conversation_id, user_id, payload.display_name, payload.handle)
    else:
        typing.stop(conversation_id, user_id)
    return OkResponse()


@router.get("/conversations/{conversation_id}/typing")
def get_typing(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    typing: TypingTracker = Depends(get_typing_tracker),
):
    fetch_conversation_members(db, conversation_id, user_id)
    users = typing.typing_users(conversation_id, exclude_user_id=user_id)
    return {
        "typing": [
            {"user_id": u.user_id, "display_name": u.display_name, "handle": u.handle}
            for u in users
        ]
    }
