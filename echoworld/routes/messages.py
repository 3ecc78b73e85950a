"""
Direct conversations, messages, attachments and message reactions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, UploadFile

from echoworld import attachments, messages
from echoworld.db import Database
from echoworld.dependencies import (
    get_current_user_id,
    get_db,
    get_realtime_hub,
    get_storage_client,
)
from echoworld.realtime import RealtimeHub
from echoworld.routes.common import read_upload, records
from echoworld.schemas import (
    ConversationCreateRequest,
    ConversationCreateResponse,
    MessageReactionRequest,
    MessageReactionResponse,
    MessageSendRequest,
    OkResponse,
)
from echoworld.storage import StorageClient

router = APIRouter(tags=["messages"])


@router.post("/conversations/create", response_model=ConversationCreateResponse)
def create_conversation(
    payload: ConversationCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    conversation_id, created = messages.start_direct_conversation(
        db, user_id, payload.other_user_id, payload.echo_id
    )
    return ConversationCreateResponse(conversation_id=conversation_id, created=created)


@router.get("/conversations")
def list_conversations(
    user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)
):
    return {"conversations": records(messages.fetch_conversations_for_user(db, user_id))}


@router.get("/conversations/{conversation_id}/members")
def list_members(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return {
        "members": records(
            messages.fetch_conversation_members(db, conversation_id, user_id)
        )
    }


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    """Messages oldest first, each with its grouped reactions."""
    items = messages.fetch_messages(db, conversation_id, user_id, limit)
    reactions = messages.fetch_message_reactions_batch(db, [m.id for m in items])
    payload = []
    for item in items:
        data = item.as_dict()
        data["reactions"] = messages.group_reactions(reactions.get(item.id, []), user_id)
        payload.append(data)
    return {"messages": payload}


@router.post("/conversations/{conversation_id}/messages", status_code=201)
def send_message(
    conversation_id: str,
    payload: MessageSendRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    record = messages.send_message(
        db, conversation_id, user_id, payload.content, payload.payload, hub=hub
    )
    return record.as_dict()


@router.post("/conversations/{conversation_id}/read")
def mark_read(
    conversation_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return {"last_read_at": messages.mark_conversation_read(db, conversation_id, user_id)}


@router.post("/messages/attachments", status_code=201)
async def upload_attachments(
    files: list[UploadFile] = File(...),
    user_id: str = Depends(get_current_user_id),
    storage: StorageClient = Depends(get_storage_client),
):
    uploads = [await read_upload(file) for file in files]
    return {
        "attachments": attachments.upload_message_attachments(storage, uploads, user_id)
    }


@router.delete("/messages/{message_id}", response_model=OkResponse)
def delete_message(
    message_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    messages.delete_message(db, message_id, user_id)
    return OkResponse()


@router.get("/messages/{message_id}/reactions")
def list_message_reactions(
    message_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    reactions = messages.fetch_message_reactions(db, message_id, user_id)
    return {"reactions": messages.group_reactions(reactions, user_id)}


@router.post("/messages/{message_id}/reactions", response_model=MessageReactionResponse)
def toggle_message_reaction(
    message_id: str,
    payload: MessageReactionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    added, reaction = messages.toggle_message_reaction(
        db, message_id, user_id, payload.emoji
    )
    return MessageReactionResponse(
        added=added, reaction=reaction.as_dict() if reaction else None
    )
