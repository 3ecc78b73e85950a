"""
Echo authoring, detail pages and interactions (likes, reactions,
comments, mirrors).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from echoworld import echoes, interactions
from echoworld.config import Settings, get_settings
from echoworld.db import Database
from echoworld.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
    get_realtime_hub,
    get_storage_client,
)
from echoworld.errors import NotFound
from echoworld.realtime import RealtimeHub
from echoworld.routes.common import read_upload, records
from echoworld.schemas import (
    CommentCreateRequest,
    EchoCreateRequest,
    EchoCreateResponse,
    EchoMetaRequest,
    LikeToggleRequest,
    MirrorCreateRequest,
    OkResponse,
    ReactionToggleRequest,
)
from echoworld.storage import StorageClient

router = APIRouter(tags=["echoes"])


@router.post("/echoes", response_model=EchoCreateResponse, status_code=201)
def create_echo(
    payload: EchoCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    record = echoes.create_echo(db, user_id, **payload.model_dump())
    return EchoCreateResponse(
        id=record.id,
        status=record.status,
        share_url=echoes.share_url(settings.site_url, record.id),
    )


@router.get("/echoes/{echo_id}")
def get_echo(
    echo_id: str,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: Database = Depends(get_db),
):
    echo = echoes.get_echo_by_id(db, echo_id, viewer_id)
    if echo is None:
        raise NotFound("Echo not found")
    return echo


@router.delete("/echoes/{echo_id}", response_model=OkResponse)
def delete_echo(
    echo_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    echoes.delete_echo(db, user_id, echo_id)
    return OkResponse()


@router.post("/echoes/{echo_id}/media")
async def upload_echo_media(
    echo_id: str,
    files: list[UploadFile] = File(...),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    uploads = [await read_upload(file) for file in files[: echoes.MEDIA_MAX_FILES]]
    urls = echoes.upload_echo_media(db, storage, user_id, echo_id, uploads)
    return {"image_urls": urls}


@router.post("/echoes/meta")
def echoes_meta(
    payload: EchoMetaRequest,
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: Database = Depends(get_db),
):
    """Like, reaction and comment counters for a batch of echoes."""
    ids = payload.echo_ids
    return {
        "likes": interactions.fetch_like_meta(db, ids, viewer_id),
        "reactions": interactions.fetch_reactions_meta(db, ids, viewer_id),
        "comments": interactions.fetch_comments_count_meta(db, ids),
    }


@router.put("/echoes/{echo_id}/like")
def toggle_like(
    echo_id: str,
    payload: LikeToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    liked = interactions.toggle_like(db, echo_id, user_id, payload.liked, hub)
    return {"liked": liked}


@router.put("/echoes/{echo_id}/reactions")
def toggle_reaction(
    echo_id: str,
    payload: ReactionToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    on = interactions.toggle_reaction(
        db, echo_id, user_id, payload.reaction_type, payload.on, hub
    )
    return {"reaction_type": payload.reaction_type, "on": on}


@router.get("/echoes/{echo_id}/comments")
def list_comments(
    echo_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    viewer_id: Optional[str] = Depends(get_optional_user_id),
    db: Database = Depends(get_db),
):
    comments = interactions.fetch_comments(db, echo_id, limit, offset, viewer_id=viewer_id)
    return {"comments": records(comments)}


@router.post("/echoes/{echo_id}/comments", status_code=201)
def create_comment(
    echo_id: str,
    payload: CommentCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    return interactions.insert_comment(db, echo_id, user_id, payload.content, hub).as_dict()


@router.delete("/comments/{comment_id}", response_model=OkResponse)
def delete_comment(
    comment_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    interactions.delete_comment(db, comment_id, user_id)
    return OkResponse()


@router.post("/echoes/{echo_id}/mirror", status_code=201)
def send_mirror(
    echo_id: str,
    payload: MirrorCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    return interactions.send_mirror(db, user_id, echo_id, payload.content, hub)
