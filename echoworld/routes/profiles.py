"""
Public profiles, handles, profile editing and follows.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, UploadFile

from echoworld import handles, profiles
from echoworld.db import Database
from echoworld.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
    get_realtime_hub,
    get_storage_client,
)
from echoworld.realtime import RealtimeHub
from echoworld.routes.common import read_upload
from echoworld.schemas import (
    FollowResponse,
    HandleCheckResponse,
    HandleUpdateRequest,
    HandleUpdateResponse,
    OkResponse,
    ProfileUpdateRequest,
    PublicProfileRequest,
    UploadResponse,
)
from echoworld.storage import StorageClient

router = APIRouter(tags=["profiles"])


@router.get("/handle/check", response_model=HandleCheckResponse)
def check_handle(handle: str = Query(""), db: Database = Depends(get_db)):
    return HandleCheckResponse(available=handles.check_handle_available(db, handle))


@router.put("/profile/handle", response_model=HandleUpdateResponse)
def update_handle(
    payload: HandleUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return HandleUpdateResponse(handle=handles.update_handle(db, user_id, payload.handle))


@router.post("/profile/public", response_model=OkResponse)
def set_public_profile(
    payload: PublicProfileRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    profiles.set_public_profile(db, user_id, payload.enabled)
    return OkResponse()


@router.patch("/profile")
def update_profile(
    payload: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    record = profiles.update_profile(
        db, user_id, display_name=payload.display_name, bio=payload.bio
    )
    return record.as_dict()


@router.post("/profile/avatar", response_model=UploadResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    upload = await read_upload(file)
    return UploadResponse(url=profiles.upload_avatar(db, storage, user_id, upload))


@router.post("/profile/banner", response_model=UploadResponse)
async def upload_banner(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    upload = await read_upload(file)
    return UploadResponse(url=profiles.upload_banner(db, storage, user_id, upload))


@router.get("/profiles/id/{user_id}")
def public_profile_by_id(
    user_id: str,
    limit: int = Query(12),
    db: Database = Depends(get_db),
):
    return profiles.get_public_profile_data(db, user_id=user_id, limit=limit)


@router.get("/profiles/{handle}")
def public_profile_by_handle(
    handle: str,
    limit: int = Query(12),
    db: Database = Depends(get_db),
):
    return profiles.get_public_profile_data(db, handle=handle, limit=limit)


def _follow_response(db: Database, viewer_id: str, target_id: str) -> FollowResponse:
    counts = profiles.follow_counts(db, target_id)
    return FollowResponse(
        following=profiles.is_following(db, viewer_id, target_id),
        followers=counts["followers"],
        following_count=counts["following"],
    )


@router.get("/profiles/id/{user_id}/follow", response_model=FollowResponse)
def follow_state(
    user_id: str,
    viewer_id: str | None = Depends(get_optional_user_id),
    db: Database = Depends(get_db),
):
    counts = profiles.follow_counts(db, user_id)
    following = bool(viewer_id) and profiles.is_following(db, viewer_id, user_id)
    return FollowResponse(
        following=following,
        followers=counts["followers"],
        following_count=counts["following"],
    )


@router.post("/profiles/id/{user_id}/follow", response_model=FollowResponse)
def follow(
    user_id: str,
    viewer_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub),
):
    profiles.follow(db, viewer_id, user_id, hub=hub)
    return _follow_response(db, viewer_id, user_id)


@router.delete("/profiles/id/{user_id}/follow", response_model=FollowResponse)
def unfollow(
    user_id: str,
    viewer_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    profiles.unfollow(db, viewer_id, user_id)
    return _follow_response(db, viewer_id, user_id)
