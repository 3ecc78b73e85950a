"""
Account data export, account deletion and user settings.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from echoworld import account_data, profiles
from echoworld.db import Database
from echoworld.dependencies import get_current_user_id, get_db, get_storage_client
from echoworld.schemas import DeleteAccountRequest, OkResponse, SettingsUpdateRequest
from echoworld.storage import StorageClient

router = APIRouter(prefix="/account", tags=["account"])


@router.get("/export")
def export_account(
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    archive = account_data.export_account(db, storage, user_id)
    filename = account_data.export_filename(user_id)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/delete", response_model=OkResponse)
def delete_account(
    payload: DeleteAccountRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: StorageClient = Depends(get_storage_client),
):
    account_data.delete_account(db, storage, user_id, payload.password)
    return OkResponse()


@router.get("/settings")
def get_settings(
    user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)
):
    return profiles.get_user_settings(db, user_id)


@router.patch("/settings")
def update_settings(
    payload: SettingsUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    return profiles.update_user_settings(
        db, user_id, **payload.model_dump(exclude_none=True)
    )
