"""
Helpers shared by the HTTP routers.
"""

from __future__ import annotations

from fastapi import UploadFile

from echoworld.storage import UploadedFile


async def read_upload(file: UploadFile) -> UploadedFile:
    data = await file.read()
    return UploadedFile(
        name=file.filename or "file",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )


def records(items) -> list[dict]:
    return [item.as_dict() for item in items]
