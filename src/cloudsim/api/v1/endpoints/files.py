# src/cloudsim/api/v1/endpoints/files.py
"""File upload, listing, download and deletion endpoints."""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from cloudsim.api.v1.dependencies import ClientDep, CurrentUserDep, SessionDep
from cloudsim.schemas.file import FileResponse, FileStatsResponse
from cloudsim.services.blobs import BlobStore, get_blob_store
from cloudsim.services.files import FileService

router = APIRouter(prefix="/files", tags=["files"])


def get_blob_store_dep() -> BlobStore:
    return get_blob_store()


BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store_dep)]


def get_file_service_dep(db: SessionDep, blobs: BlobStoreDep) -> FileService:
    return FileService(db, blobs=blobs)


FileServiceDep = Annotated[FileService, Depends(get_file_service_dep)]


def attachment_response(data: bytes, filename: str, mime_type: str | None) -> Response:
    """Return ``data`` as a download named ``filename``."""
    return Response(
        content=data,
        media_type=mime_type or "application/octet-stream",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


@router.post("", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    current_user: CurrentUserDep,
    files: FileServiceDep,
    client: ClientDep,
    file: Annotated[UploadFile, File(...)],
) -> FileResponse:
    """Upload a file to the least-used online node.

    Returns 503 without storing anything when no node is online.
    """
    data = await file.read()
    record = files.upload(
        current_user,
        file.filename or "",
        data,
        file.content_type,
        client=client,
    )
    return FileResponse.from_record(record)


@router.get("", response_model=list[FileResponse])
async def list_files(current_user: CurrentUserDep, files: FileServiceDep) -> list[FileResponse]:
    return [FileResponse.from_record(record) for record in files.list_files(current_user)]


@router.get("/stats", response_model=FileStatsResponse)
async def file_stats(current_user: CurrentUserDep, files: FileServiceDep) -> FileStatsResponse:
    return FileStatsResponse.model_validate(files.stats(current_user))


@router.get("/{file_id}/download")
async def download_file(
    file_id: str,
    current_user: CurrentUserDep,
    files: FileServiceDep,
    client: ClientDep,
) -> Response:
    record, data = files.download(current_user, file_id, client=client)
    return attachment_response(data, record.original_filename, record.mime_type)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_file(
    file_id: str,
    current_user: CurrentUserDep,
    files: FileServiceDep,
    client: ClientDep,
) -> Response:
    files.delete(current_user, file_id, client=client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
