# src/cloudsim/api/v1/endpoints/shares.py
"""Share link management and public share access."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from cloudsim.api.v1.dependencies import ClientDep, CurrentUserDep, SessionDep
from cloudsim.api.v1.endpoints.files import BlobStoreDep, attachment_response
from cloudsim.schemas.share import ShareCreate, SharedFileResponse, ShareResponse
from cloudsim.services.shares import ShareService

router = APIRouter(tags=["shares"])


def get_share_service_dep(db: SessionDep, blobs: BlobStoreDep) -> ShareService:
    return ShareService(db, blobs=blobs)


ShareServiceDep = Annotated[ShareService, Depends(get_share_service_dep)]


@router.post(
    "/files/{file_id}/shares",
    response_model=ShareResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_share(
    file_id: str,
    payload: ShareCreate,
    current_user: CurrentUserDep,
    shares: ShareServiceDep,
    client: ClientDep,
) -> ShareResponse:
    share = shares.create(
        current_user,
        file_id,
        permission=payload.permission,
        expires_in_days=payload.expires_in_days,
        max_downloads=payload.max_downloads,
        client=client,
    )
    return ShareResponse.model_validate(share)


@router.get("/files/{file_id}/shares", response_model=list[ShareResponse])
async def list_shares(
    file_id: str,
    current_user: CurrentUserDep,
    shares: ShareServiceDep,
) -> list[ShareResponse]:
    return [ShareResponse.model_validate(share) for share in shares.list_for_file(current_user, file_id)]


@router.delete("/shares/{share_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_share(
    share_id: str,
    current_user: CurrentUserDep,
    shares: ShareServiceDep,
    client: ClientDep,
) -> Response:
    shares.delete(current_user, share_id, client=client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/shared/{token}", response_model=SharedFileResponse)
async def get_shared_file(token: str, shares: ShareServiceDep) -> SharedFileResponse:
    """Describe a shared file. No authentication; the token is the credential."""
    return SharedFileResponse.model_validate(shares.resolve(token))


@router.get("/shared/{token}/download")
async def download_shared_file(
    token: str,
    shares: ShareServiceDep,
    client: ClientDep,
) -> Response:
    """Download through a share link, counting against its download cap."""
    _, record, data = shares.download(token, client=client)
    return attachment_response(data, record.original_filename, record.mime_type)
