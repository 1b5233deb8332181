"""Side-effecting functions: uploads, geocoding and account deletion."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from ..crud import crud_profile
from ..crud.errors import GatewayDenied
from ..database import get_db
from ..schemas.functions import (
    DeleteAccountResponse,
    DeleteUploadRequest,
    DeleteUploadResponse,
    GeocodeRequest,
    GeocodeResponse,
    UploadResult,
)
from ..services import geocode as geocode_service
from ..services import storage
from ..utils import denied_response, error_response
from .dependencies import get_current_identity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions")


@router.post("/upload", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload(
    file: UploadFile = File(...),
    folder: Optional[str] = Form(default=None),
    identity: str = Depends(get_current_identity),
):
    """Store an image and return its public URL and deletion handle."""
    try:
        data = await file.read()
    finally:
        await file.close()
    try:
        result = await storage.upload_image(
            data,
            filename=file.filename,
            folder=folder,
            content_type=file.content_type,
        )
    except storage.StorageError as exc:
        raise error_response(str(exc), {"file": "upload_failed"}, status.HTTP_400_BAD_REQUEST)
    logger.info("Upload %s stored for %s", result["public_id"], identity)
    return UploadResult(**result)


@router.post("/delete-upload", response_model=DeleteUploadResponse)
async def delete_upload(
    payload: DeleteUploadRequest,
    identity: str = Depends(get_current_identity),
):
    try:
        removed = await storage.delete_images(payload.public_ids)
    except storage.StorageError as exc:
        raise error_response(str(exc), {"public_ids": "delete_failed"}, status.HTTP_502_BAD_GATEWAY)
    return DeleteUploadResponse(deleted=removed)


@router.post("/geocode", response_model=Optional[GeocodeResponse])
async def geocode(
    payload: GeocodeRequest,
    identity: str = Depends(get_current_identity),
):
    """Coordinates for an address, or ``null`` when nothing was found."""
    result = await geocode_service.geocode_address(payload.address)
    if result is None:
        return None
    return GeocodeResponse(
        latitude=result.latitude,
        longitude=result.longitude,
        display_name=result.display_name,
    )


@router.post("/delete-account", response_model=DeleteAccountResponse)
async def delete_account(
    db: Session = Depends(get_db),
    identity: str = Depends(get_current_identity),
):
    """Delete the caller's profile, its rows and its stored profile photo."""
    profile = crud_profile.get_profile(db, identity)
    photo_id = profile.profile_photo_public_id if profile is not None else None
    try:
        counts = crud_profile.delete_account(db, identity)
    except GatewayDenied as exc:
        raise denied_response(exc)
    if photo_id:
        try:
            await storage.delete_images([photo_id])
        except storage.StorageError:
            logger.warning("Profile photo %s left behind for deleted account %s", photo_id, identity)
    return DeleteAccountResponse(deleted=counts)
