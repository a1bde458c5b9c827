"""Group-scoped photo metadata endpoints.

Every lookup is filtered by the caller's active group, so a photo from
another group answers 404 exactly like a missing one.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from photodrop import clock
from photodrop.auth.dependencies import get_auth_context, get_scoped_or_404, require_admin, scoped_query
from photodrop.auth.jwt import AccessClaims
from photodrop.auth.schemas import CreatePhotoRequest, MessageResponse, PhotoResponse
from photodrop.database import get_db
from photodrop.metadata import Photo

router = APIRouter(prefix="/photos", tags=["photos"])


@router.get("", response_model=List[PhotoResponse])
def list_photos(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return scoped_query(db, Photo, claims).order_by(
        Photo.uploaded_at.desc(), Photo.id
    ).offset(offset).limit(limit).all()


@router.get("/{photo_id}", response_model=PhotoResponse)
def get_photo(
    photo_id: uuid.UUID,
    claims: AccessClaims = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    return get_scoped_or_404(db, Photo, photo_id, claims)


@router.post("", response_model=PhotoResponse, status_code=201)
def create_photo(
    payload: CreatePhotoRequest,
    claims: AccessClaims = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Record an uploaded photo. Admin only."""
    photo = Photo(
        group_id=claims.group_id,
        uploaded_by=claims.user_id,
        caption=payload.caption,
        storage_key=payload.storage_key,
        thumbnail_key=payload.thumbnail_key,
        uploaded_at=clock.utcnow(),
    )
    db.add(photo)
    db.commit()
    db.refresh(photo)
    return photo


@router.delete("/{photo_id}", response_model=MessageResponse)
def delete_photo(
    photo_id: uuid.UUID,
    claims: AccessClaims = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Delete a photo. Admin only."""
    photo = get_scoped_or_404(db, Photo, photo_id, claims)
    db.delete(photo)
    db.commit()
    return MessageResponse(message="Photo deleted")
