"""Tag router - API endpoints for tags."""
from fastapi import APIRouter, Depends, status

from habimori.database import get_database
from habimori.dependencies import get_current_user_id
from habimori.models.context import NamedCreate, Tag
from habimori.services.tag_service import TagService


router = APIRouter(prefix="/tags", tags=["tags"])


@router.post("", response_model=Tag, status_code=status.HTTP_201_CREATED)
async def ensure_tag(
    payload: NamedCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Get or create a tag by name (case-insensitive)."""
    service = TagService(db)
    return await service.ensure_tag(user_id=user_id, name=payload.name)


@router.get("", response_model=list[Tag])
async def list_tags(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    service = TagService(db)
    return await service.list_tags(user_id=user_id)


@router.patch("/{tag_id}", response_model=Tag)
async def rename_tag(
    tag_id: str,
    payload: NamedCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    service = TagService(db)
    return await service.rename_tag(user_id=user_id, tag_id=tag_id, name=payload.name)


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Delete a tag.

    - Detaches it from every goal and event first
    """
    service = TagService(db)
    return await service.delete_tag(user_id=user_id, tag_id=tag_id)
