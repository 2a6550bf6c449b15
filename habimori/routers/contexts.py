"""Context router - API endpoints for contexts."""
from fastapi import APIRouter, Depends, status

from habimori.database import get_database
from habimori.dependencies import get_current_user_id
from habimori.models.context import Context, NamedCreate
from habimori.services.context_service import ContextService


router = APIRouter(prefix="/contexts", tags=["contexts"])


@router.post("", response_model=Context, status_code=status.HTTP_201_CREATED)
async def ensure_context(
    payload: NamedCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Get or create a context by name.

    - Matching is case-insensitive; an existing context is returned as-is
    """
    service = ContextService(db)
    return await service.ensure_context(user_id=user_id, name=payload.name)


@router.get("", response_model=list[Context])
async def list_contexts(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """List contexts, sorted by name."""
    service = ContextService(db)
    return await service.list_contexts(user_id=user_id)


@router.patch("/{context_id}", response_model=Context)
async def rename_context(
    context_id: str,
    payload: NamedCreate,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Rename a context."""
    service = ContextService(db)
    return await service.rename_context(user_id=user_id, context_id=context_id, name=payload.name)


@router.delete("/{context_id}")
async def delete_context(
    context_id: str,
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """
    Delete a context.

    - Cascades to the context's events, goals and goal periods
    """
    service = ContextService(db)
    return await service.delete_context(user_id=user_id, context_id=context_id)
