"""Shared FastAPI dependencies."""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from habimori.services.mutations import MutationHub
from habimori.utils.auth import verify_access_token

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """
    Dependency to get current user ID from JWT token.

    Raises:
        HTTPException: If token is missing or invalid (401)
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        return verify_access_token(credentials.credentials)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )


async def get_mutation_hub(request: Request) -> MutationHub:
    """Dependency to get the process-wide mutation hub."""
    hub = getattr(request.app.state, "mutations", None)
    if hub is None:
        raise RuntimeError("Mutation hub not initialized")
    return hub
