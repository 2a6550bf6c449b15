"""Auth router - API endpoints for authentication."""
from fastapi import APIRouter, Depends, status

from habimori.database import get_database
from habimori.dependencies import get_current_user_id
from habimori.models.user import LoginRequest, TokenResponse, User, UserCreate
from habimori.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db=Depends(get_database)):
    """
    Register a new user.

    - Returns 400 if the email is already registered
    """
    service = AuthService(db)
    return await service.register_user(
        email=user.email,
        password=user.password,
        name=user.name,
    )


@router.post("/login", response_model=TokenResponse)
async def login(login_req: LoginRequest, db=Depends(get_database)):
    """
    Login user and return access token.

    - Returns 401 if the credentials are invalid
    """
    service = AuthService(db)
    token = await service.login(
        email=login_req.email,
        password=login_req.password,
    )
    return TokenResponse(access_token=token)


@router.get("/me", response_model=User)
async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db=Depends(get_database),
):
    """Get current authenticated user."""
    service = AuthService(db)
    return await service.get_user_by_id(user_id)
