"""
Auth routes: register (role user unless listed in ADMIN_EMAILS), login (JWT), GET /auth/me.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.auth import RegisterRequest, LoginRequest, TokenResponse, UserResponse
from app.services import users as users_service
from app.services.auth import TokenService
from app.api.deps import get_current_user, get_token_service

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new user."""
    user = users_service.register_user(db, data.name, data.email, data.password)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Login with email/password; returns JWT."""
    user = users_service.authenticate(db, data.email, data.password)
    return TokenResponse(access_token=tokens.issue(user.id, user.email, user.role))


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Return current user (id, name, email, role)."""
    return UserResponse.model_validate(current_user)
