"""
Shared dependencies: token service from app state, get_current_user from Bearer token.
Every router except /auth/register and /auth/login resolves the caller through get_current_user.
"""
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.errors import Unauthenticated
from app.models.user import User
from app.services.auth import TokenService

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_token_service(request: Request) -> TokenService:
    """The TokenService built once in app.main at startup."""
    return request.app.state.token_service


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> User:
    """Require valid Bearer token; return User or raise Unauthenticated (401)."""
    if not credentials or not (getattr(credentials, "credentials", None) or "").strip():
        logger.debug("Auth failed: no Bearer token in request")
        raise Unauthenticated("Not authenticated. Send header: Authorization: Bearer <token>")
    claims = tokens.decode(credentials.credentials)
    user = db.get(User, int(claims["sub"]))
    if not user:
        raise Unauthenticated("User not found")
    return user
