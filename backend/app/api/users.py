"""
Users API: list (admin), get, update (self or admin), delete (admin, never self).
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.auth import UserListResponse, UserResponse, UserUpdateRequest
from app.services import users as users_service
from app.api.deps import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
def list_users(
    limit: int | None = None,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = users_service.list_users(db, current_user, limit, offset)
    return UserListResponse(items=[UserResponse.model_validate(u) for u in items], total=total)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(users_service.get_user(db, user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(users_service.update_user(db, current_user, user_id, data))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    users_service.delete_user(db, current_user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
