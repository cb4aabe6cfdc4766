"""
Project and membership schemas.
"""
from datetime import datetime

from pydantic import BaseModel


class ProjectCreateRequest(BaseModel):
    title: str
    description: str | None = None


class ProjectUpdateRequest(BaseModel):
    """Patch: title/status applied when not null; description applied whenever present (null clears it)."""
    title: str | None = None
    description: str | None = None
    status: str | None = None


class MemberAddRequest(BaseModel):
    user_id: int
    role: str = "member"


class MemberResponse(BaseModel):
    id: int  # user id
    name: str
    email: str
    role: str
    member_since: datetime | None = None


class ProjectResponse(BaseModel):
    id: int
    title: str
    description: str | None
    created_by: int
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ProjectDetailResponse(ProjectResponse):
    members: list[MemberResponse] = []


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    total: int
