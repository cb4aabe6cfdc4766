"""
Comment request/response schemas. CommentNodeResponse nests replies recursively.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CommentCreateRequest(BaseModel):
    content: str
    submission_id: int
    parent_id: int | None = None


class CommentUpdateRequest(BaseModel):
    content: str


class CommentResponse(BaseModel):
    id: int
    content: str
    submission_id: int
    user_id: int
    parent_id: int | None
    user_name: str | None = None
    user_email: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CommentNodeResponse(CommentResponse):
    replies: list[CommentNodeResponse] = []


class CommentListResponse(BaseModel):
    items: list[CommentResponse]
    total: int


class CommentTreeResponse(BaseModel):
    items: list[CommentNodeResponse]
    total: int  # all comments in the tree, not just roots
