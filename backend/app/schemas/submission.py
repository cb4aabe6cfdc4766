"""
Submission request/response schemas.
"""
from datetime import datetime

from pydantic import BaseModel


class SubmissionCreateRequest(BaseModel):
    title: str
    code_content: str
    project_id: int
    description: str | None = None


class SubmissionUpdateRequest(BaseModel):
    """Patch over the submitter-owned fields. description applied whenever present (null clears it)."""
    title: str | None = None
    description: str | None = None
    code_content: str | None = None


class SubmissionStatusRequest(BaseModel):
    # Plain str: unknown values are rejected by the workflow (400), not by schema validation
    status: str


class SubmissionResponse(BaseModel):
    id: int
    title: str
    description: str | None
    code_content: str
    project_id: int
    submitted_by: int
    status: str
    project_title: str | None = None
    submitter_name: str | None = None
    submitter_email: str | None = None
    comment_count: int = 0
    review_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SubmissionListResponse(BaseModel):
    items: list[SubmissionResponse]
    total: int
