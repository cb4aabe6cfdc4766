"""
Review request/response schemas, plus approve/reject decisions on a submission.
"""
from datetime import datetime

from pydantic import BaseModel

from app.schemas.submission import SubmissionResponse


class ReviewCreateRequest(BaseModel):
    submission_id: int
    status: str
    feedback: str | None = None


class ReviewRecordRequest(BaseModel):
    """Create-or-replace the caller's review on a submission."""
    status: str
    feedback: str | None = None


class ReviewUpdateRequest(BaseModel):
    status: str | None = None
    feedback: str | None = None


class ReviewResponse(BaseModel):
    id: int
    submission_id: int
    reviewer_id: int
    status: str
    feedback: str | None
    reviewer_name: str | None = None
    reviewer_email: str | None = None
    submission_title: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int


class ReviewStatsResponse(BaseModel):
    approved: int = 0
    changes_requested: int = 0
    pending: int = 0
    total: int = 0


class SubmissionDecisionRequest(BaseModel):
    submission_id: int
    reason: str | None = None


class SubmissionDecisionResponse(BaseModel):
    message: str
    submission: SubmissionResponse
    reason: str | None = None
