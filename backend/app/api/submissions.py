"""
Submissions API: create (members), list (by project or own), get, update/delete (submitter), PATCH status (members).
"""
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.submission import Submission
from app.models.user import User
from app.schemas.submission import (
    SubmissionCreateRequest,
    SubmissionListResponse,
    SubmissionResponse,
    SubmissionStatusRequest,
    SubmissionUpdateRequest,
)
from app.services import submissions as submissions_service
from app.api.deps import get_current_user

router = APIRouter(prefix="/submissions", tags=["submissions"])


def submission_to_response(s: Submission, counts: tuple[int, int] = (0, 0)) -> SubmissionResponse:
    comment_count, review_count = counts
    return SubmissionResponse(
        id=s.id,
        title=s.title,
        description=s.description,
        code_content=s.code_content,
        project_id=s.project_id,
        submitted_by=s.submitted_by,
        status=s.status,
        project_title=s.project.title if s.project else None,
        submitter_name=s.submitter.name if s.submitter else None,
        submitter_email=s.submitter.email if s.submitter else None,
        comment_count=comment_count,
        review_count=review_count,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def detailed_response(db: Session, s: Submission) -> SubmissionResponse:
    counts = submissions_service.activity_counts(db, [s.id]).get(s.id, (0, 0))
    return submission_to_response(s, counts)


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
def create_submission(
    data: SubmissionCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission = submissions_service.create_submission(
        db, current_user.id, data.project_id, data.title, data.code_content, data.description
    )
    return submission_to_response(submission)


@router.get("", response_model=SubmissionListResponse)
def list_submissions(
    project_id: int | None = None,
    status_filter: str | None = Query(None, alias="status"),
    limit: int | None = None,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """?project_id= lists a project's submissions (members only); otherwise the caller's own."""
    items, total = submissions_service.list_submissions(
        db, current_user.id, project_id=project_id, status=status_filter, limit=limit, offset=offset
    )
    counts = submissions_service.activity_counts(db, [s.id for s in items])
    return SubmissionListResponse(
        items=[submission_to_response(s, counts.get(s.id, (0, 0))) for s in items],
        total=total,
    )


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return detailed_response(db, submissions_service.get_submission(db, submission_id, current_user.id))


@router.put("/{submission_id}", response_model=SubmissionResponse)
def update_submission(
    submission_id: int,
    data: SubmissionUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission = submissions_service.update_submission(db, submission_id, current_user.id, data)
    return detailed_response(db, submission)


@router.patch("/{submission_id}/status", response_model=SubmissionResponse)
def update_submission_status(
    submission_id: int,
    data: SubmissionStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission = submissions_service.update_submission_status(db, submission_id, current_user.id, data.status)
    return detailed_response(db, submission)


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submissions_service.delete_submission(db, submission_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
