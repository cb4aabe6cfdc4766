"""
Reviews API. POST /reviews is a member's first review (400 if they already reviewed);
PUT /reviews/submission/{id} creates or replaces the caller's review.
/approve and /reject set the submission's status directly and write no review.
Static paths are declared before /{review_id}.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.review import Review
from app.models.user import User
from app.schemas.review import (
    ReviewCreateRequest,
    ReviewListResponse,
    ReviewRecordRequest,
    ReviewResponse,
    ReviewStatsResponse,
    ReviewUpdateRequest,
    SubmissionDecisionRequest,
    SubmissionDecisionResponse,
)
from app.services import reviews as reviews_service
from app.api.deps import get_current_user
from app.api.submissions import detailed_response

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _review_to_response(r: Review) -> ReviewResponse:
    return ReviewResponse(
        id=r.id,
        submission_id=r.submission_id,
        reviewer_id=r.reviewer_id,
        status=r.status,
        feedback=r.feedback,
        reviewer_name=r.reviewer.name if r.reviewer else None,
        reviewer_email=r.reviewer.email if r.reviewer else None,
        submission_title=r.submission.title if r.submission else None,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def _list(reviews: list[Review], total: int | None = None) -> ReviewListResponse:
    return ReviewListResponse(
        items=[_review_to_response(r) for r in reviews],
        total=len(reviews) if total is None else total,
    )


@router.post("", response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    data: ReviewCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    review = reviews_service.create_review(db, current_user.id, data.submission_id, data.status, data.feedback)
    return _review_to_response(review)


@router.post("/approve", response_model=SubmissionDecisionResponse)
def approve_submission(
    data: SubmissionDecisionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission = reviews_service.approve_submission(db, data.submission_id, current_user.id, data.reason)
    return SubmissionDecisionResponse(
        message="Submission approved successfully",
        submission=detailed_response(db, submission),
        reason=data.reason,
    )


@router.post("/reject", response_model=SubmissionDecisionResponse)
def reject_submission(
    data: SubmissionDecisionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    submission = reviews_service.reject_submission(db, data.submission_id, current_user.id, data.reason)
    return SubmissionDecisionResponse(
        message="Submission rejected successfully",
        submission=detailed_response(db, submission),
        reason=data.reason,
    )


@router.get("/pending", response_model=ReviewListResponse)
def list_pending_reviews(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _list(reviews_service.list_pending_reviews(db, current_user.id))


@router.get("/user/{user_id}", response_model=ReviewListResponse)
def list_reviews_by_user(
    user_id: int,
    limit: int | None = None,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = reviews_service.list_reviews_by_user(db, current_user.id, user_id, limit, offset)
    return _list(items, total)


@router.get("/submission/{submission_id}", response_model=ReviewListResponse)
def list_reviews_for_submission(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _list(reviews_service.list_reviews_for_submission(db, submission_id, current_user.id))


@router.put("/submission/{submission_id}", response_model=ReviewResponse)
def record_review(
    submission_id: int,
    data: ReviewRecordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create or replace the caller's review of this submission."""
    review = reviews_service.record_review(db, current_user.id, submission_id, data.status, data.feedback)
    return _review_to_response(review)


@router.get("/submission/{submission_id}/stats", response_model=ReviewStatsResponse)
def get_review_stats(
    submission_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ReviewStatsResponse(**reviews_service.get_review_stats(db, submission_id, current_user.id))


@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _review_to_response(reviews_service.get_review(db, review_id, current_user.id))


@router.put("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: int,
    data: ReviewUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _review_to_response(reviews_service.update_review(db, review_id, current_user.id, data))


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reviews_service.delete_review(db, review_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
