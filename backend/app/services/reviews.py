"""
Review engine. A Review row is one member's opinion, kept unique per (submission, reviewer) by the store;
Submission.status is the separate decision flag that approve/reject set. Neither is derived from the other.
"""
import logging

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.errors import AlreadyReviewed, Forbidden, InvalidInput, NotFound
from app.models.review import Review, REVIEW_STATUSES
from app.models.submission import Submission
from app.schemas.review import ReviewUpdateRequest
from app.services import notifications
from app.services.projects import require_member
from app.services.store import clamp_page, upsert
from app.services.submissions import get_submission_or_404, set_status

logger = logging.getLogger(__name__)


def validate_status(status: str | None) -> str:
    if status not in REVIEW_STATUSES:
        raise InvalidInput(f"Invalid review status. Must be one of: {', '.join(REVIEW_STATUSES)}")
    return status


def has_reviewed(db: Session, submission_id: int, reviewer_id: int) -> bool:
    return (
        db.query(Review.id)
        .filter(Review.submission_id == submission_id, Review.reviewer_id == reviewer_id)
        .first()
        is not None
    )


def _upsert_review(db: Session, submission_id: int, reviewer_id: int, status: str, feedback: str | None) -> Review:
    upsert(
        db,
        Review,
        {"submission_id": submission_id, "reviewer_id": reviewer_id, "status": status, "feedback": feedback},
        conflict_columns=["submission_id", "reviewer_id"],
        update_columns=["status", "feedback"],
    )
    db.commit()
    return (
        db.query(Review)
        .filter(Review.submission_id == submission_id, Review.reviewer_id == reviewer_id)
        .populate_existing()
        .one()
    )


def _member_submission(db: Session, submission_id: int, user_id: int, detail: str = "Not a member of this project") -> Submission:
    submission = get_submission_or_404(db, submission_id)
    require_member(db, submission.project_id, user_id, detail)
    return submission


def create_review(db: Session, user_id: int, submission_id: int, status: str, feedback: str | None = None) -> Review:
    """First review by this member on this submission. A second attempt is AlreadyReviewed."""
    validate_status(status)
    submission = _member_submission(db, submission_id, user_id)
    if has_reviewed(db, submission_id, user_id):
        raise AlreadyReviewed("You have already reviewed this submission")
    # Still an upsert: a concurrent first review from the same member lands on the same row
    review = _upsert_review(db, submission_id, user_id, status, feedback)
    logger.info("Review created id=%s submission_id=%s reviewer_id=%s status=%s",
                review.id, submission_id, user_id, status)
    notifications.notify_review(db, submission, review)
    return review


def record_review(db: Session, user_id: int, submission_id: int, status: str, feedback: str | None = None) -> Review:
    """Create the caller's review or supersede its status/feedback in place."""
    validate_status(status)
    submission = _member_submission(db, submission_id, user_id)
    review = _upsert_review(db, submission_id, user_id, status, feedback)
    logger.info("Review recorded id=%s submission_id=%s reviewer_id=%s status=%s",
                review.id, submission_id, user_id, status)
    notifications.notify_review(db, submission, review)
    return review


def get_review_or_404(db: Session, review_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise NotFound("Review not found")
    return review


def get_review(db: Session, review_id: int, user_id: int) -> Review:
    review = get_review_or_404(db, review_id)
    _member_submission(db, review.submission_id, user_id, "Not authorized to view this review")
    return review


def list_reviews_for_submission(db: Session, submission_id: int, user_id: int) -> list[Review]:
    _member_submission(db, submission_id, user_id)
    return (
        db.query(Review)
        .filter(Review.submission_id == submission_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def list_reviews_by_user(
    db: Session,
    actor_id: int,
    target_user_id: int,
    limit: int | None = None,
    offset: int | None = None,
) -> tuple[list[Review], int]:
    """A user's reviews are visible to that user only."""
    if actor_id != target_user_id:
        raise Forbidden("Not authorized to view these reviews")
    limit, offset = clamp_page(limit, offset)
    q = db.query(Review).filter(Review.reviewer_id == target_user_id)
    total = q.count()
    return q.order_by(Review.created_at.desc(), Review.id.desc()).offset(offset).limit(limit).all(), total


def list_pending_reviews(db: Session, user_id: int) -> list[Review]:
    """The caller's own reviews still marked pending."""
    return (
        db.query(Review)
        .filter(Review.reviewer_id == user_id, Review.status == "pending")
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def update_review(db: Session, review_id: int, user_id: int, patch: ReviewUpdateRequest) -> Review:
    """Reviewer only. feedback applied whenever present (null clears it)."""
    if patch.status is not None:
        validate_status(patch.status)
    review = get_review_or_404(db, review_id)
    if review.reviewer_id != user_id:
        raise Forbidden("Not authorized to update this review")
    _member_submission(db, review.submission_id, user_id)
    if patch.status is None and "feedback" not in patch.model_fields_set:
        raise InvalidInput("Nothing to update: provide status and/or feedback")
    if patch.status is not None:
        review.status = patch.status
    if "feedback" in patch.model_fields_set:
        review.feedback = patch.feedback
    db.commit()
    db.refresh(review)
    notifications.notify_review(db, get_submission_or_404(db, review.submission_id), review)
    return review


def delete_review(db: Session, review_id: int, user_id: int) -> None:
    review = get_review_or_404(db, review_id)
    if review.reviewer_id != user_id:
        raise Forbidden("Not authorized to delete this review")
    _member_submission(db, review.submission_id, user_id)
    db.delete(review)
    db.commit()


def get_review_stats(db: Session, submission_id: int, user_id: int) -> dict[str, int]:
    """Counts per review status plus total, computed on read."""
    _member_submission(db, submission_id, user_id)
    row = (
        db.query(
            func.count(case((Review.status == "approved", 1))),
            func.count(case((Review.status == "changes_requested", 1))),
            func.count(case((Review.status == "pending", 1))),
            func.count(Review.id),
        )
        .filter(Review.submission_id == submission_id)
        .one()
    )
    approved, changes_requested, pending, total = (int(v or 0) for v in row)
    return {"approved": approved, "changes_requested": changes_requested, "pending": pending, "total": total}


def approve_submission(db: Session, submission_id: int, user_id: int, reason: str | None = None) -> Submission:
    """Any member may approve; this sets Submission.status and writes no Review row."""
    submission = _member_submission(db, submission_id, user_id, "Not authorized to approve this submission")
    logger.info("Approving submission id=%s by user_id=%s reason=%r", submission_id, user_id, reason)
    return set_status(db, submission, user_id, "approved")


def reject_submission(db: Session, submission_id: int, user_id: int, reason: str | None = None) -> Submission:
    submission = _member_submission(db, submission_id, user_id, "Not authorized to reject this submission")
    logger.info("Rejecting submission id=%s by user_id=%s reason=%r", submission_id, user_id, reason)
    return set_status(db, submission, user_id, "rejected")
