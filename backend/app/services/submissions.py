"""
Submission workflow. Content belongs to the submitter; status is a flag any project member may set
to any of the four values (pending, approved, rejected, needs_changes).
"""
import logging
from collections.abc import Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import Forbidden, InvalidInput, NotFound
from app.models.comment import Comment
from app.models.review import Review
from app.models.submission import Submission, SUBMISSION_STATUSES
from app.schemas.submission import SubmissionUpdateRequest
from app.services import notifications
from app.services.projects import get_project_or_404, require_member
from app.services.store import clamp_page

logger = logging.getLogger(__name__)


def validate_status(status: str | None) -> str:
    if status not in SUBMISSION_STATUSES:
        raise InvalidInput(f"Invalid status. Must be one of: {', '.join(SUBMISSION_STATUSES)}")
    return status


def _required_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise InvalidInput(f"{field} is required")
    return value


def get_submission_or_404(db: Session, submission_id: int) -> Submission:
    submission = db.get(Submission, submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    return submission


def create_submission(
    db: Session,
    user_id: int,
    project_id: int,
    title: str,
    code_content: str,
    description: str | None = None,
) -> Submission:
    title = _required_text(title, "Title").strip()
    code_content = _required_text(code_content, "code_content")
    get_project_or_404(db, project_id)
    require_member(db, project_id, user_id)
    submission = Submission(
        title=title,
        description=description,
        code_content=code_content,
        project_id=project_id,
        submitted_by=user_id,
        status="pending",
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    logger.info("Submission created id=%s project_id=%s by user_id=%s", submission.id, project_id, user_id)
    notifications.notify_new_submission(db, submission)
    return submission


def get_submission(db: Session, submission_id: int, user_id: int) -> Submission:
    submission = get_submission_or_404(db, submission_id)
    require_member(db, submission.project_id, user_id, "Not authorized to view this submission")
    return submission


def list_submissions(
    db: Session,
    user_id: int,
    project_id: int | None = None,
    status: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> tuple[list[Submission], int]:
    """By project (members only) or, without project_id, the caller's own submissions. Newest first."""
    if status is not None:
        validate_status(status)
    limit, offset = clamp_page(limit, offset)
    q = db.query(Submission)
    if project_id is not None:
        get_project_or_404(db, project_id)
        require_member(db, project_id, user_id)
        q = q.filter(Submission.project_id == project_id)
    else:
        q = q.filter(Submission.submitted_by == user_id)
    if status is not None:
        q = q.filter(Submission.status == status)
    total = q.count()
    items = q.order_by(Submission.created_at.desc(), Submission.id.desc()).offset(offset).limit(limit).all()
    return items, total


def activity_counts(db: Session, submission_ids: Sequence[int]) -> dict[int, tuple[int, int]]:
    """submission id -> (comment_count, review_count), two grouped queries for the whole page."""
    if not submission_ids:
        return {}
    comments = dict(
        db.query(Comment.submission_id, func.count(Comment.id))
        .filter(Comment.submission_id.in_(submission_ids))
        .group_by(Comment.submission_id)
        .all()
    )
    reviews = dict(
        db.query(Review.submission_id, func.count(Review.id))
        .filter(Review.submission_id.in_(submission_ids))
        .group_by(Review.submission_id)
        .all()
    )
    return {sid: (comments.get(sid, 0), reviews.get(sid, 0)) for sid in submission_ids}


def update_submission(db: Session, submission_id: int, user_id: int, patch: SubmissionUpdateRequest) -> Submission:
    """Submitter only. title/code_content applied when non-null; description whenever present."""
    submission = get_submission_or_404(db, submission_id)
    if submission.submitted_by != user_id:
        raise Forbidden("Not authorized to update this submission")
    require_member(db, submission.project_id, user_id)
    if patch.title is not None:
        submission.title = _required_text(patch.title, "Title").strip()
    if "description" in patch.model_fields_set:
        submission.description = patch.description
    if patch.code_content is not None:
        submission.code_content = _required_text(patch.code_content, "code_content")
    db.commit()
    db.refresh(submission)
    return submission


def set_status(db: Session, submission: Submission, actor_id: int, status: str) -> Submission:
    """Write a validated status on an already-authorized submission and notify the submitter."""
    previous = submission.status
    submission.status = status
    db.commit()
    db.refresh(submission)
    logger.info("Submission id=%s status %s -> %s by user_id=%s", submission.id, previous, status, actor_id)
    if previous != status:
        notifications.notify_status_change(db, submission, actor_id)
    return submission


def update_submission_status(db: Session, submission_id: int, user_id: int, status: str) -> Submission:
    # Enum check first: a bad value never reaches the store
    validate_status(status)
    submission = get_submission_or_404(db, submission_id)
    require_member(db, submission.project_id, user_id, "Not authorized to update this submission")
    return set_status(db, submission, user_id, status)


def delete_submission(db: Session, submission_id: int, user_id: int) -> None:
    """Submitter only. Comments and reviews go first so nothing is left pointing at the row."""
    submission = get_submission_or_404(db, submission_id)
    if submission.submitted_by != user_id:
        raise Forbidden("Not authorized to delete this submission")
    require_member(db, submission.project_id, user_id)
    try:
        db.query(Comment).filter(Comment.submission_id == submission_id).delete(synchronize_session=False)
        db.query(Review).filter(Review.submission_id == submission_id).delete(synchronize_session=False)
        db.delete(submission)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Submission deleted id=%s by user_id=%s", submission_id, user_id)
