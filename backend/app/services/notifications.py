"""
Notification ledger. Writers run after the triggering operation has committed, so a failed
write is logged and dropped without touching the submission/review/comment it describes.
"""
import logging
from collections.abc import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import Forbidden, NotFound
from app.models.notification import Notification
from app.models.project import Project, ProjectMember
from app.models.review import Review
from app.models.submission import Submission
from app.services.store import clamp_page

logger = logging.getLogger(__name__)

_REVIEW_MESSAGES = {
    "approved": ("Submission approved", 'Your submission "{title}" has been approved.'),
    "changes_requested": ("Changes requested", 'Changes were requested on your submission "{title}".'),
    "pending": ("Review started", 'A review of your submission "{title}" is in progress.'),
}


def notify(
    db: Session,
    user_ids: Iterable[int],
    title: str,
    message: str,
    type_: str,
    related_id: int | None = None,
) -> int:
    """Append one row per recipient. Returns rows written (0 on failure); never raises store errors."""
    recipients = sorted(set(user_ids))
    if not recipients:
        return 0
    try:
        for uid in recipients:
            db.add(Notification(user_id=uid, title=title, message=message, type=type_, related_id=related_id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Notification write dropped (type=%s related_id=%s recipients=%s): %s",
                       type_, related_id, len(recipients), e)
        return 0
    return len(recipients)


def project_audience(db: Session, project_id: int) -> set[int]:
    """Creator plus every member of the project."""
    ids = {uid for (uid,) in db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project_id)}
    creator = db.query(Project.created_by).filter(Project.id == project_id).scalar()
    if creator is not None:
        ids.add(creator)
    return ids


def notify_new_submission(db: Session, submission: Submission) -> int:
    submission_id = submission.id
    try:
        audience = project_audience(db, submission.project_id) - {submission.submitted_by}
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Notification audience lookup dropped (submission_id=%s): %s", submission_id, e)
        return 0
    return notify(
        db,
        audience,
        "New Submission",
        f'A new submission "{submission.title}" has been added to your project.',
        "submission",
        submission.id,
    )


def notify_status_change(db: Session, submission: Submission, actor_id: int) -> int:
    if actor_id == submission.submitted_by:
        return 0
    return notify(
        db,
        [submission.submitted_by],
        "Submission status changed",
        f'Your submission "{submission.title}" is now {submission.status.replace("_", " ")}.',
        "submission",
        submission.id,
    )


def notify_comment(db: Session, submission: Submission, commenter_id: int) -> int:
    if commenter_id == submission.submitted_by:
        return 0
    return notify(
        db,
        [submission.submitted_by],
        "New Comment",
        "A new comment has been added to your submission.",
        "comment",
        submission.id,
    )


def notify_review(db: Session, submission: Submission, review: Review) -> int:
    if review.reviewer_id == submission.submitted_by:
        return 0
    title, template = _REVIEW_MESSAGES[review.status]
    return notify(db, [submission.submitted_by], title, template.format(title=submission.title), "review", submission.id)


def notify_member_added(db: Session, project: Project, user_id: int, role: str) -> int:
    return notify(
        db,
        [user_id],
        "Added to project",
        f'You have been added to "{project.title}" as {role}.',
        "project",
        project.id,
    )


def list_notifications(
    db: Session, user_id: int, unread_only: bool = False, limit: int | None = None, offset: int | None = None
) -> tuple[list[Notification], int]:
    limit, offset = clamp_page(limit, offset)
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read.is_(False))
    total = q.count()
    items = q.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit).all()
    return items, total


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.read.is_(False)).count()


def _get_own(db: Session, notification_id: int, user_id: int) -> Notification:
    n = db.get(Notification, notification_id)
    if n is None:
        raise NotFound("Notification not found")
    if n.user_id != user_id:
        raise Forbidden("Not authorized to access this notification")
    return n


def mark_read(db: Session, notification_id: int, user_id: int) -> Notification:
    n = _get_own(db, notification_id, user_id)
    if not n.read:
        n.read = True
        db.commit()
        db.refresh(n)
    return n


def mark_all_read(db: Session, user_id: int) -> int:
    """Mark every unread notification of user_id read; return how many changed."""
    changed = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return changed


def delete_notification(db: Session, notification_id: int, user_id: int) -> None:
    n = _get_own(db, notification_id, user_id)
    db.delete(n)
    db.commit()
