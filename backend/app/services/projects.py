"""
Project membership registry: projects, member roles, and the rule that every project keeps at least one admin.
is_member is the gate for every submission, review and comment operation.
"""
import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import Forbidden, InvalidInput, LastAdminRemoval, NotFound
from app.models.comment import Comment
from app.models.project import Project, ProjectMember, MEMBER_ROLES, PROJECT_STATUSES
from app.models.review import Review
from app.models.submission import Submission
from app.models.user import User
from app.schemas.project import ProjectUpdateRequest
from app.services import notifications
from app.services.store import upsert

logger = logging.getLogger(__name__)


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    return project


def _membership(db: Session, project_id: int, user_id: int) -> ProjectMember | None:
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .first()
    )


def _admin_count(db: Session, project_id: int) -> int:
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.role == "admin")
        .count()
    )


def is_member(db: Session, project_id: int, user_id: int) -> bool:
    """True iff user_id created the project or has a membership row on it."""
    created_by = db.query(Project.created_by).filter(Project.id == project_id).scalar()
    if created_by is None:
        return False
    if created_by == user_id:
        return True
    return _membership(db, project_id, user_id) is not None


def require_member(db: Session, project_id: int, user_id: int, detail: str = "Not a member of this project") -> None:
    if not is_member(db, project_id, user_id):
        raise Forbidden(detail)


def get_member_role(db: Session, project_id: int, user_id: int) -> str | None:
    m = _membership(db, project_id, user_id)
    return m.role if m else None


def require_admin(db: Session, project_id: int, user_id: int, detail: str) -> None:
    if get_member_role(db, project_id, user_id) != "admin":
        raise Forbidden(detail)


def create_project(db: Session, creator_id: int, title: str, description: str | None = None) -> Project:
    """Insert the project and the creator's admin membership as one transaction."""
    title = (title or "").strip()
    if not title:
        raise InvalidInput("Title is required")
    project = Project(title=title, description=description, created_by=creator_id, status="active")
    try:
        db.add(project)
        db.flush()
        db.add(ProjectMember(project_id=project.id, user_id=creator_id, role="admin"))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(project)
    logger.info("Project created id=%s by user_id=%s", project.id, creator_id)
    return project


def list_projects(db: Session, user_id: int) -> list[Project]:
    """Projects the user created or is a member of, newest first."""
    member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
    return (
        db.query(Project)
        .filter(or_(Project.created_by == user_id, Project.id.in_(member_of)))
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


def get_project(db: Session, project_id: int, user_id: int) -> Project:
    """Non-members get NotFound so project ids do not leak."""
    project = get_project_or_404(db, project_id)
    if not is_member(db, project_id, user_id):
        raise NotFound("Project not found")
    return project


def list_members(db: Session, project_id: int, user_id: int) -> list[ProjectMember]:
    get_project(db, project_id, user_id)
    return (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at, ProjectMember.id)
        .all()
    )


def update_project(db: Session, project_id: int, actor_id: int, patch: ProjectUpdateRequest) -> Project:
    project = get_project_or_404(db, project_id)
    require_admin(db, project_id, actor_id, "Not authorized to update this project")
    if patch.title is not None:
        title = patch.title.strip()
        if not title:
            raise InvalidInput("Title cannot be empty")
        project.title = title
    if "description" in patch.model_fields_set:
        project.description = patch.description
    if patch.status is not None:
        if patch.status not in PROJECT_STATUSES:
            raise InvalidInput(f"Invalid status. Must be one of: {', '.join(PROJECT_STATUSES)}")
        project.status = patch.status
    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project_id: int, actor_id: int) -> None:
    """Delete comments, reviews, submissions, members, then the project, in one transaction."""
    project = get_project_or_404(db, project_id)
    require_admin(db, project_id, actor_id, "Not authorized to delete this project")
    submission_ids = select(Submission.id).where(Submission.project_id == project_id)
    try:
        db.query(Comment).filter(Comment.submission_id.in_(submission_ids)).delete(synchronize_session=False)
        db.query(Review).filter(Review.submission_id.in_(submission_ids)).delete(synchronize_session=False)
        removed = db.query(Submission).filter(Submission.project_id == project_id).delete(synchronize_session=False)
        db.query(ProjectMember).filter(ProjectMember.project_id == project_id).delete(synchronize_session=False)
        db.delete(project)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info("Project deleted id=%s by user_id=%s (%s submissions)", project_id, actor_id, removed)


def add_member(db: Session, project_id: int, actor_id: int, user_id: int, role: str = "member") -> ProjectMember:
    """Admin-only idempotent upsert: re-adding an existing member sets their role."""
    if role not in MEMBER_ROLES:
        raise InvalidInput(f"Invalid role. Must be one of: {', '.join(MEMBER_ROLES)}")
    project = get_project_or_404(db, project_id)
    require_admin(db, project_id, actor_id, "Not authorized to add members to this project")
    if db.get(User, user_id) is None:
        raise NotFound("User not found")
    current = _membership(db, project_id, user_id)
    if current is not None and current.role == "admin" and role != "admin" and _admin_count(db, project_id) <= 1:
        raise LastAdminRemoval("Cannot demote the only admin of the project")
    upsert(
        db,
        ProjectMember,
        {"project_id": project_id, "user_id": user_id, "role": role},
        conflict_columns=["project_id", "user_id"],
        update_columns=["role"],
    )
    db.commit()
    member = (
        db.query(ProjectMember)
        .filter(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
        .populate_existing()
        .one()
    )
    logger.info("Member %s project_id=%s user_id=%s role=%s",
                "added" if current is None else "updated", project_id, user_id, role)
    if current is None:
        notifications.notify_member_added(db, project, user_id, role)
    return member


def remove_member(db: Session, project_id: int, actor_id: int, user_id: int) -> None:
    """Admins may remove anyone; members may remove themselves. The last admin cannot be removed."""
    get_project_or_404(db, project_id)
    if actor_id != user_id:
        require_admin(db, project_id, actor_id, "Not authorized to remove members from this project")
    target = _membership(db, project_id, user_id)
    if target is None:
        if actor_id == user_id and not is_member(db, project_id, actor_id):
            raise Forbidden("Not a member of this project")
        raise NotFound("Member not found")
    if target.role == "admin" and _admin_count(db, project_id) <= 1:
        raise LastAdminRemoval("Cannot remove the only admin from the project")
    db.delete(target)
    db.commit()
    logger.info("Member removed project_id=%s user_id=%s by user_id=%s", project_id, user_id, actor_id)
