"""
Identity store: registration, login check, profile updates and admin-only deletion.
Plaintext passwords stop here; only hashes reach the database.
"""
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import EmailAlreadyRegistered, Forbidden, InvalidInput, LastAdminRemoval, NotFound, Unauthenticated
from app.models.project import Project, ProjectMember
from app.models.user import User, USER_ROLES
from app.schemas.auth import UserUpdateRequest
from app.services.auth import MIN_PASSWORD_LENGTH, hash_password, verify_password
from app.services.store import clamp_page

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 3


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if len(name) < MIN_NAME_LENGTH:
        raise InvalidInput(f"name must be at least {MIN_NAME_LENGTH} characters long")
    return name


def _clean_password(password: str | None) -> str:
    if password is None or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return password


def _normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise InvalidInput("Please include a valid email")
    return email


def _email_taken(db: Session, email: str, exclude_id: int | None = None) -> bool:
    q = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        q = q.filter(User.id != exclude_id)
    return q.first() is not None


def register_user(db: Session, name: str, email: str, password: str) -> User:
    """Create a user; role is admin only for e-mails listed in ADMIN_EMAILS."""
    name = _clean_name(name)
    email = _normalize_email(email)
    password = _clean_password(password)
    if _email_taken(db, email):
        raise EmailAlreadyRegistered("Email already registered")
    role = "admin" if email in settings.admin_email_set else "user"
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same e-mail
        db.rollback()
        logger.warning("Register IntegrityError: %s", e)
        raise EmailAlreadyRegistered("Email already registered")
    db.refresh(user)
    logger.info("Registered user id=%s role=%s", user.id, user.role)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
    if not user or not verify_password(password or "", user.password_hash):
        raise Unauthenticated("Invalid email or password")
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def list_users(db: Session, actor: User, limit: int | None = None, offset: int | None = None) -> tuple[list[User], int]:
    if actor.role != "admin":
        raise Forbidden("Not authorized as admin")
    limit, offset = clamp_page(limit, offset)
    q = db.query(User)
    total = q.count()
    return q.order_by(User.id).offset(offset).limit(limit).all(), total


def update_user(db: Session, actor: User, user_id: int, patch: UserUpdateRequest) -> User:
    """Self or admin; role changes are admin-only. Fields absent from the patch are untouched."""
    if actor.id != user_id and actor.role != "admin":
        raise Forbidden("Not authorized to update this user")
    user = get_user(db, user_id)
    if patch.role is not None and patch.role != user.role:
        if actor.role != "admin":
            raise Forbidden("Only admins can change roles")
        if patch.role not in USER_ROLES:
            raise InvalidInput(f"Invalid role. Must be one of: {', '.join(USER_ROLES)}")
        user.role = patch.role
    if patch.name is not None:
        user.name = _clean_name(patch.name)
    if patch.email is not None:
        email = _normalize_email(patch.email)
        if _email_taken(db, email, exclude_id=user.id):
            raise EmailAlreadyRegistered("Email already registered")
        user.email = email
    if patch.password is not None:
        user.password_hash = hash_password(_clean_password(patch.password))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise EmailAlreadyRegistered("Email already registered")
    db.refresh(user)
    return user


def _projects_left_without_admin(db: Session, user_id: int) -> list[int]:
    """Projects (not created by user_id) where user_id holds the only admin seat."""
    admin_counts = (
        db.query(ProjectMember.project_id, func.count(ProjectMember.id).label("admins"))
        .filter(ProjectMember.role == "admin")
        .group_by(ProjectMember.project_id)
        .subquery()
    )
    rows = (
        db.query(ProjectMember.project_id)
        .join(admin_counts, admin_counts.c.project_id == ProjectMember.project_id)
        .join(Project, Project.id == ProjectMember.project_id)
        .filter(
            ProjectMember.user_id == user_id,
            ProjectMember.role == "admin",
            admin_counts.c.admins <= 1,
            Project.created_by != user_id,
        )
        .all()
    )
    return [pid for (pid,) in rows]


def delete_user(db: Session, actor: User, user_id: int) -> None:
    """Admin only and never self. Projects the user created go with them (ON DELETE CASCADE)."""
    if actor.role != "admin":
        raise Forbidden("Not authorized as admin")
    if actor.id == user_id:
        raise Forbidden("Admins cannot delete their own account")
    user = get_user(db, user_id)
    orphaned = _projects_left_without_admin(db, user_id)
    if orphaned:
        raise LastAdminRemoval(
            f"User is the only admin of project(s) {', '.join(map(str, orphaned))}; promote another admin first"
        )
    db.delete(user)
    db.commit()
    logger.info("Deleted user id=%s by admin id=%s", user_id, actor.id)
