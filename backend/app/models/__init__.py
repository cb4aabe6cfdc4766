"""
SQLAlchemy models. Import here so Alembic and app can use them.
"""
from app.models.user import User
from app.models.project import Project, ProjectMember
from app.models.submission import Submission
from app.models.review import Review
from app.models.comment import Comment
from app.models.notification import Notification

__all__ = ["User", "Project", "ProjectMember", "Submission", "Review", "Comment", "Notification"]
