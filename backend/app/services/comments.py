"""
Comment threads on a submission. Trees are built from one flat, creation-ordered fetch:
every row goes into an arena (a list), then each node is attached to its parent by index.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, joinedload

from app.errors import Forbidden, InvalidInput, NotFound
from app.models.comment import Comment
from app.services import notifications
from app.services.projects import require_member
from app.services.store import clamp_page
from app.services.submissions import get_submission_or_404

logger = logging.getLogger(__name__)


@dataclass
class CommentNode:
    comment: Comment
    replies: list["CommentNode"] = field(default_factory=list)

    @property
    def size(self) -> int:
        return 1 + sum(r.size for r in self.replies)


def _arena(rows: Sequence[Comment]) -> tuple[list[CommentNode], dict[int, int], list[CommentNode]]:
    """Return (nodes, id -> index, roots). rows must already be in (created_at, id) order."""
    nodes = [CommentNode(c) for c in rows]
    index = {c.id: i for i, c in enumerate(rows)}
    roots: list[CommentNode] = []
    for node in nodes:
        parent_at = index.get(node.comment.parent_id) if node.comment.parent_id is not None else None
        if parent_at is None:
            roots.append(node)
        else:
            nodes[parent_at].replies.append(node)
    return nodes, index, roots


def build_comment_tree(rows: Sequence[Comment]) -> list[CommentNode]:
    """Roots are comments without a parent (or whose parent is not in rows)."""
    return _arena(rows)[2]


def _flat_for_submission(db: Session, submission_id: int) -> list[Comment]:
    return (
        db.query(Comment)
        .options(joinedload(Comment.author))
        .filter(Comment.submission_id == submission_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def get_comment_or_404(db: Session, comment_id: int) -> Comment:
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def _require_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise InvalidInput("Content is required")
    return content


def create_comment(
    db: Session, user_id: int, submission_id: int, content: str, parent_id: int | None = None
) -> Comment:
    content = _require_content(content)
    submission = get_submission_or_404(db, submission_id)
    require_member(db, submission.project_id, user_id)
    if parent_id is not None:
        parent = db.get(Comment, parent_id)
        if parent is None:
            raise NotFound("Parent comment not found")
        if parent.submission_id != submission_id:
            raise InvalidInput("Parent comment belongs to a different submission")
    comment = Comment(content=content, submission_id=submission_id, user_id=user_id, parent_id=parent_id)
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info("Comment created id=%s submission_id=%s parent_id=%s", comment.id, submission_id, parent_id)
    notifications.notify_comment(db, submission, user_id)
    return comment


def get_comment(db: Session, comment_id: int, user_id: int) -> Comment:
    comment = get_comment_or_404(db, comment_id)
    submission = get_submission_or_404(db, comment.submission_id)
    require_member(db, submission.project_id, user_id, "Not authorized to view this comment")
    return comment


def get_comments_by_submission(db: Session, submission_id: int, user_id: int) -> list[Comment]:
    """Flat list in creation order."""
    submission = get_submission_or_404(db, submission_id)
    require_member(db, submission.project_id, user_id)
    return _flat_for_submission(db, submission_id)


def get_comment_tree(db: Session, submission_id: int, user_id: int) -> list[CommentNode]:
    """Reply forest; creation order at every level."""
    return build_comment_tree(get_comments_by_submission(db, submission_id, user_id))


def get_thread(db: Session, comment_id: int, user_id: int) -> CommentNode:
    """The comment with its whole subtree."""
    comment = get_comment(db, comment_id, user_id)
    nodes, index, _ = _arena(_flat_for_submission(db, comment.submission_id))
    return nodes[index[comment.id]]


def get_replies(db: Session, comment_id: int, user_id: int) -> list[Comment]:
    """Direct children only."""
    get_comment(db, comment_id, user_id)
    return (
        db.query(Comment)
        .options(joinedload(Comment.author))
        .filter(Comment.parent_id == comment_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def list_comments_by_user(
    db: Session, user_id: int, limit: int | None = None, offset: int | None = None
) -> tuple[list[Comment], int]:
    limit, offset = clamp_page(limit, offset)
    q = db.query(Comment).filter(Comment.user_id == user_id)
    total = q.count()
    return q.order_by(Comment.created_at.desc(), Comment.id.desc()).offset(offset).limit(limit).all(), total


def _require_comment_member(db: Session, comment: Comment, user_id: int) -> None:
    """Authors who have left the project can no longer touch their comments."""
    submission = get_submission_or_404(db, comment.submission_id)
    require_member(db, submission.project_id, user_id)


def update_comment(db: Session, comment_id: int, user_id: int, content: str) -> Comment:
    content = _require_content(content)
    comment = get_comment_or_404(db, comment_id)
    if comment.user_id != user_id:
        raise Forbidden("Not authorized to update this comment")
    _require_comment_member(db, comment, user_id)
    comment.content = content
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, comment_id: int, user_id: int) -> None:
    """Author only; replies are removed with it (ON DELETE CASCADE)."""
    comment = get_comment_or_404(db, comment_id)
    if comment.user_id != user_id:
        raise Forbidden("Not authorized to delete this comment")
    _require_comment_member(db, comment, user_id)
    db.delete(comment)
    db.commit()
