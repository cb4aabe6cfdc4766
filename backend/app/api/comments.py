"""
Comments API: threaded comments on a submission. GET /comments/submission/{id} returns the reply tree
(?threaded=false for the flat list); /{id}/replies is one level, /{id}/thread the whole subtree.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.comment import Comment
from app.models.user import User
from app.schemas.comment import (
    CommentCreateRequest,
    CommentListResponse,
    CommentNodeResponse,
    CommentResponse,
    CommentTreeResponse,
    CommentUpdateRequest,
)
from app.services import comments as comments_service
from app.services.comments import CommentNode
from app.api.deps import get_current_user

router = APIRouter(prefix="/comments", tags=["comments"])


def _comment_to_response(c: Comment) -> CommentResponse:
    return CommentResponse(
        id=c.id,
        content=c.content,
        submission_id=c.submission_id,
        user_id=c.user_id,
        parent_id=c.parent_id,
        user_name=c.author.name if c.author else None,
        user_email=c.author.email if c.author else None,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _node_to_response(node: CommentNode) -> CommentNodeResponse:
    base = _comment_to_response(node.comment)
    return CommentNodeResponse(**base.model_dump(), replies=[_node_to_response(r) for r in node.replies])


@router.post("", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def create_comment(
    data: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    comment = comments_service.create_comment(db, current_user.id, data.submission_id, data.content, data.parent_id)
    return _comment_to_response(comment)


@router.get("/mine", response_model=CommentListResponse)
def list_my_comments(
    limit: int | None = None,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = comments_service.list_comments_by_user(db, current_user.id, limit, offset)
    return CommentListResponse(items=[_comment_to_response(c) for c in items], total=total)


@router.get("/submission/{submission_id}", response_model=CommentTreeResponse | CommentListResponse)
def get_comments_by_submission(
    submission_id: int,
    threaded: bool = True,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not threaded:
        flat = comments_service.get_comments_by_submission(db, submission_id, current_user.id)
        return CommentListResponse(items=[_comment_to_response(c) for c in flat], total=len(flat))
    roots = comments_service.get_comment_tree(db, submission_id, current_user.id)
    return CommentTreeResponse(
        items=[_node_to_response(n) for n in roots],
        total=sum(n.size for n in roots),
    )


@router.get("/{comment_id}", response_model=CommentResponse)
def get_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _comment_to_response(comments_service.get_comment(db, comment_id, current_user.id))


@router.get("/{comment_id}/replies", response_model=CommentListResponse)
def get_replies(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    replies = comments_service.get_replies(db, comment_id, current_user.id)
    return CommentListResponse(items=[_comment_to_response(c) for c in replies], total=len(replies))


@router.get("/{comment_id}/thread", response_model=CommentNodeResponse)
def get_thread(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _node_to_response(comments_service.get_thread(db, comment_id, current_user.id))


@router.put("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    data: CommentUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _comment_to_response(comments_service.update_comment(db, comment_id, current_user.id, data.content))


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    comments_service.delete_comment(db, comment_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
