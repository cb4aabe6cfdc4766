"""
Projects API: create (caller becomes admin), list, get with members, update/delete (admins),
add/remove members. Non-members see 404 for a project.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.schemas.project import (
    MemberAddRequest,
    MemberResponse,
    ProjectCreateRequest,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdateRequest,
)
from app.services import projects as projects_service
from app.api.deps import get_current_user

router = APIRouter(prefix="/projects", tags=["projects"])


def _member_to_response(m: ProjectMember) -> MemberResponse:
    return MemberResponse(
        id=m.user_id,
        name=m.user.name,
        email=m.user.email,
        role=m.role,
        member_since=m.created_at,
    )


def _project_detail(p: Project, members: list[ProjectMember]) -> ProjectDetailResponse:
    base = ProjectResponse.model_validate(p)
    return ProjectDetailResponse(**base.model_dump(), members=[_member_to_response(m) for m in members])


@router.post("", response_model=ProjectDetailResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    data: ProjectCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = projects_service.create_project(db, current_user.id, data.title, data.description)
    return _project_detail(project, projects_service.list_members(db, project.id, current_user.id))


@router.get("", response_model=ProjectListResponse)
def list_projects(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    projects = projects_service.list_projects(db, current_user.id)
    return ProjectListResponse(items=[ProjectResponse.model_validate(p) for p in projects], total=len(projects))


@router.get("/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = projects_service.get_project(db, project_id, current_user.id)
    return _project_detail(project, projects_service.list_members(db, project_id, current_user.id))


@router.put("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: int,
    data: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = projects_service.update_project(db, project_id, current_user.id, data)
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    projects_service.delete_project(db, project_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{project_id}/members", response_model=list[MemberResponse])
def list_members(
    project_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [_member_to_response(m) for m in projects_service.list_members(db, project_id, current_user.id)]


@router.post("/{project_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    project_id: int,
    data: MemberAddRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Add a member, or change an existing member's role."""
    member = projects_service.add_member(db, project_id, current_user.id, data.user_id, data.role)
    return _member_to_response(member)


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    project_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    projects_service.remove_member(db, project_id, current_user.id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
