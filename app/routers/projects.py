"""Projects router - API endpoints for projects."""
from fastapi import APIRouter, Depends, status

from app.database import get_database
from app.models.project import Project, ProjectCreate
from app.models.user import User
from app.routers.auth import get_current_user
from app.services.project_service import ProjectService


router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
async def create_project(
    project: ProjectCreate,
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """Create a new project owned by the authenticated user."""
    service = ProjectService(db)
    return await service.create_project(user, project)


@router.get("", response_model=list[Project])
async def list_projects(
    user: User = Depends(get_current_user),
    db=Depends(get_database),
):
    """List the authenticated user's projects (all projects for admins)."""
    service = ProjectService(db)
    return await service.list_projects(user)
