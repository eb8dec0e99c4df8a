"""Project service - business logic for project management."""
import logging

from app.errors import NotFoundError
from app.models.project import Project, ProjectCreate
from app.models.user import User
from app.utils.clock import utcnow
from app.utils.ids import parse_object_id
from app.utils.permissions import is_admin

logger = logging.getLogger(__name__)


class ProjectService:
    """Service for handling project operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.projects = db["projects"]

    def _doc_to_project(self, doc: dict) -> Project:
        """Convert database document to Project model."""
        return Project(
            _id=str(doc["_id"]),
            owner_id=doc["owner_id"],
            name=doc["name"],
            description=doc.get("description", ""),
            color=doc.get("color", "#3B82F6"),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def create_project(self, user: User, project_create: ProjectCreate) -> Project:
        """
        Create a new project owned by the caller.

        Args:
            user: Acting user
            project_create: Project creation data

        Returns:
            Created project object
        """
        now = utcnow()
        project_doc = {
            "owner_id": user.id,
            "name": project_create.name,
            "description": project_create.description,
            "color": project_create.color,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.projects.insert_one(project_doc)
        project_doc["_id"] = result.inserted_id
        logger.info("User %s created project %s", user.id, project_doc["_id"])

        return self._doc_to_project(project_doc)

    async def list_projects(self, user: User) -> list[Project]:
        """List the caller's projects (all projects for admins)."""
        query = {} if is_admin(user) else {"owner_id": user.id}

        cursor = self.projects.find(query).sort("created_at", -1)
        project_docs = await cursor.to_list(length=None)

        return [self._doc_to_project(doc) for doc in project_docs]

    async def get_project_doc(self, project_id: str) -> dict:
        """
        Load a raw project document.

        Raises:
            NotFoundError: If the project does not exist
        """
        object_id = parse_object_id(project_id, "Project not found")
        project_doc = await self.projects.find_one({"_id": object_id})
        if not project_doc:
            raise NotFoundError("Project not found")
        return project_doc
