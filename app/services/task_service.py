"""Task service - the task store the time tracking engine reads from."""
import logging
from typing import Optional

from app.errors import AccessDeniedError, NotFoundError
from app.models.task import Task, TaskCreate, TaskStatus
from app.models.user import User
from app.services.project_service import ProjectService
from app.utils.clock import utcnow
from app.utils.ids import parse_object_id
from app.utils.permissions import can_access_task, is_admin

logger = logging.getLogger(__name__)


class TaskService:
    """Service for handling task operations."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.tasks = db["tasks"]

    def _doc_to_task(self, doc: dict) -> Task:
        """Convert database document to Task model."""
        return Task(
            _id=str(doc["_id"]),
            title=doc["title"],
            description=doc.get("description", ""),
            status=doc.get("status", TaskStatus.TODO.value),
            priority=doc.get("priority", "medium"),
            project_id=doc["project_id"],
            assigned_to=doc.get("assigned_to"),
            created_by=doc["created_by"],
            estimated_hours=doc.get("estimated_hours"),
            actual_hours=doc.get("actual_hours", 0.0),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def create_task(self, user: User, task_create: TaskCreate) -> Task:
        """
        Create a task in an existing project.

        Raises:
            NotFoundError: If the project does not exist
        """
        project_doc = await ProjectService(self.db).get_project_doc(task_create.project_id)

        now = utcnow()
        task_doc = {
            "title": task_create.title,
            "description": task_create.description,
            "status": task_create.status.value,
            "priority": task_create.priority.value,
            "project_id": str(project_doc["_id"]),
            "assigned_to": task_create.assigned_to,
            "created_by": user.id,
            "estimated_hours": task_create.estimated_hours,
            "actual_hours": 0.0,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.tasks.insert_one(task_doc)
        task_doc["_id"] = result.inserted_id
        logger.info("User %s created task %s", user.id, task_doc["_id"])

        return self._doc_to_task(task_doc)

    async def list_tasks(
        self,
        user: User,
        project_id: Optional[str] = None,
    ) -> list[Task]:
        """List tasks the caller created or is assigned to (all for admins)."""
        query: dict = {}
        if not is_admin(user):
            query["$or"] = [{"assigned_to": user.id}, {"created_by": user.id}]
        if project_id:
            query["project_id"] = project_id

        cursor = self.tasks.find(query).sort("created_at", -1)
        task_docs = await cursor.to_list(length=None)

        return [self._doc_to_task(doc) for doc in task_docs]

    async def get_task(self, user: User, task_id: str) -> Task:
        """
        Get a single task the caller has access to.

        Raises:
            NotFoundError: If the task does not exist
            AccessDeniedError: If the caller has no relationship to the task
        """
        return self._doc_to_task(await self.get_trackable_task(user, task_id))

    async def get_trackable_task(self, user: User, task_id: str) -> dict:
        """
        Load a task document the caller may track time against.

        Raises:
            NotFoundError: If the task does not exist
            AccessDeniedError: If the caller is not the assignee, creator or an admin
        """
        object_id = parse_object_id(task_id, "Task not found")
        task_doc = await self.tasks.find_one({"_id": object_id})
        if not task_doc:
            raise NotFoundError("Task not found")

        if not can_access_task(user, task_doc):
            raise AccessDeniedError()

        return task_doc
