"""Authentication service - business logic for user auth and profiles."""
import logging

from bson import ObjectId
from bson.errors import InvalidId

from app.models.user import User, UserRole, UserUpdate
from app.utils.auth import create_access_token, hash_password, verify_password
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    """Service for handling user authentication."""

    def __init__(self, db):
        """Initialize service with database connection."""
        self.db = db
        self.users = db["users"]

    def _doc_to_user(self, doc: dict) -> User:
        """Convert database document to User model."""
        return User(
            _id=str(doc["_id"]),
            email=doc["email"],
            name=doc["name"],
            role=doc.get("role", UserRole.MEMBER.value),
            hourly_rate=doc.get("hourly_rate", 0.0),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
        )

    async def register_user(
        self,
        email: str,
        password: str,
        name: str,
        hourly_rate: float = 0.0,
    ) -> User:
        """
        Register a new user.

        New users always start with the member role.

        Args:
            email: User email address
            password: Plain text password
            name: User's name
            hourly_rate: Rate snapshotted onto the user's time entries

        Returns:
            User object (without password)

        Raises:
            ValueError: If email is already registered
        """
        existing = await self.users.find_one({"email": email})
        if existing:
            raise ValueError("Email already registered")

        now = utcnow()
        user_doc = {
            "email": email,
            "hashed_password": hash_password(password),
            "name": name,
            "role": UserRole.MEMBER.value,
            "hourly_rate": hourly_rate,
            "created_at": now,
            "updated_at": now,
        }

        result = await self.users.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id
        logger.info("Registered user %s", user_doc["_id"])

        return self._doc_to_user(user_doc)

    async def login(self, email: str, password: str) -> str:
        """
        Login user and return JWT token.

        Raises:
            ValueError: If credentials are invalid
        """
        user_doc = await self.users.find_one({"email": email})
        if not user_doc:
            raise ValueError("Invalid email or password")

        if not verify_password(password, user_doc["hashed_password"]):
            raise ValueError("Invalid email or password")

        return create_access_token(user_id=str(user_doc["_id"]))

    async def get_user_by_id(self, user_id: str) -> User:
        """
        Get user by ID.

        Raises:
            ValueError: If user not found
        """
        try:
            object_id = ObjectId(user_id)
        except (InvalidId, TypeError):
            raise ValueError("Invalid user ID format")

        user_doc = await self.users.find_one({"_id": object_id})
        if not user_doc:
            raise ValueError("User not found")

        return self._doc_to_user(user_doc)

    async def update_profile(self, user_id: str, user_update: UserUpdate) -> User:
        """
        Update the caller's name or hourly rate.

        A changed hourly rate only applies to entries created afterwards;
        existing entries keep the rate they were created with.

        Raises:
            ValueError: If user not found
        """
        update_doc: dict = {"updated_at": utcnow()}
        if user_update.name is not None:
            update_doc["name"] = user_update.name
        if user_update.hourly_rate is not None:
            update_doc["hourly_rate"] = user_update.hourly_rate

        updated_doc = await self.users.find_one_and_update(
            {"_id": ObjectId(user_id)},
            {"$set": update_doc},
            return_document=True,
        )
        if not updated_doc:
            raise ValueError("User not found")

        return self._doc_to_user(updated_doc)
