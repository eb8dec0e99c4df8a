"""Promote an existing user to the admin role.

Usage:
    python scripts/create_admin.py --email someone@example.com
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.models.user import UserRole
from app.utils.clock import utcnow


async def promote_to_admin(mongodb_url: str, db_name: str, email: str) -> bool:
    """Set a user's role to admin. Returns False if no such user exists."""
    client = AsyncIOMotorClient(mongodb_url)
    try:
        result = await client[db_name]["users"].update_one(
            {"email": email},
            {"$set": {"role": UserRole.ADMIN.value, "updated_at": utcnow()}},
        )
    finally:
        client.close()

    return result.matched_count > 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Promote a user to admin")
    parser.add_argument("--email", required=True, help="Email of the user to promote")
    parser.add_argument("--mongodb-url", default=settings.mongodb_url)
    parser.add_argument("--db-name", default=settings.mongodb_db_name)
    args = parser.parse_args()

    if not asyncio.run(promote_to_admin(args.mongodb_url, args.db_name, args.email)):
        print(f"No user with email {args.email}")
        return 1

    print(f"{args.email} is now an admin")
    return 0


if __name__ == "__main__":
    sys.exit(main())
