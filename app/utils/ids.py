"""ObjectId parsing helpers."""
from bson import ObjectId
from bson.errors import InvalidId

from app.errors import NotFoundError


def parse_object_id(value: str, message: str = "Not found") -> ObjectId:
    """
    Parse a string id into an ObjectId.

    Malformed ids are reported as not found rather than as a format error so
    that callers cannot tell a bad id from a missing document.
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(message)
