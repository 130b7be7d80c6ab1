import uuid
from typing import Any

from ..core.exceptions import NotFoundException


def parse_id(value: Any, resource: str = "Resource") -> uuid.UUID:
    """Ids that are not even well-formed cannot resolve to anything, so they are a 404."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise NotFoundException(f"{resource} not found", code="not_found")
