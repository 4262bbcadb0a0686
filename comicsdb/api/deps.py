"""
API dependencies
"""
from typing import Optional

from comicsdb.core.exceptions import EntityNotFoundError, InvalidIdentifierError


def parse_id(value: str, entity: str = "id") -> int:
    """Positive integer path id; anything else is a 400."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidIdentifierError(f"Invalid {entity} id", value=value)
    if parsed <= 0:
        raise InvalidIdentifierError(f"Invalid {entity} id", value=value)
    return parsed


def parse_optional_id(value: Optional[str], entity: str = "id") -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    return parse_id(value, entity)


def found(value, entity: str, entity_id):
    """Pass a service result through, or 404 when it is None."""
    if value is None:
        raise EntityNotFoundError(entity, entity_id)
    return value
