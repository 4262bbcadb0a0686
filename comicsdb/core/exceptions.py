"""
Comics DB Exception Hierarchy

All exceptions carry code, message and details so route handlers can
render them as JSON and logs keep the context.

Exception Hierarchy:
    CatalogError
    ├── InvalidIdentifierError   (400)
    ├── EntityNotFoundError      (404)
    └── ImageProviderError
        └── ImageProviderRateLimited
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """
    Base exception for all catalog errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: P0-P3 severity level
    """

    default_code: str = "CATALOG_ERROR"
    default_severity: str = "P2"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class InvalidIdentifierError(CatalogError):
    """Malformed id or parameter in the request path/query."""
    default_code = "INVALID_IDENTIFIER"
    default_severity = "P3"
    status_code = 400

    def __init__(self, message: str, value: Any = None, **kwargs):
        details = kwargs.pop("details", {})
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, details=details, **kwargs)


class EntityNotFoundError(CatalogError):
    """A well-formed id that matches no live row."""
    default_code = "NOT_FOUND"
    default_severity = "P3"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any, **kwargs):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} not found",
            details={"entity": entity, "id": str(entity_id)},
            **kwargs,
        )


class ImageProviderError(CatalogError):
    """Secondary image provider failed. Never surfaced to clients."""
    default_code = "IMAGE_PROVIDER_ERROR"
    default_severity = "P3"
    status_code = 502


class ImageProviderRateLimited(ImageProviderError):
    """Provider answered 429."""
    default_code = "IMAGE_PROVIDER_RATE_LIMITED"

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        self.retry_after = retry_after
        super().__init__(message, details={"retry_after": retry_after}, **kwargs)
