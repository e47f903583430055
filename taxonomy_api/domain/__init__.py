"""Domain layer - error taxonomy shared by services and the API."""

from taxonomy_api.domain.exceptions import (
    ConflictError,
    DomainError,
    NotFoundError,
    StorageError,
    ValidationError,
)

__all__ = [
    "ConflictError",
    "DomainError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
]
