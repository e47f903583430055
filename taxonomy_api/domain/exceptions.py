"""Domain exceptions.

All domain-level errors raised by the taxonomy services. The API layer
maps each subclass to an HTTP status and a machine-readable error code.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(DomainError):
    """Raised when input is malformed.

    Wrong level/parent combination, empty option set for a select filter,
    wrong value shape. Recoverable by correcting the input.
    """

    error_code = "VALIDATION_ERROR"


class ConflictError(DomainError):
    """Raised on a true identity collision, such as a duplicate slug."""

    error_code = "CONFLICT"


class NotFoundError(DomainError):
    """Raised when a referenced category or filter is missing or inactive."""

    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str, reason: str = "not found") -> None:
        """Initialize not found error.

        Args:
            entity_type: Type of entity (e.g., "Category", "Filter").
            entity_id: ID of the entity.
            reason: Why the entity cannot be used ("not found", "is inactive").
        """
        super().__init__(
            f"{entity_type} {entity_id} {reason}",
            details={"entity_type": entity_type, "entity_id": entity_id, "reason": reason},
        )


class StorageError(DomainError):
    """Raised when the underlying persistence layer fails.

    Reads and assign/unassign are safe to retry; create is not.
    """

    error_code = "STORAGE_ERROR"
