"""reqctl exceptions."""

from pathlib import Path
from typing import Any


class ReqctlError(Exception):
    """Base exception for reqctl errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(ReqctlError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
        source: str | None = None,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected
        self.source: str | None = source


# =============================================================================
# Lifecycle Exceptions
# =============================================================================


class LifecycleError(ReqctlError):
    """Base exception for requirement lifecycle and change-control errors."""


class LifecycleValidationError(LifecycleError, ValueError):
    """Raised when caller input is malformed or missing.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
        expected: Description of what was expected.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str | None = None,
    ) -> None:
        """Initialize with error message and validation context.

        Args:
            message: Human-readable error message.
            field: The field that failed validation.
            value: The invalid value.
            expected: Description of what was expected.
        """
        super().__init__(message)
        self.field: str | None = field
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str | None = expected


class EntityNotFoundError(LifecycleError, KeyError):
    """Raised when a referenced entity does not exist or is tombstoned.

    Attributes:
        entity_type: The kind of entity that was looked up.
        entity_id: The identifier that could not be resolved.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_type: str,
        entity_id: str,
    ) -> None:
        """Initialize with error message and lookup context.

        Args:
            message: Human-readable error message.
            entity_type: The kind of entity that was looked up.
            entity_id: The identifier that could not be resolved.
        """
        super().__init__(message)
        self.entity_type: str = entity_type
        self.entity_id: str = entity_id

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0]) if self.args else ""


class RequirementNotFoundError(EntityNotFoundError):
    """Raised when a requirement cannot be found."""

    def __init__(self, message: str, *, requirement_id: str) -> None:
        """Initialize with error message and requirement context."""
        super().__init__(message, entity_type="requirement", entity_id=requirement_id)
        self.requirement_id: str = requirement_id


class ChangeRequestNotFoundError(EntityNotFoundError):
    """Raised when a change request cannot be found."""

    def __init__(self, message: str, *, change_request_id: str) -> None:
        """Initialize with error message and change request context."""
        super().__init__(
            message, entity_type="change_request", entity_id=change_request_id
        )
        self.change_request_id: str = change_request_id


class BaselineNotFoundError(EntityNotFoundError):
    """Raised when a baseline version of a requirement does not exist.

    Attributes:
        requirement_id: The requirement whose baseline was requested.
        version: The missing baseline version.
    """

    def __init__(self, message: str, *, requirement_id: str, version: int) -> None:
        """Initialize with error message and baseline context.

        Args:
            message: Human-readable error message.
            requirement_id: The requirement whose baseline was requested.
            version: The missing baseline version.
        """
        super().__init__(message, entity_type="baseline", entity_id=requirement_id)
        self.requirement_id: str = requirement_id
        self.version: int = version


class InvalidTransitionError(LifecycleError, ValueError):
    """Raised when a status change is not permitted from the current state.

    Attributes:
        entity_id: The entity whose status change was rejected.
        current: The status the entity is in.
        requested: The status that was requested.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_id: str,
        current: str,
        requested: str,
    ) -> None:
        """Initialize with error message and transition context.

        Args:
            message: Human-readable error message.
            entity_id: The entity whose status change was rejected.
            current: The status the entity is in.
            requested: The status that was requested.
        """
        super().__init__(message)
        self.entity_id: str = entity_id
        self.current: str = current
        self.requested: str = requested


class ConflictError(LifecycleError):
    """Raised when an operation would violate a lifecycle invariant.

    Attributes:
        entity_id: The entity the operation targeted.
        reason: Short machine-readable reason ("has_children", ...).
    """

    def __init__(self, message: str, *, entity_id: str, reason: str) -> None:
        """Initialize with error message and conflict context."""
        super().__init__(message)
        self.entity_id: str = entity_id
        self.reason: str = reason


class ConcurrencyConflictError(LifecycleError):
    """Raised when an entity changed between read and write.

    Attributes:
        entity_id: The entity whose revision check failed.
        expected: The revision the writer read.
        actual: The revision found at commit time.
    """

    def __init__(
        self,
        message: str,
        *,
        entity_id: str,
        expected: int,
        actual: int,
    ) -> None:
        """Initialize with error message and revision context."""
        super().__init__(message)
        self.entity_id: str = entity_id
        self.expected: int = expected
        self.actual: int = actual


class OperationCancelledError(LifecycleError):
    """Raised when a caller cancels a long-running read."""


# =============================================================================
# Repository Exceptions
# =============================================================================


class RepositoryError(ReqctlError):
    """Base exception for persistence errors."""


class RepositoryIOError(RepositoryError):
    """Raised when a project file cannot be read or written.

    Attributes:
        path: Path to the file that caused the error.
        operation: The operation that failed ("read", "write").
        cause: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        operation: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and I/O context.

        Args:
            message: Human-readable error message.
            path: Path to the file that caused the error.
            operation: The operation that failed ("read", "write").
            cause: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.path: Path = path
        self.operation: str = operation
        self.cause: Exception | None = cause


class RepositoryParseError(RepositoryError):
    """Raised when a project file holds content that cannot be decoded.

    Attributes:
        path: Path to the file that caused the error.
        line: Line number where the parse error occurred.
        cause: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path,
        line: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and parse context."""
        super().__init__(message)
        self.path: Path = path
        self.line: int | None = line
        self.cause: Exception | None = cause
