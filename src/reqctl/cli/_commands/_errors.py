"""Exception to exit code mapping for reqctl commands."""

from reqctl.cli._commands._shared import ExitCode


def exit_code_for_exception(exc: BaseException) -> ExitCode:
    """Map exception to appropriate exit code.

    Args:
        exc: The exception to map.

    Returns:
        Exit code corresponding to the exception type.
    """
    from reqctl.exceptions import (
        ConcurrencyConflictError,
        ConfigError,
        ConflictError,
        EntityNotFoundError,
        InvalidTransitionError,
        LifecycleValidationError,
        RepositoryError,
    )

    # Checked before ValueError: the transition error is also a ValueError.
    if isinstance(exc, InvalidTransitionError):
        return ExitCode.INVALID_TRANSITION

    if isinstance(exc, EntityNotFoundError):
        return ExitCode.NOT_FOUND

    if isinstance(exc, (LifecycleValidationError, ValueError)):
        return ExitCode.VALIDATION_ERROR

    if isinstance(exc, (ConflictError, ConcurrencyConflictError)):
        return ExitCode.CONFLICT

    if isinstance(exc, ConfigError):
        return ExitCode.LOAD_ERROR

    if isinstance(exc, (RepositoryError, OSError)):
        return ExitCode.IO_ERROR

    return ExitCode.INTERNAL_ERROR
