"""
Unified error handling for stackpilot CLI commands.

This module provides standardized error handling, exit codes, and
error reporting for all CLI commands.

Exit Codes:
- 0: Success
- 1: Warning (workflow finished but reported errors)
- 2: Blocked (confirmation declined)
- 10: Configuration error
- 11: Backend error (terraform CLI or remote service failure)
- 12: Synthesis error
- 13: Precondition error (stage invoked out of order)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    BLOCKED = 2
    CONFIG_ERROR = 10
    BACKEND_ERROR = 11
    SYNTH_ERROR = 12
    PRECONDITION_ERROR = 13
    UNKNOWN_ERROR = 127


class StackPilotError(Exception):
    """Base exception for stackpilot errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(StackPilotError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class BackendError(StackPilotError):
    """Raised when a backend executor (local CLI or remote service) fails."""

    exit_code = ExitCode.BACKEND_ERROR


class SynthError(StackPilotError):
    """Raised when synthesizing the configuration fails."""

    exit_code = ExitCode.SYNTH_ERROR


class PreconditionError(StackPilotError):
    """Raised when a stage runs before its backend or plan exists."""

    exit_code = ExitCode.PRECONDITION_ERROR
    show_traceback = True


class BlockedError(StackPilotError):
    """Raised when an operation is blocked (e.g., confirmation declined)."""

    exit_code = ExitCode.BLOCKED


class UnhandledActionError(TypeError):
    """Raised when the state machine receives an unknown action.

    This is a programming error, never a runtime condition. It is
    deliberately not a StackPilotError so stage wrappers let it escape.
    """


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Usage:
        @main_with_error_handling()
        def my_command() -> int:
            # command implementation
            return 0

    Exit codes:
        - StackPilotError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - UnhandledActionError and other exceptions: Returns 127
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except StackPilotError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except UnhandledActionError as e:
                logger.critical("unhandled_action", message=str(e))
                traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: StackPilotError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg


def exit_with_error(error: StackPilotError) -> None:
    """Print error and exit with appropriate code."""
    from stackpilot.cli.ux import error as print_error

    print_error(format_error_message(error))
    sys.exit(error.exit_code)
