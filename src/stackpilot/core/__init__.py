"""Core modules for stackpilot - centralized definitions and utilities."""

from stackpilot.core.errors import (
    BackendError,
    BlockedError,
    ConfigurationError,
    ExitCode,
    PreconditionError,
    StackPilotError,
    SynthError,
    UnhandledActionError,
    exit_with_error,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "StackPilotError",
    "ConfigurationError",
    "BackendError",
    "SynthError",
    "PreconditionError",
    "BlockedError",
    "UnhandledActionError",
    "main_with_error_handling",
    "format_error_message",
    "exit_with_error",
]
