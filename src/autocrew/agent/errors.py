"""Shared error sanitization for user-facing error messages.

Ensures internal details (tracebacks, file paths, worker internals) are
never leaked to the user through the ``lead.response`` channel.
"""

from __future__ import annotations

from autocrew.core.exceptions import (
    AgentNotFoundError,
    ConfigurationError,
    EventTimeoutError,
    ProjectNotFoundError,
    ValidationError,
    WorkerExecutionError,
    WorkflowDefinitionError,
    WorkflowError,
)


def friendly_error_message(error: BaseException) -> str:
    """Return a short, user-readable message for common error types.

    Strips internal details and maps known error classes to safe messages.
    """
    if isinstance(error, ProjectNotFoundError):
        return "I couldn't find that project. Try selecting a purpose to start a new one."
    if isinstance(error, AgentNotFoundError):
        return "One of the team members is no longer available. Let me set up the team again."
    if isinstance(error, WorkflowDefinitionError):
        return "That workflow isn't set up correctly. This has been logged for investigation."
    if isinstance(error, WorkflowError):
        return "I can't start the build yet. Pick what you'd like to build first."
    if isinstance(error, WorkerExecutionError):
        who = f"The {error.role} step" if error.role else "One of the steps"
        return f"{who} ran into a problem. You can ask me to try again."
    if isinstance(error, EventTimeoutError):
        return "The request took too long. Please try again."
    if isinstance(error, ConfigurationError):
        return "Something is wrong with my configuration. Please check the settings."
    if isinstance(error, ValidationError):
        if "unknown purpose" in str(error).lower():
            return "I don't know how to build that kind of project yet. Please pick one of the listed options."
        return "I didn't understand that request. Could you rephrase it?"

    error_type = type(error).__name__.lower()
    error_str = str(error).lower()

    if "timeout" in error_type or "timeout" in error_str:
        return "The request took too long. Please try again."
    if isinstance(error, (PermissionError, IsADirectoryError)) or "permission" in error_str:
        return "I couldn't save your project files. Please check the storage location."
    if isinstance(error, OSError):
        return "Having trouble reading or writing project files. Please try again."
    return "Something unexpected happened. Please try again."
