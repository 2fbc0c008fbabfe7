"""Project context for log correlation and project scoping."""

from contextvars import ContextVar
from typing import Optional

# Context variable for project_id
project_id_var: ContextVar[Optional[str]] = ContextVar("project_id", default=None)


def set_project_context(project_id: str | None) -> None:
    """Set the current project context.

    Args:
        project_id: Project ID to set in context
    """
    project_id_var.set(project_id)


def get_project_context() -> str | None:
    """Get the current project context.

    Returns:
        Current project ID or None
    """
    return project_id_var.get()


def clear_project_context() -> None:
    """Clear the current project context."""
    project_id_var.set(None)
