"""Visibility package: role-scoped filtering of entity collections."""

from opsdesk.visibility.filter import ViewingContext, VisibilityFilter

__all__ = ["ViewingContext", "VisibilityFilter"]
