"""Role-based permission classes shared by the API views."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore


class IsAgent(permissions.BasePermission):
    """
    Only platform agents (or superusers) may access.

    Agents run operational endpoints such as the expiry sweep and the
    admission-conflict report.
    """

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        return hasattr(user, "is_agent") and user.is_agent()


class IsClient(permissions.BasePermission):
    """Only clients may access (booking requests, checkout)."""

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        return hasattr(user, "is_client") and user.is_client()
