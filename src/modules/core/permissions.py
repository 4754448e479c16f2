"""Actor helpers shared by the order endpoints.

Authentication is delegated to SimpleJWT; the order core only needs to know
whether an authenticated actor is staff (may act on behalf of customers and
drive the status lifecycle) or an ordinary customer account.
"""

from __future__ import annotations

from typing import Any

from rest_framework.permissions import BasePermission


def is_staff_actor(user: Any) -> bool:
    """Return ``True`` for authenticated staff or superuser accounts."""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(getattr(user, "is_staff", False) or getattr(user, "is_superuser", False))


class IsStaffActor(BasePermission):
    """Allow access only to staff accounts (status and payment updates)."""

    message = "This action requires a staff account."

    def has_permission(self, request, view) -> bool:
        return is_staff_actor(request.user)
