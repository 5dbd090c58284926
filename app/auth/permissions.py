# app/auth/permissions.py
# Role based capabilities for the attendance API

from typing import Dict, FrozenSet, Optional
from app.core.exceptions import ForbiddenError
from app.models.shared.enums import UserRole
import logging

logger = logging.getLogger(__name__)


ROLE_PERMISSIONS: Dict[UserRole, FrozenSet[str]] = {
    UserRole.EMPLOYEE: frozenset({"attendance:self"}),
    UserRole.HR: frozenset({
        "attendance:self",
        "attendance:read",
        "attendance:write",
        "report:read",
    }),
    UserRole.ADMIN: frozenset({"system:admin"}),
}


class PermissionChecker:
    """
    Check what a role is allowed to do
    """

    def __init__(self, role: Optional[UserRole]):
        self.role = UserRole(role) if role else None
        self._permission_map = ROLE_PERMISSIONS.get(self.role, frozenset())

    def can(self, resource: str, action: str) -> bool:
        """
        Check if role can perform action on resource

        Examples:
            can("attendance", "write")
        """
        permission_key = f"{resource}:{action}"
        if permission_key in self._permission_map:
            return True

        # Admin on this resource
        if f"{resource}:admin" in self._permission_map:
            return True

        # Full access
        if "system:admin" in self._permission_map:
            return True

        logger.debug(f"Permission denied: {permission_key} for role {self.role}")
        return False

    def cannot(self, resource: str, action: str) -> bool:
        return not self.can(resource, action)

    def require(self, resource: str, action: str, custom_message: Optional[str] = None):
        """
        Require permission or raise ForbiddenError
        """
        if self.cannot(resource, action):
            message = custom_message or f"Insufficient permissions to {action} {resource}"
            logger.warning(f"Permission check failed: {message}")
            raise ForbiddenError(message)
