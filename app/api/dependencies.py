from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_async_session
from app.core.exceptions import NotFoundError
from app.core.redis import AttendanceDayLock, redis_client
from app.auth.jwt_handler import decode_access_token
from app.auth.permissions import PermissionChecker
from app.models.auth.user import User
from app.models.hr.employee import Employee
from app.services.hr.attendance_service import AttendanceService
import logging

security = HTTPBearer()
logger = logging.getLogger(__name__)


def _unauthorized(detail: str = "Invalid authentication credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_async_session)
) -> User:
    """Get current authenticated user"""
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized()

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")

    request.state.user_id = user.id
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Get current active user"""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )
    return current_user


def require_permission(resource: str, action: str):
    """
    Dependency to require specific permission for an endpoint

    Examples:
        require_permission("attendance", "write")      # attendance:write
    """
    async def permission_dependency(
        current_user: User = Depends(get_current_active_user)
    ) -> User:
        PermissionChecker(current_user.role).require(resource, action)
        return current_user

    return permission_dependency


async def get_attendance_service(
    session: AsyncSession = Depends(get_async_session)
) -> AttendanceService:
    return AttendanceService(session, lock=AttendanceDayLock(redis_client))


async def get_current_employee(
    current_user: User = Depends(require_permission("attendance", "self")),
    service: AttendanceService = Depends(get_attendance_service),
) -> Employee:
    """Employee profile linked to the authenticated user"""
    employee = await service.get_employee_for_user(current_user)
    if employee is None:
        logger.info(f"User {current_user.id} has no linked employee profile")
        raise NotFoundError("Employee profile not found")
    return employee
