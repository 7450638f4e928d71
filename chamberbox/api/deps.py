from fastapi import Depends, Header, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from dataclasses import dataclass
from typing import Optional, List
import secrets

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.permissions import FULL_PERMISSIONS, NO_PERMISSIONS, StaffPermissions, StaffRole
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.doctor import Doctor
from ..models.staff import StaffMember
from ..models.user import User

async def get_current_user_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    token = credentials.credentials

    token_payload = verify_token(token)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    if not token_payload.sub:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == token_payload.sub).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

async def get_admin_user(
    current_user: User = Depends(require_role([UserRole.ADMIN]))
) -> User:
    """Require admin role."""
    return current_user

@dataclass(frozen=True)
class RequestContext:
    """Who is acting, and for which doctor, resolved once per request."""
    user: User
    doctor: Doctor
    role: UserRole
    staff_role: Optional[StaffRole] = None
    permissions: StaffPermissions = NO_PERMISSIONS

    @property
    def doctor_id(self) -> int:
        return self.doctor.id

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR

    def can(self, permission: str) -> bool:
        return self.permissions.allows(permission)

async def get_request_context(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> RequestContext:
    """Resolve the doctor a user works for and what they may do there."""
    if current_user.role == UserRole.DOCTOR:
        doctor = db.query(Doctor).filter(Doctor.user_id == current_user.id).first()
        if not doctor:
            raise AuthorizationError("Doctor profile not found")
        return RequestContext(
            user=current_user,
            doctor=doctor,
            role=UserRole.DOCTOR,
            permissions=FULL_PERMISSIONS,
        )

    if current_user.role == UserRole.STAFF:
        member = db.query(StaffMember).filter(
            StaffMember.user_id == current_user.id,
            StaffMember.is_active.is_(True)
        ).first()
        if not member:
            raise AuthorizationError("Staff membership is inactive or missing")
        staff_role = member.staff_role
        return RequestContext(
            user=current_user,
            doctor=member.doctor,
            role=UserRole.STAFF,
            staff_role=staff_role,
            permissions=staff_role.permissions,
        )

    raise AuthorizationError("This action is only available to doctors and their staff")

def require_permission(permission: str):
    """Create a dependency that requires one staff permission; doctors hold them all."""
    async def permission_checker(
        context: RequestContext = Depends(get_request_context)
    ) -> RequestContext:
        if not context.can(permission):
            raise AuthorizationError("You do not have permission to perform this action.")
        return context

    return permission_checker

async def get_doctor_context(
    context: RequestContext = Depends(get_request_context)
) -> RequestContext:
    """Require the doctor themselves, not staff."""
    if not context.is_doctor:
        raise AuthorizationError("Only the doctor can perform this action")
    return context

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for authentication and public booking endpoints."""
    client_ip = request.client.host
    key = f"rate_limit:{request.url.path}:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)  # 1 hour window
    else:
        if int(current_requests) >= 10:  # Max 10 requests per hour
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)

async def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None)
) -> None:
    """Scheduler calls must carry the shared secret when one is configured."""
    if not settings.CRON_SECRET:
        return
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise AuthenticationError("Invalid cron secret")
