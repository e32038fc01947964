"""
Request dependencies: who is calling, and shared query filters.

create_access_token() signs a short-lived bearer token for a
user id; the dependencies below verify it and load that user.
"""

from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from usg_portal.config import get_settings
from usg_portal.exceptions import AuthenticationError, ForbiddenError
from usg_portal.models.base import get_db
from usg_portal.models.enums import (
    IssuancePriority,
    IssuanceStatus,
    IssuanceType,
)
from usg_portal.models.user import User
from usg_portal.schemas.issuance import IssuanceFilters

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int) -> str:
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc)
        + timedelta(minutes=settings.JWT_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _user_from_token(token: str, db: Session) -> User:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
        user_id = int(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired", code="TOKEN_EXPIRED")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN")

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return user


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    """The caller, or None for anonymous requests. A bad token is still a 401."""
    if credentials is None:
        return None
    return _user_from_token(credentials.credentials, db)


def get_current_user(
    user: User | None = Depends(get_optional_user),
) -> User:
    if user is None:
        raise AuthenticationError(
            "Access denied. No token provided.", code="NO_TOKEN"
        )
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """ADMIN or SUPER_ADMIN only."""
    if not user.is_admin:
        raise ForbiddenError("Access denied. Insufficient permissions.")
    return user


def get_issuance_filters(
    status: IssuanceStatus | None = None,
    type: IssuanceType | None = None,
    priority: IssuancePriority | None = None,
    department: str | None = None,
    category: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> IssuanceFilters:
    """Query-string filters shared by the admin list and the reports."""
    return IssuanceFilters(
        status=status,
        type=type,
        priority=priority,
        department=department,
        category=category,
        start_date=start_date,
        end_date=end_date,
    )
