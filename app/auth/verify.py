"""
verify.py
---------
Purpose:
    Bearer token verification for dashboard endpoints.

Notes:
    - Tokens are issued by the auth service and signed with JWT_SECRET.
    - `auth_dependency` returns the decoded claims.
    - `current_user` turns claims into a CurrentUser; `require_roles` adds a
      role check on top.
"""

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings

ADMIN_ROLES = frozenset({"ADMIN", "SUPER_ADMIN"})
FOLLOWER_ROLE = "FOLLOWER"

_security = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class CurrentUser:
    user_id: str
    name: str
    phone_number: str
    role: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_jwt(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": True, "require": ["sub"]},
        )
    except jwt.PyJWTError as e:
        raise _unauthorized(f"Invalid authentication token: {e}") from e


def auth_dependency(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> dict:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Unauthorized")
    return verify_jwt(credentials.credentials)


def current_user(claims: dict = Depends(auth_dependency)) -> CurrentUser:
    user_id = claims.get("sub")
    if not user_id:
        raise _unauthorized("Invalid token: missing user ID")

    return CurrentUser(
        user_id=user_id,
        name=claims.get("name") or "",
        phone_number=claims.get("phone_number") or "",
        role=(claims.get("role") or FOLLOWER_ROLE).upper(),
    )


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of `roles`."""
    allowed = frozenset(role.upper() for role in roles)

    def _check(user: CurrentUser = Depends(current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {user.role} may not perform this action",
            )
        return user

    return _check


require_admin = require_roles(*ADMIN_ROLES)
require_follower = require_roles(FOLLOWER_ROLE)
