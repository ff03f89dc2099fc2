"""
Authentication for the Cromwell API

Validates JWT access tokens issued by the CMS and provides user context.
Token payload: {"sub": <user id>, "username": ..., "roles": "administrator,author", "iat", "exp"}
"""
from typing import List, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings

JWT_ALGORITHM = "HS256"

# Role hierarchy: administrator > author > customer > guest
ROLE_LEVELS = {
    "administrator": 4,
    "author": 3,
    "customer": 2,
    "guest": 1,
}

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)


class AuthUserInfo(BaseModel):
    """User data extracted from an access token"""
    id: int
    username: Optional[str] = None
    roles: List[str] = []

    @property
    def level(self) -> int:
        return max((ROLE_LEVELS.get(role, 0) for role in self.roles), default=0)


def get_auth_secret() -> str:
    secret = settings.AUTH_SECRET
    if not secret:
        raise ValueError("AUTH_SECRET environment variable is not set")
    return secret


def decode_access_token(token: str) -> dict:
    """
    Decode and validate an access token.

    Raises:
        HTTPException 401 if the token is expired or invalid
    """
    try:
        return jwt.decode(token, get_auth_secret(), algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"}
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"}
        )


def _payload_to_user(payload: dict) -> Optional[AuthUserInfo]:
    user_id = payload.get("sub")
    if user_id is None:
        return None

    roles = payload.get("roles") or ""
    if isinstance(roles, str):
        roles = [role.strip() for role in roles.split(",") if role.strip()]

    return AuthUserInfo(id=int(user_id), username=payload.get("username"), roles=roles)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthUserInfo:
    """Dependency that extracts and validates the current user from the bearer token"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"}
        )

    user = _payload_to_user(decode_access_token(credentials.credentials))
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing user id",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[AuthUserInfo]:
    """Like get_current_user, but anonymous requests give None"""
    if not credentials:
        return None
    return _payload_to_user(decode_access_token(credentials.credentials))


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.put("/admin/settings")
        async def update(user: AuthUserInfo = Depends(require_role("administrator"))):
            ...
    """
    async def role_checker(
        user: AuthUserInfo = Depends(get_current_user)
    ) -> AuthUserInfo:
        if user.level < ROLE_LEVELS.get(required_role, 0):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {required_role}"
            )
        return user

    return role_checker


require_admin = require_role("administrator")
