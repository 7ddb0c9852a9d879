from typing import Dict, Any, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from gymapp.core.config import ADMIN_ROLES
from gymapp.core.jwt_auth import jwt_manager
from gymapp.core.exceptions import AuthenticationError, AuthorizationError

security = HTTPBearer(
    scheme_name="JWT Token",
    description="Bearer token issued by the identity service",
    auto_error=False,
)


def is_admin(user: Dict[str, Any]) -> bool:
    return user.get("role") in ADMIN_ROLES


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Authenticated caller as {"id": str, "role": str}"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Authorization required")

    payload = jwt_manager.decode_token(credentials.credentials)

    return {
        "id": str(payload["id"]),
        "role": payload.get("role", "user"),
    }


async def require_admin(
    current_user: Dict[str, Any] = Depends(get_current_user),
) -> Dict[str, Any]:
    """Only admin or super_admin callers"""
    if not is_admin(current_user):
        raise AuthorizationError("Admin privileges required")
    return current_user
