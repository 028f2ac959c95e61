from __future__ import annotations

import logging
from jose import jwt
from jose.exceptions import JWTError, ExpiredSignatureError
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Any, Dict, Optional
from app.core.config import settings
from app.core.errors import AuthRequiredError

logger = logging.getLogger(__name__)
bearer = HTTPBearer(auto_error=False)

DEV_USER_ID = "123e4567-e89b-12d3-a456-426614174000"
DEV_TOKENS = {"dev-bypass", "dev"}

def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify a bearer JWT and return the caller's identity claims.
    """
    try:
        if settings.JWT_SECRET:
            payload = jwt.decode(
                token,
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                options={"verify_aud": False},
            )
        elif settings.APP_ENV == "dev":
            # Development only: no secret configured, claims are trusted as-is
            logger.warning("No JWT secret configured, using unverified token claims")
            payload = jwt.get_unverified_claims(token)
        else:
            raise AuthRequiredError("Token verification is not configured")
    except ExpiredSignatureError as exc:
        raise AuthRequiredError("Token has expired") from exc
    except JWTError as exc:
        raise AuthRequiredError(f"Invalid token: {exc}") from exc

    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise AuthRequiredError("Token missing user ID")

    return {
        "user_id": str(user_id),
        "role": payload.get("role", "authenticated"),
        "email": payload.get("email"),
    }

async def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Dict[str, Any]:
    """
    Resolve the caller from the Authorization header. Missing or invalid
    tokens are fatal to the call.
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise AuthRequiredError("Missing Authorization header")

    if settings.APP_ENV == "dev" and creds.credentials in DEV_TOKENS:
        logger.info("Dev bypass token used")
        return {"user_id": DEV_USER_ID, "role": "admin"}

    return verify_token(creds.credentials)

async def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if not settings.ADMIN_ROUTES_ENABLED:
        raise AuthRequiredError("Admin routes are disabled")
    if user.get("role") != "admin":
        raise AuthRequiredError("Admin role required")
    return user
