"""Bearer JWT authentication for admin routes."""

import logging
import time
from typing import Annotated, Any, Callable

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.middleware.base import BaseHTTPMiddleware

from messaging_api.config import settings

logger = logging.getLogger(__name__)

# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_token(token: str, secret: str) -> dict[str, Any]:
    """Verify an HS256 token signed with the shared secret.

    Args:
        token: The JWT token to verify
        secret: Signing secret

    Returns:
        The decoded token payload

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp"], "verify_exp": True},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected admin token: {e}")
        raise _unauthorized("Invalid token")


async def require_admin(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> dict[str, Any]:
    """Dependency that guards admin routes and reports the token's remaining lifetime."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing authorization token")

    payload = verify_token(credentials.credentials, settings.JWT_SECRET)

    request.state.token_ttl = max(0, int(payload["exp"] - time.time()))
    return payload


class TokenTTLMiddleware(BaseHTTPMiddleware):
    """
    Add X-Token-TTL to every response of an authenticated request,
    including error responses raised after the token was accepted.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        ttl = getattr(request.state, "token_ttl", None)
        if ttl is not None:
            response.headers["X-Token-TTL"] = str(ttl)
        return response
