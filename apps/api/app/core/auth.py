"""JWT authentication for FastAPI using the auth platform's JWKS.

Sessions are owned by the hosted auth service; this API only verifies the
access token it issued and reads the user id from the ``sub`` claim.
"""

import asyncio
from typing import Annotated, Any

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient, PyJWKClientError

from app.core.config import settings
from app.core.errors import ServiceUnavailable, Unauthorized
from app.core.logging_config import user_id_var

# HTTP Bearer token security scheme
bearer_scheme = HTTPBearer(auto_error=False)

_jwks_client: PyJWKClient | None = None
_jwks_lock = asyncio.Lock()

_BEARER = {"WWW-Authenticate": "Bearer"}


def get_jwks_client() -> PyJWKClient:
    """Get or create JWKS client."""
    global _jwks_client
    if _jwks_client is None:
        jwks_url = settings.auth_jwks_url or f"{settings.auth_url}/.well-known/jwks.json"
        _jwks_client = PyJWKClient(jwks_url, cache_keys=True)
    return _jwks_client


async def verify_token(token: str) -> dict[str, Any]:
    """Verify an access token against the platform's signing keys.

    Raises:
        Unauthorized: If the token is invalid, expired or has no subject
        ServiceUnavailable: If the signing keys cannot be fetched
    """
    try:
        jwks_client = get_jwks_client()
        signing_key = jwks_client.get_signing_key_from_jwt(token)

        payload: dict[str, Any] = jwt.decode(
            token,
            signing_key.key,
            algorithms=["RS256", "ES256"],
            audience=settings.auth_audience,
            issuer=settings.auth_url,
            options={
                "verify_exp": True,
                "verify_aud": True,
                "verify_iss": True,
                "require": ["exp", "sub"],
            },
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token has expired", headers=_BEARER)
    except jwt.InvalidTokenError as e:
        raise Unauthorized(f"Invalid token: {str(e)}", headers=_BEARER)
    except PyJWKClientError:
        # Reset cached client so next request retries fresh
        async with _jwks_lock:
            global _jwks_client
            _jwks_client = None
        raise ServiceUnavailable("Authentication service unavailable")


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    """Get the authenticated user's token payload.

    Raises:
        Unauthorized: If no token provided or token is invalid
    """
    if credentials is None:
        raise Unauthorized("Not authenticated", headers=_BEARER)

    payload = await verify_token(credentials.credentials)
    user_id_var.set(str(payload["sub"]))
    return payload


def get_user_id(user: dict[str, Any]) -> str:
    """User id from a verified token payload."""
    user_id = user.get("sub")
    if not user_id:
        raise Unauthorized("Token has no subject")
    return str(user_id)


# Type alias for dependency injection
CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]
