"""
FastAPI dependency functions for authentication.

These functions are used as FastAPI dependencies to verify tokens
and extract the authenticated user_id from Supabase Auth.

Uses Supabase's JWT Signing Keys system with ECC (P-256) public key verification.
Organization membership and role are NOT part of the token; they are loaded
from the users table by backend/services/sharing_context_service.py.
"""

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Header, HTTPException, status
from jwt import PyJWKClient, decode
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError, PyJWKClientError

from backend.config import settings

logger = logging.getLogger(__name__)

# Caches Supabase's public keys (cache_keys=True handles rotation)
_jwks_client: PyJWKClient | None = None


@dataclass
class AuthenticatedUser:
    """
    Represents an authenticated user with their token.

    Attributes:
        user_id: The user's UUID from the JWT token's 'sub' claim
        access_token: The full JWT access token (for creating authenticated Supabase clients)
    """
    user_id: str
    access_token: str


def get_jwks_client() -> PyJWKClient:
    """
    Get or create the JWKS client instance.

    Returns:
        PyJWKClient: Configured JWKS client for Supabase

    Raises:
        ValueError: If SUPABASE_URL is not configured
    """
    global _jwks_client

    if _jwks_client is None:
        jwks_url = settings.SUPABASE_JWKS_URL
        if not jwks_url:
            raise ValueError(
                "SUPABASE_URL is not configured. "
                "Cannot construct JWKS URL for JWT verification."
            )

        logger.info(f"Initializing JWKS client with URL: {jwks_url}")
        _jwks_client = PyJWKClient(
            jwks_url,
            cache_keys=True,
            max_cached_keys=16,
        )

    return _jwks_client


def _unauthorized(error: str, details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "details": details}
    )


def _extract_bearer_token(authorization: str | None) -> str:
    """Read "Bearer <token>" from the Authorization header."""
    if not authorization:
        logger.warning("Missing Authorization header")
        raise _unauthorized("unauthorized", "Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Invalid Authorization header format")
        raise _unauthorized("unauthorized", "Invalid Authorization header format")

    return parts[1]


def _verify_and_get_user_id(token: str) -> str:
    """
    Verify a Supabase JWT and return its 'sub' claim.

    Raises:
        HTTPException: 401 if the token is invalid, expired, or has no subject
    """
    try:
        signing_key = get_jwks_client().get_signing_key_from_jwt(token)

        # Supabase issuer includes the /auth/v1 path
        issuer = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1"

        payload = decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience="authenticated",
            issuer=issuer,
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_aud": True,
                "verify_iss": True,
            }
        )

    except ExpiredSignatureError:
        logger.warning("Token has expired")
        raise _unauthorized("token_expired", "Authentication token has expired")

    except PyJWKClientError as e:
        logger.error(f"JWKS client error: {str(e)}")
        raise _unauthorized("jwks_error", "Unable to verify token signature")

    except InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise _unauthorized("invalid_token", "Invalid authentication token")

    except Exception as e:
        logger.error(f"Unexpected error during token verification: {str(e)}")
        raise _unauthorized("unauthorized", "Token verification failed")

    user_id = payload.get("sub")
    if not user_id:
        logger.error("Token payload missing 'sub' claim")
        raise _unauthorized("unauthorized", "Invalid token: missing user ID")

    logger.info(f"Token verified successfully for user_id={user_id}")
    return str(user_id)


async def get_authenticated_user(
    authorization: Annotated[str | None, Header()] = None
) -> AuthenticatedUser:
    """
    Verify the Bearer token and return the authenticated user with its token.

    The token is needed downstream to build a per-request Supabase client,
    so every CRM query runs under RLS as this user.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired

    Usage:
        @router.get("/records/{object_api_name}/{record_id}/access")
        async def check_access(
            auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)]
        ):
            supabase_client = get_supabase_client(auth_user.access_token)
    """
    token = _extract_bearer_token(authorization)
    user_id = _verify_and_get_user_id(token)
    return AuthenticatedUser(user_id=user_id, access_token=token)
