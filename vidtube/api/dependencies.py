"""FastAPI dependencies for authentication and shared services."""

from typing import Optional

import structlog
from fastapi import Request

from vidtube.errors import ApiError
from vidtube.models.user import User
from vidtube.services.auth_service import AuthService
from vidtube.services.media_service import MediaUploadService
from vidtube.services.user_service import UserService

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


def extract_token(request: Request, cookie_name: str) -> Optional[str]:
    """Read a token from the named cookie, falling back to a Bearer header.

    Args:
        request: Incoming request
        cookie_name: Cookie checked first

    Returns:
        Token string, or None if neither source carries one
    """
    token = request.cookies.get(cookie_name)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return None


async def get_current_user(request: Request) -> User:
    """Resolve the access token on the request to a user.

    The user is also stored on request.state.user for downstream handlers.

    Args:
        request: Incoming request carrying an accessToken cookie or Bearer header

    Returns:
        Authenticated User (no password or refresh token)

    Raises:
        ApiError 401: If the token is missing, invalid or expired, or the user
            lookup fails or finds nothing
    """
    token = extract_token(request, ACCESS_TOKEN_COOKIE)
    if not token:
        raise ApiError(401, "Unauthorized request")

    auth_service = AuthService()
    user_id = auth_service.decode_access_token(token)

    user_service = UserService()
    try:
        user = await user_service.get_by_id(user_id)
    except Exception as e:
        logger.warning(
            "access_token_user_lookup_failed",
            user_id=str(user_id),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ApiError(401, "Invalid access token", cause=e) from e

    if user is None:
        logger.info("access_token_user_missing", user_id=str(user_id))
        raise ApiError(401, "Invalid access token")

    request.state.user = user
    return user


def get_media_service(request: Request) -> MediaUploadService:
    """Return the media upload service created at startup."""
    return request.app.state.media_service
