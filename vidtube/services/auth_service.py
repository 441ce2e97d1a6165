"""Access/refresh token issuance and verification."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import jwt
import structlog

from vidtube.config import get_settings
from vidtube.errors import ApiError
from vidtube.models.auth import TokenPair
from vidtube.models.user import User
from vidtube.services.user_service import UserService

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

TOKEN_GENERATION_FAILED = "Something went wrong while generating refresh and access token"
REFRESH_TOKEN_USED = "Refresh token is expired or used"


class AuthService:
    """Mints, verifies and persists the access/refresh token pair."""

    def __init__(self, user_service: Optional[UserService] = None):
        self.settings = get_settings()
        self.user_service = user_service or UserService()

    def create_access_token(self, user: User) -> str:
        """Create a signed JWT access token.

        Args:
            user: User the token identifies

        Returns:
            Encoded JWT string
        """
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "fullname": user.fullname,
            "type": ACCESS_TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + timedelta(minutes=self.settings.access_token_expiry_minutes),
        }
        return jwt.encode(payload, self.settings.access_token_secret, algorithm=JWT_ALGORITHM)

    def create_refresh_token(self, user_id: UUID) -> str:
        """Create a signed JWT refresh token carrying only the user id."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(user_id),
            "type": REFRESH_TOKEN_TYPE,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + timedelta(days=self.settings.refresh_token_expiry_days),
        }
        return jwt.encode(payload, self.settings.refresh_token_secret, algorithm=JWT_ALGORITHM)

    def decode_access_token(self, token: str) -> UUID:
        """Verify an access token and return the user id it names.

        Raises:
            ApiError 401: If the token is invalid, expired, malformed or not an access token
        """
        return self._decode(
            token,
            self.settings.access_token_secret,
            ACCESS_TOKEN_TYPE,
            "Invalid access token",
        )

    def decode_refresh_token(self, token: str) -> UUID:
        """Verify a refresh token and return the user id it names.

        Raises:
            ApiError 401: If the token is invalid, expired, malformed or not a refresh token
        """
        return self._decode(
            token,
            self.settings.refresh_token_secret,
            REFRESH_TOKEN_TYPE,
            "Invalid refresh token",
        )

    def _decode(self, token: str, secret: str, token_type: str, message: str) -> UUID:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp", "type"]},
            )
        except jwt.ExpiredSignatureError as e:
            logger.info("token_expired", kind=token_type)
            raise ApiError(401, message, cause=e) from e
        except jwt.InvalidTokenError as e:
            logger.info("token_rejected", kind=token_type, reason=str(e))
            raise ApiError(401, message, cause=e) from e

        if payload.get("type") != token_type:
            logger.info("token_type_mismatch", expected=token_type, got=payload.get("type"))
            raise ApiError(401, message)

        try:
            return UUID(payload["sub"])
        except (TypeError, ValueError) as e:
            logger.info("token_subject_malformed", kind=token_type)
            raise ApiError(401, message, cause=e) from e

    async def generate_access_and_refresh_tokens(
        self,
        user_id: UUID,
        expected_refresh_token: Optional[str] = None,
    ) -> TokenPair:
        """Mint a token pair and store the refresh token on the user.

        Args:
            user_id: User to issue tokens for
            expected_refresh_token: When rotating, the refresh token that must
                still be stored for the write to go through

        Returns:
            TokenPair with the new access and refresh tokens

        Raises:
            ApiError 500: If the user is missing or persistence fails
            ApiError 401: If another call rotated the refresh token first
        """
        try:
            user = await self.user_service.get_by_id(user_id)
            if user is None:
                raise LookupError(f"User {user_id} not found")

            access_token = self.create_access_token(user)
            refresh_token = self.create_refresh_token(user.id)

            if expected_refresh_token is None:
                stored = await self.user_service.set_refresh_token(user.id, refresh_token)
                if not stored:
                    raise LookupError(f"User {user_id} vanished before token was stored")
            else:
                stored = await self.user_service.rotate_refresh_token(
                    user.id, expected_refresh_token, refresh_token
                )
        except Exception as e:
            logger.error(
                "token_generation_failed",
                user_id=str(user_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ApiError(500, TOKEN_GENERATION_FAILED, cause=e) from e

        if not stored:
            raise ApiError(401, REFRESH_TOKEN_USED)

        logger.info(
            "tokens_issued",
            user_id=str(user_id),
            rotated=expected_refresh_token is not None,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)
