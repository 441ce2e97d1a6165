"""Auth request and response models."""

from typing import Optional

from vidtube.models.base import CamelModel
from vidtube.models.user import User


class LoginRequest(CamelModel):
    """Login credentials.

    Either email or username identifies the account. Presence is checked by
    the login handler so that missing fields produce the standard error
    envelope instead of a schema error.
    """

    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    """Request to replace the current user's password."""

    old_password: Optional[str] = None
    new_password: Optional[str] = None


class UpdateAccountRequest(CamelModel):
    """Request to update the current user's name and email."""

    fullname: Optional[str] = None
    email: Optional[str] = None


class TokenPair(CamelModel):
    """Freshly issued access and refresh tokens."""

    access_token: str
    refresh_token: str


class LoginData(TokenPair):
    """Payload returned by a successful login."""

    user: User
