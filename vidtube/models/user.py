"""User, channel profile and watch history models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from vidtube.models.base import CamelModel


class User(CamelModel):
    """Public projection of a user. Never carries credentials."""

    id: UUID
    fullname: str
    email: str
    username: str
    avatar: str
    cover_image: str = ""
    created_at: datetime
    updated_at: datetime


class UserRecord(User):
    """Full user row, including the password hash and active refresh token.

    Only used inside services; convert with to_public() before responding.
    """

    password_hash: str
    refresh_token: Optional[str] = None

    def to_public(self) -> User:
        """Drop credential fields."""
        return User(**self.model_dump(exclude={"password_hash", "refresh_token"}))


class ChannelProfile(CamelModel):
    """A user's public channel view with subscription counts."""

    id: UUID
    fullname: str
    username: str
    email: str
    avatar: str
    cover_image: str = ""
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False


class VideoOwner(CamelModel):
    """Owner summary embedded in watch history entries."""

    id: UUID
    fullname: str
    username: str
    avatar: str


class WatchedVideo(CamelModel):
    """A video from a user's watch history."""

    id: UUID
    video_file: str
    thumbnail: str
    title: str
    description: str = ""
    duration: float = 0
    views: int = 0
    is_published: bool = True
    created_at: datetime
    owner: VideoOwner
