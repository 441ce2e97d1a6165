"""User persistence, credential checks and refresh token storage."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import bcrypt
import structlog

from vidtube.database import get_pool
from vidtube.errors import ApiError
from vidtube.models.user import (
    ChannelProfile,
    User,
    UserRecord,
    VideoOwner,
    WatchedVideo,
)

logger = structlog.get_logger(__name__)

# Columns safe to return to clients; password_hash and refresh_token are never selected
PUBLIC_COLUMNS = "id, fullname, email, username, avatar, cover_image, created_at, updated_at"
RECORD_COLUMNS = f"{PUBLIC_COLUMNS}, password_hash, refresh_token"

CHANNEL_PROFILE_QUERY = """
    SELECT
        u.id, u.fullname, u.username, u.email, u.avatar, u.cover_image,
        (SELECT COUNT(*) FROM subscriptions s WHERE s.channel_id = u.id)
            AS subscribers_count,
        (SELECT COUNT(*) FROM subscriptions s WHERE s.subscriber_id = u.id)
            AS channels_subscribed_to_count,
        EXISTS (
            SELECT 1 FROM subscriptions s
            WHERE s.channel_id = u.id AND s.subscriber_id = $2
        ) AS is_subscribed
    FROM users u
    WHERE u.username = LOWER($1)
"""

WATCH_HISTORY_QUERY = """
    SELECT
        v.id, v.video_file, v.thumbnail, v.title, v.description, v.duration,
        v.views, v.is_published, v.created_at,
        o.id AS owner_id, o.fullname AS owner_fullname,
        o.username AS owner_username, o.avatar AS owner_avatar
    FROM users u
    CROSS JOIN LATERAL UNNEST(u.watch_history) WITH ORDINALITY AS h(video_id, position)
    JOIN videos v ON v.id = h.video_id
    JOIN users o ON o.id = v.owner_id
    WHERE u.id = $1
    ORDER BY h.position
"""


def _to_user(row) -> User:
    return User(**dict(row))


def _to_record(row) -> UserRecord:
    return UserRecord(**dict(row))


def _to_watched_video(row) -> WatchedVideo:
    return WatchedVideo(
        id=row["id"],
        video_file=row["video_file"],
        thumbnail=row["thumbnail"],
        title=row["title"],
        description=row["description"],
        duration=row["duration"],
        views=row["views"],
        is_published=row["is_published"],
        created_at=row["created_at"],
        owner=VideoOwner(
            id=row["owner_id"],
            fullname=row["owner_fullname"],
            username=row["owner_username"],
            avatar=row["owner_avatar"],
        ),
    )


class UserService:
    """Service for user CRUD, password verification and session storage."""

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise
        """
        return bcrypt.checkpw(
            password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(
        self,
        fullname: str,
        email: str,
        username: str,
        password: str,
        avatar: str,
        cover_image: str = "",
    ) -> UUID:
        """Create a new user with a hashed password and lowercase username.

        Args:
            fullname: Display name
            email: Unique email address
            username: Unique username (stored lowercase)
            password: Plain-text password (will be hashed)
            avatar: Avatar URL on the media host
            cover_image: Cover image URL, or empty string

        Returns:
            UUID of the created user

        Raises:
            ApiError 409: If email or username was taken concurrently
        """
        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = self.hash_password(password)
        username = username.lower()

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, fullname, email, username, password_hash,
                                       avatar, cover_image, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    """,
                    user_id,
                    fullname,
                    email,
                    username,
                    password_hash,
                    avatar,
                    cover_image,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            logger.warning("user_create_conflict", username=username)
            raise ApiError(409, "User with email or username already exists", cause=e) from e

        logger.info("user_created", user_id=str(user_id), username=username)
        return user_id

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get the public projection of a user.

        Args:
            user_id: User UUID

        Returns:
            User model or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {PUBLIC_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _to_user(row)

    async def get_record_by_id(self, user_id: UUID) -> Optional[UserRecord]:
        """Get a user including password hash and stored refresh token."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {RECORD_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _to_record(row)

    async def find_by_email_or_username(
        self, email: Optional[str], username: Optional[str]
    ) -> Optional[UserRecord]:
        """Find the first user matching the email or the (lowercased) username.

        Args:
            email: Email to match, or None
            username: Username to match case-insensitively, or None

        Returns:
            Matching UserRecord or None
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {RECORD_COLUMNS}
                FROM users
                WHERE email = $1 OR username = LOWER($2)
                LIMIT 1
                """,
                email,
                username,
            )

        if row is None:
            return None
        return _to_record(row)

    async def update_password(self, user_id: UUID, password: str) -> None:
        """Replace a user's password hash."""
        password_hash = self.hash_password(password)
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET password_hash = $1, updated_at = $2 WHERE id = $3",
                password_hash,
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("user_password_changed", user_id=str(user_id))

    async def update_account(
        self, user_id: UUID, fullname: str, email: str
    ) -> Optional[User]:
        """Update fullname and email.

        Raises:
            ApiError 409: If the email belongs to another user
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE users
                    SET fullname = $1, email = $2, updated_at = $3
                    WHERE id = $4
                    RETURNING {PUBLIC_COLUMNS}
                    """,
                    fullname,
                    email,
                    datetime.now(timezone.utc),
                    user_id,
                )
        except asyncpg.UniqueViolationError as e:
            raise ApiError(409, "Email is already in use", cause=e) from e

        if row is None:
            return None

        logger.info("user_account_updated", user_id=str(user_id))
        return _to_user(row)

    async def update_avatar(self, user_id: UUID, avatar: str) -> Optional[User]:
        """Point the user's avatar at a new media URL."""
        return await self._update_media_column(user_id, "avatar", avatar)

    async def update_cover_image(self, user_id: UUID, cover_image: str) -> Optional[User]:
        """Point the user's cover image at a new media URL."""
        return await self._update_media_column(user_id, "cover_image", cover_image)

    async def _update_media_column(
        self, user_id: UUID, column: str, url: str
    ) -> Optional[User]:
        if column not in ("avatar", "cover_image"):
            raise ValueError(f"Not a media column: {column}")

        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET {column} = $1, updated_at = $2
                WHERE id = $3
                RETURNING {PUBLIC_COLUMNS}
                """,
                url,
                datetime.now(timezone.utc),
                user_id,
            )

        if row is None:
            return None

        logger.info("user_media_updated", user_id=str(user_id), field=column)
        return _to_user(row)

    # ------------------------------------------------------------------
    # Refresh token slot
    # ------------------------------------------------------------------

    async def set_refresh_token(self, user_id: UUID, refresh_token: str) -> bool:
        """Overwrite the stored refresh token, touching no other column.

        Returns:
            True if the user row was updated, False if the user does not exist
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE users SET refresh_token = $1 WHERE id = $2",
                refresh_token,
                user_id,
            )

        return result == "UPDATE 1"

    async def rotate_refresh_token(
        self, user_id: UUID, expected_token: str, refresh_token: str
    ) -> bool:
        """Replace the stored refresh token only if it still equals expected_token.

        Of two concurrent rotations presenting the same token, exactly one
        succeeds.

        Returns:
            True if the token was rotated, False if it had already changed
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users SET refresh_token = $1
                WHERE id = $2 AND refresh_token = $3
                """,
                refresh_token,
                user_id,
                expected_token,
            )

        rotated = result == "UPDATE 1"
        if not rotated:
            logger.warning("refresh_token_rotation_lost", user_id=str(user_id))
        return rotated

    async def clear_refresh_token(self, user_id: UUID) -> None:
        """Forget the stored refresh token (logout)."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET refresh_token = NULL WHERE id = $1",
                user_id,
            )

        logger.info("refresh_token_cleared", user_id=str(user_id))

    # ------------------------------------------------------------------
    # Channel profile and watch history
    # ------------------------------------------------------------------

    async def get_channel_profile(
        self, username: str, viewer_id: Optional[UUID] = None
    ) -> Optional[ChannelProfile]:
        """Look up a channel by username with subscription counts.

        Args:
            username: Channel owner's username (case-insensitive)
            viewer_id: Requesting user, used for the is_subscribed flag

        Returns:
            ChannelProfile or None if no such channel
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(CHANNEL_PROFILE_QUERY, username, viewer_id)

        if row is None:
            return None
        return ChannelProfile(**dict(row))

    async def get_watch_history(self, user_id: UUID) -> Optional[list[WatchedVideo]]:
        """Return the user's watch history in viewing order.

        Returns:
            List of videos with owner summaries, or None if the user is gone
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            exists = await conn.fetchval("SELECT 1 FROM users WHERE id = $1", user_id)
            if exists is None:
                return None
            rows = await conn.fetch(WATCH_HISTORY_QUERY, user_id)

        return [_to_watched_video(row) for row in rows]
