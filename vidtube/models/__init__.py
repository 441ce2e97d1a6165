"""Models package exports."""

from vidtube.models.auth import (
    ChangePasswordRequest,
    LoginData,
    LoginRequest,
    TokenPair,
    UpdateAccountRequest,
)
from vidtube.models.media import UploadResult
from vidtube.models.response import ApiResponse, ErrorResponse
from vidtube.models.user import (
    ChannelProfile,
    User,
    UserRecord,
    VideoOwner,
    WatchedVideo,
)

__all__ = [
    "ApiResponse",
    "ChangePasswordRequest",
    "ChannelProfile",
    "ErrorResponse",
    "LoginData",
    "LoginRequest",
    "TokenPair",
    "UpdateAccountRequest",
    "UploadResult",
    "User",
    "UserRecord",
    "VideoOwner",
    "WatchedVideo",
]
