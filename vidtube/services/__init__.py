"""Services package exports."""

from vidtube.services.auth_service import AuthService
from vidtube.services.logging_service import configure_logging, get_logger
from vidtube.services.media_service import MediaUploadConfig, MediaUploadService
from vidtube.services.user_service import UserService

__all__ = [
    "AuthService",
    "MediaUploadConfig",
    "MediaUploadService",
    "UserService",
    "configure_logging",
    "get_logger",
]
