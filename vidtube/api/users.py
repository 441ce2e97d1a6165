"""User account, session and channel endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile, status

from vidtube.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    extract_token,
    get_current_user,
    get_media_service,
)
from vidtube.config import get_settings
from vidtube.errors import ApiError
from vidtube.models.auth import (
    ChangePasswordRequest,
    LoginData,
    LoginRequest,
    TokenPair,
    UpdateAccountRequest,
)
from vidtube.models.response import ApiResponse
from vidtube.models.user import User
from vidtube.services.auth_service import REFRESH_TOKEN_USED, AuthService
from vidtube.services.media_service import MediaUploadService, stash_upload
from vidtube.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _cookie_options() -> dict:
    settings = get_settings()
    return {
        "httponly": True,
        "secure": settings.cookie_secure,
        "samesite": settings.cookie_samesite,
    }


def _set_token_cookies(response: Response, tokens: TokenPair) -> None:
    """Attach both tokens as http-only cookies."""
    options = _cookie_options()
    response.set_cookie(ACCESS_TOKEN_COOKIE, tokens.access_token, **options)
    response.set_cookie(REFRESH_TOKEN_COOKIE, tokens.refresh_token, **options)


def _clear_token_cookies(response: Response) -> None:
    """Expire both token cookies using the flags they were set with."""
    options = _cookie_options()
    response.delete_cookie(ACCESS_TOKEN_COOKIE, **options)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, **options)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


# ---------------------------------------------------------------------------
# Registration and session lifecycle
# ---------------------------------------------------------------------------

@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_user(
    fullname: str = Form(""),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    media_service: MediaUploadService = Depends(get_media_service),
) -> ApiResponse:
    """Register a new user with an avatar and optional cover image.

    Raises:
        ApiError 400: If a field is blank or the avatar file is missing
        ApiError 409: If the email or username is taken
        ApiError 500: If the avatar upload or user creation fails
    """
    if any(_blank(field) for field in (fullname, email, username, password)):
        raise ApiError(400, "All fields are required")

    fullname, email, username = fullname.strip(), email.strip(), username.strip()

    user_service = UserService()

    existing = await user_service.find_by_email_or_username(email, username)
    if existing is not None:
        raise ApiError(409, "User with email or username already exists")

    temp_dir = media_service.config.temp_dir
    avatar_path = await stash_upload(avatar, temp_dir)
    if avatar_path is None:
        raise ApiError(400, "Avatar file is required")
    cover_image_path = await stash_upload(cover_image, temp_dir)

    avatar_upload = await media_service.upload(avatar_path)
    cover_image_upload = await media_service.upload(cover_image_path)

    if avatar_upload is None:
        raise ApiError(500, "Avatar upload failed")

    cover_image_url = cover_image_upload.url if cover_image_upload else ""
    try:
        user_id = await user_service.create_user(
            fullname=fullname,
            email=email,
            username=username,
            password=password,
            avatar=avatar_upload.url,
            cover_image=cover_image_url,
        )
    except ApiError as e:
        # Lost a race on the unique constraint after uploading
        if e.status_code == status.HTTP_409_CONFLICT:
            logger.warning(
                "registration_media_orphaned",
                username=username,
                avatar_url=avatar_upload.url,
                cover_image_url=cover_image_url or None,
            )
        raise

    created_user = await user_service.get_by_id(user_id)
    if created_user is None:
        raise ApiError(500, "Something went wrong while registering the user")

    logger.info("user_registered", user_id=str(user_id), username=created_user.username)
    return ApiResponse(
        status_code=status.HTTP_201_CREATED,
        data=created_user,
        message="User registered successfully",
    )


@router.post("/login")
async def login_user(body: LoginRequest, response: Response) -> ApiResponse:
    """Log in with email or username and password.

    Sets accessToken and refreshToken cookies and returns both tokens.

    Raises:
        ApiError 400: If identifier or password is missing
        ApiError 404: If no user matches
        ApiError 401: If the password is wrong
    """
    email = None if _blank(body.email) else body.email.strip()
    username = None if _blank(body.username) else body.username.strip()

    if email is None and username is None:
        raise ApiError(400, "username or email is required")
    if not body.password:
        raise ApiError(400, "password is required")

    user_service = UserService()

    record = await user_service.find_by_email_or_username(email, username)
    if record is None:
        raise ApiError(404, "User does not exist")

    if not user_service.verify_password(body.password, record.password_hash):
        logger.info("login_rejected", user_id=str(record.id))
        raise ApiError(401, "Invalid user credentials")

    auth_service = AuthService(user_service)
    tokens = await auth_service.generate_access_and_refresh_tokens(record.id)

    user = await user_service.get_by_id(record.id)
    if user is None:
        raise ApiError(404, "User does not exist")

    _set_token_cookies(response, tokens)

    logger.info("user_logged_in", user_id=str(user.id), username=user.username)
    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=LoginData(
            user=user,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        ),
        message="User logged in successfully",
    )


@router.post("/logout")
async def logout_user(
    response: Response,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Clear the stored refresh token and both token cookies."""
    user_service = UserService()
    await user_service.clear_refresh_token(current_user.id)

    _clear_token_cookies(response)

    logger.info("user_logged_out", user_id=str(current_user.id))
    return ApiResponse(status_code=status.HTTP_200_OK, data={}, message="User logged out")


@router.post("/refresh-token")
async def refresh_access_token(request: Request, response: Response) -> ApiResponse:
    """Exchange the current refresh token for a new token pair.

    The presented token must equal the one stored on the user; superseded
    tokens are rejected even if their signature is still valid.

    Raises:
        ApiError 401: If the token is missing, invalid, expired or superseded
        ApiError 404: If the token's user no longer exists
    """
    incoming_token = extract_token(request, REFRESH_TOKEN_COOKIE)
    if not incoming_token:
        raise ApiError(401, "Unauthorized request")

    user_service = UserService()
    auth_service = AuthService(user_service)

    user_id = auth_service.decode_refresh_token(incoming_token)

    record = await user_service.get_record_by_id(user_id)
    if record is None:
        raise ApiError(404, "User does not exist")

    if record.refresh_token != incoming_token:
        logger.warning("refresh_token_reuse_detected", user_id=str(user_id))
        raise ApiError(401, REFRESH_TOKEN_USED)

    tokens = await auth_service.generate_access_and_refresh_tokens(
        user_id, expected_refresh_token=incoming_token
    )

    _set_token_cookies(response, tokens)

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=tokens,
        message="Access token refreshed",
    )


# ---------------------------------------------------------------------------
# Current user account
# ---------------------------------------------------------------------------

@router.get("/current-user")
async def get_current_user_profile(
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Return the authenticated user."""
    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=current_user,
        message="Current user fetched successfully",
    )


@router.post("/change-password")
async def change_current_password(
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Replace the password after checking the old one.

    Raises:
        ApiError 400: If a field is blank or the old password is wrong
    """
    if _blank(body.old_password) or _blank(body.new_password):
        raise ApiError(400, "All fields are required")

    user_service = UserService()

    record = await user_service.get_record_by_id(current_user.id)
    if record is None:
        raise ApiError(404, "User does not exist")

    if not user_service.verify_password(body.old_password, record.password_hash):
        raise ApiError(400, "Invalid old password")

    await user_service.update_password(current_user.id, body.new_password)

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data={},
        message="Password changed successfully",
    )


@router.patch("/update-account")
async def update_account_details(
    body: UpdateAccountRequest,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Update fullname and email.

    Raises:
        ApiError 400: If either field is blank
        ApiError 409: If the email belongs to another user
    """
    if _blank(body.fullname) or _blank(body.email):
        raise ApiError(400, "All fields are required")

    user_service = UserService()
    user = await user_service.update_account(
        current_user.id, body.fullname.strip(), body.email.strip()
    )
    if user is None:
        raise ApiError(404, "User does not exist")

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=user,
        message="Account details updated successfully",
    )


@router.patch("/avatar")
async def update_user_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    media_service: MediaUploadService = Depends(get_media_service),
) -> ApiResponse:
    """Replace the avatar image.

    Raises:
        ApiError 400: If no file was sent
        ApiError 500: If the upload fails
    """
    avatar_path = await stash_upload(avatar, media_service.config.temp_dir)
    if avatar_path is None:
        raise ApiError(400, "Avatar file is missing")

    uploaded = await media_service.upload(avatar_path)
    if uploaded is None:
        raise ApiError(500, "Error while uploading avatar")

    user = await UserService().update_avatar(current_user.id, uploaded.url)
    if user is None:
        raise ApiError(404, "User does not exist")

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=user,
        message="Avatar image updated successfully",
    )


@router.patch("/cover-image")
async def update_user_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: User = Depends(get_current_user),
    media_service: MediaUploadService = Depends(get_media_service),
) -> ApiResponse:
    """Replace the cover image.

    Raises:
        ApiError 400: If no file was sent
        ApiError 500: If the upload fails
    """
    cover_image_path = await stash_upload(cover_image, media_service.config.temp_dir)
    if cover_image_path is None:
        raise ApiError(400, "Cover image file is missing")

    uploaded = await media_service.upload(cover_image_path)
    if uploaded is None:
        raise ApiError(500, "Error while uploading cover image")

    user = await UserService().update_cover_image(current_user.id, uploaded.url)
    if user is None:
        raise ApiError(404, "User does not exist")

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=user,
        message="Cover image updated successfully",
    )


# ---------------------------------------------------------------------------
# Channel profile and watch history
# ---------------------------------------------------------------------------

@router.get("/c/{username}")
async def get_user_channel_profile(
    username: str,
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Public channel view with subscriber counts.

    Raises:
        ApiError 400: If the username is blank
        ApiError 404: If no such channel exists
    """
    if _blank(username):
        raise ApiError(400, "username is missing")

    channel = await UserService().get_channel_profile(username.strip(), current_user.id)
    if channel is None:
        raise ApiError(404, "channel does not exist")

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=channel,
        message="User channel fetched successfully",
    )


@router.get("/history")
async def get_watch_history(
    current_user: User = Depends(get_current_user),
) -> ApiResponse:
    """Videos the current user has watched, in order, with owner summaries."""
    history = await UserService().get_watch_history(current_user.id)
    if history is None:
        raise ApiError(404, "User does not exist")

    return ApiResponse(
        status_code=status.HTTP_200_OK,
        data=history,
        message="Watch history fetched successfully",
    )
