from typing import Dict, Optional, Tuple

from fastapi import UploadFile
from pymongo.errors import DuplicateKeyError

from core.security import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, verify_refresh_token
from db.mongodb import get_mongo_db
from db.models.user import (
    UserRecord,
    clear_refresh_token,
    find_user_by_id,
    find_user_by_identity,
    insert_user,
    set_password,
    set_refresh_token,
    update_user_fields,
)
from schemas.user_schema import (
    ChangePasswordRequest,
    LoginRequest,
    UpdateAccountRequest,
    User,
)
from utils.api_error import (
    ApiError,
    ConflictError,
    InternalError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from utils.media_upload import store_upload
from utils.responses import ApiResponse
import logging

logger = logging.getLogger(__name__)

TOKEN_COOKIES = [ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def sanitize(user: UserRecord) -> Dict:
    return User.model_validate(user.public_dict()).to_payload()


def _token_response(message: str, access_token: str, refresh_token: str, data: Dict) -> ApiResponse:
    return ApiResponse(
        200,
        data,
        message,
        cookies={ACCESS_TOKEN_COOKIE: access_token, REFRESH_TOKEN_COOKIE: refresh_token},
        no_store=True,
    )


async def generate_access_and_refresh_tokens(user_id) -> Tuple[str, str]:
    """Mint a new token pair and store the refresh token on the user"""
    try:
        db = get_mongo_db()
        user = await find_user_by_id(db, user_id)
        if user is None:
            raise UnauthorizedError("Invalid refresh token")
        access_token = user.generate_access_token()
        refresh_token = user.generate_refresh_token()
        await set_refresh_token(db, user.id, refresh_token)
        return access_token, refresh_token
    except ApiError:
        raise
    except Exception as e:
        logger.error(f"Token generation failed for {user_id}: {e}")
        raise InternalError("Something went wrong while generating access and refresh tokens") from e


async def register_user(
    full_name: Optional[str],
    email: Optional[str],
    username: Optional[str],
    password: Optional[str],
    avatar: Optional[UploadFile],
    cover_image: Optional[UploadFile] = None,
) -> ApiResponse:
    """Create an account; avatar upload is mandatory, cover image optional"""
    fields = {"fullName": full_name, "email": email, "username": username, "password": password}
    missing = [name for name, value in fields.items() if _is_blank(value)]
    if missing:
        raise ValidationError(
            "All fields are required",
            errors=[{"field": name, "message": f"{name} is required"} for name in missing],
        )

    db = get_mongo_db()
    if await find_user_by_identity(db, username=username, email=email):
        raise ConflictError("User with email or username already exists")

    if avatar is None or not avatar.filename:
        raise ValidationError("Avatar file is required")

    avatar_url = await store_upload(avatar)
    cover_image_url = await store_upload(cover_image)
    if not avatar_url:
        raise ValidationError("Avatar is required")

    try:
        user = await insert_user(
            db,
            full_name=full_name,
            email=email,
            username=username,
            password=password,
            avatar=avatar_url,
            cover_image=cover_image_url or "",
        )
    except DuplicateKeyError as e:
        raise ConflictError("User with email or username already exists") from e

    created = await find_user_by_id(db, user.id)
    if created is None:
        raise InternalError("Something went wrong while registering the user")

    logger.info(f"Registered user {created.username} ({created.id})")
    return ApiResponse(201, sanitize(created), "User registered successfully")


async def login_user(payload: LoginRequest) -> ApiResponse:
    if _is_blank(payload.username) and _is_blank(payload.email):
        raise ValidationError("Username or email is required")

    db = get_mongo_db()
    user = await find_user_by_identity(db, username=payload.username, email=payload.email)
    if user is None:
        raise NotFoundError("User does not exist")

    if not user.is_password_correct(payload.password):
        raise UnauthorizedError("Invalid user credentials")

    access_token, refresh_token = await generate_access_and_refresh_tokens(user.id)
    logged_in = await find_user_by_id(db, user.id)
    logger.info(f"User {user.username} logged in")
    return _token_response(
        "User logged in successfully",
        access_token,
        refresh_token,
        {"user": sanitize(logged_in), "accessToken": access_token, "refreshToken": refresh_token},
    )


async def logout_user(user: UserRecord) -> ApiResponse:
    await clear_refresh_token(get_mongo_db(), user.id)
    logger.info(f"User {user.username} logged out")
    return ApiResponse(200, {}, "User logged out", clear_cookies=TOKEN_COOKIES, no_store=True)


async def refresh_access_token(incoming_refresh_token: Optional[str]) -> ApiResponse:
    """Exchange the current refresh token for a new pair (rotation on use)"""
    if not incoming_refresh_token:
        raise UnauthorizedError("Unauthorized request")

    decoded = verify_refresh_token(incoming_refresh_token)
    if decoded is None:
        raise UnauthorizedError("Invalid refresh token")

    user = await find_user_by_id(get_mongo_db(), decoded.get("sub"))
    if user is None:
        raise UnauthorizedError("Invalid refresh token")

    if incoming_refresh_token != user.refresh_token:
        raise UnauthorizedError("Refresh token is expired or used")

    access_token, refresh_token = await generate_access_and_refresh_tokens(user.id)
    return _token_response(
        "Access token refreshed",
        access_token,
        refresh_token,
        {"accessToken": access_token, "refreshToken": refresh_token},
    )


async def change_current_password(user: UserRecord, payload: ChangePasswordRequest) -> ApiResponse:
    if not user.is_password_correct(payload.old_password):
        raise ValidationError("Invalid old password")
    if _is_blank(payload.new_password):
        raise ValidationError("New password is required")
    await set_password(get_mongo_db(), user.id, payload.new_password)
    return ApiResponse(200, {}, "Password changed successfully")


async def get_current_user(user: UserRecord) -> ApiResponse:
    return ApiResponse(200, sanitize(user), "Current user fetched successfully")


async def update_account_details(user: UserRecord, payload: UpdateAccountRequest) -> ApiResponse:
    if _is_blank(payload.full_name) or _is_blank(payload.email):
        raise ValidationError("All fields are required")

    db = get_mongo_db()
    email = payload.email.strip().lower()
    other = await find_user_by_identity(db, email=email)
    if other is not None and other.id != user.id:
        raise ConflictError("Email is already in use")

    try:
        updated = await update_user_fields(db, user.id, {"fullName": payload.full_name.strip(), "email": email})
    except DuplicateKeyError as e:
        raise ConflictError("Email is already in use") from e
    return ApiResponse(200, sanitize(updated), "Account details updated successfully")


async def _update_image(user: UserRecord, upload: Optional[UploadFile], field: str, label: str) -> ApiResponse:
    if upload is None or not upload.filename:
        raise ValidationError(f"{label} file is missing")
    url = await store_upload(upload)
    if not url:
        raise ValidationError(f"Error while uploading {label.lower()}")
    updated = await update_user_fields(get_mongo_db(), user.id, {field: url})
    return ApiResponse(200, sanitize(updated), f"{label} updated successfully")


async def update_user_avatar(user: UserRecord, avatar: Optional[UploadFile]) -> ApiResponse:
    return await _update_image(user, avatar, "avatar", "Avatar")


async def update_user_cover_image(user: UserRecord, cover_image: Optional[UploadFile]) -> ApiResponse:
    return await _update_image(user, cover_image, "coverImage", "Cover image")
