from typing import Optional

from fastapi import APIRouter, Body, Cookie, Depends, File, Form, UploadFile

from api.dependencies import AuthContext, verify_jwt
from core.config import settings
from schemas.user_schema import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    UpdateAccountRequest,
)
from services import channel_service, user_service
from utils.async_handler import async_handler

router = APIRouter(prefix=f"{settings.API_V1_STR}/users")


@router.post("/register", status_code=201)
@async_handler("register")
async def register(
    fullName: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    coverImage: Optional[UploadFile] = File(None),
):
    return await user_service.register_user(fullName, email, username, password, avatar, coverImage)


@router.post("/login")
@async_handler("login")
async def login(payload: LoginRequest):
    return await user_service.login_user(payload)


@router.post("/logout")
@async_handler("logout")
async def logout(auth: AuthContext = Depends(verify_jwt)):
    return await user_service.logout_user(auth.user)


@router.post("/refresh-token")
@async_handler("refresh_token")
async def refresh_token(
    payload: Optional[RefreshTokenRequest] = Body(None),
    refresh_cookie: Optional[str] = Cookie(None, alias="refreshToken"),
):
    incoming = refresh_cookie or (payload.refresh_token if payload else None)
    return await user_service.refresh_access_token(incoming)


@router.post("/change-password")
@async_handler("change_password")
async def change_password(payload: ChangePasswordRequest, auth: AuthContext = Depends(verify_jwt)):
    return await user_service.change_current_password(auth.user, payload)


@router.get("/current-user")
@async_handler("current_user")
async def current_user(auth: AuthContext = Depends(verify_jwt)):
    return await user_service.get_current_user(auth.user)


@router.patch("/update-account")
@async_handler("update_account")
async def update_account(payload: UpdateAccountRequest, auth: AuthContext = Depends(verify_jwt)):
    return await user_service.update_account_details(auth.user, payload)


@router.patch("/avatar")
@async_handler("update_avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    auth: AuthContext = Depends(verify_jwt),
):
    return await user_service.update_user_avatar(auth.user, avatar)


@router.patch("/coverImage")
@async_handler("update_cover_image")
async def update_cover_image(
    coverImage: Optional[UploadFile] = File(None),
    auth: AuthContext = Depends(verify_jwt),
):
    return await user_service.update_user_cover_image(auth.user, coverImage)


@router.get("/c/{username}")
@async_handler("channel_profile")
async def channel_profile(username: str, auth: AuthContext = Depends(verify_jwt)):
    return await channel_service.get_user_channel_profile(auth.user, username)


@router.get("/history")
@async_handler("watch_history")
async def watch_history(auth: AuthContext = Depends(verify_jwt)):
    return await channel_service.get_watch_history(auth.user)
