from dataclasses import dataclass
from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials

from core.security import bearer_scheme, verify_access_token
from db.mongodb import get_mongo_db
from db.models.user import UserRecord, find_user_by_id
from utils.api_error import ForbiddenError, UnauthorizedError
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """The authenticated principal handed to guarded handlers"""
    user_id: str
    user: UserRecord


async def verify_jwt(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    access_token: Optional[str] = Cookie(None, alias="accessToken"),
) -> AuthContext:
    token = access_token or (credentials.credentials if credentials else None)
    if not token:
        raise UnauthorizedError("Unauthorized request")

    payload = verify_access_token(token)
    if payload is None:
        raise ForbiddenError("Invalid access token")

    user_id = payload["sub"]
    user = await find_user_by_id(get_mongo_db(), user_id)
    if user is None:
        logger.warning(f"Access token for unknown user {user_id}")
        raise UnauthorizedError("Invalid access token")

    return AuthContext(user_id=user_id, user=user)
