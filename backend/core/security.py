import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from core.config import settings
import logging

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer scheme (used by OpenAPI 'Authorize' button). The access token may
# also arrive as a cookie, so a missing header is not an error here.
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    if not plain_password or not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

def _encode(claims: dict, secret: str, expires_delta: timedelta, token_type: str) -> str:
    to_encode = claims.copy()
    to_encode.update({
        "exp": datetime.now(timezone.utc) + expires_delta,
        "jti": uuid.uuid4().hex,
        "type": token_type,
    })
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    return _encode(
        data,
        settings.ACCESS_TOKEN_SECRET,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "access",
    )

def create_refresh_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT refresh token"""
    return _encode(
        data,
        settings.REFRESH_TOKEN_SECRET,
        expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        "refresh",
    )

def _decode(token: str, secret: str, token_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode failed ({token_type}): {e}")
        return None
    if payload.get("type") != token_type or not payload.get("sub"):
        return None
    return payload

def verify_access_token(token: str) -> Optional[dict]:
    """Verify and decode an access token; None when invalid or expired"""
    return _decode(token, settings.ACCESS_TOKEN_SECRET, "access")

def verify_refresh_token(token: str) -> Optional[dict]:
    """Verify and decode a refresh token; None when invalid or expired"""
    return _decode(token, settings.REFRESH_TOKEN_SECRET, "refresh")

def extract_access_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    """Pick the access token from the cookie or a 'Bearer <token>' header"""
    if cookie_token:
        return cookie_token
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None
