"""User documents in the ``users`` collection and their write path.

Document shape::

    {
        "_id": ObjectId,
        "username": str,        # unique, lower-cased
        "email": str,           # unique, lower-cased
        "fullName": str,
        "avatar": str,          # cloudinary url
        "coverImage": str,      # cloudinary url or ""
        "watchHistory": [ObjectId, ...],
        "password": str,        # bcrypt hash, never plaintext
        "refreshToken": str,    # absent when logged out
        "createdAt": datetime,
        "updatedAt": datetime,
    }
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase

from core.security import (
    create_access_token,
    create_refresh_token,
    get_password_hash,
    verify_password,
)

PRIVATE_FIELDS = ("password", "refreshToken")


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class UserRecord:
    """A loaded user document with the credential operations on it."""

    def __init__(self, doc: Dict[str, Any]):
        self.doc = doc

    @property
    def id(self) -> ObjectId:
        return self.doc["_id"]

    @property
    def username(self) -> str:
        return self.doc.get("username", "")

    @property
    def email(self) -> str:
        return self.doc.get("email", "")

    @property
    def full_name(self) -> str:
        return self.doc.get("fullName", "")

    @property
    def refresh_token(self) -> Optional[str]:
        return self.doc.get("refreshToken")

    def is_password_correct(self, password: str) -> bool:
        return verify_password(password, self.doc.get("password", ""))

    def generate_access_token(self) -> str:
        return create_access_token({
            "sub": str(self.id),
            "email": self.email,
            "username": self.username,
            "fullName": self.full_name,
        })

    def generate_refresh_token(self) -> str:
        return create_refresh_token({"sub": str(self.id)})

    def public_dict(self) -> Dict[str, Any]:
        """The document without the secret and the stored refresh token"""
        return {k: v for k, v in self.doc.items() if k not in PRIVATE_FIELDS}


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def find_user_by_id(db: AsyncIOMotorDatabase, user_id: Any) -> Optional[UserRecord]:
    oid = to_object_id(user_id)
    if oid is None:
        return None
    doc = await db.users.find_one({"_id": oid})
    return UserRecord(doc) if doc else None


async def find_user_by_identity(
    db: AsyncIOMotorDatabase, username: Optional[str] = None, email: Optional[str] = None
) -> Optional[UserRecord]:
    """First user matching any of the given identifiers"""
    clauses = []
    if username:
        clauses.append({"username": username.strip().lower()})
    if email:
        clauses.append({"email": email.strip().lower()})
    if not clauses:
        return None
    doc = await db.users.find_one({"$or": clauses})
    return UserRecord(doc) if doc else None


async def insert_user(
    db: AsyncIOMotorDatabase,
    *,
    full_name: str,
    email: str,
    username: str,
    password: str,
    avatar: str,
    cover_image: str = "",
) -> UserRecord:
    """Insert a new user; the password is hashed here, before it is stored.

    Raises pymongo's DuplicateKeyError when username or email is taken.
    """
    now = _now()
    doc = {
        "username": username.strip().lower(),
        "email": email.strip().lower(),
        "fullName": full_name.strip(),
        "avatar": avatar,
        "coverImage": cover_image or "",
        "watchHistory": [],
        "password": get_password_hash(password),
        "createdAt": now,
        "updatedAt": now,
    }
    result = await db.users.insert_one(doc)
    doc["_id"] = result.inserted_id
    return UserRecord(doc)


async def set_password(db: AsyncIOMotorDatabase, user_id: ObjectId, password: str) -> None:
    await db.users.update_one(
        {"_id": user_id},
        {"$set": {"password": get_password_hash(password), "updatedAt": _now()}},
    )


async def set_refresh_token(db: AsyncIOMotorDatabase, user_id: ObjectId, refresh_token: str) -> None:
    await db.users.update_one({"_id": user_id}, {"$set": {"refreshToken": refresh_token}})


async def clear_refresh_token(db: AsyncIOMotorDatabase, user_id: ObjectId) -> None:
    await db.users.update_one({"_id": user_id}, {"$unset": {"refreshToken": 1}})


async def update_user_fields(
    db: AsyncIOMotorDatabase, user_id: ObjectId, fields: Dict[str, Any]
) -> Optional[UserRecord]:
    """Apply a $set and return the updated record"""
    update = dict(fields)
    update["updatedAt"] = _now()
    await db.users.update_one({"_id": user_id}, {"$set": update})
    return await find_user_by_id(db, user_id)
