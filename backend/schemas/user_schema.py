from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


def _stringify_id(value: Any) -> Any:
    return str(value) if value is not None else value


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"


class User(CamelModel):
    """User as returned to clients; never carries password or refreshToken"""
    id: str = Field(alias="_id")
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str = ""
    watch_history: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return _stringify_id(value)

    @field_validator("watch_history", mode="before")
    @classmethod
    def _history_ids_to_str(cls, value):
        return [_stringify_id(v) for v in (value or [])]

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class LoginRequest(CamelModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class RefreshTokenRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str


class UpdateAccountRequest(CamelModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


class ChannelProfile(CamelModel):
    id: str = Field(alias="_id")
    full_name: str = ""
    username: str
    email: str = ""
    avatar: str = ""
    cover_image: str = ""
    subscribers_count: int = 0
    channels_subscribed_to_count: int = 0
    is_subscribed: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, value):
        return _stringify_id(value)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
