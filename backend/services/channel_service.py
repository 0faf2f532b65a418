from typing import Any, Dict, List

from bson import ObjectId

from db.mongodb import get_mongo_db
from db.models.user import UserRecord
from schemas.user_schema import ChannelProfile
from utils.api_error import NotFoundError, ValidationError
from utils.responses import ApiResponse
import logging

logger = logging.getLogger(__name__)


def channel_profile_pipeline(username: str, viewer_id: ObjectId) -> List[Dict[str, Any]]:
    """Channel profile with subscriber counts as seen by ``viewer_id``"""
    return [
        {"$match": {"username": username.strip().lower()}},
        {"$lookup": {
            "from": "subscriptions",
            "localField": "_id",
            "foreignField": "channel",
            "as": "subscribers",
        }},
        {"$lookup": {
            "from": "subscriptions",
            "localField": "_id",
            "foreignField": "subscriber",
            "as": "subscribedTo",
        }},
        {"$addFields": {
            "subscribersCount": {"$size": "$subscribers"},
            "channelsSubscribedToCount": {"$size": "$subscribedTo"},
            "isSubscribed": {
                "$cond": {
                    "if": {"$in": [viewer_id, "$subscribers.subscriber"]},
                    "then": True,
                    "else": False,
                }
            },
        }},
        {"$project": {
            "fullName": 1,
            "username": 1,
            "email": 1,
            "avatar": 1,
            "coverImage": 1,
            "subscribersCount": 1,
            "channelsSubscribedToCount": 1,
            "isSubscribed": 1,
        }},
    ]


def watch_history_pipeline(user_id: ObjectId) -> List[Dict[str, Any]]:
    """Watched videos of a user, each with a trimmed-down owner"""
    return [
        {"$match": {"_id": user_id}},
        {"$lookup": {
            "from": "videos",
            "localField": "watchHistory",
            "foreignField": "_id",
            "as": "watchHistory",
            "pipeline": [
                {"$lookup": {
                    "from": "users",
                    "localField": "owner",
                    "foreignField": "_id",
                    "as": "owner",
                    "pipeline": [
                        {"$project": {"fullName": 1, "username": 1, "avatar": 1}},
                    ],
                }},
                {"$addFields": {"owner": {"$first": "$owner"}}},
            ],
        }},
        {"$project": {"watchHistory": 1}},
    ]


async def get_user_channel_profile(viewer: UserRecord, username: str) -> ApiResponse:
    if not username or not username.strip():
        raise ValidationError("Username is missing")

    db = get_mongo_db()
    channel = await db.users.aggregate(channel_profile_pipeline(username, viewer.id)).to_list(length=1)
    if not channel:
        raise NotFoundError("Channel does not exist")

    profile = ChannelProfile.model_validate(channel[0])
    return ApiResponse(200, profile.to_payload(), "User channel fetched successfully")


async def get_watch_history(user: UserRecord) -> ApiResponse:
    db = get_mongo_db()
    result = await db.users.aggregate(watch_history_pipeline(user.id)).to_list(length=1)
    history = result[0].get("watchHistory", []) if result else []
    logger.debug(f"Loaded {len(history)} watch history entries for {user.username}")
    return ApiResponse(200, history, "Watch history fetched successfully")
