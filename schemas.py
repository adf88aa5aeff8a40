"""
Database Schemas

Pydantic models for the MongoDB documents of Campus Quest. Stored keys are
camelCase, matching what the frontend sends and reads.

Collections:
- User -> "users" (quest posts are embedded in the user document)
- Quest -> "quests"
- CurrentQuest -> "currentquest" (append-only, latest timestamp wins)
- Media -> "media" (staged uploads, one per user/quest pair)
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

DEFAULT_PFP = "images/pfp-default.png"
DEFAULT_BIO = "Make your bio here"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class Profile(CamelModel):
    display_name: Optional[str] = None
    pfp: str = Field(DEFAULT_PFP, alias="PFP")
    bio: str = DEFAULT_BIO


class Settings(CamelModel):
    notifications: bool = True


class QuestPost(CamelModel):
    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    quest_id: Optional[str] = None
    user_id: Optional[str] = None
    media_path: Optional[str] = None
    caption: str = ""
    quest_description: str = ""
    likes: int = Field(0, ge=0)
    flagged: int = Field(0, ge=0)
    needs_review: bool = False
    time_stamp: datetime = Field(default_factory=_now)
    liked_by: List[str] = Field(default_factory=list)
    flagged_by: List[str] = Field(default_factory=list)


class User(CamelModel):
    login: str
    password: str
    email: Optional[EmailStr] = None
    email_verified: bool = False
    quest_completed: int = Field(0, ge=0)
    mobile_device_token: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile: Profile = Field(default_factory=Profile)
    settings: Settings = Field(default_factory=Settings)
    quest_posts: List[QuestPost] = Field(default_factory=list)
    friends: List[ObjectId] = Field(default_factory=list)
    reset_password_token: Optional[str] = None
    reset_password_expires: Optional[datetime] = None


class Quest(CamelModel):
    title: str
    description: Optional[str] = None
    is_cycled: bool = False


class CurrentQuest(CamelModel):
    quest_id: ObjectId
    timestamp: datetime = Field(default_factory=_now)
    quest_data: dict[str, Any] = Field(default_factory=dict)


class Media(CamelModel):
    user_id: str
    quest_id: str
    file_path: str
    upload_timestamp: datetime = Field(default_factory=_now)


class RequestBody(CamelModel):
    """Base for endpoint bodies; every field optional so handlers report missing ones."""

    jwt_token: Optional[str] = None


class UserRequest(RequestBody):
    user_id: Optional[str] = None
