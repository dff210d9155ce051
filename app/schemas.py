from __future__ import annotations

import datetime as dt
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, conlist, constr


Gender = Literal["man", "woman", "non_binary", "other"]
SwipeDirection = Literal["like", "pass", "super_like"]


# ---------- TOKENS ----------

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: uuid.UUID


# ---------- AUTH ----------

class RegisterRequest(BaseModel):
    email: EmailStr
    password: constr(min_length=8, max_length=128)
    display_name: constr(strip_whitespace=True, min_length=1, max_length=100)
    birth_date: dt.date
    gender: Gender
    gender_preference: List[Gender] = []


class LoginRequest(BaseModel):
    email: EmailStr
    password: constr(min_length=8, max_length=128)


# ---------- USERS ----------

FrequencyOption = Literal["never", "sometimes", "often"]

# profile limits
MAX_PHOTOS = 6
MAX_INTERESTS = 10


class Lifestyle(BaseModel):
    drinking: Optional[FrequencyOption] = None
    smoking: Optional[FrequencyOption] = None
    exercise: Optional[FrequencyOption] = None
    diet: Optional[Literal["omnivore", "vegetarian", "vegan", "pescatarian", "other"]] = None
    children: Optional[
        Literal["dont_have", "have", "want_someday", "dont_want", "not_sure"]
    ] = None
    religion: Optional[constr(max_length=100)] = None
    politics: Optional[constr(max_length=100)] = None


class PromptAnswer(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    prompt_id: constr(strip_whitespace=True, min_length=1, max_length=64)
    prompt_text: constr(strip_whitespace=True, min_length=1, max_length=255)
    answer: constr(strip_whitespace=True, min_length=1, max_length=300)


class UserPublic(BaseModel):
    id: uuid.UUID
    display_name: str
    birth_date: dt.date
    gender: str
    gender_preference: List[str] = []
    bio: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None

    height_cm: Optional[int] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    education: Optional[str] = None
    lifestyle: Lifestyle = Field(default_factory=Lifestyle)
    photo_urls: List[str] = []
    interests: List[str] = []
    prompts: List[PromptAnswer] = []

    is_verified: bool = False
    is_premium: bool = False
    last_active: dt.datetime

    class Config:
        from_attributes = True


class UserPrivate(UserPublic):
    email: str
    phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_active: bool


class UserUpdateRequest(BaseModel):
    """
    Partial profile update. Only fields present in the body are applied;
    an explicit null clears a nullable field.
    """

    display_name: Optional[constr(strip_whitespace=True, min_length=1, max_length=100)] = None
    phone: Optional[constr(strip_whitespace=True, max_length=32)] = None
    bio: Optional[constr(max_length=500)] = None
    gender: Optional[Gender] = None
    gender_preference: Optional[List[Gender]] = None
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    city: Optional[str] = None
    country: Optional[str] = None

    height_cm: Optional[int] = Field(default=None, ge=90, le=250)
    job_title: Optional[constr(max_length=128)] = None
    company: Optional[constr(max_length=128)] = None
    education: Optional[constr(max_length=255)] = None
    lifestyle: Optional[Lifestyle] = None
    photo_urls: Optional[conlist(constr(max_length=500), max_length=MAX_PHOTOS)] = None
    interests: Optional[
        conlist(constr(strip_whitespace=True, min_length=1, max_length=50), max_length=MAX_INTERESTS)
    ] = None
    prompts: Optional[List[PromptAnswer]] = None


# ---------- SWIPES / MATCHES ----------

class SwipeRequest(BaseModel):
    target_id: uuid.UUID
    direction: SwipeDirection
    # defaults to the caller
    swiper_id: Optional[uuid.UUID] = None


class SwipeOut(BaseModel):
    id: uuid.UUID
    swiper_id: uuid.UUID
    target_id: uuid.UUID
    direction: str
    created_at: dt.datetime

    class Config:
        from_attributes = True


class MatchOut(BaseModel):
    id: uuid.UUID
    user1_id: uuid.UUID
    user2_id: uuid.UUID
    last_message: Optional[str] = None
    last_message_at: Optional[dt.datetime] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


class SwipeResult(BaseModel):
    swipe: SwipeOut
    match: Optional[MatchOut] = None
    match_created: bool = False


class MatchListItem(MatchOut):
    counterpart: UserPublic


# ---------- MESSAGES ----------

class MessageCreateRequest(BaseModel):
    sender_id: Optional[uuid.UUID] = None
    content: constr(strip_whitespace=True, min_length=1, max_length=2000)
    image_url: Optional[constr(max_length=500)] = None


class MessageOut(BaseModel):
    id: uuid.UUID
    match_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    image_url: Optional[str] = None
    is_read: bool
    created_at: dt.datetime

    class Config:
        from_attributes = True


class MarkReadResponse(BaseModel):
    updated: int


# ---------- POSTS ----------

class PostCreateRequest(BaseModel):
    author_id: Optional[uuid.UUID] = None
    content: constr(strip_whitespace=True, min_length=1, max_length=500)
    image_url: Optional[constr(max_length=500)] = None


class PostUpdateRequest(BaseModel):
    content: Optional[constr(strip_whitespace=True, min_length=1, max_length=500)] = None
    image_url: Optional[constr(max_length=500)] = None


class PostOut(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    content: str
    image_url: Optional[str] = None
    likes_count: int
    comments_count: int
    is_liked_by_current_user: bool = False
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class PostLikeOut(BaseModel):
    id: uuid.UUID
    post_id: uuid.UUID
    user_id: uuid.UUID
    created_at: dt.datetime

    class Config:
        from_attributes = True


class CommentCreateRequest(BaseModel):
    author_id: Optional[uuid.UUID] = None
    content: constr(strip_whitespace=True, min_length=1, max_length=500)


class CommentOut(BaseModel):
    id: uuid.UUID
    post_id: uuid.UUID
    author_id: uuid.UUID
    content: str
    created_at: dt.datetime

    class Config:
        from_attributes = True


# ---------- BLOCKS / REPORTS ----------

class BlockCreateRequest(BaseModel):
    blocked_id: uuid.UUID


class BlockOut(BaseModel):
    id: uuid.UUID
    blocker_id: uuid.UUID
    blocked_id: uuid.UUID
    created_at: dt.datetime

    class Config:
        from_attributes = True


class ReportCreateRequest(BaseModel):
    reason: constr(strip_whitespace=True, min_length=1, max_length=255)
    details: Optional[str] = None
    reported_user_id: Optional[uuid.UUID] = None
    reported_post_id: Optional[uuid.UUID] = None


class ReportOut(BaseModel):
    id: uuid.UUID
    reporter_id: uuid.UUID
    reported_user_id: Optional[uuid.UUID] = None
    reported_post_id: Optional[uuid.UUID] = None
    reason: str
    details: Optional[str] = None
    status: str
    created_at: dt.datetime

    class Config:
        from_attributes = True
