"""
Pydantic schemas for the EchoWorld API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class OkResponse(BaseModel):
    ok: bool = True


# Auth


class SignupRequest(BaseModel):
    email: str = ""
    password: str = ""
    date_of_birth: Optional[str] = None
    tos_accepted: bool = False


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class SessionResponse(BaseModel):
    token: str
    user_id: str
    expires_at: float


class ForgotPasswordRequest(BaseModel):
    email: str = ""


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


class MeResponse(BaseModel):
    user_id: str
    email: Optional[str] = None
    profile: Optional[dict] = None


class DeleteAccountRequest(BaseModel):
    password: Optional[str] = None


# Profiles


class HandleCheckResponse(BaseModel):
    available: bool


class HandleUpdateRequest(BaseModel):
    handle: str


class HandleUpdateResponse(BaseModel):
    ok: bool = True
    handle: str


class PublicProfileRequest(BaseModel):
    enabled: bool


class ProfileUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=2000)


class SettingsUpdateRequest(BaseModel):
    default_echo_visibility: Optional[str] = None
    default_anonymous: Optional[bool] = None
    allow_responses: Optional[bool] = None
    allow_mirrors: Optional[bool] = None
    notifications_soft: Optional[bool] = None
    theme: Optional[str] = None
    for_me_enabled: Optional[bool] = None
    for_me_use_likes: Optional[bool] = None
    for_me_use_mirrors: Optional[bool] = None
    for_me_include_fresh: Optional[bool] = None
    for_me_max_items: Optional[int] = None


class FollowResponse(BaseModel):
    following: bool
    followers: int
    following_count: int


class UploadResponse(BaseModel):
    url: str


# Echoes


class EchoCreateRequest(BaseModel):
    content: str
    title: Optional[str] = None
    emotion: Optional[str] = None
    visibility: Optional[str] = None
    status: Optional[Literal["draft", "published"]] = None
    is_anonymous: Optional[bool] = None
    country: Optional[str] = None
    city: Optional[str] = None
    language: Optional[str] = None
    lng: Optional[float] = None
    lat: Optional[float] = None
    theme_tags: list[str] = Field(default_factory=list)
    emotion_tags: list[str] = Field(default_factory=list)


class EchoCreateResponse(BaseModel):
    id: str
    status: str
    share_url: str


class LikeToggleRequest(BaseModel):
    liked: bool


class ReactionToggleRequest(BaseModel):
    reaction_type: str
    on: bool


class CommentCreateRequest(BaseModel):
    content: str


class MirrorCreateRequest(BaseModel):
    content: str


class EchoMetaRequest(BaseModel):
    echo_ids: list[str] = Field(default_factory=list, max_length=200)


# Messages


class ConversationCreateRequest(BaseModel):
    other_user_id: str = ""
    echo_id: Optional[str] = None


class ConversationCreateResponse(BaseModel):
    ok: bool = True
    conversation_id: str
    created: bool


class MessageSendRequest(BaseModel):
    content: str
    payload: Optional[dict] = None


class MessageReactionRequest(BaseModel):
    emoji: str


class MessageReactionResponse(BaseModel):
    added: bool
    reaction: Optional[dict] = None


class TypingRequest(BaseModel):
    typing: bool = True
    display_name: Optional[str] = None
    handle: Optional[str] = None


class PresenceRequest(BaseModel):
    user_ids: list[str] = Field(default_factory=list, max_length=200)


# Notifications


class UnreadCountsResponse(BaseModel):
    unread_messages: int
    unread_notifications: int
