"""
Session-related models for the RizzCoach runtime.

These describe:
- Message entries (user uploads/text, profile cards, advice cards, errors)
- a Session (one conversation thread with at most one active profile)
- SessionState (NO_PROFILE, PROFILE_ESTABLISHED)
"""

from enum import Enum
from typing import List, Optional
from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.analysis.models import ProfileRecord, ReplyAdvice


DEFAULT_SESSION_TITLE = "新對話"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    NO_PROFILE = "NO_PROFILE"
    PROFILE_ESTABLISHED = "PROFILE_ESTABLISHED"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    TEXT = "text"
    PROFILE_ANALYSIS = "profile_analysis"
    CHAT_ADVICE = "chat_advice"
    ERROR = "error"


class Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    role: MessageRole
    type: MessageType
    content: Optional[str] = None
    image: Optional[str] = None  # preview reference of a user upload
    profile_data: Optional[ProfileRecord] = Field(default=None, alias="profileData")
    chat_advice: Optional[ReplyAdvice] = Field(default=None, alias="chatAdvice")
    timestamp: datetime = Field(default_factory=_now)

    @model_validator(mode="after")
    def _check_payload(self) -> "Message":
        has_profile = self.profile_data is not None
        has_advice = self.chat_advice is not None

        if self.type == MessageType.TEXT:
            if has_profile or has_advice:
                raise ValueError("text messages carry no analysis payload")
            if not self.content and not self.image:
                raise ValueError("text messages need content or an image")
        elif self.type == MessageType.ERROR:
            if has_profile or has_advice or self.image:
                raise ValueError("error messages carry only content")
            if not (self.content or "").strip():
                raise ValueError("error messages need a non-empty description")
        elif self.type == MessageType.PROFILE_ANALYSIS:
            if not has_profile or has_advice or self.content or self.image:
                raise ValueError("profile_analysis messages carry only profileData")
        elif self.type == MessageType.CHAT_ADVICE:
            if not has_advice or has_profile or self.content or self.image:
                raise ValueError("chat_advice messages carry only chatAdvice")
        return self

    @classmethod
    def user_text(cls, content: Optional[str], image: Optional[str] = None) -> "Message":
        return cls(role=MessageRole.USER, type=MessageType.TEXT, content=content or None, image=image)

    @classmethod
    def profile_analysis(cls, profile: ProfileRecord) -> "Message":
        return cls(role=MessageRole.ASSISTANT, type=MessageType.PROFILE_ANALYSIS, profile_data=profile)

    @classmethod
    def advice(cls, advice: ReplyAdvice) -> "Message":
        return cls(role=MessageRole.ASSISTANT, type=MessageType.CHAT_ADVICE, chat_advice=advice)

    @classmethod
    def error(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, type=MessageType.ERROR, content=content)


class Session(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str = DEFAULT_SESSION_TITLE
    messages: List[Message] = Field(default_factory=list)
    active_profile: Optional[ProfileRecord] = Field(default=None, alias="activeProfile")
    last_updated: datetime = Field(default_factory=_now, alias="lastUpdated")

    @property
    def state(self) -> SessionState:
        if self.active_profile is None:
            return SessionState.NO_PROFILE
        return SessionState.PROFILE_ESTABLISHED
