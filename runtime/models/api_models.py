"""
HTTP request/response models for the RizzCoach runtime API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.analysis.models import ProfileRecord
from .session_models import Message, Session


class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Analysis proxy endpoints
# ---------------------------------------------------------------------------


class AnalyzeProfileRequest(BaseModel):
    image: str = Field(min_length=1)
    note: Optional[str] = None


class AnalyzeChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image: Optional[str] = None
    profile_context: ProfileRecord = Field(alias="profileContext")
    note: Optional[str] = None


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


class CreateSessionResponse(BaseModel):
    session_id: str


class RenameSessionRequest(BaseModel):
    title: str


class SendMessageRequest(BaseModel):
    """
    One user send. `image` is a base64 screenshot (a data URL is accepted).
    At least one of text/image should be present; an empty send is a no-op.
    """
    text: Optional[str] = None
    image: Optional[str] = None
    filename: Optional[str] = None


class SessionSummary(BaseModel):
    id: str
    title: str
    state: str
    message_count: int
    last_updated: datetime
    is_current: bool

    @classmethod
    def from_session(cls, session: Session, current_id: str) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            state=session.state.value,
            message_count=len(session.messages),
            last_updated=session.last_updated,
            is_current=session.id == current_id,
        )


class SessionListResponse(BaseModel):
    current_session_id: str
    sessions: List[SessionSummary]


class EventListResponse(BaseModel):
    events: List[Dict[str, Any]]


class SessionDetailResponse(BaseModel):
    id: str
    title: str
    state: str
    processing: bool
    active_profile: Optional[ProfileRecord] = None
    messages: List[Message]
    last_updated: datetime

    @classmethod
    def from_session(cls, session: Session, processing: bool) -> "SessionDetailResponse":
        return cls(
            id=session.id,
            title=session.title,
            state=session.state.value,
            processing=processing,
            active_profile=session.active_profile,
            messages=session.messages,
            last_updated=session.last_updated,
        )
