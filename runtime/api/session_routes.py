"""HTTP routes for driving RizzCoach conversation sessions.

Exposes endpoints like:

- POST   /agent/sessions                 -> create + select a session
- GET    /agent/sessions                 -> list sessions (store order)
- GET    /agent/sessions/{id}            -> one session with its transcript
- PATCH  /agent/sessions/{id}            -> rename (blank titles are ignored)
- DELETE /agent/sessions/{id}            -> delete (collection never ends empty)
- POST   /agent/sessions/{id}/select     -> change the current session
- POST   /agent/sessions/{id}/messages   -> send text and/or a screenshot
- GET    /agent/events                   -> recent agent events (optionally by type)
"""

import logging

from fastapi import APIRouter, HTTPException
from typing import Optional

from core.capture.image_capture import capture_base64
from exceptions.exceptions import UnreadableFileError
from ..models.api_models import (
    CreateSessionResponse,
    EventListResponse,
    RenameSessionRequest,
    SendMessageRequest,
    SessionDetailResponse,
    SessionListResponse,
    SessionSummary,
)
from ..store.log_store import LogStore
from ..store.session_store import SessionStore
from ..agents.conversation_agent import ConversationAgent


logger = logging.getLogger(__name__)

# Router for all agent-related endpoints
router = APIRouter()


# Module-level references, to be initialized by the server.
_SESSION_STORE: Optional[SessionStore] = None
_CONVERSATION_AGENT: Optional[ConversationAgent] = None
_LOG_STORE: Optional[LogStore] = None


def init_routes(
    session_store: SessionStore,
    conversation_agent: ConversationAgent,
    log_store: Optional[LogStore] = None,
) -> None:
    """Initialize module-level references used by the route handlers."""
    global _SESSION_STORE, _CONVERSATION_AGENT, _LOG_STORE
    _SESSION_STORE = session_store
    _CONVERSATION_AGENT = conversation_agent
    _LOG_STORE = log_store


def _require_session_store() -> SessionStore:
    if _SESSION_STORE is None:
        raise HTTPException(
            status_code=500,
            detail="SessionStore is not configured on the server.",
        )
    return _SESSION_STORE


def _require_conversation_agent() -> ConversationAgent:
    if _CONVERSATION_AGENT is None:
        raise HTTPException(
            status_code=500,
            detail="ConversationAgent is not configured on the server.",
        )
    return _CONVERSATION_AGENT


def _detail(session_id: str) -> SessionDetailResponse:
    session_store = _require_session_store()
    agent = _require_conversation_agent()
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionDetailResponse.from_session(session, processing=agent.is_processing(session_id))


@router.post("/sessions", response_model=CreateSessionResponse)
async def create_session() -> CreateSessionResponse:
    """Create a new empty session, select it and return its ID."""
    session_store = _require_session_store()
    return CreateSessionResponse(session_id=session_store.create_session())


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions() -> SessionListResponse:
    session_store = _require_session_store()
    current_id = session_store.current_session_id
    return SessionListResponse(
        current_session_id=current_id,
        sessions=[
            SessionSummary.from_session(s, current_id)
            for s in session_store.list_sessions()
        ],
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
async def get_session(session_id: str) -> SessionDetailResponse:
    return _detail(session_id)


@router.patch("/sessions/{session_id}", response_model=SessionDetailResponse)
async def rename_session(session_id: str, request: RenameSessionRequest) -> SessionDetailResponse:
    """Rename a session. Blank titles leave the title unchanged."""
    session_store = _require_session_store()
    if session_id not in session_store:
        raise HTTPException(status_code=404, detail="Session not found")
    session_store.rename_session(session_id, request.title)
    return _detail(session_id)


@router.delete("/sessions/{session_id}", response_model=SessionListResponse)
async def delete_session(session_id: str) -> SessionListResponse:
    """Delete a session (unknown ids are a no-op) and return the remaining list."""
    session_store = _require_session_store()
    session_store.delete_session(session_id)
    return await list_sessions()


@router.post("/sessions/{session_id}/select", response_model=SessionListResponse)
async def select_session(session_id: str) -> SessionListResponse:
    session_store = _require_session_store()
    if not session_store.select_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return await list_sessions()


@router.post("/sessions/{session_id}/messages", response_model=SessionDetailResponse)
async def send_message(session_id: str, request: SendMessageRequest) -> SessionDetailResponse:
    """Send text and/or a screenshot within a session.

    Delegates to ConversationAgent, which decides between profile
    establishment and chat advice. Analysis failures come back as an
    `error` message in the transcript, not as an HTTP error.
    """
    session_store = _require_session_store()
    agent = _require_conversation_agent()

    try:
        if session_id not in session_store:
            raise HTTPException(status_code=404, detail="Session not found")
        if agent.is_processing(session_id):
            raise HTTPException(
                status_code=409,
                detail="A request for this session is already in progress",
            )

        image = None
        if request.image:
            try:
                image = capture_base64(request.image, filename=request.filename)
            except UnreadableFileError as exc:
                raise HTTPException(status_code=400, detail=exc.details)

        await agent.send(session_id, text=request.text, image=image)
        return _detail(session_id)

    except HTTPException as e:
        # Log structured context for any HTTP error (e.g., 400/404/409) so
        # that we can correlate client-side failures with server-side
        # reasons.
        logger.warning(
            "[AGENT] HTTP %s for session_id=%s text=%r reason=%r",
            e.status_code,
            session_id,
            request.text,
            e.detail,
        )
        raise


# --------------------------------------------------------
# Endpoint: GET /events
# --------------------------------------------------------
@router.get("/events", response_model=EventListResponse)
def list_events(event_type: Optional[str] = None) -> EventListResponse:
    """Recent agent events (user_message, profile_established, ...), oldest first."""
    if _LOG_STORE is None:
        raise HTTPException(status_code=500, detail="LogStore is not configured on the server.")
    return EventListResponse(events=_LOG_STORE.recent(event_type))


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
