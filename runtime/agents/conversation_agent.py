"""ConversationAgent implementation.

Responsible for:
- taking a user "send" (text and/or screenshot) for a session
- deciding whether the next step is "establish profile" or "get reply
  advice", based on the session's state
- calling the analysis client and folding the typed result back into the
  SessionStore as transcript entries

Behavior:
- the user's input is appended immediately, before any network call
- a session without a profile only accepts a profile screenshot
- a session with a profile gets chat advice using that profile as context
- any analysis failure becomes exactly one `error` message; the session
  is otherwise left as it was (no partial profile, no partial advice)
- ConfigurationError is the one failure that propagates to the caller
"""

import logging
from typing import Callable, Optional, Set

from core.analysis import prompts
from core.analysis.client import AnalysisClient
from core.analysis.models import ProfileRecord, ReplyAdvice
from core.capture.image_capture import CapturedImage
from exceptions.exceptions import (
    AnalysisError,
    ConfigurationError,
    MissingProfileImageError,
)
from ..models.session_models import Message, Session, SessionState
from ..store.log_store import LogStore
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)

PROFILE_FAILURE_MESSAGE = "無法分析個人檔案，請確認圖片清晰度。"
CHAT_FAILURE_MESSAGE = "無法分析對話內容，請確認圖片清晰度。"


def build_opener_advice(profile: ProfileRecord) -> ReplyAdvice:
    """Turn a profile's opening lines into an advice card, without a second model call."""
    name = profile.display_name
    if name:
        situation = prompts.OPENER_SITUATION_NAMED.format(name=name)
    else:
        situation = prompts.OPENER_SITUATION_UNNAMED
    return ReplyAdvice(
        situation_analysis=situation,
        suggestions=profile.opening_lines,
        coach_tip=prompts.OPENER_COACH_TIP,
    )


class ConversationAgent:
    """Conversation control logic for RizzCoach.

    Parameters
    ----------
    session_store:
        Store that owns all sessions; the only place results are written.
    analysis_client:
        Either transport strategy (direct or proxied), chosen by the caller.
    log_store:
        Store used to log high-level events (optional).
    on_profile_established:
        Optional callback `(session_id, profile)` fired after a profile is
        attached; the presentation layer uses it to show the profile panel.
    """

    def __init__(
        self,
        session_store: SessionStore,
        analysis_client: AnalysisClient,
        log_store: Optional[LogStore] = None,
        on_profile_established: Optional[Callable[[str, ProfileRecord], None]] = None,
    ):
        self.session_store = session_store
        self.analysis_client = analysis_client
        self.log_store = log_store
        self.on_profile_established = on_profile_established
        # Sessions with an analysis request outstanding.
        self._in_flight: Set[str] = set()

    def is_processing(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def send(
        self,
        session_id: str,
        text: Optional[str] = None,
        image: Optional[CapturedImage] = None,
    ) -> None:
        """Handle one user send for the given session.

        Flow:
        - ignore degenerate calls (nothing to send, unknown session, or a
          request already in flight for this session)
        - append the user's message
        - NO_PROFILE -> establish profile (requires a screenshot)
        - PROFILE_ESTABLISHED -> chat advice with the profile as context
        - fold the result or an error message into the originating session
        """
        text = (text or "").strip()
        if not text and image is None:
            return

        if session_id in self._in_flight:
            logger.warning("[AGENT] Ignoring send for session_id=%s: request in flight", session_id)
            return

        session = self.session_store.get_session(session_id)
        if session is None:
            logger.warning("[AGENT] Ignoring send for unknown session_id=%s", session_id)
            return

        # (1) Optimistic user message.
        self.session_store.append_messages(
            session_id,
            [Message.user_text(text, image=image.preview if image else None)],
        )
        self._log(
            "user_message",
            {"session_id": session_id, "has_text": bool(text), "has_image": image is not None},
        )

        self._in_flight.add(session_id)
        try:
            # (2) Branch on the state read at send time.
            if session.state == SessionState.NO_PROFILE:
                await self._establish_profile(session_id, text, image)
            else:
                await self._advise(session, text, image)
        finally:
            self._in_flight.discard(session_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _establish_profile(
        self,
        session_id: str,
        text: str,
        image: Optional[CapturedImage],
    ) -> None:
        if image is None:
            error = MissingProfileImageError(session_id)
            self._append_error(session_id, error.user_message, stage="profile", reason=str(error))
            return

        try:
            profile = await self.analysis_client.analyze_profile(image.payload, note=text or None)
        except ConfigurationError:
            raise
        except AnalysisError as exc:
            logger.warning("[AGENT] Profile analysis failed for session_id=%s: %s", session_id, exc.reason)
            self._append_error(session_id, PROFILE_FAILURE_MESSAGE, stage="profile", reason=exc.reason)
            return
        except Exception as exc:
            logger.exception("[AGENT] Unexpected error during profile analysis for session_id=%s", session_id)
            self._append_error(session_id, PROFILE_FAILURE_MESSAGE, stage="profile", reason=repr(exc))
            return

        stored = self.session_store.establish_profile(
            session_id,
            profile,
            [
                Message.profile_analysis(profile),
                Message.advice(build_opener_advice(profile)),
            ],
        )
        if not stored:
            return

        self._log(
            "profile_established",
            {"session_id": session_id, "name": profile.display_name},
        )
        if self.on_profile_established is not None:
            try:
                self.on_profile_established(session_id, profile)
            except Exception:
                logger.exception("[AGENT] on_profile_established callback failed for session_id=%s", session_id)

    async def _advise(
        self,
        session: Session,
        text: str,
        image: Optional[CapturedImage],
    ) -> None:
        session_id = session.id
        try:
            advice = await self.analysis_client.analyze_chat(
                image.payload if image else None,
                session.active_profile,
                note=text or None,
            )
        except ConfigurationError:
            raise
        except AnalysisError as exc:
            logger.warning("[AGENT] Chat analysis failed for session_id=%s: %s", session_id, exc.reason)
            self._append_error(session_id, CHAT_FAILURE_MESSAGE, stage="chat", reason=exc.reason)
            return
        except Exception as exc:
            logger.exception("[AGENT] Unexpected error during chat analysis for session_id=%s", session_id)
            self._append_error(session_id, CHAT_FAILURE_MESSAGE, stage="chat", reason=repr(exc))
            return

        if self.session_store.append_messages(session_id, [Message.advice(advice)]):
            self._log(
                "chat_advice",
                {"session_id": session_id, "suggestions": len(advice.suggestions)},
            )

    def _append_error(self, session_id: str, user_message: str, stage: str, reason: str) -> None:
        self.session_store.append_messages(session_id, [Message.error(user_message)])
        self._log(
            "analysis_failed",
            {"session_id": session_id, "stage": stage, "reason": reason},
        )

    def _log(self, event_type: str, payload: dict) -> None:
        if self.log_store is None:
            return
        try:
            self.log_store.log_event(event_type=event_type, payload=payload)
        except Exception:
            # Logging failures should not affect main flow.
            logger.debug("Event logging failed for %s", event_type, exc_info=True)
