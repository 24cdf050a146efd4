"""
Custom exceptions for RizzCoach.

These exceptions are intentionally simple and descriptive.
They are used across:

  - core/capture/
  - core/analysis/
  - runtime/agents/
  - runtime/api/
"""

from typing import Optional


class UnreadableFileError(Exception):
    """
    Raised when a user-selected file cannot be turned into an image payload.

    Covers unreadable paths, non-image MIME types and content that Pillow
    cannot decode. Surfaced to the user immediately; session state is
    never touched.
    """

    def __init__(self, source, details=None):
        self.source = source
        self.details = details or "The file could not be decoded as an image."
        msg = f"Unreadable image file: {source}\nDetails: {self.details}"
        super().__init__(msg)


class MissingProfileImageError(Exception):
    """
    Raised when a session without a profile receives a send that carries
    no profile screenshot.
    """

    user_message = "請先上傳對方的個人資料截圖，才能建立人物檔案。"

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        super().__init__(self.user_message)


class AnalysisError(Exception):
    """
    Base class for failures of a single analysis request.

    `reason` carries the internal description (logged, never shown);
    `user_message` is the generic string shown in the transcript.
    """

    user_message = "分析服務暫時無法使用，請稍後再試。"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class AnalysisTransportError(AnalysisError):
    """
    Raised when the analysis collaborator could not be reached, or
    answered with a non-2xx status.
    """


class AnalysisSchemaError(AnalysisError):
    """
    Raised when the collaborator answered but the body was empty, not
    JSON, or missing required fields.
    """


class AnalysisRequestError(AnalysisError):
    """
    Raised before any network call when a request cannot be meaningful,
    e.g. chat analysis with neither a screenshot nor a note.
    """

    user_message = "請提供對話截圖或文字描述。"


class ConfigurationError(RuntimeError):
    """
    Raised when the model credential is not configured at the transport
    boundary. Not retryable; reported as a server configuration problem.
    """

    user_message = "Server configuration error: API Key missing"

    def __init__(self, details=None):
        self.details = details or self.user_message
        super().__init__(self.details)
