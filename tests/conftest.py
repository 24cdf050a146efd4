"""
Shared pytest fixtures for the RizzCoach test suite.

Provides fixtures for:
- anyio backend selection for async tests
- sample analysis payloads (profile + chat advice)
- a scripted fake analysis client
- small real image files
"""

import io
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from core.analysis.models import ProfileRecord, ReplyAdvice
from core.capture.image_capture import CapturedImage, capture_bytes


@pytest.fixture
def anyio_backend():
    """Use asyncio backend for async tests."""
    return "asyncio"


def make_png_bytes(color: str = "red", size=(4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def make_profile_payload(name: Optional[str] = "Amy", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "basicInfo": {"name": name} if name is not None else {},
        "interests": ["hiking"],
        "personalityTraits": ["outgoing"],
        "summary": "Loves the outdoors and weekend trips.",
        "openingLines": [
            {
                "style": "風格 A (輕鬆幽默)",
                "content": "你爬山的照片讓我懷疑你是不是山神轉世？",
                "explanation": "Playful hook on her hiking photos.",
            }
        ],
    }
    payload.update(overrides)
    return payload


def make_advice_payload(tip: str = "Keep it light.") -> Dict[str, Any]:
    return {
        "situationAnalysis": "She is enthusiastic and open to meeting.",
        "suggestions": [
            {"style": "風格 A", "content": "太好了！", "explanation": "Matches her energy."},
            {"style": "風格 B", "content": "我也很期待", "explanation": "Shows warmth."},
            {"style": "風格 C", "content": "你想去哪？", "explanation": "Keeps it going."},
        ],
        "coachTip": tip,
    }


class FakeAnalysisClient:
    """Scripted AnalysisClient: returns queued results or raises queued exceptions."""

    def __init__(self) -> None:
        self.profile_results: List[Any] = []
        self.chat_results: List[Any] = []
        self.calls: List[Dict[str, Any]] = []
        self.hook = None

    async def analyze_profile(self, image: str, note: Optional[str] = None) -> ProfileRecord:
        self.calls.append({"op": "profile", "image": image, "note": note})
        if self.hook is not None:
            await self.hook()
        return self._next(self.profile_results)

    async def analyze_chat(
        self,
        image: Optional[str],
        profile_context: ProfileRecord,
        note: Optional[str] = None,
    ) -> ReplyAdvice:
        self.calls.append(
            {"op": "chat", "image": image, "profile": profile_context, "note": note}
        )
        if self.hook is not None:
            await self.hook()
        return self._next(self.chat_results)

    @staticmethod
    def _next(queue: List[Any]) -> Any:
        result = queue.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def captured_image(png_bytes) -> CapturedImage:
    return capture_bytes(png_bytes, filename="profile.png")


@pytest.fixture
def profile_payload() -> Dict[str, Any]:
    return make_profile_payload()


@pytest.fixture
def advice_payload() -> Dict[str, Any]:
    return make_advice_payload()


@pytest.fixture
def fake_client() -> FakeAnalysisClient:
    return FakeAnalysisClient()
