"""
Structured records produced by the analysis collaborator.

Wire names are camelCase (as returned by the model and by the proxy
endpoints); attributes are snake_case. Records are frozen: once a
ProfileRecord is attached to a session it is never edited, only replaced.
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_payload(self) -> Dict[str, Any]:
        """Return the camelCase JSON-ready dict used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Suggestion(_Record):
    """
    One coaching recommendation.

    `style` is a free label (by convention 風格 A / B / C).
    """
    style: str = Field(min_length=1)
    content: str = Field(min_length=1)
    explanation: str = Field(min_length=1)


class BasicInfo(_Record):
    # Models sometimes answer "age": 28.
    model_config = ConfigDict(populate_by_name=True, frozen=True, coerce_numbers_to_str=True)

    name: Optional[str] = None
    age: Optional[str] = None
    occupation: Optional[str] = None
    constellation: Optional[str] = None
    location: Optional[str] = None


class ProfileRecord(_Record):
    """AI-derived persona of the person in a profile screenshot."""
    basic_info: BasicInfo = Field(alias="basicInfo")
    interests: Tuple[str, ...]
    personality_traits: Tuple[str, ...] = Field(alias="personalityTraits")
    summary: str = Field(min_length=1)
    opening_lines: Tuple[Suggestion, ...] = Field(alias="openingLines", min_length=1)

    @property
    def display_name(self) -> Optional[str]:
        name = (self.basic_info.name or "").strip()
        return name or None


class ReplyAdvice(_Record):
    """AI-derived advice for an in-progress conversation."""
    situation_analysis: str = Field(alias="situationAnalysis")
    suggestions: Tuple[Suggestion, ...]
    coach_tip: str = Field(alias="coachTip")
