"""
Plain-text rendering of sessions, profile cards and advice cards.

Pure functions of their inputs; nothing here changes state.
"""

from __future__ import annotations

from typing import List, Sequence

from core.analysis.models import ProfileRecord, ReplyAdvice, Suggestion
from runtime.models.session_models import Message, MessageRole, MessageType, Session


RULE = "-" * 48

_BASIC_INFO_LABELS = (
    ("name", "姓名"),
    ("age", "年齡"),
    ("occupation", "職業"),
    ("constellation", "星座"),
    ("location", "地點"),
)


def render_suggestions(suggestions: Sequence[Suggestion]) -> List[str]:
    lines: List[str] = []
    for idx, s in enumerate(suggestions, start=1):
        lines.append(f"  {idx}. [{s.style}]")
        lines.append(f"     「{s.content}」")
        lines.append(f"     → {s.explanation}")
    return lines


def render_profile(profile: ProfileRecord) -> str:
    lines = [RULE, "人物檔案"]
    info = profile.basic_info
    for field, label in _BASIC_INFO_LABELS:
        value = getattr(info, field)
        if value:
            lines.append(f"  {label}: {value}")
    if profile.interests:
        lines.append(f"  興趣: {'、'.join(profile.interests)}")
    if profile.personality_traits:
        lines.append(f"  性格: {'、'.join(profile.personality_traits)}")
    lines.append(f"  摘要: {profile.summary}")
    lines.append("開場白建議")
    lines.extend(render_suggestions(profile.opening_lines))
    lines.append(RULE)
    return "\n".join(lines)


def render_advice(advice: ReplyAdvice) -> str:
    lines = [RULE, "情境分析", f"  {advice.situation_analysis}", "回覆建議"]
    lines.extend(render_suggestions(advice.suggestions))
    lines.append(f"教練提示: {advice.coach_tip}")
    lines.append(RULE)
    return "\n".join(lines)


def render_message(message: Message) -> str:
    if message.type == MessageType.PROFILE_ANALYSIS and message.profile_data is not None:
        return render_profile(message.profile_data)
    if message.type == MessageType.CHAT_ADVICE and message.chat_advice is not None:
        return render_advice(message.chat_advice)
    if message.type == MessageType.ERROR:
        return f"[錯誤] {message.content}"

    who = "你" if message.role == MessageRole.USER else "教練"
    parts = []
    if message.image:
        parts.append("[圖片]")
    if message.content:
        parts.append(message.content)
    return f"{who}: {' '.join(parts)}"


def render_session_list(sessions: Sequence[Session], current_id: str) -> str:
    lines = []
    for idx, session in enumerate(sessions, start=1):
        marker = "*" if session.id == current_id else " "
        stamp = session.last_updated.astimezone().strftime("%m-%d %H:%M")
        lines.append(f"{marker} {idx}. {session.title}  ({len(session.messages)} 則, {stamp})")
    return "\n".join(lines)
