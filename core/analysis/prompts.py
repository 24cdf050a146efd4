# Prompt templates and response schemas used by the analysis client.

import json
from typing import Any, Dict, Optional


SYSTEM_INSTRUCTION = """
你是一位專業社交溝通教練與聊天助手，擅長透過「自然感」與「故事架構」與異性建立深度連結。

### Core Framework (核心架構)
回覆必須包含：【關鍵字】+【個人故事/想法/情緒分享】+【經過設計的問句】

### Constraints (原則限制)
1. **拒絕套路感**：口語化、自然，絕對不要像機器人或背台詞。
2. **節奏控制**：訊息簡潔，一串話題控制在 2-3 句內，嚴禁長篇大論。
3. **創造 Hook**：擷取故事中的「非常態資訊」（反直覺、有趣、引人好奇點）並放大。
4. **情緒張力**：使用具體的形容詞與適度的誇飾，增加畫面感與情緒起伏。
5. **不聊到底**：適度保留懸念。

### Output Styles (回覆風格)
請提供三個回覆，分別對應以下風格（可根據對話情境微調）：
- **風格 A (輕鬆幽默)**：用於破冰或緩解氣氛，帶點調皮或趣味。
- **風格 B (深度共鳴)**：展現同理心，針對對方內容分享獨特觀點。
- **風格 C (引導提問)**：延伸話題，利用好奇心讓對方想接話。

請務必以**繁體中文 (Traditional Chinese)** 輸出。
"""


PROMPT_PROFILE = """
這是對方的個人資料截圖，請幫我：
1. 建立她的基本檔案 (包含姓名推測)。
2. 分析她的興趣和性格。
3. **重要**：根據她的檔案，提供 3 個適合作為「第一句開場白」的建議。
   這些開場白必須嚴格遵守 System Instruction 中的 Core Framework (關鍵字+故事/情緒+問句) 和 Constraints (拒絕套路)。
{note_block}
"""


PROMPT_CHAT = """
這是我們目前的對話進度。

目標對象檔案: {profile_context}

{note_block}
請根據{source}，分析對方的意圖，並提供三個不同風格的回覆建議。
請嚴格遵循 System Instruction 中的 Output Styles (風格 A, B, C) 提供建議。
務必遵循核心架構：關鍵字 + 故事/情緒 + 問句。
"""


# Companion advice synthesized locally from a profile's opening lines.

OPENER_SITUATION_NAMED = "已完成 {name} 的個人檔案分析，以下是三個根據她的檔案設計的開場白，可以直接拿來開啟對話。"
OPENER_SITUATION_UNNAMED = "已完成對方的個人檔案分析，以下是三個根據她的檔案設計的開場白，可以直接拿來開啟對話。"
OPENER_COACH_TIP = "開場白的目的是讓對方好奇、願意回覆。挑一個最像你自己說話方式的送出，收到回覆後再上傳對話截圖，我會幫你接下去。"


_SUGGESTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "style": {"type": "string", "description": "e.g., 風格 A (輕鬆幽默)"},
        "content": {"type": "string", "description": "The actual suggested text."},
        "explanation": {"type": "string", "description": "Why this suggestion works."},
    },
    "required": ["style", "content", "explanation"],
}


PROFILE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "basicInfo": {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "Inferred name of the person from the bio/image. If unknown, leave empty.",
                },
                "age": {"type": "string"},
                "occupation": {"type": "string"},
                "constellation": {"type": "string"},
                "location": {"type": "string"},
            },
        },
        "interests": {"type": "array", "items": {"type": "string"}},
        "personalityTraits": {"type": "array", "items": {"type": "string"}},
        "summary": {"type": "string", "description": "A brief summary of the target persona"},
        "openingLines": {
            "type": "array",
            "description": "Three opening lines to start a conversation with this specific profile.",
            "items": _SUGGESTION_SCHEMA,
        },
    },
    "required": ["basicInfo", "interests", "personalityTraits", "summary", "openingLines"],
}


CHAT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "situationAnalysis": {
            "type": "string",
            "description": "Analysis of the current conversation mood and the user's last message intent.",
        },
        "suggestions": {"type": "array", "items": _SUGGESTION_SCHEMA},
        "coachTip": {"type": "string", "description": "Final advice on future direction."},
    },
    "required": ["situationAnalysis", "suggestions", "coachTip"],
}


def build_profile_prompt(note: Optional[str] = None) -> str:
    note_block = f"\n使用者補充備註: {note}" if note else ""
    return PROMPT_PROFILE.format(note_block=note_block).strip()


def build_chat_prompt(
    profile_context: Dict[str, Any],
    note: Optional[str] = None,
    has_image: bool = False,
) -> str:
    note_block = (
        f"使用者對於目前狀況的想法/備註(或文字描述的對話內容): {note}\n" if note else ""
    )
    source = "圖片中的對話內容" if has_image else "使用者提供的備註描述"
    return PROMPT_CHAT.format(
        profile_context=json.dumps(profile_context, ensure_ascii=False),
        note_block=note_block,
        source=source,
    ).strip()
