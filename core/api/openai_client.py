"""
core.api.openai_client

Thin wrapper around the OpenAI Chat Completions API for RizzCoach.

Any OpenAI-compatible endpoint works (set OPENAI_BASE_URL, e.g. Gemini's
OpenAI compatibility endpoint). Used by:
  - core/analysis/client.py (DirectAnalysisClient)
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI

from core.capture.image_capture import sniff_image_mime


# -------------------------------------------------------------------
# Client cache
# -------------------------------------------------------------------

_CLIENT_CACHE: Dict[Tuple[str, Optional[str]], AsyncOpenAI] = {}


def get_client(api_key: str, base_url: Optional[str] = None) -> AsyncOpenAI:
    """Return a shared AsyncOpenAI client for this key/endpoint pair."""
    cache_key = (api_key, base_url)
    if cache_key not in _CLIENT_CACHE:
        _CLIENT_CACHE[cache_key] = AsyncOpenAI(api_key=api_key, base_url=base_url)
    return _CLIENT_CACHE[cache_key]


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _extract_json_from_text(text: str) -> str:
    """
    Normalize model text output into a raw JSON string.

    Handles common patterns like Markdown ```json fenced blocks and
    extra prose around the JSON object by extracting the first JSON-like
    block from the text.
    """
    text = text.strip()

    # Strip Markdown code fences if present.
    if text.startswith("```"):
        lines = text.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    # Best-effort extraction of the first {...} block.
    if "{" in text and "}" in text:
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end != -1 and end > start:
            return text[start : end + 1].strip()

    return text


def _image_data_url(image_b64: str) -> str:
    if image_b64.startswith("data:"):
        return image_b64
    return f"data:{sniff_image_mime(image_b64)};base64,{image_b64}"


def build_messages(
    prompt: str,
    *,
    system_instruction: Optional[str] = None,
    image_b64: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Build the chat messages: optional system turn, then image (if any) before the text."""
    messages: List[Dict[str, Any]] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction.strip()})

    content: List[Dict[str, Any]] = []
    if image_b64:
        content.append(
            {"type": "image_url", "image_url": {"url": _image_data_url(image_b64)}}
        )
    content.append({"type": "text", "text": prompt})
    messages.append({"role": "user", "content": content})
    return messages


# -------------------------------------------------------------------
# Public function
# -------------------------------------------------------------------


async def send_structured_request(
    client: AsyncOpenAI,
    prompt: str,
    *,
    model: str,
    schema_name: str,
    schema: Dict[str, Any],
    system_instruction: Optional[str] = None,
    image_b64: Optional[str] = None,
) -> Any:
    """
    Send a prompt (plus optional screenshot) and return the decoded JSON body.

    Parameters
    ----------
    client : AsyncOpenAI
        The client to call (see get_client).
    prompt : str
        The instructional text.
    model : str
        Model name.
    schema_name, schema :
        JSON schema passed as the `json_schema` response format. The model
        is asked to fill it; the caller still validates the result.
    system_instruction : str, optional
        Coaching persona sent as the system message.
    image_b64 : str, optional
        Base64 screenshot; sent as a data URL.

    Returns
    -------
    Any
        The decoded JSON value, or None if the model returned no text.

    Raises
    ------
    OpenAIError
        If the API call fails.
    ValueError
        If the model text is not valid JSON.
    """
    completion = await client.chat.completions.create(
        model=model,
        messages=build_messages(
            prompt,
            system_instruction=system_instruction,
            image_b64=image_b64,
        ),
        response_format={
            "type": "json_schema",
            "json_schema": {"name": schema_name, "schema": schema},
        },
    )

    if not completion.choices:
        return None

    text = completion.choices[0].message.content or ""
    if not text.strip():
        return None

    cleaned_text = _extract_json_from_text(text)
    try:
        return json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse JSON from model output: {e}") from e
